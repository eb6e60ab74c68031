# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
JSON-RPC 2.0 messages for the host-facing MCP stdio protocol

Inbound messages are validated into a closed set of request variants at the
parse boundary; outbound frames are built by the helpers below.
"""

import json
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, ValidationError

from ambassador_client.core.errors import JsonRpcError

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

RequestId = Union[StrictInt, StrictStr, StrictFloat, None]


class JsonRpcMessage(BaseModel):
    """Envelope shared by every inbound message"""
    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"]
    id: RequestId = None
    method: Optional[StrictStr] = None
    params: Any = None

    @property
    def is_notification(self) -> bool:
        """Notifications carry no id key and never get a response"""
        return "id" not in self.model_fields_set


class InitializeRequest(JsonRpcMessage):
    method: Literal["initialize"]


class ToolsListRequest(JsonRpcMessage):
    method: Literal["tools/list"]


class ToolsCallParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: StrictStr = Field(..., min_length=1)
    arguments: Optional[Dict[str, Any]] = None


class ToolsCallRequest(JsonRpcMessage):
    method: Literal["tools/call"]
    params: ToolsCallParams


JsonRpcRequest = Union[InitializeRequest, ToolsListRequest, ToolsCallRequest]

REQUEST_TYPES = {
    "initialize": InitializeRequest,
    "tools/list": ToolsListRequest,
    "tools/call": ToolsCallRequest,
}

INVALID_PARAMS_MESSAGES = {
    "tools/call": "Invalid params: name required",
}


def parse_envelope(line: str) -> JsonRpcMessage:
    """
    Parse one line into a JSON-RPC envelope.

    Raises:
        JsonRpcError: PARSE_ERROR for invalid JSON, a non-object, or a
            missing/wrong jsonrpc version
    """
    try:
        data = json.loads(line)
    except ValueError:
        raise JsonRpcError(PARSE_ERROR, "Parse error") from None

    if not isinstance(data, dict) or data.get("jsonrpc") != JSONRPC_VERSION:
        raise JsonRpcError(PARSE_ERROR, "Parse error")

    try:
        return JsonRpcMessage.model_validate(data)
    except ValidationError:
        raise JsonRpcError(PARSE_ERROR, "Parse error") from None


def resolve_request(envelope: JsonRpcMessage) -> JsonRpcRequest:
    """
    Narrow an envelope to its request variant.

    Raises:
        JsonRpcError: METHOD_NOT_FOUND for unsupported methods,
            INVALID_PARAMS when the variant's params do not validate
    """
    request_type = REQUEST_TYPES.get(envelope.method or "")
    if request_type is None:
        raise JsonRpcError(METHOD_NOT_FOUND, "Method not found")

    try:
        return request_type.model_validate(envelope.model_dump(exclude_unset=True))
    except ValidationError:
        message = INVALID_PARAMS_MESSAGES.get(envelope.method, "Invalid params")
        raise JsonRpcError(INVALID_PARAMS, message) from None


def build_response(request_id: Any, result: Any) -> Dict:
    """Build JSON-RPC success response"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "result": result
    }


def build_error(request_id: Any, code: int, message: str) -> Dict:
    """Build JSON-RPC error response"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {
            "code": code,
            "message": message
        }
    }


def encode_frame(message: Dict) -> bytes:
    """One compact JSON object followed by a single newline"""
    return (json.dumps(message, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")
