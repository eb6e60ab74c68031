# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador Server API models (v1)

Request bodies sent to, and response bodies accepted from, the backend.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

API_VERSION = "v1"

REGISTER_PATH = f"/{API_VERSION}/sessions/register"
HEARTBEAT_PATH = f"/{API_VERSION}/sessions/heartbeat"
TOOLS_PATH = f"/{API_VERSION}/tools"
INVOKE_PATH = f"/{API_VERSION}/tools/invoke"


def connection_path(connection_id: str) -> str:
    return f"/{API_VERSION}/sessions/connections/{connection_id}"


class RegistrationRequest(BaseModel):
    """POST /v1/sessions/register body"""
    preshared_key: str = Field(..., repr=False)
    friendly_name: str
    host_tool: str
    machine_fingerprint: Optional[str] = None


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: str
    session_token: str = Field(..., repr=False)
    expires_at: datetime
    profile_id: str
    connection_id: str


class ToolMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    mcp_server: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ToolDescriptor(BaseModel):
    """One tool exposed by the backend to this session"""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object"})
    metadata: Optional[ToolMetadata] = None

    def to_mcp(self) -> Dict[str, Any]:
        """Host-facing shape for tools/list"""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolCatalogResponse(BaseModel):
    """GET /v1/tools response"""
    model_config = ConfigDict(extra="ignore")

    tools: List[ToolDescriptor]
    api_version: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("tools")
    @classmethod
    def drop_duplicate_names(cls, tools: List[ToolDescriptor]) -> List[ToolDescriptor]:
        seen = set()
        unique = []
        for tool in tools:
            if tool.name in seen:
                logger.warning(f"Duplicate tool name in catalog, keeping first: {tool.name}")
                continue
            seen.add(tool.name)
            unique.append(tool)
        return unique


class ToolInvocationRequest(BaseModel):
    """POST /v1/tools/invoke body"""
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    trace_id: Optional[str] = None


class ToolInvocationResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: Any = None
    request_id: Optional[str] = None
    timestamp: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
