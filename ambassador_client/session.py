# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador Session Data Structure
"""

from dataclasses import dataclass, field
from datetime import datetime

from ambassador_client.protocol import RegistrationResponse


@dataclass(frozen=True)
class Session:
    """Represents one authenticated relationship with the Ambassador Server"""
    session_id: str
    session_token: str = field(repr=False)
    connection_id: str
    expires_at: datetime

    @classmethod
    def from_registration(cls, response: RegistrationResponse) -> "Session":
        return cls(
            session_id=response.session_id,
            session_token=response.session_token,
            connection_id=response.connection_id,
            expires_at=response.expires_at,
        )
