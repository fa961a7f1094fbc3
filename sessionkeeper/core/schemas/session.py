"""Session schema definitions."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionPayload(BaseModel):
    """Fingerprint snapshot stored in a session's payload column.

    Serialized with camelCase keys, e.g. ``{"ip": "127.0.0.1", "userAgent": "..."}``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    ip: str = Field("0.0.0.0", description="Client IP address")
    user_agent: Optional[str] = None
    accept_language: Optional[str] = None
    accept_encoding: Optional[str] = None
    x_forwarded_for: Optional[str] = None
    referer: Optional[str] = None
    origin: Optional[str] = None
    sec_ch_ua: Optional[str] = None
    sec_ch_ua_platform: Optional[str] = None
    sec_ch_ua_mobile: Optional[str] = None
    dnt: Optional[str] = None
    sec_fetch_dest: Optional[str] = None
    sec_fetch_mode: Optional[str] = None
    sec_fetch_site: Optional[str] = None


class SessionInfo(BaseModel):
    """Schema for the current session response"""

    id: str
    user_id: Optional[int] = None
    expires_at: int
    created_at: int
    updated_at: int
    source: Optional[str] = Field(
        None, description="How the session was resolved (credential, fingerprint, created)"
    )

    model_config = ConfigDict(from_attributes=True)


class SessionList(BaseModel):
    """Schema for listing sessions"""

    sessions: List[SessionInfo]
    total: int


class SweepResult(BaseModel):
    """Schema for the expired-session sweep response"""

    deleted: int
