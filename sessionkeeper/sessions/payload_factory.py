"""Builds fingerprint snapshots from incoming requests."""

from typing import Optional

from starlette.requests import HTTPConnection

from sessionkeeper.core.schemas.session import SessionPayload
from sessionkeeper.sessions.entity import SessionConfig

# Request header -> SessionPayload field
TRACKED_HEADERS = {
    "user-agent": "user_agent",
    "accept-language": "accept_language",
    "accept-encoding": "accept_encoding",
    "x-forwarded-for": "x_forwarded_for",
    "referer": "referer",
    "origin": "origin",
    "sec-ch-ua": "sec_ch_ua",
    "sec-ch-ua-platform": "sec_ch_ua_platform",
    "sec-ch-ua-mobile": "sec_ch_ua_mobile",
    "dnt": "dnt",
    "sec-fetch-dest": "sec_fetch_dest",
    "sec-fetch-mode": "sec_fetch_mode",
    "sec-fetch-site": "sec_fetch_site",
}

MAX_HEADER_LENGTH = 512
UNKNOWN_IP = "0.0.0.0"


class SessionPayloadFactory:
    def __init__(self, config: SessionConfig):
        self.config = config

    def client_ip(self, request: HTTPConnection) -> str:
        """Remote address, or the first X-Forwarded-For hop when proxies are trusted"""
        if self.config.trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for", "")
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        if request.client and request.client.host:
            return request.client.host
        return UNKNOWN_IP

    def create_from_request(self, request: HTTPConnection) -> SessionPayload:
        values = {}
        for header, field in TRACKED_HEADERS.items():
            value: Optional[str] = request.headers.get(header)
            if value is not None:
                values[field] = value.strip()[:MAX_HEADER_LENGTH]
        return SessionPayload(ip=self.client_ip(request), **values)

    def create_default(self) -> SessionPayload:
        return SessionPayload(ip=UNKNOWN_IP)
