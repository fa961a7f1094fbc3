"""
Session resolution middleware.

For every request, resolves exactly one session in this order: explicit
credential (cookie, then bearer token), fingerprint match, new session. The
session is attached to ``request.state.session`` before the downstream handler
runs, and the session cookie is only written on successful responses.
"""

import enum
import logging
from typing import Optional, Tuple

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from sessionkeeper.core.security import mask_session_id, sanitize_log_data
from sessionkeeper.core.utils.logging_config import (
    REQUEST_ID_HEADER,
    bind_correlation_id,
    current_correlation_id,
    log_security_event,
    reset_correlation_id,
)
from sessionkeeper.core.utils.serialization import JsonFieldAdapter
from sessionkeeper.sessions.credentials import extract_session_id
from sessionkeeper.sessions.entity import Session, SessionConfig
from sessionkeeper.sessions.fingerprint import ClientDetector
from sessionkeeper.sessions.payload_factory import SessionPayloadFactory
from sessionkeeper.sessions.service import SessionService

logger = logging.getLogger(__name__)


class ResolutionSource(str, enum.Enum):
    CREDENTIAL = "credential"
    FINGERPRINT = "fingerprint"
    CREATED = "created"


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Middleware that resolves the request's session and issues its cookie.

    Storage errors raised while resolving propagate unchanged, so the
    downstream handler never runs without a session.
    """

    def __init__(
        self,
        app,
        service: SessionService,
        config: SessionConfig,
        payload_factory: SessionPayloadFactory,
        adapter: JsonFieldAdapter,
        detector: Optional[ClientDetector] = None,
    ):
        super().__init__(app)
        self.service = service
        self.config = config
        self.payload_factory = payload_factory
        self.adapter = adapter
        self.detector = detector

    async def dispatch(self, request: Request, call_next):
        token = bind_correlation_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            session, source = await run_in_threadpool(self.resolve, request)

            request.state.session = session
            request.state.session_source = source
            request.state.session_revoked = False

            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = current_correlation_id()

            return await run_in_threadpool(self.decorate_response, request, response, session, source)
        finally:
            reset_correlation_id(token)

    def resolve(self, request: Request) -> Tuple[Session, ResolutionSource]:
        """Find or create the session for ``request``."""
        session_id = extract_session_id(request, self.config.cookie_name)
        if session_id:
            session = self.service.find_valid(session_id)
            if session is not None:
                return session, ResolutionSource.CREDENTIAL

        if self.config.use_fingerprint and self.detector is not None:
            session = self._match_fingerprint(request)
            if session is not None:
                return session, ResolutionSource.FINGERPRINT

        payload = self.payload_factory.create_from_request(request)
        session = self.service.create(self.adapter.try_serialize(payload))
        logger.info(
            "Created new session",
            extra={
                "sid": mask_session_id(session.id),
                "client_ip": payload.ip,
                "had_stale_id": session_id is not None,
                "correlation_id": current_correlation_id(),
            },
        )
        return session, ResolutionSource.CREATED

    def _match_fingerprint(self, request: Request) -> Optional[Session]:
        if self.detector.is_request_suspicious(request):
            client_ip = request.client.host if request.client else None
            log_security_event(
                "suspicious_request",
                "Suspicious request skipped fingerprint matching",
                ip_address=client_ip,
                extra_data={
                    "user_agent": sanitize_log_data(request.headers.get("user-agent", "")),
                    "path": request.url.path,
                },
            )
            return None

        candidates = self.detector.find_similar_clients(request)
        for identity in candidates:
            session = self.service.find_valid(identity.id)
            if session is not None:
                logger.info(
                    "Resumed session via fingerprint match",
                    extra={
                        "sid": mask_session_id(session.id),
                        "score": identity.score,
                        "candidate_count": len(candidates),
                        "user_id": session.user_id,
                        "correlation_id": current_correlation_id(),
                    },
                )
                return session
        return None

    def decorate_response(
        self,
        request: Request,
        response: Response,
        session: Session,
        source: ResolutionSource,
    ) -> Response:
        """Write, refresh or clear the session cookie according to the response."""
        if response.status_code >= 400:
            return response

        if getattr(request.state, "session_revoked", False):
            response.delete_cookie(
                self.config.cookie_name,
                path=self.config.cookie_path,
                secure=self.config.cookie_secure,
                httponly=True,
                samesite=self.config.cookie_samesite,
            )
            return response

        if source is not ResolutionSource.CREATED:
            self.service.touch(session)

        response.set_cookie(
            self.config.cookie_name,
            session.id,
            max_age=self.config.cookie_ttl,
            path=self.config.cookie_path,
            secure=self.config.cookie_secure,
            httponly=True,
            samesite=self.config.cookie_samesite,
        )
        return response
