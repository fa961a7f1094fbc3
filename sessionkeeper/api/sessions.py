"""
Session API endpoints.

Read and revoke the session resolved for the current request, and trigger the
expired-session sweep. Mutating endpoints are rate limited.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response

from sessionkeeper.core.config import settings
from sessionkeeper.core.limiter import limiter
from sessionkeeper.core.schemas.session import SessionInfo, SessionList, SweepResult
from sessionkeeper.core.security import mask_session_id
from sessionkeeper.core.utils.logging_config import log_security_event
from sessionkeeper.sessions.dependencies import get_current_session, get_session_service
from sessionkeeper.sessions.entity import Session
from sessionkeeper.sessions.service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _info(session: Session, source=None) -> SessionInfo:
    return SessionInfo(
        id=session.id,
        user_id=session.user_id,
        expires_at=session.expires_at,
        created_at=session.created_at,
        updated_at=session.updated_at,
        source=source.value if source is not None else None,
    )


@router.get("/session", response_model=SessionInfo)
@limiter.limit(settings.rate_limit_read_endpoints)
def read_current_session(request: Request, session: Session = Depends(get_current_session)):
    """Return the session resolved for this request."""
    return _info(session, getattr(request.state, "session_source", None))


@router.get("/session/siblings", response_model=SessionList)
@limiter.limit(settings.rate_limit_read_endpoints)
def list_sibling_sessions(
    request: Request,
    session: Session = Depends(get_current_session),
    service: SessionService = Depends(get_session_service),
):
    """
    List the other valid sessions of the same user.

    Anonymous sessions have no siblings.
    """
    if session.user_id is None:
        return SessionList(sessions=[], total=0)

    siblings = [_info(s) for s in service.find_by_user(session.user_id) if s.id != session.id]
    return SessionList(sessions=siblings, total=len(siblings))


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def revoke_current_session(
    request: Request,
    session: Session = Depends(get_current_session),
    service: SessionService = Depends(get_session_service),
):
    """
    Delete the current session.

    The middleware clears the cookie on the way out.
    """
    service.delete(session.id)
    request.state.session_revoked = True
    log_security_event(
        "session_revoked",
        "Session revoked by client",
        user_id=session.user_id,
        ip_address=request.client.host if request.client else None,
        extra_data={"sid": mask_session_id(session.id)},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/sessions/expired", response_model=SweepResult)
@limiter.limit(settings.rate_limit_admin_endpoints)
def sweep_expired_sessions(
    request: Request,
    service: SessionService = Depends(get_session_service),
):
    """Remove all expired sessions."""
    return SweepResult(deleted=service.delete_expired())
