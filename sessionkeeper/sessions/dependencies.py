"""FastAPI dependencies for reading the resolved session."""

from fastapi import HTTPException, Request, status

from sessionkeeper.sessions.entity import Session
from sessionkeeper.sessions.service import SessionService


def get_current_session(request: Request) -> Session:
    """Session attached by ``SessionMiddleware``"""
    session = getattr(request.state, "session", None)
    if session is None:
        # The middleware is not installed on this app
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session middleware is not configured",
        )
    return session


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service
