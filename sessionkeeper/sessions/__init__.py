"""Session identity resolution: store contract, lifecycle service, fingerprinting and middleware."""

from sessionkeeper.sessions.entity import Session, SessionConfig
from sessionkeeper.sessions.fingerprint import (
    ClientDetector,
    ClientIdentity,
    ExactMatchClientDetector,
    ScoredClientDetector,
    build_client_detector,
)
from sessionkeeper.sessions.middleware import ResolutionSource, SessionMiddleware
from sessionkeeper.sessions.repository import InMemorySessionRepository, SessionRepository
from sessionkeeper.sessions.service import SessionService

__all__ = [
    "Session",
    "SessionConfig",
    "SessionRepository",
    "InMemorySessionRepository",
    "SessionService",
    "ClientDetector",
    "ClientIdentity",
    "ExactMatchClientDetector",
    "ScoredClientDetector",
    "build_client_detector",
    "ResolutionSource",
    "SessionMiddleware",
]
