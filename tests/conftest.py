"""
Global test configuration and fixtures for SessionKeeper

This module provides shared fixtures: a controllable clock, an in-memory
session repository, the lifecycle service, and a probe application that
records which session the middleware attached to each request.
"""

import os
import tempfile
from typing import Callable, List, Optional

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sessionkeeper.core.limiter import limiter
from sessionkeeper.core.utils.serialization import JsonFieldAdapter
from sessionkeeper.db.init_db import init_database
from sessionkeeper.sessions.entity import Session, SessionConfig
from sessionkeeper.sessions.middleware import SessionMiddleware
from sessionkeeper.sessions.payload_factory import SessionPayloadFactory
from sessionkeeper.sessions.repository import InMemorySessionRepository
from sessionkeeper.sessions.service import SessionService
from tests.utils.factories import FIXED_NOW


class FixedClock:
    """Clock returning a settable unix timestamp"""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


# ============================================================================
# Session Core Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def session_config():
    """Configuration used by most tests; fingerprinting is off"""
    return SessionConfig.from_mapping({
        "cookie_name": "session",
        "cookie_ttl": 86400,
        "session_ttl": 3600,
        "use_fingerprint": False,
    })


@pytest.fixture
def fingerprint_config():
    return SessionConfig.from_mapping({
        "cookie_name": "session",
        "cookie_ttl": 86400,
        "session_ttl": 3600,
        "use_fingerprint": True,
    })


@pytest.fixture
def repository():
    return InMemorySessionRepository()


@pytest.fixture
def service(repository, session_config, clock):
    return SessionService(repository, session_config, clock=clock)


@pytest.fixture
def adapter():
    return JsonFieldAdapter()


@pytest.fixture
def payload_factory(session_config):
    return SessionPayloadFactory(session_config)


@pytest.fixture(autouse=True)
def reset_limiter():
    """Reset the shared rate limiter so counters do not leak between tests"""
    limiter.reset()
    yield
    limiter.reset()


# ============================================================================
# Probe Application
# ============================================================================

class SessionRecorder:
    """Captures the session object each downstream call received"""

    def __init__(self):
        self.sessions: List[Session] = []
        self.sources: List[str] = []

    @property
    def last(self) -> Optional[Session]:
        return self.sessions[-1] if self.sessions else None

    @property
    def calls(self) -> int:
        return len(self.sessions)


def build_probe_app(
    service: SessionService,
    config: SessionConfig,
    recorder: SessionRecorder,
    detector=None,
) -> FastAPI:
    """FastAPI app with only the session middleware and a /probe route.

    ``/probe?status_code=500`` makes the downstream handler fail.
    """
    app = FastAPI()
    app.add_middleware(
        SessionMiddleware,
        service=service,
        config=config,
        payload_factory=SessionPayloadFactory(config),
        adapter=JsonFieldAdapter(),
        detector=detector,
    )

    @app.get("/probe")
    def probe(request: Request, status_code: int = 200):
        recorder.sessions.append(request.state.session)
        recorder.sources.append(request.state.session_source.value)
        return JSONResponse({"session_id": request.state.session.id}, status_code=status_code)

    return app


@pytest.fixture
def recorder():
    return SessionRecorder()


@pytest.fixture
def make_client(service, session_config, recorder) -> Callable[..., TestClient]:
    """Factory for a fresh TestClient (empty cookie jar) around the probe app"""

    def _make(config: Optional[SessionConfig] = None, detector=None, svc: Optional[SessionService] = None,
              raise_server_exceptions: bool = True) -> TestClient:
        app = build_probe_app(svc or service, config or session_config, recorder, detector)
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    return _make


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def sql_session_factory():
    """Session factory bound to a temporary SQLite database with tables created"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    init_database(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)
