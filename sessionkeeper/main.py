import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sessionkeeper.core.config import Settings, settings as default_settings
from sessionkeeper.core.exceptions import SessionStorageError
from sessionkeeper.core.limiter import limiter
from sessionkeeper.core.utils.logging_config import init_application_logging
from sessionkeeper.core.utils.serialization import JsonFieldAdapter
from sessionkeeper.sessions.entity import SessionConfig
from sessionkeeper.sessions.fingerprint import ClientDetector, build_client_detector
from sessionkeeper.sessions.middleware import SessionMiddleware
from sessionkeeper.sessions.payload_factory import SessionPayloadFactory
from sessionkeeper.sessions.repository import SessionRepository
from sessionkeeper.sessions.service import SessionService

logger = logging.getLogger("sessionkeeper.main")


async def session_storage_error_handler(request: Request, exc: SessionStorageError) -> JSONResponse:
    logger.error("Session storage failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Session storage unavailable"})


def create_app(
    app_settings: Optional[Settings] = None,
    repository: Optional[SessionRepository] = None,
    detector: Optional[ClientDetector] = None,
    session_config: Optional[SessionConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Without an explicit repository the SQL store from ``database_url`` is used
    and its tables are created on startup.
    """
    app_settings = app_settings or default_settings
    config = session_config or SessionConfig.from_settings(app_settings)

    engine = None
    if repository is None:
        from sessionkeeper.db.session import SessionLocal, engine
        from sessionkeeper.sessions.sql_repository import SqlAlchemySessionRepository

        repository = SqlAlchemySessionRepository(SessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            from sessionkeeper.db.init_db import init_database
            init_database(engine)
        yield

    app = FastAPI(
        title=app_settings.app_name,
        description="Session identity resolution service",
        version=app_settings.version,
        lifespan=lifespan,
    )

    adapter = JsonFieldAdapter()
    payload_factory = SessionPayloadFactory(config)
    service = SessionService(repository, config)
    if detector is None and config.use_fingerprint:
        detector = build_client_detector(repository, config, payload_factory, adapter)

    app.state.session_service = service
    app.state.session_config = config

    # Attach limiter to app.state for access in route decorators
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(SessionStorageError, session_storage_error_handler)

    app.add_middleware(
        SessionMiddleware,
        service=service,
        config=config,
        payload_factory=payload_factory,
        adapter=adapter,
        detector=detector,
    )

    # Configure CORS (credentials require explicit origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from sessionkeeper.api import sessions

    app.include_router(sessions.router, prefix="/api", tags=["Sessions"])

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy", "version": app_settings.version}

    logger.info(
        "Session middleware configured",
        extra={
            "session_ttl": config.session_ttl,
            "use_fingerprint": config.use_fingerprint,
            "fingerprint_strategy": config.fingerprint_strategy if config.use_fingerprint else None,
        },
    )
    return app


# Initialize structured logging
init_application_logging(default_settings)

app = create_app()
