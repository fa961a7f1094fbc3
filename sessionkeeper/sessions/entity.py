"""Session entity and session configuration."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass
class Session:
    """A durable session record.

    Timestamps are unix seconds. ``id`` is the external credential and never
    changes; ``user_id`` stays ``None`` until a user authenticates into the
    session.
    """

    id: str
    user_id: Optional[int]
    payload: str
    expires_at: int
    created_at: int
    updated_at: int

    def is_valid(self, now: int) -> bool:
        return self.expires_at > now

    def remaining(self, now: int) -> int:
        return max(0, self.expires_at - now)

    def __repr__(self) -> str:
        return f"<Session(id={self.id[:6]!r}..., user_id={self.user_id!r}, expires_at={self.expires_at})>"


@dataclass(frozen=True)
class SessionConfig:
    """Immutable, process-wide session configuration.

    Build it once at startup and pass it to the service, middleware and
    detectors.
    """

    cookie_name: str = "session"
    cookie_ttl: int = 86400
    session_ttl: int = 3600
    use_fingerprint: bool = False
    cookie_path: str = "/"
    cookie_samesite: str = "lax"
    cookie_secure: bool = False
    refresh_threshold: float = 0.5
    fingerprint_strategy: str = "exact"
    fingerprint_min_score: float = 0.8
    fingerprint_max_candidates: int = 10
    trust_forwarded_for: bool = False

    def __post_init__(self) -> None:
        if not self.cookie_name:
            raise ValueError("cookie_name cannot be empty")
        if self.cookie_ttl <= 0 or self.session_ttl <= 0:
            raise ValueError("cookie_ttl and session_ttl must be positive")
        if not 0.0 <= self.refresh_threshold <= 1.0:
            raise ValueError("refresh_threshold must be between 0 and 1")
        if self.cookie_samesite.lower() not in ("lax", "strict", "none"):
            raise ValueError("cookie_samesite must be 'lax', 'strict' or 'none'")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SessionConfig":
        """Build a config from a plain mapping, ignoring unknown keys"""
        known = cls.__dataclass_fields__.keys()
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_settings(cls, settings) -> "SessionConfig":
        """Build a config from the application ``Settings``"""
        return cls(
            cookie_name=settings.session_cookie_name,
            cookie_ttl=settings.session_cookie_ttl,
            session_ttl=settings.session_ttl,
            use_fingerprint=settings.session_use_fingerprint,
            cookie_path=settings.session_cookie_path,
            cookie_samesite=settings.session_cookie_samesite,
            cookie_secure=settings.session_cookie_secure,
            refresh_threshold=settings.session_refresh_threshold,
            fingerprint_strategy=settings.fingerprint_strategy,
            fingerprint_min_score=settings.fingerprint_min_score,
            fingerprint_max_candidates=settings.fingerprint_max_candidates,
            trust_forwarded_for=settings.trust_forwarded_for,
        )
