"""
Structured logging for SessionKeeper.

Every request gets a correlation id, bound by ``SessionMiddleware`` from the
``X-Request-ID`` header or freshly generated. The JSON formatter stamps it on
each line, so session creation, fingerprint resumption and security events of
one request can be joined.
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

REQUEST_ID_HEADER = "X-Request-ID"

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")

_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

# Extra keys whose values never reach the log output
SENSITIVE_KEYWORDS = ("password", "secret", "token", "credential", "auth", "cookie", "payload")


def bind_correlation_id(request_id: Optional[str] = None) -> Token:
    """
    Bind the correlation id for the current request context.

    A client-supplied id is kept when it is short and printable; anything else
    is replaced with a new random id.

    Returns:
        Token for ``reset_correlation_id``
    """
    if not request_id or not _REQUEST_ID_PATTERN.match(request_id):
        request_id = uuid.uuid4().hex
    return correlation_id_ctx.set(request_id)


def reset_correlation_id(token: Token) -> None:
    correlation_id_ctx.reset(token)


def current_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


class StructuredFormatter(logging.Formatter):
    """JSON lines with the bound correlation id and redacted extras."""

    def __init__(self, include_sensitive: bool = False):
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None) or current_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: self._redact(key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and key != "correlation_id"
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)

    def _redact(self, key: str, value: Any) -> Any:
        if self.include_sensitive:
            return value
        lowered = key.lower()
        if any(keyword in lowered for keyword in SENSITIVE_KEYWORDS):
            return "[REDACTED]"
        return value


def setup_logging(log_level: str = "INFO", enable_json: bool = True, include_sensitive: bool = False) -> None:
    """Install a single stdout handler on the root logger."""
    if enable_json:
        formatter: logging.Formatter = StructuredFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(handler)

    # Reduce noise from external libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log_security_event(
    event_type: str,
    message: str,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a security event (suspicious_request, session_revoked) to ``security.events``.

    The event carries the correlation id of the request being handled, if one
    is bound.
    """
    data: Dict[str, Any] = {"event_type": event_type}
    correlation_id = current_correlation_id()
    if correlation_id:
        data["correlation_id"] = correlation_id
    if user_id is not None:
        data["user_id"] = user_id
    if ip_address:
        data["ip_address"] = ip_address
    if extra_data:
        data.update(extra_data)

    logging.getLogger("security.events").warning(message, extra=data)


def init_application_logging(app_settings) -> None:
    """Configure logging from ``Settings``; dev mode logs plain text at DEBUG."""
    is_dev = app_settings.dev_mode
    log_level = "DEBUG" if is_dev else app_settings.log_level

    setup_logging(log_level=log_level, enable_json=not is_dev, include_sensitive=is_dev)

    logging.getLogger("sessionkeeper.startup").info(
        "Structured logging initialized",
        extra={"dev_mode": is_dev, "json_logging": not is_dev, "log_level": log_level},
    )
