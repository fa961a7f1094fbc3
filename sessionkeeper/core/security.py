"""
Security utilities for SessionKeeper

This module provides session identifier generation and helpers that keep
credentials out of logs and API responses.
"""

import logging
import re
import secrets
from typing import Optional

logger = logging.getLogger(__name__)

# 32 random bytes, url-safe base64 encoded (43 characters)
SESSION_ID_BYTES = 32

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{16,128}$")


def generate_session_id(nbytes: int = SESSION_ID_BYTES) -> str:
    """
    Generate a cryptographically secure session identifier.

    Args:
        nbytes: Number of random bytes (default: 32)

    Returns:
        A url-safe random string suitable for use in cookies and bearer headers
    """
    return secrets.token_urlsafe(nbytes)


def is_well_formed_session_id(value: Optional[str]) -> bool:
    """Check that a client-supplied id looks like something we could have issued"""
    if not value:
        return False
    return bool(_SESSION_ID_PATTERN.match(value))


def mask_session_id(session_id: Optional[str]) -> str:
    """
    Mask a session id for safe logging.

    Shows the first 6 characters for correlation, masks the rest.
    """
    if not session_id:
        return ""
    if len(session_id) > 8:
        return session_id[:6] + "****"
    return "****"


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Sanitize client-controlled data (user agents, header values) for logging.

    Args:
        data: The data to sanitize
        max_length: Maximum length to log

    Returns:
        Sanitized data safe for logging
    """
    if not data:
        return ""

    # Strip control characters to prevent log injection
    data = re.sub(r"[\x00-\x1f\x7f]", "", data)

    if len(data) > max_length:
        data = data[:max_length] + "..."

    # Mask potential secrets/tokens
    data = re.sub(r"\b[A-Za-z0-9+/_\-]{32,}\b", "****", data)

    return data
