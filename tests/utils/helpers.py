"""
Test helper functions for common testing operations

These helpers read Set-Cookie headers and check log output.
"""

from typing import Dict, Optional


def get_set_cookie(response) -> Optional[str]:
    """Return the raw Set-Cookie header of a response, or None"""
    return response.headers.get("set-cookie")


def parse_set_cookie(header: str) -> Dict[str, str]:
    """Split a Set-Cookie header into a dict; flag attributes map to an empty string.

    The cookie's own name/value pair is stored under ``"__name__"`` and ``"__value__"``.
    """
    parts = [part.strip() for part in header.split(";") if part.strip()]
    name, _, value = parts[0].partition("=")
    attributes = {"__name__": name, "__value__": value}
    for part in parts[1:]:
        key, _, attr_value = part.partition("=")
        attributes[key.lower()] = attr_value
    return attributes


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: list[str]):
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join([record.getMessage() for record in caplog.records])
    all_extras = " ".join(str(record.__dict__) for record in caplog.records)

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"
        assert pattern not in all_extras, f"Sensitive pattern '{pattern}' found in log extras"


def log_messages(caplog) -> list[str]:
    return [record.getMessage() for record in caplog.records]
