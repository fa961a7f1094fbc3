"""
Unit tests for session credential extraction
"""

import pytest

from sessionkeeper.sessions.credentials import bearer_token, extract_session_id
from tests.utils.factories import RequestFactory

pytestmark = pytest.mark.unit

VALID_ID = "existing-session-id"
OTHER_ID = "bearer-session-id-0002"


class TestBearerToken:
    @pytest.mark.parametrize("header,expected", [
        (f"Bearer {VALID_ID}", VALID_ID),
        (f"bearer {VALID_ID}", VALID_ID),
        (f"  BEARER   {VALID_ID}  ", VALID_ID),
        (f"Basic {VALID_ID}", None),
        ("Bearer", None),
        ("Bearer   ", None),
        ("", None),
        (None, None),
    ])
    def test_bearer_token(self, header, expected):
        assert bearer_token(header) == expected


class TestExtractSessionId:
    def test_no_credentials(self):
        assert extract_session_id(RequestFactory.create(), "session") is None

    def test_reads_cookie(self):
        request = RequestFactory.create(headers={"Cookie": f"session={VALID_ID}"})

        assert extract_session_id(request, "session") == VALID_ID

    def test_reads_bearer_header(self):
        request = RequestFactory.create(headers={"Authorization": f"Bearer {OTHER_ID}"})

        assert extract_session_id(request, "session") == OTHER_ID

    def test_cookie_wins_over_bearer(self):
        request = RequestFactory.create(headers={
            "Cookie": f"session={VALID_ID}",
            "Authorization": f"Bearer {OTHER_ID}",
        })

        assert extract_session_id(request, "session") == VALID_ID

    def test_empty_cookie_falls_back_to_bearer(self):
        request = RequestFactory.create(headers={
            "Cookie": "session=",
            "Authorization": f"Bearer {OTHER_ID}",
        })

        assert extract_session_id(request, "session") == OTHER_ID

    def test_uses_configured_cookie_name(self):
        request = RequestFactory.create(headers={"Cookie": f"sid={VALID_ID}; session={OTHER_ID}"})

        assert extract_session_id(request, "sid") == VALID_ID

    @pytest.mark.parametrize("value", ["short", "has space in it here", "x" * 129, "semi;colon-session-id"])
    def test_malformed_credential_is_ignored(self, value):
        request = RequestFactory.create(headers={"Authorization": f"Bearer {value}"})

        assert extract_session_id(request, "session") is None
