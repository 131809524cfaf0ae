"""Tests for signed manage-link tokens."""

import pytest

from solewatch.core.exceptions import ConfigurationError
from solewatch.core.tokens import DAY_MS, create_manage_token, sign_token, verify_token

SECRET = "s3cret"
NOW_MS = 1_772_366_400_000


# ============================================================================
# TESTS: LINK TOKENS
# ============================================================================

class TestLinkTokens:
    """Tests for create_manage_token / verify_token."""

    def test_round_trip(self):
        token = create_manage_token(" Runner@Example.com ", SECRET, now_ms=NOW_MS)

        payload = verify_token(token, SECRET, now_ms=NOW_MS + DAY_MS)

        assert payload == {"email": "runner@example.com", "exp": NOW_MS + 30 * DAY_MS}

    def test_token_is_url_safe(self):
        token = create_manage_token("runner@example.com", SECRET, now_ms=NOW_MS)
        assert token.count(".") == 1
        assert "=" not in token and "+" not in token and "/" not in token

    def test_expired(self):
        token = create_manage_token("runner@example.com", SECRET, ttl_days=1, now_ms=NOW_MS)
        assert verify_token(token, SECRET, now_ms=NOW_MS + DAY_MS + 1) is None

    def test_wrong_secret(self):
        token = create_manage_token("runner@example.com", SECRET, now_ms=NOW_MS)
        assert verify_token(token, "other", now_ms=NOW_MS) is None

    def test_tampered_payload(self):
        token = create_manage_token("runner@example.com", SECRET, now_ms=NOW_MS)
        forged = create_manage_token("victim@example.com", "other", now_ms=NOW_MS)
        mixed = forged.split(".")[0] + "." + token.split(".")[1]
        assert verify_token(mixed, SECRET, now_ms=NOW_MS) is None

    @pytest.mark.parametrize(
        "token",
        [None, 42, "", "abc", "a.b.c", ".sig", "payload.", "\u00e9.abc", "abc.\u00e9"],
    )
    def test_malformed(self, token):
        assert verify_token(token, SECRET, now_ms=NOW_MS) is None

    def test_signed_payload_missing_email(self):
        token = sign_token({"exp": NOW_MS + DAY_MS}, SECRET)
        assert verify_token(token, SECRET, now_ms=NOW_MS) is None

    def test_missing_secret(self):
        with pytest.raises(ConfigurationError):
            create_manage_token("runner@example.com", "")
        with pytest.raises(ConfigurationError):
            verify_token("a.b", "")
