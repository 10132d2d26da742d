"""
Unit tests for the shared/ utility modules.

Covers:
- shared.validators      (normalize_email, validate_email,
                          is_allowed_email_domain, validate_password_strength)
- shared.generators      (generate_otp_code)
- shared.crypto          (hash_password, verify_password, hash_token, token_matches)
- shared.datetime_utils  (utc_now, ensure_utc)
- shared.logging         (mask_email, redact_sensitive_fields)
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from shared.crypto import hash_password, hash_token, token_matches, verify_password
from shared.datetime_utils import ensure_utc, utc_now
from shared.generators import generate_otp_code
from shared.logging import mask_email, redact_sensitive_fields
from shared.validators import (
    is_allowed_email_domain,
    normalize_email,
    validate_email,
    validate_password_strength,
)


# ── validators ────────────────────────────────────────────────────────────────


def test_normalize_email():
    assert normalize_email("  Jane.Doe@GMAIL.com ") == "jane.doe@gmail.com"


@pytest.mark.parametrize(
    "email, expected",
    [
        ("jane@gmail.com", True),
        ("jane.doe+meals@gmail.com", True),
        ("not-an-email", False),
        ("jane@", False),
        ("", False),
    ],
)
def test_validate_email(email, expected):
    assert validate_email(email) is expected


@pytest.mark.parametrize(
    "email, domains, expected",
    [
        ("jane@gmail.com", ["gmail.com"], True),
        ("jane@GMAIL.com", ["gmail.com"], True),
        ("jane@yahoo.com", ["gmail.com"], False),
        ("jane@mail.gmail.com", ["gmail.com"], False),
        ("jane@yahoo.com", [], True),
    ],
    ids=["allowed", "case_insensitive", "other_domain", "subdomain", "no_restriction"],
)
def test_is_allowed_email_domain(email, domains, expected):
    assert is_allowed_email_domain(email, domains) is expected


@pytest.mark.parametrize(
    "password, expected",
    [
        ("Secret123", True),
        ("Abcdefg1", True),
        ("Abcde1", False),
        ("secret123", False),
        ("SECRET123", False),
        ("SecretPass", False),
    ],
    ids=["valid", "exactly_eight", "too_short", "no_upper", "no_lower", "no_digit"],
)
def test_validate_password_strength(password, expected):
    assert validate_password_strength(password) is expected


# ── generators ────────────────────────────────────────────────────────────────


class TestGenerateOtpCode:
    def test_default_length_digits(self):
        code = generate_otp_code()
        assert len(code) == 6
        assert code.isdigit()

    def test_custom_length(self):
        assert len(generate_otp_code(8)) == 8

    def test_leading_zeros_preserved(self):
        # 2000 draws make a leading zero overwhelmingly likely
        assert any(generate_otp_code().startswith("0") for _ in range(2000))

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            generate_otp_code(0)


# ── crypto ────────────────────────────────────────────────────────────────────


class TestCrypto:
    def test_password_round_trip(self):
        hashed = hash_password("Secret123")
        assert hashed.startswith("$argon2")
        assert verify_password("Secret123", hashed) is True
        assert verify_password("Secret124", hashed) is False

    def test_verify_password_with_garbage_hash(self):
        assert verify_password("Secret123", "not-a-hash") is False

    def test_hash_token_is_sha256(self):
        assert hash_token("123456") == hashlib.sha256(b"123456").hexdigest()

    def test_token_matches(self):
        digest = hash_token("123456")
        assert token_matches("123456", digest) is True
        assert token_matches("123457", digest) is False


# ── datetime_utils ────────────────────────────────────────────────────────────


class TestEnsureUtc:
    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_assumed_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_aware_converted(self):
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 1, 1, 14, 0, tzinfo=plus_two)
        assert ensure_utc(value) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert ensure_utc(value).tzinfo == timezone.utc

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None


# ── logging helpers ───────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "email, expected",
    [
        ("jane.doe@gmail.com", "ja***@gmail.com"),
        ("j@gmail.com", "j***@gmail.com"),
        ("nodomain", "***"),
        (None, None),
    ],
)
def test_mask_email(email, expected):
    assert mask_email(email) == expected


def test_redact_sensitive_fields():
    event = {
        "event": "login_attempt",
        "level": "info",
        "password": "Secret123",
        "reset_token": "abc",
        "code": "123456",
        "client_secret": "x",
        "user_id": "42",
    }
    out = redact_sensitive_fields(None, "info", dict(event))
    assert out["password"] == "***REDACTED***"
    assert out["reset_token"] == "***REDACTED***"
    assert out["code"] == "***REDACTED***"
    assert out["client_secret"] == "***REDACTED***"
    assert out["user_id"] == "42"
    assert out["event"] == "login_attempt"
