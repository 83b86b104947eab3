import logging

from core.logging_config import SanitizingFilter
from utils.logger import sanitize_log_data, redact_token


def test_password_redaction():
    data = {"email": "user@example.com", "password": "supersecret123"}
    sanitized = sanitize_log_data(data)

    assert sanitized["email"] == "user@example.com"
    assert sanitized["password"] == "***REDACTED***"


def test_hash_and_salt_redaction():
    data = {"password_hash": "abc123==", "password_salt": "xyz789=="}
    sanitized = sanitize_log_data(data)

    assert sanitized["password_hash"] == "***REDACTED***"
    assert sanitized["password_salt"] == "***REDACTED***"


def test_token_partial_redaction():
    data = {"refresh_token": "Zm9vYmFyYmF6cXV4.long_token_here"}
    sanitized = sanitize_log_data(data)

    assert len(sanitized["refresh_token"]) == 11
    assert sanitized["refresh_token"].startswith(data["refresh_token"][:8])
    assert sanitized["refresh_token"].endswith("...")
    assert "long_token_here" not in sanitized["refresh_token"]


def test_short_token_fully_redacted():
    assert redact_token("abc") == "***REDACTED***"
    assert redact_token(None) is None


def test_nested_dict_sanitization():
    data = {
        "user": {
            "email": "user@example.com",
            "password": "secret123"
        }
    }
    sanitized = sanitize_log_data(data)

    assert sanitized["user"]["email"] == data["user"]["email"]
    assert sanitized["user"]["password"] == "***REDACTED***"


def test_non_sensitive_data_unchanged():
    data = {"user_id": "6f1c", "email": "test@example.com", "revoked": 3}
    sanitized = sanitize_log_data(data)

    assert sanitized == data


def test_log_filter_redacts_extra_fields():
    record = logging.makeLogRecord({
        "msg": "Login failed",
        "user_id": "6f1c",
        "password": "supersecret123",
        "token": "Zm9vYmFyYmF6cXV4.long_token_here",
    })

    assert SanitizingFilter().filter(record) is True

    assert record.password == "***REDACTED***"
    assert record.token == "Zm9vYmFy..."
    assert record.user_id == "6f1c"
    assert record.getMessage() == "Login failed"


def test_log_filter_keeps_already_redacted_token():
    record = logging.makeLogRecord({"msg": "Refresh token rotated", "token": redact_token("Zm9vYmFyYmF6cXV4")})

    SanitizingFilter().filter(record)

    assert record.token == "Zm9vYmFy..."
