"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict, Optional


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'salt', 'hash', 'api_key',
}


def redact_token(value: Optional[str]) -> Optional[str]:
    """
    Shorten a token to its first 8 characters so log lines can be correlated
    without ever containing a usable credential.
    """
    if value is None:
        return None
    if len(value) <= 8:
        return "***REDACTED***"
    return f"{value[:8]}..."


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from log data.

    Tokens keep an 8-character prefix, every other sensitive string
    (passwords, salts, hashes, secrets) is fully redacted. Nested
    dictionaries are sanitized recursively.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in lowered:
                    sanitized[key] = redact_token(value)
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized
