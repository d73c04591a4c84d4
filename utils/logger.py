"""
Logging helpers shared by routers and services.
"""

import logging
from typing import Any, Dict


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'authorization', 'access_token',
    'refresh_token', 'hashed_password', 'code'
}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask credentials before they reach a log handler.

    Token values keep their first 8 characters so a log line can still be
    matched against a client report; everything else sensitive is redacted.
    Nested dictionaries are sanitized recursively.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in key.lower() and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def mask_token_path(path: str) -> str:
    """
    Shorten the token segment of /verify-email/{token} and
    /reset-password/{token} paths.
    """
    for marker in ("/verify-email/", "/reset-password/"):
        if marker in path:
            prefix, _, token = path.partition(marker)
            if len(token) > 8:
                token = f"{token[:8]}..."
            return f"{prefix}{marker}{token}"
    return path
