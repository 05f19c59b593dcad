"""
Security utilities for sensitive data protection.

Private keys, payment signatures and API keys must never reach the logs.
Everything that logs request bodies or wallet material goes through
``sanitize`` first.
"""

import logging
import re
from typing import Any, Literal

logger = logging.getLogger(__name__)

# Patterns to detect and redact sensitive information
SENSITIVE_PATTERNS = [
    # Private keys (0x followed by 64 hex characters)
    (r'0x[a-fA-F0-9]{64}(?![a-fA-F0-9])', '0x*************REDACTED*************'),
    # 65-byte ECDSA signatures
    (r'0x[a-fA-F0-9]{130}', '0x*************SIGNATURE*************'),
    # Generic API keys in headers or config
    (r'["\']?(api[_-]?key|private[_-]?key|secret[_-]?key|password)["\']?\s*[:=]\s*["\']?[^"\',\s]+["\']?', '***REDACTED***'),
    # Bearer tokens
    (r'Bearer [a-zA-Z0-9\-._~+/]+=*', 'Bearer ***REDACTED***'),
]

SENSITIVE_KEYS = {
    'private_key', 'privatekey', 'private-key',
    'api_key', 'apikey', 'api-key',
    'secret', 'password', 'signature',
    'authorization', 'x-payment',
}


class RedactingFormatter(logging.Formatter):
    """Logging formatter that redacts sensitive patterns from every record."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal['%', '{', '$'] = '%'
    ) -> None:
        super().__init__(fmt, datefmt, style)

    def format(self, record: logging.LogRecord) -> str:
        return redact_string(super().format(record))


def redact_dict(data: dict[str, Any], additional_keys: set[str] | None = None) -> dict[str, Any]:
    """
    Redact sensitive values from a dictionary.

    Args:
        data: Dictionary to redact
        additional_keys: Additional keys to redact beyond the default list

    Returns:
        Dictionary with sensitive values redacted
    """
    if not isinstance(data, dict):
        return data

    sensitive_keys = set(SENSITIVE_KEYS)
    if additional_keys:
        sensitive_keys.update(additional_keys)

    redacted: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in sensitive_keys):
            if isinstance(value, str) and len(value) > 10:
                # Show first 4 and last 4 chars for debugging
                redacted[key] = f"{value[:4]}...{value[-4:]} ***REDACTED***"
            else:
                redacted[key] = "***REDACTED***"
        elif isinstance(value, dict):
            redacted[key] = redact_dict(value, additional_keys)
        elif isinstance(value, list):
            redacted[key] = [
                redact_dict(item, additional_keys) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value

    return redacted


def redact_string(value: str) -> str:
    """
    Redact sensitive information from a string.

    Args:
        value: String to redact

    Returns:
        String with sensitive information redacted
    """
    for pattern, replacement in SENSITIVE_PATTERNS:
        value = re.sub(pattern, replacement, value, flags=re.IGNORECASE)
    return value


def configure_logging(level: str, fmt: str) -> logging.Logger:
    """
    Configure the root logger with a redacting formatter.

    Called once during application startup.
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.setFormatter(RedactingFormatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    return root_logger


def sanitize(data: Any) -> Any:
    """
    Sanitize data for logging by redacting sensitive information.

    Args:
        data: Any data structure to sanitize

    Returns:
        Sanitized version of the data
    """
    if isinstance(data, str):
        return redact_string(data)
    elif isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, list):
        return [sanitize(item) for item in data]
    else:
        return data
