"""
Helpers shared by every module that logs.

Credentials must never reach a log line in full: request bodies and any other
free-form data go through `sanitize_log_data` first.
"""

import logging
from typing import Any, Dict, Optional

REDACTED = "***REDACTED***"

# Matched as substrings of the lowercased key, so "refreshToken" and
# "access_token" are both caught by "token"
SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'authorization', 'api_key'
}

# Characters of a token value kept for correlating log lines
TOKEN_PREFIX_LENGTH = 8


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _mask(key: str, value: Any) -> Any:
    if isinstance(value, str) and 'token' in key and len(value) > TOKEN_PREFIX_LENGTH:
        return f"{value[:TOKEN_PREFIX_LENGTH]}..."
    return REDACTED


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy of `data` that is safe to log.

    Passwords and secrets are replaced outright. Token values keep a short
    prefix so a log line can be matched to a client report; refresh tokens
    carry 256 bits of randomness, so the prefix can't be replayed.
    Nested dicts are sanitized too; the input is never modified.
    """
    sanitized = {}

    for key, value in data.items():
        lowered = str(key).lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            sanitized[key] = _mask(lowered, value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: str = "unknown",
    user_id: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Access log line for one HTTP request.

    The level follows the status: 5xx -> ERROR, 4xx -> WARNING, else INFO.
    """
    fields = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "client_ip": client_ip,
        "user_id": user_id,
    }
    if extra:
        fields.update(sanitize_log_data(extra))

    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger.log(level, f'{client_ip} - "{method} {path}" {status_code}', extra=fields)
