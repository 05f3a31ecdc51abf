"""
Log sanitizer utilities to prevent credentials from being logged.

Provider error bodies and request payloads can echo back API keys or bearer
tokens, so anything that may contain them goes through `sanitize_string` or
`sanitize_dict` before it reaches a log sink.
"""

import re
from typing import Any, Dict, List


# Specific key formats first, general patterns after
SENSITIVE_PATTERNS = [
    (r'sk-[a-zA-Z0-9_\-]{20,}', '***OPENAI_KEY***'),

    # Bearer tokens in headers
    (r'(Bearer\s+)([a-zA-Z0-9\-._~+/]+=*)', r'\1***REDACTED***'),
    (r'(Authorization:\s*)(Bearer\s+)?([^\s]+)', r'\1\2***REDACTED***'),

    # JSON/Dict API keys
    (r'["\']?(api[_-]?key|apikey|secret|token)["\']?\s*:\s*["\']([^"\']+)["\']', r'"\1": "***REDACTED***"'),

    # key=value style
    (r'(api[_-]?key|apikey|access[_-]?token)\s*=\s*["\']?([^\s"\'&]+)', r'\1=***REDACTED***'),
]

SENSITIVE_FIELDS = {
    'api_key', 'apikey', 'api-key', 'authorization', 'token',
    'access_token', 'secret', 'credential', 'openai_api_key',
}

_COMPILED_PATTERNS = [(re.compile(pattern, re.IGNORECASE), replacement) for pattern, replacement in SENSITIVE_PATTERNS]


def sanitize_string(text: str) -> str:
    """
    Sanitize a string by removing sensitive data patterns.

    Args:
        text: The string to sanitize

    Returns:
        Sanitized string with sensitive data redacted
    """
    if not isinstance(text, str):
        return str(text)

    result = text
    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def sanitize_dict(data: Dict[str, Any], deep: bool = True) -> Dict[str, Any]:
    """
    Sanitize a dictionary by redacting sensitive fields.

    Args:
        data: The dictionary to sanitize
        deep: Whether to recursively sanitize nested structures

    Returns:
        New dictionary with sensitive values redacted
    """
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(key, str) and key.lower() in SENSITIVE_FIELDS:
            result[key] = '***REDACTED***'
        elif isinstance(value, dict) and deep:
            result[key] = sanitize_dict(value, deep=True)
        elif isinstance(value, list) and deep:
            result[key] = sanitize_list(value, deep=True)
        elif isinstance(value, str):
            result[key] = sanitize_string(value)
        else:
            result[key] = value
    return result


def sanitize_list(data: List[Any], deep: bool = True) -> List[Any]:
    """Sanitize every string and nested container in a list."""
    result = []
    for item in data:
        if isinstance(item, dict) and deep:
            result.append(sanitize_dict(item, deep=True))
        elif isinstance(item, list) and deep:
            result.append(sanitize_list(item, deep=True))
        elif isinstance(item, str):
            result.append(sanitize_string(item))
        else:
            result.append(item)
    return result


def mask_credential(credential: str, visible: int = 4) -> str:
    """Return a display form of a credential showing only its last characters."""
    if not credential:
        return ""
    if len(credential) <= visible * 2:
        return "*" * len(credential)
    return f"{'*' * 8}{credential[-visible:]}"


def redact_log_record(record: Dict[str, Any]) -> None:
    """loguru patcher: scrub credentials from the formatted message in place."""
    record["message"] = sanitize_string(record["message"])
