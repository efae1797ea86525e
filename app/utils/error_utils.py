"""Utilities for error handling and sanitization."""

import re
from typing import Optional


def sanitize_error_message(error_message: str, is_production: bool = False) -> str:
    """
    Sanitize error messages to prevent exposing sensitive information.

    Args:
        error_message: Original error message
        is_production: Whether running in production mode

    Returns:
        Sanitized error message safe to return to clients
    """
    if not is_production:
        # In development, return full error for debugging
        return error_message

    # Patterns to redact
    patterns = [
        (r"sk-[a-zA-Z0-9_-]{10,}", "sk-***", 0),  # OpenAI / Anthropic style keys
        (r"AIza[0-9A-Za-z_-]{20,}", "AIza***", 0),  # Google API keys
        (r"api[_-]?key[=:]\s*[a-zA-Z0-9_-]+", "api_key=***", re.IGNORECASE),
        (r"password[=:]\s*[^\s]+", "password=***", re.IGNORECASE),
        (r"token[=:]\s*[a-zA-Z0-9_-]+", "token=***", re.IGNORECASE),
        (r"secret[=:]\s*[^\s]+", "secret=***", re.IGNORECASE),
    ]

    sanitized = error_message
    for pattern, replacement, flags in patterns:
        sanitized = re.sub(pattern, replacement, sanitized, flags=flags)

    # Remove file paths that might expose system structure
    sanitized = re.sub(r"/[^\s]+\.(py|db|log|txt|png|json)", "***", sanitized)

    # Generic error message if too much was redacted
    if sanitized != error_message and len(sanitized.strip()) < 10:
        return "An internal error occurred. Please try again later."

    return sanitized


def get_safe_error_detail(error: Exception, is_production: bool = False) -> str:
    """
    Get a safe error detail message for client responses.

    Args:
        error: The exception that occurred
        is_production: Whether running in production mode

    Returns:
        Safe error message for clients
    """
    error_str = str(error)
    sanitized = sanitize_error_message(error_str, is_production)

    # If in production and error is too technical, return generic message
    if is_production:
        technical_indicators = [
            "traceback",
            'file "',
            "line ",
            "module",
            "import",
            "attributeerror",
            "typeerror",
        ]
        if any(indicator in error_str.lower() for indicator in technical_indicators):
            return "An internal error occurred. Please try again later."

    return sanitized


def bounded_excerpt(text: str, limit: int = 500) -> str:
    """
    Return at most ``limit`` characters of ``text`` for diagnostics.

    Longer text is cut and annotated with the number of characters dropped,
    so raw generator payloads never end up in logs or responses whole.
    """
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more characters]"


def retry_after_seconds(error: Exception) -> Optional[int]:
    """
    Extract a Retry-After hint (seconds) from a provider error, if present.

    Provider SDK errors expose the HTTP response on ``error.response``.
    """
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    try:
        return int(float(value)) if value is not None else None
    except (TypeError, ValueError):
        return None


def provider_status_code(error: Exception) -> Optional[int]:
    """
    HTTP status reported by a provider SDK error, if any.

    OpenAI and Anthropic errors expose ``status_code``; google-genai errors
    expose ``code``.
    """
    for attribute in ("status_code", "code"):
        value = getattr(error, attribute, None)
        if isinstance(value, int):
            return value
    return None
