"""
Input Validation for the Speech Pipeline.

Validation runs before any provider call so a bad request never costs an
upstream round-trip.

Validation Rules:
    - text: required, not empty (whitespace-only text is forwarded)
    - voice_id: optional, max 128 chars, no "/" or whitespace (it becomes
      a URL path segment)
    - template_name: optional, max 100 chars

All validators raise ValidationError (HTTP 400) whose details carry a
machine-readable reason code:
    {FIELD}_REQUIRED, {FIELD}_TOO_LONG, {FIELD}_INVALID
"""
from __future__ import annotations

from typing import Any, Optional

from tts_proxy.core.errors import ApiError

MAX_VOICE_ID_LENGTH = 128
MAX_TEMPLATE_NAME_LENGTH = 100


class ValidationError(ApiError):
    """
    Raised when request input is invalid (HTTP 400).

    Attributes:
        code: Machine-readable reason, e.g. "TEXT_REQUIRED".

    Example:
        >>> raise ValidationError("text is required", "TEXT_REQUIRED")
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Any = None):
        self.code = code
        super().__init__(message, 400, details if details is not None else {"reason": code})


def validate_text(text: Optional[str]) -> str:
    """
    Validate text input.

    The text is returned as given; surrounding whitespace is the caller's.

    Raises:
        ValidationError: If text is missing or empty.
    """
    if not text or not isinstance(text, str):
        raise ValidationError("text is required", "TEXT_REQUIRED")
    return text


def validate_voice_id(voice_id: Optional[str], max_length: int = MAX_VOICE_ID_LENGTH) -> Optional[str]:
    """
    Validate a voice id or alias.

    Returns:
        The voice id, or None when not given.

    Raises:
        ValidationError: If too long or not usable as a path segment.
    """
    if not voice_id:
        return None

    if len(voice_id) > max_length:
        raise ValidationError(
            f"voice_id exceeds maximum length ({len(voice_id)} > {max_length})",
            "VOICE_ID_TOO_LONG",
        )

    if "/" in voice_id or any(c.isspace() for c in voice_id):
        raise ValidationError("voice_id contains invalid characters", "VOICE_ID_INVALID")

    return voice_id


def validate_template_name(name: Optional[str], max_length: int = MAX_TEMPLATE_NAME_LENGTH) -> Optional[str]:
    """Validate an optional template name."""
    if not name:
        return None

    if len(name) > max_length:
        raise ValidationError(
            f"template_name exceeds maximum length ({len(name)} > {max_length})",
            "TEMPLATE_NAME_TOO_LONG",
        )

    return name
