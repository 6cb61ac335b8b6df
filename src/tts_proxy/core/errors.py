"""
Error/Status Model.

Every failure that reaches a client is expressed as an ApiError: a message,
the HTTP status to answer with, and an optional structured payload. Errors
are raised where a failure is detected and travel up the stack unchanged
until the single error boundary (api/errors.py) renders and logs them.

Envelope Format:
    {
        "error": {
            "code": 400,
            "message": "text must not be empty",
            "details": {...}          # only when present
        }
    }

Attributes carried but never rendered:
    context: Log-only fields (voice id, text length, upstream status)
        so the boundary can log a failure without re-deriving them.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    """
    Exception carrying an HTTP status and optional structured detail.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code for the response (default 500).
        details: Optional payload rendered under error.details.
        context: Optional log-only fields, never rendered.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details
        self.context = context or {}
        super().__init__(message)


class NotFoundError(ApiError):
    """Raised when a requested resource does not exist."""
    def __init__(self, message: str, details: Any = None):
        super().__init__(message, 404, details)


class FeatureDisabledError(ApiError):
    """Raised when an endpoint of a disabled feature is called."""
    def __init__(self, message: str = "prompt system is disabled"):
        super().__init__(message, 400)


def error_envelope(code: int, message: str, details: Any = None) -> Dict[str, Any]:
    """
    Build the uniform error envelope.

    Args:
        code: HTTP status code.
        message: Human-readable message.
        details: Optional structured payload; omitted when None.

    Returns:
        Dictionary of the form {"error": {"code", "message", "details"?}}.
    """
    body: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return {"error": body}
