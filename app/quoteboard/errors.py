"""
Domain errors raised by the core operations.

Each error carries the HTTP status it maps to; `create_app` registers a single
handler that renders them as `{"error": message}`.
"""
from __future__ import annotations


class QuoteBoardError(RuntimeError):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class Unauthorized(QuoteBoardError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(QuoteBoardError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(QuoteBoardError):
    status_code = 404
    default_message = "Not found"


class InvalidInput(QuoteBoardError):
    status_code = 400
    default_message = "Invalid input"


class StorageFailure(QuoteBoardError):
    # Message is fixed; driver errors are logged, never echoed to the caller.
    status_code = 503
    default_message = "Storage failure"


def parse_id(raw: object, field: str) -> int:
    """Coerce a request-supplied identifier to int or raise InvalidInput."""
    if isinstance(raw, bool) or raw is None:
        raise InvalidInput(f"{field} is required.")
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        raise InvalidInput(f"{field} is required.")
    try:
        return int(text)
    except ValueError:
        raise InvalidInput(f"{field} must be an integer.")


def parse_text(raw: object, field: str) -> str:
    """Trimmed string value of a request field ('' when absent); non-strings are InvalidInput."""
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise InvalidInput(f"{field} must be a string.")
    return raw.strip()
