from datetime import datetime, timezone
from typing import Any

TIMEOUT_SENTINEL = "Request timeout"

_AUTH_MARKERS = ("authentication", "api key", "unauthorized")
_QUOTA_MARKERS = ("quota", "limit", "rate")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RelayError(Exception):
    """Base for every failure the service reports to a caller."""

    status_code = 500
    error = "Internal server error"
    code = "INTERNAL_ERROR"
    with_timestamp = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        body = {"error": self.error, "message": self.message, "code": self.code}
        if self.with_timestamp:
            body["timestamp"] = utc_timestamp()
        return body


class InvalidInput(RelayError):
    status_code = 400
    error = "Invalid input"
    code = "INVALID_INPUT"


class InvalidJSON(RelayError):
    status_code = 400
    error = "Invalid JSON format"
    code = "INVALID_JSON"


class PayloadTooLarge(RelayError):
    status_code = 413
    error = "Payload too large"
    code = "PAYLOAD_TOO_LARGE"


class RequestTimeout(RelayError):
    status_code = 408
    error = "Request timeout"
    code = "TIMEOUT"

    def __init__(self, message: str = "The request took too long to process. Please try again.") -> None:
        super().__init__(message)


class AuthError(RelayError):
    status_code = 401
    error = "Authentication failed"
    code = "AUTH_ERROR"

    def __init__(self, message: str = "Invalid or missing API key. Please check your COHERE_API_KEY.") -> None:
        super().__init__(message)


class QuotaExceeded(RelayError):
    status_code = 429
    error = "Rate limit exceeded"
    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str = "API quota exceeded. Please try again later.") -> None:
        super().__init__(message)


class BadRequest(RelayError):
    status_code = 400
    error = "Bad request"
    code = "BAD_REQUEST"


class InternalError(RelayError):
    with_timestamp = True


class NotFound(RelayError):
    status_code = 404
    error = "Endpoint not found"
    code = "NOT_FOUND"


def provider_message(exc: BaseException) -> str:
    """Human-readable text of a provider failure.

    Cohere's ApiError stringifies its response headers too, so prefer the
    error body's own message when there is one.
    """
    body = getattr(exc, "body", None)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(body, str) and body:
        return body
    return str(exc)


def classify_provider_error(exc: BaseException, *, expose_details: bool = True) -> RelayError:
    status = getattr(exc, "status_code", None)
    message = provider_message(exc)
    lowered = message.lower()

    if message == TIMEOUT_SENTINEL:
        return RequestTimeout()
    if status == 401 or any(m in lowered for m in _AUTH_MARKERS):
        return AuthError()
    if status == 429 or any(m in lowered for m in _QUOTA_MARKERS):
        return QuotaExceeded()
    if status == 400:
        return BadRequest("Invalid request parameters: " + (message or "Unknown error"))
    return internal_error(message, status, expose_details=expose_details)


def internal_error(message: str, status: int | None = None, *, expose_details: bool = True) -> InternalError:
    if expose_details:
        return InternalError(f"{message} | StatusCode: {status if status is not None else 'N/A'}")
    return InternalError("An unexpected error occurred. Please try again.")
