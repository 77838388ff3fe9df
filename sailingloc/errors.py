"""
SailingLoc Client Error Classes

Normalized error taxonomy and the classifier that maps HTTP error
responses onto it.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .types import FieldError


class ErrorKind(str, Enum):
    """Normalized failure kinds."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP = "http"
    AUTH = "auth"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ApiError(Exception):
    """Base error class for the SailingLoc client."""

    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "name": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code!r}, message={self.message!r})"


class NetworkError(ApiError):
    """Transport failure, the request never reached the server."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 500, details)


class RequestTimeoutError(ApiError):
    """The request deadline elapsed before a response arrived."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = "Request timeout", timeout: Optional[float] = None):
        super().__init__(message, 500, {"timeout": timeout} if timeout is not None else None)
        self.timeout = timeout


class HttpError(ApiError):
    """The server answered with a non-2xx status."""

    kind = ErrorKind.HTTP


class AuthError(HttpError):
    """401 that survived a failed or skipped token refresh."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 401, details)


class ValidationError(HttpError):
    """Structured field-level errors returned by the server."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        field_errors: Optional[List[FieldError]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code, details)
        self.field_errors: List[FieldError] = list(field_errors or [])

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["field_errors"] = [
            {"field": e.field, "description": e.description} for e in self.field_errors
        ]
        return result


class ConfigurationError(ApiError):
    """Invalid client configuration."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 0, details)


def is_api_error(error: Any) -> bool:
    """Check if error is an ApiError."""
    return isinstance(error, ApiError)


def is_retryable_error(error: Any, retry_on_timeout: bool = False) -> bool:
    """Check if error is a transient transport failure."""
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, RequestTimeoutError):
        return retry_on_timeout
    return False


# =============================================================================
# Classification
# =============================================================================

def status_line(status_code: int, reason: str = "") -> str:
    """Format ``HTTP <status>: <reason>``."""
    reason = reason or httpx.codes.get_reason_phrase(status_code)
    return f"HTTP {status_code}: {reason}".rstrip(": ")


def parse_field_errors(errors: Any) -> List[FieldError]:
    """
    Flatten a validation ``errors`` value into ordered field errors.

    Accepts the ProblemDetails map (field -> list of messages, or a single
    message) and Identity-style lists of ``{code, description}`` objects.
    """
    result: List[FieldError] = []
    if isinstance(errors, dict):
        for name, messages in errors.items():
            if isinstance(messages, (list, tuple)):
                result.extend(FieldError(str(name), str(msg)) for msg in messages)
            elif messages is not None:
                result.append(FieldError(str(name), str(messages)))
    elif isinstance(errors, list):
        for item in errors:
            if isinstance(item, dict):
                description = item.get("description") or item.get("message")
                if description:
                    result.append(FieldError(str(item.get("code") or item.get("field") or ""), str(description)))
            elif item is not None:
                result.append(FieldError("", str(item)))
    return result


def extract_server_message(payload: Any) -> Tuple[str, List[FieldError]]:
    """
    Pull a human-readable message out of an error body.

    Order: ``message``, structured ``errors``, ``title``, then the body
    serialized back to JSON. Returns an empty message when nothing usable
    is present.
    """
    if payload is None or payload == "":
        return "", []
    if not isinstance(payload, dict):
        return json.dumps(payload), []

    message = payload.get("message")
    if isinstance(message, str) and message:
        return message, []

    field_errors = parse_field_errors(payload.get("errors"))
    title = payload.get("title")
    has_title = isinstance(title, str) and bool(title)
    if field_errors:
        return (title if has_title else "Validation failed"), field_errors
    if has_title:
        return title, []

    return json.dumps(payload), []


def _json_body(response: httpx.Response) -> Any:
    try:
        text = response.text
    except UnicodeDecodeError:
        return None
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def classify_response_error(response: httpx.Response, auth_failed: bool = False) -> ApiError:
    """
    Map a non-2xx response onto the error taxonomy.

    ``auth_failed`` marks a 401 whose token refresh failed or was skipped.
    """
    status = response.status_code
    server_message, field_errors = extract_server_message(_json_body(response))
    line = status_line(status, response.reason_phrase)
    message = f"{line} - {server_message}" if server_message else line
    details = {"auth_refresh_failed": True} if auth_failed else None

    if status == 401:
        return AuthError(message, details)
    if field_errors:
        return ValidationError(message, status, field_errors, details)
    return HttpError(message, status, details)


def classify_exception(exc: BaseException) -> ApiError:
    """Normalize an unexpected exception into an ApiError."""
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(str(exc) or "Request timeout")
    if isinstance(exc, httpx.TransportError):
        return NetworkError(str(exc) or exc.__class__.__name__)
    return ApiError(str(exc) or exc.__class__.__name__, 500)
