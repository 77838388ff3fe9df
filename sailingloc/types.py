"""
SailingLoc Client Type Definitions

Request/response data model, credential types and client configuration.
Shared by the synchronous and asynchronous clients.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import (
    IO,
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
    Union,
    runtime_checkable,
)

if TYPE_CHECKING:
    from .errors import ApiError


T = TypeVar("T")

DEFAULT_BASE_URL = "https://localhost:61802/api/v1"


@runtime_checkable
class TokenStorage(Protocol):
    """Credential store interface for custom implementations."""

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        ...

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        ...

    def get_tokens(self) -> Optional["CredentialPair"]:
        """Get a consistent snapshot of the stored pair."""
        ...

    def set_tokens(self, pair: "CredentialPair") -> None:
        """Replace the stored pair."""
        ...

    def update_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[str] = None,
    ) -> None:
        """Store a refreshed access token, keeping the refresh token unless a new one is given."""
        ...

    def clear_tokens(self) -> None:
        """Clear both stored tokens."""
        ...


@dataclass
class ApiConfig:
    """Client configuration options."""

    # API base URL, endpoint paths are appended to it
    base_url: str = DEFAULT_BASE_URL
    # Request deadline in seconds (default: 80)
    timeout: float = 80.0
    # Extra attempts after the first one on transport failures (default: 2)
    retry_attempts: int = 2
    # Base delay in seconds; attempt n waits retry_delay * n (default: 1.0)
    retry_delay: float = 1.0
    # Treat deadline expiry as a transient failure (default: False)
    retry_on_timeout: bool = False
    # Enable debug logging (default: False)
    enable_logging: bool = False
    # Custom headers to include in every request
    headers: Optional[Dict[str, str]] = None
    # Credential store (default: None, uses MemoryStorage)
    storage: Optional[TokenStorage] = None


FileSpec = Tuple[str, Union[bytes, IO[bytes]], str]


@dataclass(frozen=True)
class FormPayload:
    """Multipart form body; the transport picks the boundary."""

    fields: Mapping[str, str] = field(default_factory=dict)
    files: Mapping[str, FileSpec] = field(default_factory=dict)


@dataclass(frozen=True)
class Request:
    """A single API call, immutable once built."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def is_form(self) -> bool:
        return isinstance(self.body, FormPayload)

    def with_headers(self, headers: Mapping[str, str]) -> "Request":
        """Return a copy with ``headers`` merged over the current ones."""
        return replace(self, headers={**self.headers, **headers})


@dataclass(frozen=True)
class CredentialPair:
    """Access/refresh token pair held by the credential store."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> Optional["CredentialPair"]:
        """
        Extract a pair from an auth response body.

        Accepted shapes, tried in order: top-level ``accessToken``, the same
        fields nested under ``tokens``, then a bare ``token`` field.
        Returns None when no access token is present.
        """
        if not isinstance(data, dict):
            return None
        nested = data.get("tokens")
        if not isinstance(nested, dict):
            nested = {}

        access_token = data.get("accessToken") or nested.get("accessToken") or data.get("token")
        if not isinstance(access_token, str) or not access_token:
            return None

        refresh_token = data.get("refreshToken") or nested.get("refreshToken") or None
        expires_at = data.get("expiresAt") or nested.get("expiresAt") or None
        return cls(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            expires_at=str(expires_at) if expires_at is not None else None,
        )


@dataclass(frozen=True)
class FieldError:
    """One field-level validation failure."""

    field: str
    description: str


@dataclass
class ApiResponse(Generic[T]):
    """
    Result envelope returned by every access-layer call.

    Either ``data`` (which may be None for empty bodies) or ``error`` is
    populated, never both. ``failure`` holds the normalized error.
    """

    status: int
    data: Optional[T] = None
    error: Optional[str] = None
    failure: Optional["ApiError"] = None

    @classmethod
    def success(cls, data: Optional[T], status: int) -> "ApiResponse[T]":
        return cls(status=status, data=data)

    @classmethod
    def failed(cls, failure: "ApiError") -> "ApiResponse[T]":
        return cls(status=failure.status_code, error=failure.message, failure=failure)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def field_errors(self) -> List[FieldError]:
        return list(getattr(self.failure, "field_errors", []))

    def unwrap(self) -> T:
        """Return the data or raise the normalized error."""
        if self.failure is not None:
            raise self.failure
        return self.data  # type: ignore[return-value]


@dataclass
class DownloadResult:
    """Binary payload returned by a download endpoint."""

    content: bytes
    content_type: Optional[str] = None
    # Raw Content-Disposition header value
    filename: Optional[str] = None
    # File name recovered from that header
    parsed_filename: Optional[str] = None


UserType = str


@dataclass
class User:
    """User data returned from the auth endpoints."""

    id: Any
    name: str
    email: str
    type: UserType = "renter"
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Create from dictionary."""
        name = data.get("name")
        if not name:
            name = " ".join(
                part for part in (data.get("firstName"), data.get("lastName")) if part
            )
        return cls(
            id=data.get("id", 0),
            name=name or "",
            email=data.get("email", ""),
            type=data.get("type") or data.get("role") or "renter",
            raw=dict(data),
        )


@dataclass
class AuthResult:
    """Outcome of a successful login or registration."""

    user: Optional[User]
    tokens: Optional[CredentialPair]
    message: str = ""


@dataclass
class LoginCredentials:
    """User login credentials."""

    email: str
    password: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API requests."""
        return {"email": self.email, "password": self.password}


@dataclass
class RegisterData:
    """User registration data."""

    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_type: Optional[UserType] = None
    phone_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API requests."""
        result: Dict[str, Any] = {
            "email": self.email,
            "password": self.password,
        }
        if self.first_name is not None:
            result["firstName"] = self.first_name
        if self.last_name is not None:
            result["lastName"] = self.last_name
        if self.user_type is not None:
            result["userType"] = self.user_type
        if self.phone_number is not None:
            result["phoneNumber"] = self.phone_number
        return result

    def credentials(self) -> LoginCredentials:
        return LoginCredentials(email=self.email, password=self.password)
