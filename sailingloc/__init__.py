"""
SailingLoc API Client

A Python client for the SailingLoc boat rental marketplace API with sync
and async support, bounded retries, transparent token refresh and
normalized error envelopes.
"""

from .client import ApiClient, AsyncApiClient, create_api_client, create_async_api_client
from .types import (
    ApiConfig,
    TokenStorage,
    Request,
    FormPayload,
    CredentialPair,
    ApiResponse,
    FieldError,
    DownloadResult,
    User,
    AuthResult,
    LoginCredentials,
    RegisterData,
)
from .errors import (
    ErrorKind,
    ApiError,
    NetworkError,
    RequestTimeoutError,
    HttpError,
    AuthError,
    ValidationError,
    ConfigurationError,
    is_api_error,
    is_retryable_error,
)
from .storage import MemoryStorage, FileStorage

__version__ = "1.0.0"
__all__ = [
    # Clients
    "ApiClient",
    "AsyncApiClient",
    "create_api_client",
    "create_async_api_client",
    # Types
    "ApiConfig",
    "TokenStorage",
    "Request",
    "FormPayload",
    "CredentialPair",
    "ApiResponse",
    "FieldError",
    "DownloadResult",
    "User",
    "AuthResult",
    "LoginCredentials",
    "RegisterData",
    # Errors
    "ErrorKind",
    "ApiError",
    "NetworkError",
    "RequestTimeoutError",
    "HttpError",
    "AuthError",
    "ValidationError",
    "ConfigurationError",
    "is_api_error",
    "is_retryable_error",
    # Storage
    "MemoryStorage",
    "FileStorage",
]
