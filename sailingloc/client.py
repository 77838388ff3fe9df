"""
SailingLoc Client

Main client classes for the SailingLoc marketplace API. Every resource
call funnels through ``request()``, which attaches the bearer token,
refreshes it transparently on 401, replays the call once and normalizes
the outcome into an ApiResponse.

Provides both synchronous and asynchronous clients.
"""

import logging
from typing import Any, Mapping, Optional, Tuple

import httpx

from .auth import AsyncAuthNamespace, AuthNamespace
from .decoder import decode_download, decode_response
from .errors import AuthError, ConfigurationError, ErrorKind, classify_exception, classify_response_error
from .executor import AsyncRequestExecutor, RequestExecutor
from .refresh import AsyncTokenRefresher, TokenRefresher
from .resources import (
    AsyncBoats,
    AsyncBookings,
    AsyncUserDocuments,
    Boats,
    Bookings,
    UserDocuments,
)
from .storage import MemoryStorage
from .types import ApiConfig, ApiResponse, DownloadResult, FormPayload, Request, TokenStorage


logger = logging.getLogger("sailingloc")


def validate_config(config: ApiConfig) -> None:
    """Validate configuration."""
    if not config.base_url:
        raise ConfigurationError("base_url is required")
    if not config.base_url.startswith(("http://", "https://")):
        raise ConfigurationError(
            "Invalid base_url. Expected an http:// or https:// URL",
            {"base_url": config.base_url},
        )
    if config.timeout <= 0:
        raise ConfigurationError("timeout must be positive", {"timeout": config.timeout})
    if config.retry_attempts < 0:
        raise ConfigurationError(
            "retry_attempts must not be negative", {"retry_attempts": config.retry_attempts}
        )
    if config.retry_delay < 0:
        raise ConfigurationError("retry_delay must not be negative", {"retry_delay": config.retry_delay})


def bearer(token: Optional[str]) -> Mapping[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


class ApiClient:
    """
    SailingLoc API Client - Synchronous entry point.

    Never raises for request failures: every call returns an ApiResponse
    whose ``error``/``failure`` describe what went wrong.
    """

    def __init__(self, config: ApiConfig, http_client: Optional[httpx.Client] = None) -> None:
        """Initialize the client."""
        validate_config(config)

        self._config = config
        self._storage = config.storage if config.storage is not None else MemoryStorage()
        self._executor = RequestExecutor(config, http_client)
        self._refresher = TokenRefresher(self._storage, self._executor)

        # Namespaces
        self.auth = AuthNamespace(self)
        self.boats = Boats(self)
        self.bookings = Bookings(self)
        self.documents = UserDocuments(self)

        self._log(f"ApiClient initialized (base_url={config.base_url})")

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def storage(self) -> TokenStorage:
        return self._storage

    def _log(self, message: str, *args: Any) -> None:
        """Log debug message."""
        if self._config.enable_logging:
            logger.debug(f"[SailingLoc] {message}", *args)

    # =========================================================================
    # Gateway
    # =========================================================================

    def _send_authorized(self, request: Request) -> Tuple[httpx.Response, bool]:
        """
        Send with the stored bearer token, refreshing and replaying once on 401.

        Returns the final response and whether a 401 survived a failed or
        skipped refresh.
        """
        sent_token = self._storage.get_access_token()
        response = self._executor.send(request.with_headers(bearer(sent_token)))
        if response.status_code != 401:
            return response, False

        self._log(f"401 on {request.method} {request.path}, refreshing token")
        if not self._refresher.refresh(sent_token):
            return response, True

        replay_token = self._storage.get_access_token()
        self._log(f"Replaying {request.method} {request.path}")
        return self._executor.send(request.with_headers(bearer(replay_token))), False

    def _failed(self, response: httpx.Response, auth_failed: bool) -> ApiResponse[Any]:
        failure = classify_response_error(response, auth_failed)
        if auth_failed and isinstance(failure, AuthError):
            self._storage.clear_tokens()
        self._log(f"HTTP error: {failure.message}")
        return ApiResponse.failed(failure)

    def _unexpected(self, request: Request, exc: Exception) -> ApiResponse[Any]:
        failure = classify_exception(exc)
        if failure.kind is ErrorKind.UNKNOWN:
            logger.exception("Unexpected error during %s %s", request.method, request.path)
        else:
            self._log(f"{request.method} {request.path} failed: {failure.message}")
        return ApiResponse.failed(failure)

    def request(self, request: Request) -> ApiResponse[Any]:
        """Execute a request and decode the response into an envelope."""
        try:
            response, auth_failed = self._send_authorized(request)
            if response.is_success:
                return decode_response(response)
            return self._failed(response, auth_failed)
        except Exception as exc:
            return self._unexpected(request, exc)

    def download(self, path: str) -> ApiResponse[DownloadResult]:
        """Download binary content together with its type and filename."""
        request = Request("GET", path)
        try:
            response, auth_failed = self._send_authorized(request)
            if response.is_success:
                return decode_download(response)
            return self._failed(response, auth_failed)
        except Exception as exc:
            return self._unexpected(request, exc)

    # =========================================================================
    # Verbs
    # =========================================================================

    def get(self, path: str, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return self.request(Request("GET", path, headers or {}))

    def post(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return self.request(Request("POST", path, headers or {}, data))

    def post_form(self, path: str, form: FormPayload) -> ApiResponse[Any]:
        return self.request(Request("POST", path, body=form))

    def put(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return self.request(Request("PUT", path, headers or {}, data))

    def patch(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return self.request(Request("PATCH", path, headers or {}, data))

    def delete(self, path: str, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return self.request(Request("DELETE", path, headers or {}))

    def close(self) -> None:
        """Close the HTTP client."""
        self._executor.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


# =============================================================================
# Async Client
# =============================================================================

class AsyncApiClient:
    """
    SailingLoc API Client - Asynchronous entry point.

    Concurrent tasks that hit an expired token share a single refresh
    exchange before each replays its own request.
    """

    def __init__(self, config: ApiConfig, http_client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize the async client."""
        validate_config(config)

        self._config = config
        self._storage = config.storage if config.storage is not None else MemoryStorage()
        self._executor = AsyncRequestExecutor(config, http_client)
        self._refresher = AsyncTokenRefresher(self._storage, self._executor)

        # Namespaces
        self.auth = AsyncAuthNamespace(self)
        self.boats = AsyncBoats(self)
        self.bookings = AsyncBookings(self)
        self.documents = AsyncUserDocuments(self)

        self._log(f"AsyncApiClient initialized (base_url={config.base_url})")

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def storage(self) -> TokenStorage:
        return self._storage

    def _log(self, message: str, *args: Any) -> None:
        """Log debug message."""
        if self._config.enable_logging:
            logger.debug(f"[SailingLoc] {message}", *args)

    # =========================================================================
    # Gateway
    # =========================================================================

    async def _send_authorized(self, request: Request) -> Tuple[httpx.Response, bool]:
        """Async counterpart of ``ApiClient._send_authorized``."""
        sent_token = self._storage.get_access_token()
        response = await self._executor.send(request.with_headers(bearer(sent_token)))
        if response.status_code != 401:
            return response, False

        self._log(f"401 on {request.method} {request.path}, refreshing token")
        if not await self._refresher.refresh(sent_token):
            return response, True

        replay_token = self._storage.get_access_token()
        self._log(f"Replaying {request.method} {request.path}")
        return await self._executor.send(request.with_headers(bearer(replay_token))), False

    def _failed(self, response: httpx.Response, auth_failed: bool) -> ApiResponse[Any]:
        failure = classify_response_error(response, auth_failed)
        if auth_failed and isinstance(failure, AuthError):
            self._storage.clear_tokens()
        self._log(f"HTTP error: {failure.message}")
        return ApiResponse.failed(failure)

    def _unexpected(self, request: Request, exc: Exception) -> ApiResponse[Any]:
        failure = classify_exception(exc)
        if failure.kind is ErrorKind.UNKNOWN:
            logger.exception("Unexpected error during %s %s", request.method, request.path)
        else:
            self._log(f"{request.method} {request.path} failed: {failure.message}")
        return ApiResponse.failed(failure)

    async def request(self, request: Request) -> ApiResponse[Any]:
        """Execute a request and decode the response into an envelope."""
        try:
            response, auth_failed = await self._send_authorized(request)
            if response.is_success:
                return decode_response(response)
            return self._failed(response, auth_failed)
        except Exception as exc:
            return self._unexpected(request, exc)

    async def download(self, path: str) -> ApiResponse[DownloadResult]:
        """Download binary content together with its type and filename."""
        request = Request("GET", path)
        try:
            response, auth_failed = await self._send_authorized(request)
            if response.is_success:
                return decode_download(response)
            return self._failed(response, auth_failed)
        except Exception as exc:
            return self._unexpected(request, exc)

    # =========================================================================
    # Verbs
    # =========================================================================

    async def get(self, path: str, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return await self.request(Request("GET", path, headers or {}))

    async def post(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return await self.request(Request("POST", path, headers or {}, data))

    async def post_form(self, path: str, form: FormPayload) -> ApiResponse[Any]:
        return await self.request(Request("POST", path, body=form))

    async def put(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return await self.request(Request("PUT", path, headers or {}, data))

    async def patch(self, path: str, data: Any = None, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return await self.request(Request("PATCH", path, headers or {}, data))

    async def delete(self, path: str, headers: Optional[Mapping[str, str]] = None) -> ApiResponse[Any]:
        return await self.request(Request("DELETE", path, headers or {}))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._executor.close()

    async def __aenter__(self) -> "AsyncApiClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# =============================================================================
# Factory Functions
# =============================================================================

def create_api_client(config: Optional[ApiConfig] = None) -> ApiClient:
    """Create a new synchronous client."""
    return ApiClient(config or ApiConfig())


def create_async_api_client(config: Optional[ApiConfig] = None) -> AsyncApiClient:
    """Create a new asynchronous client."""
    return AsyncApiClient(config or ApiConfig())
