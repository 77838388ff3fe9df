"""
SailingLoc Client Request Executor

Issues one HTTP request with a deadline and a bounded, linearly spaced
retry policy for transport failures.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .errors import ApiError, NetworkError, RequestTimeoutError, is_retryable_error
from .types import ApiConfig, Request


logger = logging.getLogger("sailingloc.executor")

JSON_HEADERS = {"Content-Type": "application/json"}


def build_request_kwargs(config: ApiConfig, request: Request) -> Dict[str, Any]:
    """Translate a Request into httpx ``request()`` keyword arguments."""
    kwargs: Dict[str, Any] = {
        "method": request.method,
        "url": f"{config.base_url.rstrip('/')}{request.path}",
    }
    if request.is_form:
        # No Content-Type here: httpx sets the multipart boundary itself
        headers: Dict[str, str] = {**(config.headers or {}), **request.headers}
        kwargs["data"] = dict(request.body.fields)
        kwargs["files"] = dict(request.body.files)
    else:
        headers = {**JSON_HEADERS, **(config.headers or {}), **request.headers}
        if request.body is not None:
            kwargs["json"] = request.body
    kwargs["headers"] = headers
    return kwargs


def retry_delay(config: ApiConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    return config.retry_delay * attempt


class RequestExecutor:
    """Blocking executor backed by ``httpx.Client``."""

    def __init__(self, config: ApiConfig, http_client: Optional[httpx.Client] = None) -> None:
        self._config = config
        self._http_client = http_client or httpx.Client(timeout=config.timeout)

    def send(self, request: Request) -> httpx.Response:
        """
        Perform the request, retrying transient transport failures.

        httpx applies the timeout to each phase (connect, write, read, pool)
        separately, so a body that keeps trickling in can outlast it.

        Raises:
            NetworkError: transport failure after the last attempt
            RequestTimeoutError: deadline exceeded
        """
        kwargs = build_request_kwargs(self._config, request)
        attempts = self._config.retry_attempts + 1
        last_error: Optional[ApiError] = None

        for attempt in range(1, attempts + 1):
            try:
                return self._http_client.request(timeout=self._config.timeout, **kwargs)
            except httpx.TimeoutException as e:
                last_error = RequestTimeoutError(str(e) or "Request timeout", self._config.timeout)
            except httpx.TransportError as e:
                last_error = NetworkError(str(e) or e.__class__.__name__)

            if not is_retryable_error(last_error, self._config.retry_on_timeout) or attempt == attempts:
                raise last_error

            delay = retry_delay(self._config, attempt)
            logger.warning("Retry attempt %d for %s %s in %.2fs", attempt, request.method, kwargs["url"], delay)
            time.sleep(delay)

        raise last_error or NetworkError("Request failed after retries")

    def close(self) -> None:
        self._http_client.close()


class AsyncRequestExecutor:
    """Cooperative executor backed by ``httpx.AsyncClient``."""

    def __init__(self, config: ApiConfig, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._http_client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._http_client

    async def send(self, request: Request) -> httpx.Response:
        """
        Perform the request, retrying transient transport failures.

        The whole call is bounded by the configured timeout; when it elapses
        the in-flight request is cancelled and reported as a timeout.
        Cancellation by the caller propagates and is never retried.
        """
        kwargs = build_request_kwargs(self._config, request)
        attempts = self._config.retry_attempts + 1
        last_error: Optional[ApiError] = None
        client = self._get_client()

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    client.request(timeout=self._config.timeout, **kwargs),
                    timeout=self._config.timeout,
                )
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                last_error = RequestTimeoutError(str(e) or "Request timeout", self._config.timeout)
            except httpx.TransportError as e:
                last_error = NetworkError(str(e) or e.__class__.__name__)

            if not is_retryable_error(last_error, self._config.retry_on_timeout) or attempt == attempts:
                raise last_error

            delay = retry_delay(self._config, attempt)
            logger.warning("Retry attempt %d for %s %s in %.2fs", attempt, request.method, kwargs["url"], delay)
            await asyncio.sleep(delay)

        raise last_error or NetworkError("Request failed after retries")

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
