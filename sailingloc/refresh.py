"""
SailingLoc Client Token Refresh Coordination

Exchanges the stored refresh token for a new credential pair. Concurrent
callers that detect an expired token share one in-flight exchange and
observe the same outcome.
"""

import asyncio
import logging
import threading
from typing import Optional

import httpx

from .errors import ApiError
from .executor import AsyncRequestExecutor, RequestExecutor
from .types import CredentialPair, Request, TokenStorage


logger = logging.getLogger("sailingloc.refresh")

REFRESH_ENDPOINT = "/auth/refresh"


def build_refresh_request(refresh_token: str) -> Request:
    return Request("POST", REFRESH_ENDPOINT, body={"refreshToken": refresh_token})


def parse_refresh_response(response: httpx.Response) -> Optional[CredentialPair]:
    """Credential pair from a refresh response, or None if it is unusable."""
    if not response.is_success:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    return CredentialPair.from_payload(payload)


def superseded(storage: TokenStorage, stale_token: Optional[str]) -> bool:
    """True when the store already holds a newer access token than ``stale_token``."""
    current = storage.get_access_token()
    return current is not None and current != stale_token


class _Flight:
    """One in-progress refresh shared by waiting threads."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result = False


class TokenRefresher:
    """Single-flight refresh coordinator for the blocking client."""

    def __init__(self, storage: TokenStorage, executor: RequestExecutor) -> None:
        self._storage = storage
        self._executor = executor
        self._lock = threading.Lock()
        self._flight: Optional[_Flight] = None

    def refresh(self, stale_token: Optional[str] = None) -> bool:
        """
        Refresh the access token.

        Args:
            stale_token: Access token the caller was rejected with. If the store
                already holds a different token, no exchange is performed.

        Returns:
            True if a usable access token is stored afterwards
        """
        with self._lock:
            if self._flight is None and superseded(self._storage, stale_token):
                return True
            flight = self._flight
            leader = flight is None
            if leader:
                flight = self._flight = _Flight()

        if not leader:
            flight.done.wait()
            return flight.result

        try:
            flight.result = self._exchange()
        finally:
            with self._lock:
                self._flight = None
            flight.done.set()
        return flight.result

    def _exchange(self) -> bool:
        refresh_token = self._storage.get_refresh_token()
        if not refresh_token:
            return False

        try:
            response = self._executor.send(build_refresh_request(refresh_token))
        except ApiError as e:
            logger.info("Token refresh failed: %s", e.message)
            self._storage.clear_tokens()
            return False

        pair = parse_refresh_response(response)
        if pair is None:
            logger.info("Token refresh rejected (HTTP %d)", response.status_code)
            self._storage.clear_tokens()
            return False

        self._storage.update_tokens(pair.access_token, pair.refresh_token, pair.expires_at)
        return True


class AsyncTokenRefresher:
    """Single-flight refresh coordinator for the async client."""

    def __init__(self, storage: TokenStorage, executor: AsyncRequestExecutor) -> None:
        self._storage = storage
        self._executor = executor
        self._inflight: Optional["asyncio.Future[bool]"] = None

    async def refresh(self, stale_token: Optional[str] = None) -> bool:
        """Refresh the access token, joining an exchange already in flight."""
        if self._inflight is None:
            if superseded(self._storage, stale_token):
                return True
            self._inflight = asyncio.ensure_future(self._run())
        # shielded so a cancelled waiter leaves the shared exchange running
        return await asyncio.shield(self._inflight)

    async def _run(self) -> bool:
        try:
            return await self._exchange()
        finally:
            self._inflight = None

    async def _exchange(self) -> bool:
        refresh_token = self._storage.get_refresh_token()
        if not refresh_token:
            return False

        try:
            response = await self._executor.send(build_refresh_request(refresh_token))
        except ApiError as e:
            logger.info("Token refresh failed: %s", e.message)
            self._storage.clear_tokens()
            return False

        pair = parse_refresh_response(response)
        if pair is None:
            logger.info("Token refresh rejected (HTTP %d)", response.status_code)
            self._storage.clear_tokens()
            return False

        self._storage.update_tokens(pair.access_token, pair.refresh_token, pair.expires_at)
        return True
