"""
SailingLoc Client Authentication Operations

Login, registration, logout and the password reset flow. Tokens issued by
the backend are written to the client's credential store.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from .errors import ApiError, AuthError, ValidationError, parse_field_errors
from .types import (
    ApiResponse,
    AuthResult,
    CredentialPair,
    LoginCredentials,
    RegisterData,
    User,
)

if TYPE_CHECKING:
    from .client import ApiClient, AsyncApiClient


logger = logging.getLogger("sailingloc.auth")

AUTH_ENDPOINT = "/auth"


def _login_failure(response: ApiResponse[Any]) -> ApiResponse[AuthResult]:
    if response.status == 401:
        return ApiResponse.failed(AuthError("Invalid credentials"))
    return ApiResponse.failed(response.failure or ApiError(response.error or "Login failed", response.status))


def _body_validation_error(data: Any, status: int) -> Optional[ValidationError]:
    """Validation problem details returned in a 2xx body."""
    if not isinstance(data, dict) or not isinstance(data.get("errors"), (dict, list)):
        return None
    field_errors = parse_field_errors(data["errors"])
    if not field_errors:
        return None
    return ValidationError(data.get("title") or "Validation failed", status, field_errors)


def _message(data: Any, default: str) -> str:
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return default


def _user(data: Any) -> Optional[User]:
    if isinstance(data, dict) and isinstance(data.get("user"), dict):
        return User.from_dict(data["user"])
    return None


class AuthNamespace:
    """Authentication operations for the sync client."""

    def __init__(self, client: "ApiClient") -> None:
        self._client = client
        self._current_user: Optional[User] = None

    def get_user(self) -> Optional[User]:
        """Get the current cached user."""
        return self._current_user

    def login(self, credentials: LoginCredentials) -> ApiResponse[AuthResult]:
        """
        Login with email and password.

        Stores the issued tokens; when the response carries no user, the
        user is fetched from ``/auth/me``.
        """
        self._client._log(f"Login attempt for: {credentials.email}")
        response = self._client.post(f"{AUTH_ENDPOINT}/login", credentials.to_dict())
        if not response.ok:
            return _login_failure(response)

        pair = CredentialPair.from_payload(response.data)
        if pair is None:
            return ApiResponse.failed(ApiError("Invalid response from auth service", response.status))

        self._client.storage.set_tokens(pair)
        user = _user(response.data) or self._fetch_user()
        self._current_user = user
        self._client._log("Login successful")
        return ApiResponse.success(
            AuthResult(user=user, tokens=pair, message=_message(response.data, "Logged in")),
            response.status,
        )

    def register(self, data: RegisterData) -> ApiResponse[AuthResult]:
        """
        Register a new user.

        Field-level validation failures come back as a ValidationError
        envelope. If the backend issues no tokens, the new account is
        logged in with the same credentials.
        """
        self._client._log(f"Register attempt for: {data.email}")
        response = self._client.post(f"{AUTH_ENDPOINT}/register", data.to_dict())
        if not response.ok:
            return ApiResponse.failed(response.failure or ApiError(response.error or "Registration failed", response.status))

        validation = _body_validation_error(response.data, response.status)
        if validation is not None:
            return ApiResponse.failed(validation)

        message = _message(response.data, "Registered")
        pair = CredentialPair.from_payload(response.data)
        if pair is None:
            self._client._log(f"Auto-login after register for: {data.email}")
            login = self.login(data.credentials())
            if login.ok and login.data is not None:
                login.data.message = message
                return login
            logger.info("Auto-login after registration failed: %s", login.error)
            return ApiResponse.success(AuthResult(user=None, tokens=None, message=message), response.status)

        self._client.storage.set_tokens(pair)
        user = _user(response.data) or self._fetch_user()
        self._current_user = user
        return ApiResponse.success(AuthResult(user=user, tokens=pair, message=message), response.status)

    def logout(self) -> None:
        """Logout the current user; local tokens are always cleared."""
        self._client._log("Logout")
        if self._client.storage.get_access_token():
            response = self._client.post(f"{AUTH_ENDPOINT}/logout", {})
            if not response.ok:
                self._client._log(f"Server logout failed: {response.error}")
        self._client.storage.clear_tokens()
        self._current_user = None

    def me(self) -> ApiResponse[User]:
        """Fetch current user from API."""
        response = self._client.get(f"{AUTH_ENDPOINT}/me")
        if not response.ok:
            return response
        if not isinstance(response.data, dict):
            return ApiResponse.failed(ApiError("Invalid response from auth service", response.status))
        self._current_user = User.from_dict(response.data.get("user", response.data))
        return ApiResponse.success(self._current_user, response.status)

    def _fetch_user(self) -> Optional[User]:
        response = self.me()
        return response.data if response.ok else None

    def is_authenticated(self) -> bool:
        """Check the stored token with the backend (may refresh it)."""
        if not self._client.storage.get_access_token():
            return False
        response = self._client.get(f"{AUTH_ENDPOINT}/validate")
        return bool(response.ok and isinstance(response.data, dict) and response.data.get("valid"))

    def request_password_reset_code(self, email: str) -> ApiResponse[Optional[str]]:
        """Ask the backend to e-mail a reset code."""
        response = self._client.post(f"{AUTH_ENDPOINT}/request-password-reset-code", {"email": email})
        if not response.ok:
            return response
        return ApiResponse.success(_message(response.data, ""), response.status)

    def verify_password_reset_code(self, email: str, code: str) -> ApiResponse[Optional[str]]:
        """Exchange a reset code for a reset token."""
        response = self._client.post(
            f"{AUTH_ENDPOINT}/verify-password-reset-code", {"email": email, "code": code}
        )
        if not response.ok:
            return response
        token = response.data.get("resetToken") if isinstance(response.data, dict) else None
        return ApiResponse.success(token, response.status)

    def reset_password(self, reset_token: str, new_password: str) -> ApiResponse[Optional[str]]:
        """Set a new password; field errors are available via ``field_errors``."""
        response = self._client.post(
            f"{AUTH_ENDPOINT}/reset-password", {"token": reset_token, "newPassword": new_password}
        )
        if not response.ok:
            return response
        return ApiResponse.success(_message(response.data, ""), response.status)


class AsyncAuthNamespace:
    """Authentication operations for the async client."""

    def __init__(self, client: "AsyncApiClient") -> None:
        self._client = client
        self._current_user: Optional[User] = None

    def get_user(self) -> Optional[User]:
        """Get the current cached user."""
        return self._current_user

    async def login(self, credentials: LoginCredentials) -> ApiResponse[AuthResult]:
        """Login with email and password."""
        self._client._log(f"Login attempt for: {credentials.email}")
        response = await self._client.post(f"{AUTH_ENDPOINT}/login", credentials.to_dict())
        if not response.ok:
            return _login_failure(response)

        pair = CredentialPair.from_payload(response.data)
        if pair is None:
            return ApiResponse.failed(ApiError("Invalid response from auth service", response.status))

        self._client.storage.set_tokens(pair)
        user = _user(response.data) or await self._fetch_user()
        self._current_user = user
        self._client._log("Login successful")
        return ApiResponse.success(
            AuthResult(user=user, tokens=pair, message=_message(response.data, "Logged in")),
            response.status,
        )

    async def register(self, data: RegisterData) -> ApiResponse[AuthResult]:
        """Register a new user."""
        self._client._log(f"Register attempt for: {data.email}")
        response = await self._client.post(f"{AUTH_ENDPOINT}/register", data.to_dict())
        if not response.ok:
            return ApiResponse.failed(response.failure or ApiError(response.error or "Registration failed", response.status))

        validation = _body_validation_error(response.data, response.status)
        if validation is not None:
            return ApiResponse.failed(validation)

        message = _message(response.data, "Registered")
        pair = CredentialPair.from_payload(response.data)
        if pair is None:
            self._client._log(f"Auto-login after register for: {data.email}")
            login = await self.login(data.credentials())
            if login.ok and login.data is not None:
                login.data.message = message
                return login
            logger.info("Auto-login after registration failed: %s", login.error)
            return ApiResponse.success(AuthResult(user=None, tokens=None, message=message), response.status)

        self._client.storage.set_tokens(pair)
        user = _user(response.data) or await self._fetch_user()
        self._current_user = user
        return ApiResponse.success(AuthResult(user=user, tokens=pair, message=message), response.status)

    async def logout(self) -> None:
        """Logout the current user; local tokens are always cleared."""
        self._client._log("Logout")
        if self._client.storage.get_access_token():
            response = await self._client.post(f"{AUTH_ENDPOINT}/logout", {})
            if not response.ok:
                self._client._log(f"Server logout failed: {response.error}")
        self._client.storage.clear_tokens()
        self._current_user = None

    async def me(self) -> ApiResponse[User]:
        """Fetch current user from API."""
        response = await self._client.get(f"{AUTH_ENDPOINT}/me")
        if not response.ok:
            return response
        if not isinstance(response.data, dict):
            return ApiResponse.failed(ApiError("Invalid response from auth service", response.status))
        self._current_user = User.from_dict(response.data.get("user", response.data))
        return ApiResponse.success(self._current_user, response.status)

    async def _fetch_user(self) -> Optional[User]:
        response = await self.me()
        return response.data if response.ok else None

    async def is_authenticated(self) -> bool:
        """Check the stored token with the backend (may refresh it)."""
        if not self._client.storage.get_access_token():
            return False
        response = await self._client.get(f"{AUTH_ENDPOINT}/validate")
        return bool(response.ok and isinstance(response.data, dict) and response.data.get("valid"))

    async def request_password_reset_code(self, email: str) -> ApiResponse[Optional[str]]:
        """Ask the backend to e-mail a reset code."""
        response = await self._client.post(f"{AUTH_ENDPOINT}/request-password-reset-code", {"email": email})
        if not response.ok:
            return response
        return ApiResponse.success(_message(response.data, ""), response.status)

    async def verify_password_reset_code(self, email: str, code: str) -> ApiResponse[Optional[str]]:
        """Exchange a reset code for a reset token."""
        response = await self._client.post(
            f"{AUTH_ENDPOINT}/verify-password-reset-code", {"email": email, "code": code}
        )
        if not response.ok:
            return response
        token = response.data.get("resetToken") if isinstance(response.data, dict) else None
        return ApiResponse.success(token, response.status)

    async def reset_password(self, reset_token: str, new_password: str) -> ApiResponse[Optional[str]]:
        """Set a new password; field errors are available via ``field_errors``."""
        response = await self._client.post(
            f"{AUTH_ENDPOINT}/reset-password", {"token": reset_token, "newPassword": new_password}
        )
        if not response.ok:
            return response
        return ApiResponse.success(_message(response.data, ""), response.status)
