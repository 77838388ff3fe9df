"""
Tests for the SailingLoc synchronous client

Gateway behaviour against mocked HTTP responses: bearer attachment,
refresh-and-replay, body decoding, downloads and error envelopes.
"""

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

import httpx
import pytest
import respx

from sailingloc import (
    ApiClient,
    ApiConfig,
    ApiResponse,
    CredentialPair,
    ErrorKind,
    FormPayload,
    MemoryStorage,
    create_api_client,
)
from sailingloc.errors import (
    ApiError,
    AuthError,
    ConfigurationError,
    HttpError,
    NetworkError,
    ValidationError,
)


BASE_URL = "https://api.sailingloc.test/api/v1"


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def config(storage: MemoryStorage) -> ApiConfig:
    """Configuration with fast retries for testing."""
    return ApiConfig(
        base_url=BASE_URL,
        timeout=5.0,
        retry_attempts=2,
        retry_delay=0.0,
        enable_logging=True,
        storage=storage,
    )


@pytest.fixture
def client(config: ApiConfig) -> ApiClient:
    return ApiClient(config)


@pytest.fixture
def boat() -> Dict[str, Any]:
    return {"id": 7, "name": "Blue Lagoon", "type": "sailboat", "pricePerDay": 250}


def auth_header(route: respx.Route) -> Any:
    return route.calls.last.request.headers.get("authorization")


# =============================================================================
# Configuration Tests
# =============================================================================

class TestConfiguration:
    """Tests for client configuration."""

    def test_defaults(self):
        config = ApiConfig()
        assert config.base_url == "https://localhost:61802/api/v1"
        assert config.timeout == 80.0
        assert config.retry_attempts == 2
        assert config.retry_on_timeout is False

    def test_default_storage_is_memory(self):
        client = create_api_client(ApiConfig(base_url=BASE_URL))
        assert isinstance(client.storage, MemoryStorage)
        client.close()

    def test_invalid_base_url(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ApiClient(ApiConfig(base_url="ftp://example.com"))
        assert "base_url" in str(exc_info.value)

    def test_missing_base_url(self):
        with pytest.raises(ConfigurationError):
            ApiClient(ApiConfig(base_url=""))

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigurationError):
            ApiClient(ApiConfig(base_url=BASE_URL, timeout=0))

    def test_negative_retry_attempts(self):
        with pytest.raises(ConfigurationError):
            ApiClient(ApiConfig(base_url=BASE_URL, retry_attempts=-1))


# =============================================================================
# Bearer Attachment
# =============================================================================

class TestBearerAttachment:
    """Tests for credential attachment."""

    @respx.mock
    def test_token_attached(self, client: ApiClient, storage: MemoryStorage, boat: Dict):
        storage.set_tokens(CredentialPair("A", "R"))
        route = respx.get(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(200, json=boat))

        response = client.get("/boats/7")

        assert response.ok
        assert response.data == boat
        assert auth_header(route) == "Bearer A"

    @respx.mock
    def test_no_token_no_header(self, client: ApiClient):
        route = respx.get(f"{BASE_URL}/home").mock(return_value=httpx.Response(200, json={}))

        client.get("/home")

        assert auth_header(route) is None

    @respx.mock
    def test_json_body_and_content_type(self, client: ApiClient, boat: Dict):
        route = respx.post(f"{BASE_URL}/boats").mock(return_value=httpx.Response(201, json=boat))

        response = client.post("/boats", {"name": "Blue Lagoon"})

        request = route.calls.last.request
        assert response.status == 201
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"name": "Blue Lagoon"}

    @respx.mock
    def test_caller_headers_take_precedence(self, client: ApiClient):
        route = respx.put(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(204))

        client.put("/boats/7", {"name": "x"}, headers={"Content-Type": "application/merge-patch+json"})

        assert route.calls.last.request.headers["content-type"] == "application/merge-patch+json"

    @respx.mock
    def test_form_payload_is_multipart(self, client: ApiClient):
        route = respx.post(f"{BASE_URL}/user-documents/upload").mock(
            return_value=httpx.Response(200, json={"id": 1})
        )

        client.post_form(
            "/user-documents/upload",
            FormPayload(fields={"documentType": "licence"}, files={"file": ("l.pdf", b"%PDF", "application/pdf")}),
        )

        content_type = route.calls.last.request.headers["content-type"]
        assert content_type.startswith("multipart/form-data; boundary=")


# =============================================================================
# Refresh and Replay
# =============================================================================

class TestRefreshAndReplay:
    """Tests for the 401 -> refresh -> replay-once flow."""

    @respx.mock
    def test_expired_then_refreshed_get(self, client: ApiClient, storage: MemoryStorage, boat: Dict):
        """The caller never observes the intermediate 401."""
        storage.set_tokens(CredentialPair("old", "R"))

        def boats_handler(request: httpx.Request) -> httpx.Response:
            if request.headers.get("authorization") == "Bearer new":
                return httpx.Response(200, json=boat)
            return httpx.Response(401)

        boats_route = respx.get(f"{BASE_URL}/boats/7").mock(side_effect=boats_handler)
        refresh_route = respx.post(f"{BASE_URL}/auth/refresh").mock(
            return_value=httpx.Response(200, json={"accessToken": "new"})
        )

        response = client.get("/boats/7")

        assert response.ok
        assert response.status == 200
        assert response.data == boat
        assert boats_route.call_count == 2
        assert refresh_route.call_count == 1
        assert json.loads(refresh_route.calls.last.request.content) == {"refreshToken": "R"}
        assert "authorization" not in refresh_route.calls.last.request.headers
        assert storage.get_access_token() == "new"
        # No new refresh token issued: the old one is kept
        assert storage.get_refresh_token() == "R"

    @respx.mock
    def test_second_401_is_surfaced(self, client: ApiClient, storage: MemoryStorage):
        storage.set_tokens(CredentialPair("old", "R"))
        boats_route = respx.get(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(401))
        refresh_route = respx.post(f"{BASE_URL}/auth/refresh").mock(
            return_value=httpx.Response(200, json={"accessToken": "new", "refreshToken": "R2"})
        )

        response = client.get("/boats/7")

        assert not response.ok
        assert response.status == 401
        assert isinstance(response.failure, AuthError)
        assert boats_route.call_count == 2
        assert refresh_route.call_count == 1
        assert storage.get_tokens() == CredentialPair("new", "R2")

    @respx.mock
    def test_failed_refresh_clears_tokens(self, client: ApiClient, storage: MemoryStorage):
        storage.set_tokens(CredentialPair("old", "R"))
        boats_route = respx.get(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(401))
        respx.post(f"{BASE_URL}/auth/refresh").mock(return_value=httpx.Response(400, json={"message": "expired"}))

        response = client.get("/boats/7")

        assert response.status == 401
        assert response.error == "HTTP 401: Unauthorized"
        assert response.failure.kind is ErrorKind.AUTH
        assert boats_route.call_count == 1
        assert storage.get_tokens() is None

    @respx.mock
    def test_malformed_refresh_response_clears_tokens(self, client: ApiClient, storage: MemoryStorage):
        storage.set_tokens(CredentialPair("old", "R"))
        respx.get(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(401))
        respx.post(f"{BASE_URL}/auth/refresh").mock(return_value=httpx.Response(200, text="ok"))

        response = client.get("/boats/7")

        assert isinstance(response.failure, AuthError)
        assert storage.get_tokens() is None

    @respx.mock(assert_all_called=False)
    def test_missing_refresh_token_skips_exchange(self, client: ApiClient, storage: MemoryStorage, respx_mock):
        storage.set_tokens(CredentialPair("old"))
        respx_mock.get(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(401, json={"message": "Token expired"}))
        refresh_route = respx_mock.post(f"{BASE_URL}/auth/refresh").mock(return_value=httpx.Response(200))

        response = client.get("/boats/7")

        assert refresh_route.call_count == 0
        assert response.error == "HTTP 401: Unauthorized - Token expired"
        assert storage.get_access_token() is None

    @respx.mock
    def test_concurrent_401s_share_one_refresh(self, client: ApiClient, storage: MemoryStorage, boat: Dict):
        """Threads hitting 401 together trigger a single exchange."""
        storage.set_tokens(CredentialPair("old", "R"))
        barrier = threading.Barrier(4)
        refresh_started = threading.Event()

        def boats_handler(request: httpx.Request) -> httpx.Response:
            if request.headers.get("authorization") == "Bearer new":
                return httpx.Response(200, json=boat)
            return httpx.Response(401)

        def refresh_handler(request: httpx.Request) -> httpx.Response:
            refresh_started.set()
            time.sleep(0.2)
            return httpx.Response(200, json={"tokens": {"accessToken": "new", "refreshToken": "R2"}})

        respx.get(f"{BASE_URL}/boats/7").mock(side_effect=boats_handler)
        refresh_route = respx.post(f"{BASE_URL}/auth/refresh").mock(side_effect=refresh_handler)

        def call() -> ApiResponse:
            barrier.wait()
            return client.get("/boats/7")

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: call(), range(4)))

        assert refresh_route.call_count == 1
        assert all(r.ok and r.data == boat for r in results)
        assert storage.get_tokens() == CredentialPair("new", "R2")


# =============================================================================
# Response Decoding
# =============================================================================

class TestResponseDecoding:
    """Tests for success body decoding."""

    @respx.mock
    def test_empty_204(self, client: ApiClient):
        respx.delete(f"{BASE_URL}/boats/7").mock(return_value=httpx.Response(204))

        response = client.delete("/boats/7")

        assert response.ok
        assert response.data is None
        assert response.status == 204

    @respx.mock
    def test_whitespace_body_is_empty(self, client: ApiClient):
        respx.get(f"{BASE_URL}/home").mock(
            return_value=httpx.Response(200, text="  \n", headers={"content-type": "application/json"})
        )

        assert client.get("/home").data is None

    @respx.mock
    def test_invalid_json_falls_back_to_text(self, client: ApiClient):
        respx.get(f"{BASE_URL}/home").mock(
            return_value=httpx.Response(200, text="{not json", headers={"content-type": "application/json"})
        )

        response = client.get("/home")

        assert response.ok
        assert response.data == "{not json"

    @respx.mock
    def test_plain_text_unchanged(self, client: ApiClient):
        respx.get(f"{BASE_URL}/health").mock(return_value=httpx.Response(200, text="Healthy"))

        assert client.get("/health").data == "Healthy"


# =============================================================================
# Error Envelopes
# =============================================================================

class TestErrorEnvelopes:
    """Tests for non-2xx and transport failures."""

    @respx.mock
    def test_server_message(self, client: ApiClient):
        respx.get(f"{BASE_URL}/boats/99").mock(
            return_value=httpx.Response(404, json={"message": "Boat not found"})
        )

        response = client.get("/boats/99")

        assert response.status == 404
        assert response.data is None
        assert response.error == "HTTP 404: Not Found - Boat not found"
        assert isinstance(response.failure, HttpError)
        assert response.failure.kind is ErrorKind.HTTP

    @respx.mock
    def test_validation_problem_details(self, client: ApiClient):
        respx.post(f"{BASE_URL}/bookings").mock(
            return_value=httpx.Response(400, json={
                "title": "One or more validation errors occurred.",
                "errors": {
                    "StartDate": ["Start date is required."],
                    "EndDate": ["End date must be after start date.", "End date is in the past."],
                },
            })
        )

        response = client.post("/bookings", {})

        assert isinstance(response.failure, ValidationError)
        assert response.error == "HTTP 400: Bad Request - One or more validation errors occurred."
        assert [(e.field, e.description) for e in response.field_errors] == [
            ("StartDate", "Start date is required."),
            ("EndDate", "End date must be after start date."),
            ("EndDate", "End date is in the past."),
        ]

    @respx.mock
    def test_non_json_error_body_uses_status_line(self, client: ApiClient):
        respx.get(f"{BASE_URL}/boats").mock(return_value=httpx.Response(502, text="<html>Bad gateway</html>"))

        response = client.get("/boats")

        assert response.error == "HTTP 502: Bad Gateway"

    @respx.mock
    def test_persistent_network_failure(self, client: ApiClient):
        route = respx.get(f"{BASE_URL}/boats").mock(side_effect=httpx.ConnectError)

        response = client.get("/boats")

        assert route.call_count == 3
        assert response.status == 500
        assert isinstance(response.failure, NetworkError)

    @respx.mock
    def test_timeout_not_retried(self, client: ApiClient):
        route = respx.get(f"{BASE_URL}/boats").mock(side_effect=httpx.ReadTimeout)

        response = client.get("/boats")

        assert route.call_count == 1
        assert response.failure.kind is ErrorKind.TIMEOUT

    def test_unexpected_exception_becomes_envelope(self, config: ApiConfig):
        class BrokenStorage(MemoryStorage):
            def get_access_token(self):
                raise RuntimeError("storage unavailable")

        config.storage = BrokenStorage()
        client = ApiClient(config)

        response = client.get("/boats")

        assert response.status == 500
        assert response.error == "storage unavailable"
        assert type(response.failure) is ApiError

    @respx.mock
    def test_unwrap_raises_failure(self, client: ApiClient):
        respx.get(f"{BASE_URL}/boats/99").mock(return_value=httpx.Response(404))

        with pytest.raises(HttpError) as exc_info:
            client.get("/boats/99").unwrap()

        assert exc_info.value.status_code == 404


# =============================================================================
# Downloads
# =============================================================================

class TestDownload:
    """Tests for binary downloads."""

    @respx.mock
    def test_download_with_filename(self, client: ApiClient, storage: MemoryStorage):
        storage.set_tokens(CredentialPair("A", "R"))
        route = respx.get(f"{BASE_URL}/bookings/123/invoice").mock(
            return_value=httpx.Response(
                200,
                content=b"%PDF-1.4 invoice",
                headers={
                    "content-type": "application/pdf",
                    "content-disposition": "attachment; filename=invoice.pdf",
                },
            )
        )

        response = client.download("/bookings/123/invoice")

        assert response.ok
        assert response.data.content == b"%PDF-1.4 invoice"
        assert response.data.content_type == "application/pdf"
        assert response.data.filename == "attachment; filename=invoice.pdf"
        assert response.data.parsed_filename == "invoice.pdf"
        assert auth_header(route) == "Bearer A"

    @respx.mock
    def test_download_refreshes_once(self, client: ApiClient, storage: MemoryStorage):
        storage.set_tokens(CredentialPair("old", "R"))
        route = respx.get(f"{BASE_URL}/bookings/123/invoice").mock(side_effect=[
            httpx.Response(401),
            httpx.Response(200, content=b"PDF", headers={"content-type": "application/pdf"}),
        ])
        respx.post(f"{BASE_URL}/auth/refresh").mock(return_value=httpx.Response(200, json={"token": "new"}))

        response = client.download("/bookings/123/invoice")

        assert response.ok
        assert response.data.filename is None
        assert response.data.parsed_filename is None
        assert auth_header(route) == "Bearer new"

    @respx.mock
    def test_download_error(self, client: ApiClient):
        respx.get(f"{BASE_URL}/bookings/123/invoice").mock(
            return_value=httpx.Response(404, json={"message": "Invoice not available"})
        )

        response = client.download("/bookings/123/invoice")

        assert response.data is None
        assert response.status == 404
        assert response.error == "HTTP 404: Not Found - Invoice not available"


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:

    @respx.mock
    def test_context_manager(self, config: ApiConfig):
        respx.get(f"{BASE_URL}/home").mock(return_value=httpx.Response(200, json={"featured": []}))

        with ApiClient(config) as client:
            assert client.get("/home").data == {"featured": []}
