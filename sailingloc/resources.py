"""
SailingLoc Client Resource Operations

Thin capability sets over the access layer: each operation supplies a
path template and payload and returns the envelope. ``create``/``update``
raise the normalized error instead, since callers need the created value.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
from urllib.parse import quote, urlencode

from .errors import ApiError
from .types import ApiResponse, DownloadResult, FileSpec, FormPayload

if TYPE_CHECKING:
    from .client import ApiClient, AsyncApiClient


def with_query(path: str, filters: Optional[Mapping[str, Any]] = None) -> str:
    """Append non-empty filters as a query string."""
    if not filters:
        return path
    params = []
    for key, value in filters.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params.append((key, str(value)))
    return f"{path}?{urlencode(params)}" if params else path


def _flag(value: bool) -> str:
    return quote("true" if value else "false")


def _required(response: ApiResponse[Any]) -> Any:
    """Data of a successful envelope; raises on errors and empty bodies."""
    data = response.unwrap()
    if data is None:
        raise ApiError("Empty response from server", response.status)
    return data


def _items(response: ApiResponse[Any]) -> ApiResponse[List[Dict[str, Any]]]:
    if response.ok and response.data is None:
        return ApiResponse.success([], response.status)
    return response


# =============================================================================
# Boats
# =============================================================================

class Boats:
    """Boat listing operations (``/boats``)."""

    endpoint = "/boats"

    def __init__(self, client: "ApiClient") -> None:
        self._client = client

    def list(self, **filters: Any) -> ApiResponse[List[Dict[str, Any]]]:
        """List boats; filters: location, destination, type, priceMin, priceMax, capacityMin, startDate, endDate."""
        return _items(self._client.get(with_query(self.endpoint, filters)))

    def get(self, boat_id: int) -> ApiResponse[Dict[str, Any]]:
        return self._client.get(f"{self.endpoint}/{boat_id}")

    def create(self, boat: Dict[str, Any]) -> Dict[str, Any]:
        return _required(self._client.post(self.endpoint, boat))

    def update(self, boat_id: int, boat: Dict[str, Any]) -> Dict[str, Any]:
        return _required(self._client.put(f"{self.endpoint}/{boat_id}", boat))

    def delete(self, boat_id: int) -> ApiResponse[None]:
        return self._client.delete(f"{self.endpoint}/{boat_id}")

    def set_active(self, boat_id: int, is_active: bool) -> ApiResponse[Any]:
        return self._client.patch(f"{self.endpoint}/{boat_id}/active?isActive={_flag(is_active)}", {})

    def set_verified(self, boat_id: int, is_verified: bool) -> ApiResponse[Any]:
        return self._client.patch(f"{self.endpoint}/{boat_id}/verify?isVerified={_flag(is_verified)}", {})


class AsyncBoats:
    """Boat listing operations (``/boats``) for the async client."""

    endpoint = "/boats"

    def __init__(self, client: "AsyncApiClient") -> None:
        self._client = client

    async def list(self, **filters: Any) -> ApiResponse[List[Dict[str, Any]]]:
        return _items(await self._client.get(with_query(self.endpoint, filters)))

    async def get(self, boat_id: int) -> ApiResponse[Dict[str, Any]]:
        return await self._client.get(f"{self.endpoint}/{boat_id}")

    async def create(self, boat: Dict[str, Any]) -> Dict[str, Any]:
        return _required(await self._client.post(self.endpoint, boat))

    async def update(self, boat_id: int, boat: Dict[str, Any]) -> Dict[str, Any]:
        return _required(await self._client.put(f"{self.endpoint}/{boat_id}", boat))

    async def delete(self, boat_id: int) -> ApiResponse[None]:
        return await self._client.delete(f"{self.endpoint}/{boat_id}")

    async def set_active(self, boat_id: int, is_active: bool) -> ApiResponse[Any]:
        return await self._client.patch(f"{self.endpoint}/{boat_id}/active?isActive={_flag(is_active)}", {})

    async def set_verified(self, boat_id: int, is_verified: bool) -> ApiResponse[Any]:
        return await self._client.patch(f"{self.endpoint}/{boat_id}/verify?isVerified={_flag(is_verified)}", {})


# =============================================================================
# Bookings
# =============================================================================

class Bookings:
    """Booking operations (``/bookings``)."""

    endpoint = "/bookings"

    def __init__(self, client: "ApiClient") -> None:
        self._client = client

    def list(self, **filters: Any) -> ApiResponse[List[Dict[str, Any]]]:
        """List bookings; filters: renterId, ownerId, status, startDate, endDate."""
        return _items(self._client.get(with_query(self.endpoint, filters)))

    def get(self, booking_id: str) -> ApiResponse[Dict[str, Any]]:
        return self._client.get(f"{self.endpoint}/{booking_id}")

    def create(self, booking: Dict[str, Any]) -> Dict[str, Any]:
        return _required(self._client.post(self.endpoint, booking))

    def update(self, booking_id: str, booking: Dict[str, Any]) -> Dict[str, Any]:
        return _required(self._client.put(f"{self.endpoint}/{booking_id}", booking))

    def cancel(self, booking_id: str) -> Dict[str, Any]:
        return _required(self._client.patch(f"{self.endpoint}/{booking_id}/cancel", {}))

    def download_invoice(self, booking_id: str) -> ApiResponse[DownloadResult]:
        return self._client.download(f"{self.endpoint}/{booking_id}/invoice")


class AsyncBookings:
    """Booking operations (``/bookings``) for the async client."""

    endpoint = "/bookings"

    def __init__(self, client: "AsyncApiClient") -> None:
        self._client = client

    async def list(self, **filters: Any) -> ApiResponse[List[Dict[str, Any]]]:
        return _items(await self._client.get(with_query(self.endpoint, filters)))

    async def get(self, booking_id: str) -> ApiResponse[Dict[str, Any]]:
        return await self._client.get(f"{self.endpoint}/{booking_id}")

    async def create(self, booking: Dict[str, Any]) -> Dict[str, Any]:
        return _required(await self._client.post(self.endpoint, booking))

    async def update(self, booking_id: str, booking: Dict[str, Any]) -> Dict[str, Any]:
        return _required(await self._client.put(f"{self.endpoint}/{booking_id}", booking))

    async def cancel(self, booking_id: str) -> Dict[str, Any]:
        return _required(await self._client.patch(f"{self.endpoint}/{booking_id}/cancel", {}))

    async def download_invoice(self, booking_id: str) -> ApiResponse[DownloadResult]:
        return await self._client.download(f"{self.endpoint}/{booking_id}/invoice")


# =============================================================================
# User documents
# =============================================================================

def _document_form(document_type: str, file: FileSpec, boat_id: Optional[int] = None) -> FormPayload:
    fields = {"documentType": document_type}
    if boat_id is not None:
        fields["boatId"] = str(boat_id)
    return FormPayload(fields=fields, files={"file": file})


class UserDocuments:
    """Identity/licence document uploads (``/user-documents``)."""

    endpoint = "/user-documents"

    def __init__(self, client: "ApiClient") -> None:
        self._client = client

    def upload(self, document_type: str, file: FileSpec, boat_id: Optional[int] = None) -> Dict[str, Any]:
        """Upload ``(filename, content, content_type)`` as multipart form data."""
        return _required(self._client.post_form(f"{self.endpoint}/upload", _document_form(document_type, file, boat_id)))

    def list_mine(self) -> ApiResponse[List[Dict[str, Any]]]:
        return _items(self._client.get(f"{self.endpoint}/me"))

    def get(self, document_id: int) -> ApiResponse[Dict[str, Any]]:
        return self._client.get(f"{self.endpoint}/{document_id}")


class AsyncUserDocuments:
    """Identity/licence document uploads (``/user-documents``) for the async client."""

    endpoint = "/user-documents"

    def __init__(self, client: "AsyncApiClient") -> None:
        self._client = client

    async def upload(self, document_type: str, file: FileSpec, boat_id: Optional[int] = None) -> Dict[str, Any]:
        form = _document_form(document_type, file, boat_id)
        return _required(await self._client.post_form(f"{self.endpoint}/upload", form))

    async def list_mine(self) -> ApiResponse[List[Dict[str, Any]]]:
        return _items(await self._client.get(f"{self.endpoint}/me"))

    async def get(self, document_id: int) -> ApiResponse[Dict[str, Any]]:
        return await self._client.get(f"{self.endpoint}/{document_id}")
