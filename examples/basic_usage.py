"""
SailingLoc API Client - Basic Usage Example

This example demonstrates logging in, browsing boats, booking one and
downloading the invoice with both the sync and async clients.
"""

import asyncio
import logging

from sailingloc import (
    ApiConfig,
    AsyncApiClient,
    FileStorage,
    LoginCredentials,
    create_api_client,
)
from sailingloc.errors import ApiError, ValidationError


BASE_URL = "https://localhost:61802/api/v1"


def sync_example():
    """Synchronous client example."""
    print("=== Sync Client Example ===\n")

    # Tokens persist in ~/.sailingloc/credentials.json between runs
    client = create_api_client(ApiConfig(
        base_url=BASE_URL,
        storage=FileStorage.for_origin(BASE_URL),
        enable_logging=True,
    ))

    login = client.auth.login(LoginCredentials(
        email="renter@example.com",
        password="SecurePassword123!",
    ))
    if not login.ok:
        # Envelopes never raise; inspect error/failure instead
        print(f"Login failed ({login.status}): {login.error}")
        client.close()
        return
    print(f"Logged in as: {login.data.user.email if login.data.user else 'unknown'}")

    boats = client.boats.list(location="Marseille", capacityMin=4)
    print(f"Found {len(boats.data or [])} boats")

    try:
        booking = client.bookings.create({
            "boatId": 7,
            "startDate": "2026-07-01",
            "endDate": "2026-07-08",
        })
    except ValidationError as e:
        for field_error in e.field_errors:
            print(f"  {field_error.field}: {field_error.description}")
    except ApiError as e:
        print(f"Booking failed: {e.message}")
    else:
        invoice = client.bookings.download_invoice(booking["id"])
        if invoice.ok:
            filename = invoice.data.parsed_filename or f"invoice-{booking['id']}.pdf"
            with open(filename, "wb") as f:
                f.write(invoice.data.content)
            print(f"Invoice saved to {filename}")

    client.auth.logout()
    client.close()


async def async_example():
    """Asynchronous client example."""
    print("\n=== Async Client Example ===\n")

    async with AsyncApiClient(ApiConfig(base_url=BASE_URL, timeout=10.0)) as client:
        # Concurrent calls share one token refresh when the session expires
        results = await asyncio.gather(
            client.boats.get(7),
            client.boats.get(8),
            client.bookings.list(status="confirmed"),
        )
        for result in results:
            print(f"HTTP {result.status}: {'ok' if result.ok else result.error}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    sync_example()
    asyncio.run(async_example())

    print("\nExamples completed!")
