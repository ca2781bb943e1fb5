import asyncio

import httpx
import pytest

from app.errors import ListingNotFoundError, TransportError
from app.etsy.client import EtsyClient

LISTING = {
    "listing_id": 2001,
    "title": "Plain Mug",
    "state": "active",
    "price": {"amount": 2000, "divisor": 100, "currency_code": "USD"},
    "inventory": {"products": [{"product_id": 1, "offerings": [{"quantity": 3}]}]},
}


def _client(handler, **kw):
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    client = EtsyClient(api_key="key-123", access_token="tok-456", shop_id=42, base_url="https://etsy.test/v3",
                        max_attempts=kw.pop("max_attempts", 3), backoff_base=1.0,
                        transport=httpx.MockTransport(handler), sleep=fake_sleep, **kw)
    return client, delays


def test_get_listing_sends_auth_headers_and_validates():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=LISTING)

    client, _ = _client(handler)
    listing = asyncio.run(client.get_listing(2001))

    assert listing.listing_id == 2001
    assert listing.listing_price() == 20.0
    req = seen[0]
    assert req.url.path == "/v3/application/listings/2001"
    assert req.url.params["includes"] == "Inventory"
    assert req.headers["Authorization"] == "Bearer tok-456"
    assert req.headers["x-api-key"] == "key-123"


def test_retries_with_exponential_backoff():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503 if len(attempts) == 1 else 429)
        return httpx.Response(200, json=LISTING)

    client, delays = _client(handler)
    listing = asyncio.run(client.get_listing(2001))

    assert listing.title == "Plain Mug"
    assert len(attempts) == 3
    assert delays == [1.0, 2.0]


def test_network_errors_are_retried_then_raised():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, delays = _client(handler, max_attempts=2)
    with pytest.raises(TransportError):
        asyncio.run(client.get_listing(2001))
    assert delays == [1.0]


def test_exhausted_retries_keep_the_last_status():
    client, delays = _client(lambda request: httpx.Response(500, json={"error": "down"}))
    with pytest.raises(TransportError) as exc:
        asyncio.run(client.delete_listing(2001))
    assert exc.value.status_code == 500
    assert exc.value.body == {"error": "down"}
    assert delays == [1.0, 2.0]


def test_not_found_and_client_errors_are_not_retried():
    calls = []

    def not_found(request):
        calls.append(1)
        return httpx.Response(404, json={"error": "Listing not found"})

    client, delays = _client(not_found)
    with pytest.raises(ListingNotFoundError):
        asyncio.run(client.get_listing(1))
    assert calls == [1] and delays == []

    client, delays = _client(lambda request: httpx.Response(400, json={"error": "bad"}))
    with pytest.raises(TransportError) as exc:
        asyncio.run(client.update_listing(1, {"title": "x"}))
    assert exc.value.status_code == 400
    assert delays == []


def test_malformed_listing_payload_is_a_transport_error():
    client, _ = _client(lambda request: httpx.Response(200, json={"title": "no id"}))
    with pytest.raises(TransportError):
        asyncio.run(client.get_listing(2001))


def test_create_listing_returns_the_new_id():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        assert request.method == "POST"
        assert request.url.path == "/v3/application/shops/42/listings"
        return httpx.Response(201, json={"listing_id": 9001})

    client, _ = _client(handler)
    assert asyncio.run(client.create_listing({"title": "Napkins"})) == 9001
    assert b"Napkins" in bodies[0]


def test_shop_listings_are_paged_and_malformed_entries_skipped():
    def handler(request):
        offset = int(request.url.params.get("offset", 0))
        if offset == 0:
            results = [dict(LISTING, listing_id=1), dict(LISTING, listing_id=2)]
        else:
            results = [dict(LISTING, listing_id=3), {"title": "broken"}]
        return httpx.Response(200, json={"count": 4, "results": results})

    client, _ = _client(handler)
    listings = asyncio.run(client.get_all_shop_listings("active", page_size=2))
    assert [l.listing_id for l in listings] == [1, 2, 3]


def test_replace_inventory_puts_the_full_payload():
    def handler(request):
        assert request.method == "PUT"
        assert request.url.path == "/v3/application/listings/2001/inventory"
        return httpx.Response(200, json={"products": [], "price_on_property": [100]})

    client, _ = _client(handler)
    inv = asyncio.run(client.replace_inventory(2001, {"products": []}))
    assert inv.price_on_property == [100]
