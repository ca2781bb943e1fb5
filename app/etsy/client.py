#==========================================================================================
# app/etsy/client.py
# Etsy v3 API interface (marketplace collaborator).
# Shop-scoped, bearer-authenticated; payloads validated into app.models.live records here
# so the engine never handles raw dicts.
#==========================================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.errors import ListingNotFoundError, TransportError
from app.models.live import Inventory, LiveListing

logger = logging.getLogger("uvicorn.error")

RETRY_STATUS = {408, 429}


def _body(resp: httpx.Response) -> Any:
    try:
        return resp.json() if resp.content else None
    except ValueError:
        return resp.text


class EtsyClient:
    def __init__(
        self,
        api_key: str | None = None,
        access_token: str | None = None,
        shop_id: int | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep=None,
    ):
        self.api_key = api_key if api_key is not None else settings.ETSY_API_KEY
        self.access_token = access_token if access_token is not None else settings.ETSY_ACCESS_TOKEN
        self.shop_id = shop_id if shop_id is not None else settings.ETSY_SHOP_ID
        self.base_url = (base_url or settings.ETSY_API_BASE).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.max_attempts = max(1, max_attempts or settings.HTTP_MAX_ATTEMPTS)
        self.backoff_base = settings.HTTP_BACKOFF_BASE if backoff_base is None else backoff_base
        self.transport = transport
        self._sleep = sleep or asyncio.sleep

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, *, params: Dict[str, Any] | None = None,
                       json: Any = None) -> httpx.Response:
        """Send with retry on network errors, 408, 429 and 5xx; backoff base * 2**n."""
        url = f"{self.base_url}{path}"
        last_err: TransportError | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, verify=settings.HTTP_VERIFY_SSL,
                                             transport=self.transport) as client:
                    resp = await client.request(method, url, headers=self._headers(), params=params, json=json)
            except httpx.HTTPError as e:
                last_err = TransportError(f"{method} {path} failed: {e}")
            else:
                status = resp.status_code
                if status < 400:
                    return resp
                if status in RETRY_STATUS or status >= 500:
                    last_err = TransportError(f"{method} {path} returned {status}", status, _body(resp))
                elif status == 404:
                    raise ListingNotFoundError(f"{method} {path} not found", status, _body(resp))
                else:
                    raise TransportError(f"{method} {path} returned {status}", status, _body(resp))

            if attempt < self.max_attempts:
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.warning("[ETSY][RETRY] %s %s failed (attempt %s/%s): %s. Retrying in %.1fs",
                               method, path, attempt, self.max_attempts, last_err, delay)
                await self._sleep(delay)
        raise last_err

    # ---- Listings ----

    async def get_listing(self, listing_id: int) -> LiveListing:
        resp = await self._request("GET", f"/application/listings/{listing_id}", params={"includes": "Inventory"})
        try:
            return LiveListing.model_validate(_body(resp))
        except PydanticValidationError as e:
            raise TransportError(f"Malformed listing payload for {listing_id}: {e}") from e

    async def get_shop_listings(self, state: str | None = None, limit: int = 20,
                                includes: str = "Inventory", offset: int = 0) -> List[LiveListing]:
        params: Dict[str, Any] = {"limit": limit, "includes": includes}
        if offset:
            params["offset"] = offset
        if state:
            params["state"] = state
        resp = await self._request("GET", f"/application/shops/{self.shop_id}/listings", params=params)
        out: List[LiveListing] = []
        for raw in (_body(resp) or {}).get("results") or []:
            try:
                out.append(LiveListing.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning("[ETSY] skipping malformed listing in shop results: %s", e)
        return out

    async def get_all_shop_listings(self, state: str, page_size: int = 100) -> List[LiveListing]:
        """Fetch every listing in `state` (paginated, unlimited)."""
        listings: List[LiveListing] = []
        offset = 0
        while True:
            batch = await self.get_shop_listings(state, limit=page_size, offset=offset)
            listings.extend(batch)
            if len(batch) < page_size:
                break
            offset += page_size
        return listings

    async def get_first_listing(self) -> Optional[LiveListing]:
        found = await self.get_shop_listings(limit=1, includes="Inventory,Shipping")
        return found[0] if found else None

    async def create_listing(self, payload: Dict[str, Any]) -> int:
        resp = await self._request("POST", f"/application/shops/{self.shop_id}/listings", json=payload)
        data = _body(resp) or {}
        if isinstance(data, dict) and data.get("results"):
            data = data["results"][0]
        listing_id = data.get("listing_id") if isinstance(data, dict) else None
        if not listing_id:
            raise TransportError("Create listing response did not include a listing_id", resp.status_code, data)
        return int(listing_id)

    async def update_listing(self, listing_id: int, payload: Dict[str, Any]) -> None:
        await self._request("PATCH", f"/application/shops/{self.shop_id}/listings/{listing_id}", json=payload)

    async def delete_listing(self, listing_id: int) -> None:
        await self._request("DELETE", f"/application/listings/{listing_id}")

    # ---- Inventory ----

    async def replace_inventory(self, listing_id: int, payload: Dict[str, Any]) -> Inventory:
        """PUT the complete product array; partial updates are not accepted upstream."""
        resp = await self._request("PUT", f"/application/listings/{listing_id}/inventory", json=payload)
        body = _body(resp)
        return Inventory.model_validate(body) if isinstance(body, dict) else Inventory()
