# app/sync/apply.py
# ==========================================
# Apply parsed sheet listings to the marketplace.
# One listing at a time; a failure is recorded for that listing and the run continues.
# ==========================================

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from app.errors import ListingNotFoundError, SyncError
from app.models.listing import ProcessedListing
from app.models.live import LiveListing
from app.sync.inventory import ShopContext, resolve_inventory
from app.sync.listing_payloads import build_create_payload, build_update_payload, load_shop_context
from app.sync.preview import change_id_for, diff_update, fetch_live_listings

logger = logging.getLogger("uvicorn.error")

INVENTORY_FIELDS = {"price", "quantity", "sku", "has_variations"}


class _ContextHolder:
    """Shop defaults are only looked up when the first create needs them."""

    def __init__(self, client, context: Optional[ShopContext]):
        self.client = client
        self.context = context or ShopContext(shop_id=getattr(client, "shop_id", 0) or 0, client=client)
        if self.context.client is None:
            self.context.client = client
        self._loaded = False

    async def for_create(self) -> ShopContext:
        if not self._loaded:
            self.context = await load_shop_context(self.client, self.context)
            self._loaded = True
        return self.context


async def apply_listing(client, listing: ProcessedListing, live: Optional[LiveListing],
                        holder: _ContextHolder) -> Dict[str, Any]:
    """Returns {"outcome": created|updated|deleted|skipped, "listing_id": int}."""
    if listing.to_delete:
        if not listing.listing_id or live is None:
            logger.warning("[APPLY] delete of listing %s skipped: no live record", listing.listing_id)
            return {"outcome": "skipped", "listing_id": listing.listing_id}
        await client.delete_listing(listing.listing_id)
        logger.info("[APPLY][DELETE] listing %s", listing.listing_id)
        return {"outcome": "deleted", "listing_id": listing.listing_id}

    if listing.listing_id == 0:
        ctx = await holder.for_create()
        body = build_create_payload(listing, ctx)
        # inventory is resolved before the create so a structural problem aborts without a half-made listing
        inventory = await resolve_inventory(listing, None, ctx)
        new_id = await client.create_listing(body)
        await client.replace_inventory(new_id, inventory)
        logger.info("[APPLY][CREATE] '%s' -> listing %s", listing.title, new_id)
        return {"outcome": "created", "listing_id": new_id}

    if live is None:
        raise ListingNotFoundError(f"Listing {listing.listing_id} was not found on the marketplace.")

    change = diff_update("apply", listing, live)
    if not change.field_changes and not change.variation_changes:
        return {"outcome": "skipped", "listing_id": listing.listing_id}

    needs_inventory = bool(change.variation_changes) or any(fc.field in INVENTORY_FIELDS for fc in change.field_changes)
    inventory = await resolve_inventory(listing, live, holder.context) if needs_inventory else None
    body = build_update_payload(listing, live)
    if body:
        await client.update_listing(listing.listing_id, body)
    if inventory is not None:
        await client.replace_inventory(listing.listing_id, inventory)
    logger.info("[APPLY][UPDATE] listing %s (fields: %s, inventory: %s)",
                listing.listing_id, sorted(body), inventory is not None)
    return {"outcome": "updated", "listing_id": listing.listing_id}


async def apply_changes(client, parsed: List[ProcessedListing], change_ids: Iterable[str] | None = None,
                        context: Optional[ShopContext] = None, batch_size: int | None = None) -> Dict[str, Any]:
    wanted = set(change_ids) if change_ids is not None else None
    selected = [
        (change_id_for(idx), listing)
        for idx, listing in enumerate(parsed, start=1)
        if wanted is None or change_id_for(idx) in wanted
    ]
    stats: Dict[str, Any] = {
        "processed": 0, "created": 0, "updated": 0, "deleted": 0, "skipped": 0,
        "created_ids": {}, "failed": [],
    }
    live = await fetch_live_listings(client, [l.listing_id for _, l in selected], batch_size)
    holder = _ContextHolder(client, context)

    for change_id, listing in selected:
        try:
            result = await apply_listing(client, listing, live.get(listing.listing_id), holder)
        except SyncError as e:
            logger.error("[APPLY] %s (listing %s) failed: %s", change_id, listing.listing_id, e.message)
            stats["failed"].append({
                "changeId": change_id,
                "listingId": listing.listing_id,
                "title": listing.title,
                "error": e.message,
            })
            continue
        stats["processed"] += 1
        stats[result["outcome"]] += 1
        if result["outcome"] == "created":
            stats["created_ids"][change_id] = result["listing_id"]

    logger.info("[APPLY] done: processed=%s created=%s updated=%s deleted=%s skipped=%s failed=%s",
                stats["processed"], stats["created"], stats["updated"], stats["deleted"],
                stats["skipped"], len(stats["failed"]))
    return stats
