# app/sync/listing_payloads.py
# ==========================================
# Listing-level create / update bodies (inventory is handled by sync.inventory).
# ==========================================

from __future__ import annotations

import html
import logging
from typing import Any, Dict, Optional

from app.config import settings
from app.errors import MissingContextError, TransportError, ValidationError
from app.models.listing import ProcessedListing
from app.models.live import LiveListing
from app.sheets.cells import prices_equal, sets_equal
from app.sync.components.text import lower, normalize_text
from app.sync.inventory import ShopContext

logger = logging.getLogger("uvicorn.error")


async def load_shop_context(client, context: Optional[ShopContext] = None) -> ShopContext:
    """
    Fill taxonomy / shipping profile / readiness state from the shop's first listing.
    Raises MissingContextError when any of them cannot be derived (e.g. the shop has no
    listings yet), since a physical listing cannot be created without them.
    """
    ctx = context or ShopContext(shop_id=getattr(client, "shop_id", 0) or 0, client=client)
    if ctx.client is None:
        ctx.client = client
    if ctx.taxonomy_id and ctx.shipping_profile_id and ctx.readiness_state_id:
        return ctx
    try:
        first = await client.get_first_listing()
    except TransportError as e:
        logger.error("[APPLY] could not load shop defaults: %s", e)
        first = None
    if first is not None:
        ctx.taxonomy_id = ctx.taxonomy_id or first.taxonomy_id
        ctx.shipping_profile_id = ctx.shipping_profile_id or first.shipping_profile_id
        ctx.readiness_state_id = ctx.readiness_state_id or first.first_readiness_state_id()

    if not ctx.taxonomy_id:
        raise MissingContextError(
            "taxonomy_id is required to create a listing. Create one listing in the shop first "
            "so its category can be reused."
        )
    if not ctx.shipping_profile_id:
        raise MissingContextError(
            "shipping_profile_id is required for physical listings. Make sure at least one existing "
            "listing has a shipping profile."
        )
    if not ctx.readiness_state_id:
        raise MissingContextError(
            "readiness_state_id is required for physical listings. Make sure at least one existing "
            "listing has an active offering."
        )
    return ctx


def build_create_payload(listing: ProcessedListing, context: ShopContext) -> Dict[str, Any]:
    if not listing.title:
        raise ValidationError("title is required to create a listing", listing.listing_id)
    if not listing.description:
        raise ValidationError("description is required to create a listing", listing.listing_id)

    body: Dict[str, Any] = {
        "quantity": listing.quantity if listing.quantity is not None else 1,
        "title": html.escape(listing.title, quote=False),
        "description": html.escape(listing.description, quote=False),
        "price": listing.price if listing.price is not None else 1,
        "who_made": settings.DEFAULT_WHO_MADE,
        "when_made": settings.DEFAULT_WHEN_MADE,
        "state": listing.status or "draft",
        "taxonomy_id": context.taxonomy_id,
        "shipping_profile_id": listing.shipping_profile_id or context.shipping_profile_id,
        "readiness_state_id": context.readiness_state_id,
    }
    if listing.tags:
        body["tags"] = list(listing.tags)
    if listing.has_variations:
        body["has_variations"] = True
    if listing.currency_code:
        body["currency_code"] = listing.currency_code
    if listing.materials:
        body["materials"] = list(listing.materials)
    if listing.processing_min is not None:
        body["processing_min"] = listing.processing_min
    if listing.processing_max is not None:
        body["processing_max"] = listing.processing_max
    return body


def build_update_payload(listing: ProcessedListing, live: LiveListing) -> Dict[str, Any]:
    """Only the fields that differ from `live`; {} means no PATCH is needed."""
    body: Dict[str, Any] = {}
    inv = live.inventory

    if listing.title and normalize_text(listing.title) != normalize_text(live.title):
        body["title"] = html.escape(listing.title, quote=False)
    if listing.description and normalize_text(listing.description) != normalize_text(live.description):
        body["description"] = html.escape(listing.description, quote=False)
    if listing.status and lower(listing.status) != lower(live.state):
        body["state"] = lower(listing.status)
    if not sets_equal(listing.tags, live.tags):
        body["tags"] = list(listing.tags)

    if listing.quantity is not None and not inv.quantity_on_property and listing.quantity != live.listing_quantity():
        body["quantity"] = listing.quantity
    if listing.price is not None and not inv.price_on_property and not prices_equal(listing.price, live.listing_price()):
        body["price"] = listing.price
    live_currency = live.price.currency_code if live.price else ""
    if listing.currency_code and not inv.price_on_property and lower(listing.currency_code) != lower(live_currency):
        body["currency_code"] = listing.currency_code

    if listing.has_variations != live.has_variations:
        body["has_variations"] = listing.has_variations
    if listing.materials is not None and not sets_equal(listing.materials, live.materials):
        body["materials"] = list(listing.materials)
    if listing.shipping_profile_id is not None and listing.shipping_profile_id != live.shipping_profile_id:
        body["shipping_profile_id"] = listing.shipping_profile_id
    if listing.processing_min is not None and listing.processing_min != live.processing_min:
        body["processing_min"] = listing.processing_min
    if listing.processing_max is not None and listing.processing_max != live.processing_max:
        body["processing_max"] = listing.processing_max
    return body
