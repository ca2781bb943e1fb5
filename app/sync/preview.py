# app/sync/preview.py
# ==========================================
# Change preview: parsed sheet listings vs. live marketplace listings.
# Read-only; produces field-level before/after pairs and never writes.
# ==========================================

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from app.config import settings
from app.errors import ListingNotFoundError, SyncError
from app.models.listing import ProcessedListing, ProcessedVariation
from app.models.live import LiveListing, LiveProduct
from app.models.preview import (
    FieldChange,
    PreviewChange,
    PreviewResponse,
    PreviewSummary,
    VariationChange,
)
from app.sheets.cells import format_price, prices_equal, sets_equal
from app.sync.components.text import lower, normalize_description, normalize_text, texts_equal

logger = logging.getLogger("uvicorn.error")


def _added(field: str, value) -> FieldChange:
    return FieldChange(field=field, before=None, after=value, change_type="added")


def _modified(field: str, before, after) -> FieldChange:
    if before in (None, ""):
        return FieldChange(field=field, before=None, after=after, change_type="added")
    if after in (None, ""):
        return FieldChange(field=field, before=before, after=None, change_type="removed")
    return FieldChange(field=field, before=before, after=after, change_type="modified")


# ---- Creates ----

def _listing_added_fields(listing: ProcessedListing) -> List[FieldChange]:
    # title / description are always reported for a create, even when empty
    fcs = [_added("title", listing.title), _added("description", listing.description)]
    if listing.price is not None:
        fcs.append(_added("price", format_price(listing.price)))
    if listing.quantity is not None:
        fcs.append(_added("quantity", listing.quantity))
    if listing.sku:
        fcs.append(_added("sku", listing.sku))
    if listing.tags:
        fcs.append(_added("tags", ", ".join(listing.tags)))
    if listing.status:
        fcs.append(_added("status", listing.status))
    if listing.currency_code:
        fcs.append(_added("currency_code", listing.currency_code))
    if listing.materials:
        fcs.append(_added("materials", ", ".join(listing.materials)))
    for name in ("shipping_profile_id", "processing_min", "processing_max"):
        if getattr(listing, name) is not None:
            fcs.append(_added(name, getattr(listing, name)))
    return fcs


def _variation_added_fields(v: ProcessedVariation) -> List[FieldChange]:
    fcs = []
    if v.property_option1:
        fcs.append(_added("property_option1", v.property_option1))
    if v.property_option2:
        fcs.append(_added("property_option2", v.property_option2))
    if v.property_price is not None:
        fcs.append(_added("property_price", format_price(v.property_price)))
    if v.property_quantity is not None:
        fcs.append(_added("property_quantity", v.property_quantity))
    if v.property_sku:
        fcs.append(_added("property_sku", v.property_sku))
    return fcs


def _create_change(change_id: str, listing: ProcessedListing) -> PreviewChange:
    variation_changes = [
        VariationChange(
            variation_id=f"{change_id}_var_{i}",
            change_type="create",
            field_changes=_variation_added_fields(v),
        )
        for i, v in enumerate(listing.variations)
        if not v.to_delete
    ]
    return PreviewChange(
        change_id=change_id,
        change_type="create",
        listing_id=0,
        title=listing.title,
        field_changes=_listing_added_fields(listing),
        variation_changes=variation_changes,
    )


# ---- Updates ----

def diff_listing_fields(listing: ProcessedListing, live: LiveListing) -> List[FieldChange]:
    inv = live.inventory
    fcs: List[FieldChange] = []

    before, after = normalize_text(live.title), normalize_text(listing.title)
    if before != after:
        fcs.append(_modified("title", before, after))
    before, after = normalize_description(live.description), normalize_description(listing.description)
    if before != after:
        fcs.append(_modified("description", before, after))

    if listing.status and lower(listing.status) != lower(live.state):
        fcs.append(_modified("status", live.state, listing.status))

    if not sets_equal(listing.tags, live.tags):
        fcs.append(_modified("tags", ", ".join(sorted(live.tags)), ", ".join(sorted(listing.tags))))

    if listing.price is not None and not inv.price_on_property:
        live_price = live.listing_price()
        if not prices_equal(listing.price, live_price):
            fcs.append(_modified("price", format_price(live_price), format_price(listing.price)))
    if listing.quantity is not None and not inv.quantity_on_property:
        live_qty = live.listing_quantity()
        if listing.quantity != live_qty:
            fcs.append(_modified("quantity", live_qty, listing.quantity))
    if listing.sku and not inv.sku_on_property:
        live_sku = live.listing_sku()
        if listing.sku != live_sku:
            fcs.append(_modified("sku", live_sku, listing.sku))

    if listing.materials is not None and not sets_equal(listing.materials, live.materials):
        fcs.append(_modified("materials", ", ".join(live.materials), ", ".join(listing.materials)))
    for name in ("shipping_profile_id", "processing_min", "processing_max"):
        new, old = getattr(listing, name), getattr(live, name)
        if new is not None and new != old:
            fcs.append(_modified(name, old, new))

    if listing.has_variations != live.has_variations:
        fcs.append(FieldChange(field="has_variations", before=live.has_variations,
                               after=listing.has_variations, change_type="modified"))
    return fcs


def _live_option(product: LiveProduct, slot: int) -> Optional[str]:
    pvs = product.property_values
    return ", ".join(pvs[slot].values) if len(pvs) > slot else None


def diff_variation(v: ProcessedVariation, product: LiveProduct) -> List[FieldChange]:
    """Fields left empty in the sheet are not compared."""
    fcs: List[FieldChange] = []
    for slot, option in ((0, v.property_option1), (1, v.property_option2)):
        live_opt = _live_option(product, slot)
        if option and not texts_equal(option, live_opt):
            fcs.append(_modified(f"property_option{slot + 1}", live_opt, option))

    off = product.first_offering()
    if v.property_price is not None:
        live_price = off.price.as_float() if off and off.price else None
        if not prices_equal(v.property_price, live_price):
            fcs.append(_modified("property_price", format_price(live_price), format_price(v.property_price)))
    if v.property_quantity is not None:
        live_qty = off.quantity if off else None
        if v.property_quantity != live_qty:
            fcs.append(_modified("property_quantity", live_qty, v.property_quantity))
    if v.property_sku and v.property_sku != (product.sku or ""):
        fcs.append(_modified("property_sku", product.sku, v.property_sku))
    return fcs


def diff_variations(change_id: str, listing: ProcessedListing, live: LiveListing) -> List[VariationChange]:
    live_map: Dict[int, LiveProduct] = {p.product_id: p for p in live.live_products()}
    seen = set()
    changes: List[VariationChange] = []

    for i, v in enumerate(listing.variations):
        product = live_map.get(v.product_id) if v.product_id else None
        if v.to_delete:
            if product is not None:
                seen.add(v.product_id)
                changes.append(VariationChange(variation_id=f"{change_id}_var_{v.product_id}",
                                               change_type="delete", product_id=v.product_id))
            continue
        if product is not None:
            seen.add(v.product_id)
            fcs = diff_variation(v, product)
            if fcs:
                changes.append(VariationChange(variation_id=f"{change_id}_var_{v.product_id}",
                                               change_type="update", product_id=v.product_id, field_changes=fcs))
            continue
        changes.append(VariationChange(variation_id=f"{change_id}_var_{i}", change_type="create",
                                       field_changes=_variation_added_fields(v)))

    unseen = [pid for pid in live_map if pid not in seen]
    if unseen and not live.has_variations and len(live_map) == 1:
        # the single product of a plain listing becomes part of the new variation set
        logger.info("[PREVIEW] listing %s: single product %s absorbed into variations", live.listing_id, unseen[0])
        return changes
    for pid in unseen:
        changes.append(VariationChange(variation_id=f"{change_id}_var_del_{pid}", change_type="delete", product_id=pid))
    return changes


def diff_update(change_id: str, listing: ProcessedListing, live: LiveListing) -> PreviewChange:
    """Update change for one listing against its live record; empty lists mean nothing changed."""
    return PreviewChange(
        change_id=change_id,
        change_type="update",
        listing_id=listing.listing_id,
        title=listing.title or live.title,
        field_changes=diff_listing_fields(listing, live),
        variation_changes=diff_variations(change_id, listing, live) if listing.has_variations else [],
    )


# ---- Preview ----

def summarize(changes: Iterable[PreviewChange]) -> PreviewSummary:
    summary = PreviewSummary()
    for c in changes:
        summary.total_changes += 1
        if c.change_type == "create":
            summary.creates += 1
        elif c.change_type == "update":
            summary.updates += 1
        elif c.change_type == "delete":
            summary.deletes += 1
    return summary


def change_id_for(index: int) -> str:
    """1-based position of the listing in the parsed input."""
    return f"change_{index}"


def build_preview(parsed: List[ProcessedListing], live_by_id: Dict[int, LiveListing]) -> PreviewResponse:
    """
    Pure diff. Every parsed listing consumes a change id in input order, even when it
    produces no change, so `change_N` always points at the N-th parsed listing.
    """
    changes: List[PreviewChange] = []
    for idx, listing in enumerate(parsed, start=1):
        change_id = change_id_for(idx)
        live = live_by_id.get(listing.listing_id) if listing.listing_id else None

        if listing.to_delete:
            if live is None:
                # not fetched / not found live: nothing to show
                logger.info("[PREVIEW] delete of listing %s skipped: no live record", listing.listing_id)
                continue
            changes.append(PreviewChange(change_id=change_id, change_type="delete",
                                         listing_id=listing.listing_id, title=live.title or listing.title))
            continue

        if listing.listing_id == 0:
            changes.append(_create_change(change_id, listing))
            continue

        if live is None:
            logger.warning("[PREVIEW] listing %s not found live, skipped", listing.listing_id)
            continue

        change = diff_update(change_id, listing, live)
        if change.field_changes or change.variation_changes:
            changes.append(change)

    return PreviewResponse(changes=changes, summary=summarize(changes))


async def fetch_live_listings(client, listing_ids: Iterable[int], batch_size: int | None = None) -> Dict[int, LiveListing]:
    """
    Fetch listings `batch_size` at a time (concurrent within a batch, batches in sequence).
    A failed fetch is logged and treated as not found; the rest of the batch continues.
    """
    batch_size = batch_size or settings.PREVIEW_FETCH_BATCH_SIZE
    ids = list(dict.fromkeys(i for i in listing_ids if i and i > 0))
    found: Dict[int, LiveListing] = {}
    for start in range(0, len(ids), batch_size):
        batch = ids[start:start + batch_size]
        results = await asyncio.gather(*(client.get_listing(i) for i in batch), return_exceptions=True)
        for lid, res in zip(batch, results):
            if isinstance(res, LiveListing):
                found[lid] = res
            elif isinstance(res, ListingNotFoundError):
                logger.info("[PREVIEW] listing %s not found", lid)
            elif isinstance(res, SyncError):
                logger.warning("[PREVIEW] fetch of listing %s failed, treated as not found: %s", lid, res)
            elif isinstance(res, BaseException):
                raise res
    logger.info("[PREVIEW] fetched %s/%s live listing(s)", len(found), len(ids))
    return found


def ids_to_fetch(parsed: Iterable[ProcessedListing]) -> List[int]:
    """Listings that already exist upstream: updates and deletes."""
    return [l.listing_id for l in parsed if l.listing_id > 0]


async def preview_changes(client, parsed: List[ProcessedListing], batch_size: int | None = None) -> PreviewResponse:
    live = await fetch_live_listings(client, ids_to_fetch(parsed), batch_size)
    response = build_preview(parsed, live)
    logger.info("[PREVIEW] %s", response.summary.model_dump())
    return response
