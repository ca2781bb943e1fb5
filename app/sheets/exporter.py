# app/sheets/exporter.py
# ---------------------------------------------------------
# Live catalog -> sheet rows.
# A listing is written as one listing row followed by one row per
# non-deleted product, which parse_rows() reads back losslessly.
# ---------------------------------------------------------

from __future__ import annotations

import html
from collections import defaultdict
from typing import Dict, Iterable, List

from app.models.listing import ProcessedListing, ProcessedVariation
from app.models.live import LiveListing, LiveProduct
from app.sheets import columns as C
from app.sheets.cells import format_int, format_price


def _decode(s: str | None) -> str:
    return html.unescape(s or "")


def _offering_price(product: LiveProduct) -> float | None:
    off = product.first_offering()
    if off is None or off.price is None:
        return None
    return off.price.as_float()


def _offering_quantity(product: LiveProduct) -> int | None:
    off = product.first_offering()
    return off.quantity if off is not None else None


def _variation_from_product(product: LiveProduct, on_price: bool, on_qty: bool, on_sku: bool) -> ProcessedVariation:
    pvs = product.property_values
    v = ProcessedVariation(product_id=product.product_id)
    for slot, pv in enumerate(pvs[:2], start=1):
        setattr(v, f"property_name{slot}", pv.property_name or "")
        setattr(v, f"property_option{slot}", ", ".join(pv.values))
        setattr(v, f"property_id{slot}", pv.property_id)
        setattr(v, f"property_option_ids{slot}", list(pv.value_ids))
    if on_price:
        v.property_price = _offering_price(product)
    if on_qty:
        v.property_quantity = _offering_quantity(product)
    if on_sku:
        v.property_sku = product.sku or ""
    return v


def processed_from_live(live: LiveListing) -> ProcessedListing:
    """The record a user would get by exporting `live` and parsing it back untouched."""
    inv = live.inventory
    products = live.live_products()
    on_price = bool(inv.price_on_property)
    on_qty = bool(inv.quantity_on_property)
    on_sku = bool(inv.sku_on_property)

    listing = ProcessedListing(
        listing_id=live.listing_id,
        title=_decode(live.title),
        description=_decode(live.description),
        status=live.state or "",
        tags=list(live.tags),
        currency_code=(live.price.currency_code if live.price else "") or "",
        materials=list(live.materials) or None,
        shipping_profile_id=live.shipping_profile_id or None,
        processing_min=live.processing_min or None,
        processing_max=live.processing_max or None,
    )

    variant_products = [p for p in products if p.property_values]
    if live.has_variations and variant_products:
        listing.has_variations = True
        if not on_price:
            listing.price = live.listing_price()
        if not on_qty:
            listing.quantity = live.listing_quantity()
        if not on_sku:
            listing.sku = live.listing_sku()
        listing.variations = [_variation_from_product(p, on_price, on_qty, on_sku) for p in variant_products]
    else:
        listing.price = live.listing_price()
        listing.quantity = live.listing_quantity()
        listing.sku = live.listing_sku()
    return listing


def variation_display(v: ProcessedVariation) -> str:
    parts = [p for p in (v.property_option1, v.property_option2) if p]
    return " / ".join(parts) if parts else "N/A"


def listing_rows(listing: ProcessedListing) -> List[List[str]]:
    lid = str(listing.listing_id) if listing.listing_id else ""
    row = C.blank_row()
    row[C.LISTING_ID] = lid
    row[C.TITLE] = listing.title
    row[C.DESCRIPTION] = listing.description
    row[C.STATUS] = listing.status
    row[C.TAGS] = ",".join(listing.tags)
    row[C.PRICE] = format_price(listing.price)
    row[C.CURRENCY_CODE] = listing.currency_code
    row[C.QUANTITY] = format_int(listing.quantity)
    row[C.SKU] = listing.sku
    row[C.MATERIALS] = ", ".join(listing.materials or [])
    row[C.SHIPPING_PROFILE_ID] = format_int(listing.shipping_profile_id)
    row[C.PROCESSING_MIN] = format_int(listing.processing_min)
    row[C.PROCESSING_MAX] = format_int(listing.processing_max)
    rows = [row]

    if not listing.has_variations:
        return rows

    for v in listing.variations:
        vr = C.blank_row()
        vr[C.LISTING_ID] = lid
        vr[C.VARIATION] = variation_display(v)
        vr[C.PROPERTY_NAME_1] = v.property_name1
        vr[C.PROPERTY_OPTION_1] = v.property_option1
        vr[C.PROPERTY_NAME_2] = v.property_name2
        vr[C.PROPERTY_OPTION_2] = v.property_option2
        vr[C.VARIATION_PRICE] = format_price(v.property_price)
        vr[C.VARIATION_QUANTITY] = format_int(v.property_quantity)
        vr[C.VARIATION_SKU] = v.property_sku
        vr[C.PRODUCT_ID] = str(v.product_id) if v.product_id else ""
        vr[C.PROPERTY_ID_1] = str(v.property_id1) if v.property_id1 else ""
        vr[C.PROPERTY_OPTION_IDS_1] = ",".join(str(i) for i in v.property_option_ids1)
        vr[C.PROPERTY_ID_2] = str(v.property_id2) if v.property_id2 else ""
        vr[C.PROPERTY_OPTION_IDS_2] = ",".join(str(i) for i in v.property_option_ids2)
        rows.append(vr)
    return rows


def preamble_rows() -> List[List[str]]:
    rows = []
    for text in C.INSTRUCTIONS:
        r = C.blank_row()
        r[0] = text
        rows.append(r)
    rows.append(C.blank_row())
    rows.append(list(C.HEADER))
    return rows


def export_processed(listings: Iterable[ProcessedListing], include_preamble: bool = True) -> List[List[str]]:
    grid = preamble_rows() if include_preamble else [list(C.HEADER)]
    for listing in listings:
        grid.extend(listing_rows(listing))
    return grid


def export_listings(listings: Iterable[LiveListing], include_preamble: bool = True) -> List[List[str]]:
    return export_processed((processed_from_live(l) for l in listings), include_preamble)


def group_by_sheet(listings: Iterable[LiveListing]) -> Dict[str, List[LiveListing]]:
    """One tab per listing state ("Active", "Draft", ...)."""
    grouped: Dict[str, List[LiveListing]] = defaultdict(list)
    for l in listings:
        grouped[C.sheet_name_for_state(l.state)].append(l)
    return dict(grouped)
