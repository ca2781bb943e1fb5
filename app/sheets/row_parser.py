# app/sheets/row_parser.py
# ---------------------------------------------------------
# Flat grid of string cells -> ProcessedListing/ProcessedVariation records.
# Pure: no I/O besides logging.
# ---------------------------------------------------------

from __future__ import annotations

import logging
from typing import List, Optional

from app.errors import ParseError
from app.models.listing import ProcessedListing, ProcessedVariation
from app.sheets import columns as C
from app.sheets.cells import (
    cell,
    is_delete_sentinel,
    parse_id,
    parse_id_list,
    parse_int,
    parse_list,
    parse_price,
)

logger = logging.getLogger("uvicorn.error")


def find_header_row(grid: List[List[str]], terms=C.HEADER_TERMS, scan_limit: int = C.HEADER_SCAN_LIMIT) -> int:
    """
    Index of the header row within the first `scan_limit` rows, or -1.

    Only the first two cells are inspected and they must *start* with a header
    term ("Listing ID (DO NOT EDIT)", "Title"), so instructional rows that merely
    mention "Listing ID" in a sentence are not mistaken for the header. A
    "title" cell further right, or a header term in the middle of a cell,
    does not count.
    """
    for i, row in enumerate(grid[:scan_limit]):
        for idx in (C.LISTING_ID, C.TITLE):
            text = cell(row or [], idx).lower()
            if text and any(text.startswith(t) for t in terms):
                return i
    return -1


def pad_row(row: List[str], width: int = C.COLUMN_COUNT) -> List[str]:
    row = ["" if v is None else str(v) for v in row]
    if len(row) < width:
        row = row + [""] * (width - len(row))
    return row


def _listing_id(row: List[str]) -> int:
    n = parse_int(cell(row, C.LISTING_ID), 0) or 0
    return n if n > 0 else 0


def _has_listing_info(row: List[str]) -> bool:
    return bool(cell(row, C.TITLE) or cell(row, C.DESCRIPTION) or cell(row, C.STATUS))


def _has_options(row: List[str]) -> bool:
    return bool(cell(row, C.PROPERTY_OPTION_1) or cell(row, C.PROPERTY_OPTION_2))


def listing_from_row(row: List[str]) -> ProcessedListing:
    sku = cell(row, C.SKU)
    materials = parse_list(cell(row, C.MATERIALS))
    return ProcessedListing(
        listing_id=_listing_id(row),
        title=cell(row, C.TITLE),
        description=cell(row, C.DESCRIPTION),
        status=cell(row, C.STATUS),
        tags=parse_list(cell(row, C.TAGS)),
        sku=sku,
        price=parse_price(cell(row, C.PRICE)),
        currency_code=cell(row, C.CURRENCY_CODE),
        quantity=parse_int(cell(row, C.QUANTITY)),
        to_delete=is_delete_sentinel(sku),
        materials=materials or None,
        shipping_profile_id=parse_id(cell(row, C.SHIPPING_PROFILE_ID)),
        processing_min=parse_id(cell(row, C.PROCESSING_MIN)),
        processing_max=parse_id(cell(row, C.PROCESSING_MAX)),
    )


def variation_from_row(row: List[str]) -> ProcessedVariation:
    var_sku = cell(row, C.VARIATION_SKU)
    product_id = parse_int(cell(row, C.PRODUCT_ID), 0) or 0
    return ProcessedVariation(
        product_id=max(product_id, 0),
        property_name1=cell(row, C.PROPERTY_NAME_1),
        property_option1=cell(row, C.PROPERTY_OPTION_1),
        property_name2=cell(row, C.PROPERTY_NAME_2),
        property_option2=cell(row, C.PROPERTY_OPTION_2),
        property_sku=var_sku,
        property_price=parse_price(cell(row, C.VARIATION_PRICE)),
        property_quantity=parse_int(cell(row, C.VARIATION_QUANTITY)),
        property_id1=parse_int(cell(row, C.PROPERTY_ID_1), 0) or 0,
        property_option_ids1=parse_id_list(cell(row, C.PROPERTY_OPTION_IDS_1)),
        property_id2=parse_int(cell(row, C.PROPERTY_ID_2), 0) or 0,
        property_option_ids2=parse_id_list(cell(row, C.PROPERTY_OPTION_IDS_2)),
        to_delete=is_delete_sentinel(var_sku),
    )


def _absorb_listing_fields(listing: ProcessedListing, row: List[str]) -> None:
    """A variation row may repeat listing-level cells; non-empty ones update the listing."""
    src = listing_from_row(row)
    for name in ("title", "description", "status", "currency_code"):
        if getattr(src, name):
            setattr(listing, name, getattr(src, name))
    if src.tags:
        listing.tags = src.tags
    if src.sku:
        listing.sku = src.sku
        listing.to_delete = src.to_delete
    for name in ("price", "quantity", "materials", "shipping_profile_id", "processing_min", "processing_max"):
        if getattr(src, name) is not None:
            setattr(listing, name, getattr(src, name))


def _attach(listing: ProcessedListing, variation: ProcessedVariation, row: List[str]) -> None:
    _absorb_listing_fields(listing, row)
    listing.variations.append(variation)
    listing.has_variations = True


def _listing_row_ids(rows: List[List[str]]) -> set[int]:
    """Ids carried by listing rows (listing cells, no options) anywhere below the header."""
    ids = set()
    for raw in rows:
        if not raw or len(raw) < C.MIN_ROW_WIDTH:
            continue
        row = pad_row(raw)
        lid = _listing_id(row)
        if lid and _has_listing_info(row) and not _has_options(row):
            ids.add(lid)
    return ids


def parse_rows(grid: List[List[str]]) -> List[ProcessedListing]:
    """
    Parse a sheet/CSV grid into listings, in row order.

    Raises ParseError when the grid is too short or has no recognisable header.
    Orphaned variation rows (listing id that is not the listing being accumulated)
    are re-attached after the scan, even when they repeat the listing's title;
    the ones that still match nothing are dropped with a warning. A variation row
    with listing cells only starts its own listing when its id is 0 or belongs to
    no listing row in the grid.
    """
    if not grid or len(grid) < C.MIN_GRID_ROWS:
        raise ParseError("Sheet is too short or invalid: expected a header row and at least one data row.")

    header_idx = find_header_row(grid)
    if header_idx < 0:
        raise ParseError(
            "Could not find the header row. The first 10 rows must include the "
            "'Listing ID' / 'Title' header; re-export the sheet if it was removed."
        )

    body = grid[header_idx + 1:]
    listing_ids = _listing_row_ids(body)
    done: List[ProcessedListing] = []
    by_id: dict[int, ProcessedListing] = {}
    current: Optional[ProcessedListing] = None
    orphans: List[tuple[int, int, ProcessedVariation, List[str]]] = []

    def _finalize():
        nonlocal current
        if current is not None:
            done.append(current)
            if current.listing_id and current.listing_id not in by_id:
                by_id[current.listing_id] = current
        current = None

    for offset, raw in enumerate(body):
        row_no = header_idx + offset + 2          # 1-based sheet row
        if not raw or all(str(v or "").strip() == "" for v in raw):
            continue
        if len(raw) < C.MIN_ROW_WIDTH:
            logger.warning("[PARSE] row %s has %s cells (< %s), skipped", row_no, len(raw), C.MIN_ROW_WIDTH)
            continue
        row = pad_row(raw)
        lid = _listing_id(row)
        has_info = _has_listing_info(row)

        if not _has_options(row):
            if has_info:
                _finalize()
                current = listing_from_row(row)
            else:
                logger.debug("[PARSE] row %s carries neither listing nor variation data, skipped", row_no)
            continue

        variation = variation_from_row(row)
        target: Optional[ProcessedListing] = None
        if current is not None and (lid == 0 or lid == current.listing_id):
            target = current
            # an untitled-id row repeating a *different* title starts its own listing
            title = cell(row, C.TITLE)
            if lid == 0 and title and current.title and title != current.title:
                target = None
        elif lid and lid in by_id:
            target = by_id[lid]

        if target is not None:
            _attach(target, variation, row)
            continue

        if lid and lid in listing_ids:
            orphans.append((row_no, lid, variation, row))
            continue

        if has_info:
            # combined row: listing fields + its first variation
            _finalize()
            current = listing_from_row(row)
            _attach(current, variation, row)
            continue

        if lid:
            orphans.append((row_no, lid, variation, row))
        else:
            logger.warning("[PARSE] row %s is a variation with no listing to attach to, skipped", row_no)

    _finalize()

    for row_no, lid, variation, row in orphans:
        owner = by_id.get(lid)
        if owner is None:
            logger.warning("[PARSE] orphaned variation on row %s references unknown listing %s, dropped", row_no, lid)
            continue
        _attach(owner, variation, row)

    logger.info("[PARSE] %s listing(s), %s variation(s)", len(done), sum(len(l.variations) for l in done))
    return done
