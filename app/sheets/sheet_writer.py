# app/sheets/sheet_writer.py
# ---------------------------------------------------------
# Refresh spreadsheet tabs from the live catalog without clobbering user edits.
#
# Best effort, not a transaction: rows are written one by one with a courtesy
# throttle; if a write fails midway the exception propagates and the rows already
# written stay written.
# ---------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Tuple

from app.config import settings
from app.models.live import LiveListing
from app.sheets import columns as C
from app.sheets.cells import cell, parse_id
from app.sheets.exporter import export_listings, listing_rows, preamble_rows, processed_from_live
from app.sheets.merge import has_row_changed, merge_rows
from app.sheets.row_parser import find_header_row, pad_row

logger = logging.getLogger("uvicorn.error")


def build_row_index(rows: List[List[str]]) -> Tuple[int, Dict[int, int], Dict[int, int]]:
    """
    (header index, listing id -> 1-based row, product id -> 1-based row).

    Listing ids index the listing row of each listing (the first row for that id
    without a product id); product ids index variation rows.
    """
    header_idx = find_header_row(rows)
    by_listing: Dict[int, int] = {}
    by_product: Dict[int, int] = {}
    if header_idx < 0:
        return header_idx, by_listing, by_product
    first_seen: Dict[int, int] = {}
    for i in range(header_idx + 1, len(rows)):
        row = rows[i] or []
        lid = parse_id(cell(row, C.LISTING_ID))
        pid = parse_id(cell(row, C.PRODUCT_ID))
        if pid is not None:
            by_product[pid] = i + 1
        if lid is not None:
            first_seen.setdefault(lid, i + 1)
            if pid is None and lid not in by_listing:
                by_listing[lid] = i + 1
    for lid, row_no in first_seen.items():
        by_listing.setdefault(lid, row_no)
    return header_idx, by_listing, by_product


def write_delay(write_no: int, delay_ms: int, long_delay_ms: int, long_every: int) -> float:
    """Seconds to wait after the `write_no`-th write (1-based)."""
    if long_every and write_no % long_every == 0:
        return long_delay_ms / 1000.0
    return delay_ms / 1000.0


async def refresh_sheet(
    sheets,
    listings: List[LiveListing],
    sheet_name: str,
    *,
    delay_ms: int | None = None,
    long_delay_ms: int | None = None,
    long_every: int | None = None,
    append_batch: int | None = None,
    sleep=asyncio.sleep,
) -> Dict[str, int]:
    delay_ms = settings.SHEET_WRITE_DELAY_MS if delay_ms is None else delay_ms
    long_delay_ms = settings.SHEET_WRITE_LONG_DELAY_MS if long_delay_ms is None else long_delay_ms
    long_every = settings.SHEET_WRITE_LONG_EVERY if long_every is None else long_every
    append_batch = append_batch or settings.SHEET_APPEND_BATCH
    stats = {"updated": 0, "appended": 0, "removed": 0, "unchanged": 0}

    await sheets.ensure_sheet(sheet_name)
    existing = await sheets.read_values(sheet_name)
    header_idx, by_listing, by_product = build_row_index(existing)

    if header_idx < 0:
        grid = export_listings(listings)
        await sheets.write_values(sheet_name, 1, grid)
        stats["appended"] = len(grid) - len(preamble_rows())
        await sheets.apply_formatting(sheet_name, header_row=len(preamble_rows()))
        logger.info("[SHEET] '%s' written fresh: %s row(s)", sheet_name, stats["appended"])
        return stats

    exported: List[List[str]] = []
    for listing in listings:
        exported.extend(listing_rows(processed_from_live(listing)))

    matched = set()
    new_rows: List[List[str]] = []
    writes = 0
    for live_row in exported:
        pid = parse_id(live_row[C.PRODUCT_ID])
        row_no = by_product.get(pid) if pid else by_listing.get(parse_id(live_row[C.LISTING_ID]))
        if row_no is None or row_no in matched:
            new_rows.append(live_row)
            continue
        matched.add(row_no)
        old = pad_row(existing[row_no - 1])
        merged = merge_rows(live_row, old)
        if not has_row_changed(old, merged):
            stats["unchanged"] += 1
            continue
        await sheets.write_values(sheet_name, row_no, [merged])
        writes += 1
        stats["updated"] += 1
        await sleep(write_delay(writes, delay_ms, long_delay_ms, long_every))

    live_listing_ids = {l.listing_id for l in listings}
    live_product_ids = {p.product_id for l in listings for p in l.live_products()}
    stale: List[int] = []
    for i in range(header_idx + 1, len(existing)):
        row_no = i + 1
        if row_no in matched:
            continue
        row = existing[i] or []
        lid = parse_id(cell(row, C.LISTING_ID))
        pid = parse_id(cell(row, C.PRODUCT_ID))
        # rows without ids were typed in by the user and are not created yet
        if (pid is not None and pid not in live_product_ids) or (pid is None and lid is not None and lid not in live_listing_ids):
            stale.append(row_no)
    if stale:
        await sheets.delete_rows(sheet_name, stale)
        stats["removed"] = len(stale)

    for start in range(0, len(new_rows), append_batch):
        chunk = new_rows[start:start + append_batch]
        await sheets.append_values(sheet_name, chunk)
        stats["appended"] += len(chunk)
        if start + append_batch < len(new_rows):
            await sleep(long_delay_ms / 1000.0)

    await sheets.apply_formatting(sheet_name, header_row=header_idx + 1)
    logger.info("[SHEET] '%s' refreshed: %s", sheet_name, stats)
    return stats


async def refresh_spreadsheet(etsy, sheets, states: Iterable[str] = C.LISTING_STATES, **kwargs) -> Dict[str, Dict[str, int]]:
    """One tab per listing state."""
    results: Dict[str, Dict[str, int]] = {}
    for state in states:
        listings = await etsy.get_all_shop_listings(state)
        name = C.sheet_name_for_state(state)
        results[name] = await refresh_sheet(sheets, listings, name, **kwargs)
    return results
