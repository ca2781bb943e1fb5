# app/sheets/merge.py
# ---------------------------------------------------------
# Field merge for sheet refresh: live (marketplace) row vs. edited (sheet) row.
#
#   identifier columns      -> always live
#   equal under field rule  -> live (normalizes formatting)
#   edited empty            -> live
#   otherwise               -> edited (the user changed it on purpose)
# ---------------------------------------------------------

from __future__ import annotations

from typing import Callable, Dict, List

from app.sheets import columns as C
from app.sheets.cells import (
    int_cells_equal,
    list_cells_equal,
    price_cells_equal,
    strings_equal,
)
from app.sheets.row_parser import pad_row


def _ci(a: str, b: str) -> bool:
    return strings_equal(a, b, case_insensitive=True)


def _exact(a: str, b: str) -> bool:
    return strings_equal(a, b)


FIELD_EQUALITY: Dict[int, Callable[[str, str], bool]] = {
    C.STATUS: _ci,
    C.CURRENCY_CODE: _ci,
    C.PRICE: price_cells_equal,
    C.VARIATION_PRICE: price_cells_equal,
    C.TAGS: list_cells_equal,
    C.MATERIALS: list_cells_equal,
    C.QUANTITY: int_cells_equal,
    C.VARIATION_QUANTITY: int_cells_equal,
    C.SHIPPING_PROFILE_ID: int_cells_equal,
    C.PROCESSING_MIN: int_cells_equal,
    C.PROCESSING_MAX: int_cells_equal,
}


def merge_cell(idx: int, live: str, edited: str) -> str:
    live = (live or "").strip()
    edited = (edited or "").strip()
    if idx in C.IDENTIFIER_COLUMNS or idx == C.VARIATION:
        return live
    if idx == C.LISTING_ID:
        # a row typed in by the user keeps its (empty) id until the marketplace assigns one
        return live or edited
    if not edited:
        return live
    equal = FIELD_EQUALITY.get(idx, _exact)
    return live if equal(live, edited) else edited


def merge_rows(live_row: List[str], edited_row: List[str]) -> List[str]:
    live_row = pad_row(live_row)
    edited_row = pad_row(edited_row)
    return [merge_cell(i, live_row[i], edited_row[i]) for i in range(C.COLUMN_COUNT)]


def has_row_changed(old_row: List[str], new_row: List[str]) -> bool:
    """True when a write is worth issuing: width differs or a high-signal column differs."""
    if len(old_row) != len(new_row):
        return True
    for idx in C.KEY_COLUMNS:
        a = (old_row[idx] if idx < len(old_row) else "") or ""
        b = (new_row[idx] if idx < len(new_row) else "") or ""
        if str(a).strip() != str(b).strip():
            return True
    return False
