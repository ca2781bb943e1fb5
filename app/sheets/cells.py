# app/sheets/cells.py
# ---------------------------------------------------------
# Cell-level parsing and field equality used by the parser,
# the merge engine and the preview diff.
# ---------------------------------------------------------

from __future__ import annotations

import re
from typing import Iterable, Optional

PRICE_EPSILON = 0.01
_CURRENCY_RE = re.compile(r"[$€£¥₹,\s]")
_WS_RE = re.compile(r"\s+")


def cell(row: list[str], idx: int) -> str:
    if idx >= len(row):
        return ""
    v = row[idx]
    return "" if v is None else str(v).strip()


def is_empty(v) -> bool:
    return v is None or str(v).strip() == ""


def parse_int(v, default: Optional[int] = None) -> Optional[int]:
    s = "" if v is None else str(v).strip()
    if not s:
        return default
    try:
        return int(s)
    except ValueError:
        # "12.0" style cells from spreadsheet exports
        try:
            f = float(s)
        except ValueError:
            return default
        return int(f) if f.is_integer() else default


def parse_price(v) -> Optional[float]:
    """Strip currency symbols, separators and whitespace; None when empty or invalid."""
    s = _CURRENCY_RE.sub("", "" if v is None else str(v))
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def parse_id(v) -> Optional[int]:
    n = parse_int(v)
    return n if n is not None and n > 0 else None


def parse_list(v) -> list[str]:
    if is_empty(v):
        return []
    return [p.strip() for p in str(v).split(",") if p.strip()]


def parse_id_list(v) -> list[int]:
    out = []
    for p in parse_list(v):
        n = parse_int(p)
        if n is not None:
            out.append(n)
    return out


def is_delete_sentinel(v) -> bool:
    return str(v or "").strip().upper() == "DELETE"


def format_price(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.2f}"


def format_int(value: Optional[int]) -> str:
    return "" if value is None else str(value)


# ---- Equality ----

def strings_equal(a, b, *, case_insensitive: bool = False, normalize_ws: bool = False) -> bool:
    s1 = "" if a is None else str(a).strip()
    s2 = "" if b is None else str(b).strip()
    if normalize_ws:
        s1 = _WS_RE.sub(" ", s1)
        s2 = _WS_RE.sub(" ", s2)
    if case_insensitive:
        return s1.lower() == s2.lower()
    return s1 == s2


def prices_equal(a: Optional[float], b: Optional[float], epsilon: float = PRICE_EPSILON) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    # rounded so a one-cent difference (19.99 vs 19.98) is never read as 0.00999...
    return round(abs(a - b), 6) < epsilon


def price_cells_equal(a: str, b: str) -> bool:
    return prices_equal(parse_price(a), parse_price(b))


def int_cells_equal(a: str, b: str) -> bool:
    return parse_int(a) == parse_int(b)


def sets_equal(a: Iterable[str], b: Iterable[str], *, case_insensitive: bool = True) -> bool:
    if case_insensitive:
        return {x.strip().lower() for x in a} == {x.strip().lower() for x in b}
    return {x.strip() for x in a} == {x.strip() for x in b}


def list_cells_equal(a: str, b: str) -> bool:
    return sets_equal(parse_list(a), parse_list(b))
