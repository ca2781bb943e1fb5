from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")


def normalize_text(s: str | None) -> str:
    """Decode HTML entities, collapse whitespace, trim."""
    return _WS_RE.sub(" ", html.unescape(s or "")).strip()


def normalize_description(s: str | None) -> str:
    """Like normalize_text, but also drops markup (marketplace descriptions may carry tags)."""
    if s and _TAG_RE.search(s):
        s = BeautifulSoup(s, "html.parser").get_text(separator=" ", strip=True)
    return normalize_text(s)


def texts_equal(a: str | None, b: str | None) -> bool:
    return normalize_text(a) == normalize_text(b)


def lower(s: str | None) -> str:
    return (s or "").strip().lower()
