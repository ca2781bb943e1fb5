# app/sync/components/properties.py
# ---------------------------------------------------------
# Property / value identifier resolution by case-insensitive name match:
# the listing's own products first, then a bounded sample of other shop listings.
# A miss is not an error: the value is sent without ids and the marketplace validates it.
# ---------------------------------------------------------

from __future__ import annotations

import logging
from typing import Iterable, List, NamedTuple, Optional, Tuple

from app.config import settings
from app.errors import TransportError
from app.models.live import LiveListing
from app.sync.components.text import lower

logger = logging.getLogger("uvicorn.error")


class ResolutionResult(NamedTuple):
    property_id: int
    value_ids: List[int]
    has_value_ids: bool


def find_property(listings: Iterable[LiveListing], name: str, option: str,
                  property_id: int = 0) -> Tuple[Optional[int], List[int]]:
    """(property id, value ids) matched by name/text across the given listings' live products."""
    found_pid: Optional[int] = property_id or None
    value_ids: List[int] = []
    want_name, want_value = lower(name), lower(option)
    for listing in listings:
        for product in listing.live_products():
            for pv in product.property_values:
                if lower(pv.property_name) != want_name:
                    continue
                if found_pid is not None and pv.property_id != found_pid:
                    continue
                found_pid = pv.property_id
                for vid, text in zip(pv.value_ids, pv.values):
                    if lower(text) == want_value and vid not in value_ids:
                        value_ids.append(vid)
        if value_ids:
            break
    return found_pid, value_ids


def known_texts(listing: Optional[LiveListing], property_id: int, value_ids: List[int]) -> Optional[set]:
    """Lower-cased texts the listing uses for these value ids, or None when the ids are unknown to it."""
    if listing is None:
        return None
    texts = set()
    wanted = set(value_ids)
    for product in listing.live_products():
        for pv in product.property_values:
            if pv.property_id != property_id:
                continue
            for vid, text in zip(pv.value_ids, pv.values):
                if vid in wanted:
                    texts.add(lower(text))
    return texts or None


class PropertyResolver:
    """
    Resolves ids for one listing. The shop sample (at most `sample_limit` listings per
    state, states searched one after another) is fetched lazily and only once per call.
    """

    def __init__(self, existing: Optional[LiveListing], client=None, listing_id: int = 0,
                 sample_limit: int | None = None, states: Iterable[str] | None = None):
        self.existing = existing
        self.client = client
        self.listing_id = listing_id
        self.sample_limit = sample_limit or settings.RESOLVE_SAMPLE_LIMIT
        self.states = list(states or settings.RESOLVE_STATES)[:3]
        self._sample: Optional[List[LiveListing]] = None

    async def shop_sample(self) -> List[LiveListing]:
        if self._sample is not None:
            return self._sample
        sample: List[LiveListing] = []
        if self.client is not None:
            for state in self.states:
                try:
                    found = await self.client.get_shop_listings(state, limit=self.sample_limit)
                except TransportError as e:
                    logger.warning("[RESOLVE] could not sample '%s' listings: %s", state, e)
                    continue
                sample.extend(
                    l for l in found[:self.sample_limit]
                    if l.listing_id != self.listing_id and l.has_variations
                )
        self._sample = sample
        return sample

    async def resolve(self, name: str, option: str, property_id: int = 0,
                      value_ids: List[int] | None = None) -> Optional[ResolutionResult]:
        value_ids = list(value_ids or [])
        if property_id > 0 and value_ids:
            texts = known_texts(self.existing, property_id, value_ids)
            if texts is None or lower(option) in texts:
                return ResolutionResult(property_id, value_ids, True)
            # option text was edited on a copied row; the ids belong to the old value
            logger.info("[RESOLVE] '%s' no longer matches value ids %s of property %s, resolving by name",
                        option, value_ids, property_id)
            value_ids = []
        if not name or not option:
            return ResolutionResult(property_id, [], False) if property_id > 0 else None

        local = [self.existing] if self.existing is not None else []
        pid, vids = find_property(local, name, option, property_id)
        if pid is None or not vids:
            spid, svids = find_property(await self.shop_sample(), name, option, pid or 0)
            pid = pid or spid
            vids = vids or svids

        if pid is None:
            logger.warning("[RESOLVE] no property id for '%s' (value '%s'); variation cannot be placed", name, option)
            return None
        if not vids:
            logger.warning("[RESOLVE] value '%s' of '%s' (property %s) not found; sending without value ids",
                           option, name, pid)
            return ResolutionResult(pid, [], False)
        return ResolutionResult(pid, vids, True)
