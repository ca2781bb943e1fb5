# app/sync/inventory.py
# ==========================================
# Inventory payload resolution for one listing.
#
# The inventory PUT replaces the whole product array, so the payload must carry:
#   - every edited / new variation, in one canonical property order
#   - every untouched live product (carried forward)
#   - explicit deletions
#   - disabled placeholders for property-value combinations that a new value opened up
# ==========================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from app.config import settings
from app.errors import NoViableProductsError, StructureMismatchError
from app.models.listing import ProcessedListing, ProcessedVariation
from app.models.live import LiveListing, LiveProduct
from app.sheets.cells import is_delete_sentinel
from app.sync.components.combinations import cartesian
from app.sync.components.properties import PropertyResolver
from app.sync.components.text import lower

logger = logging.getLogger("uvicorn.error")


@dataclass
class ShopContext:
    """Shop-level defaults plus the marketplace client used for identifier searches."""
    shop_id: int = 0
    taxonomy_id: Optional[int] = None
    shipping_profile_id: Optional[int] = None
    readiness_state_id: Optional[int] = None
    client: Any = None


@dataclass
class ResolvedProperty:
    property_id: int
    property_name: str
    value: str
    value_ids: List[int]

    def key(self) -> Tuple:
        return _value_key(self.value_ids, self.value)

    def payload(self) -> Dict[str, Any]:
        return {
            "property_id": self.property_id,
            "property_name": self.property_name,
            "value_ids": list(self.value_ids),
            "values": [self.value],
        }


@dataclass
class ResolvedVariation:
    variation: ProcessedVariation
    properties: List[ResolvedProperty]


def _value_key(value_ids: Sequence[int], text: str) -> Tuple:
    # ids when known; text otherwise so unresolved values still dedupe
    return tuple(sorted(value_ids)) if value_ids else ("text", lower(text))


def _signature(props: Sequence[ResolvedProperty]) -> Tuple:
    return tuple(sorted((p.property_id, p.key()) for p in props))


def _live_properties(product: LiveProduct) -> List[ResolvedProperty]:
    return [
        ResolvedProperty(pv.property_id, pv.property_name or "", ", ".join(pv.values), list(pv.value_ids))
        for pv in product.property_values
    ]


def _payload_properties(product: Dict[str, Any]) -> List[ResolvedProperty]:
    return [
        ResolvedProperty(pv["property_id"], pv.get("property_name") or "", ", ".join(pv.get("values") or []),
                         list(pv.get("value_ids") or []))
        for pv in product.get("property_values") or []
    ]


def sort_properties(props: Sequence[ResolvedProperty], canonical: Sequence[int]) -> List[ResolvedProperty]:
    """Canonical order first; properties outside it go last, by id."""
    pos = {pid: i for i, pid in enumerate(canonical)}
    return sorted(props, key=lambda p: (pos.get(p.property_id, len(pos)), p.property_id))


def _offering(price: float, quantity: int, enabled: bool, readiness_state_id: Optional[int]) -> Dict[str, Any]:
    off: Dict[str, Any] = {"price": round(float(price), 2), "quantity": int(quantity), "is_enabled": enabled}
    if readiness_state_id:
        off["readiness_state_id"] = readiness_state_id
    return off


def _deleted_product(product_id: int) -> Dict[str, Any]:
    return {"product_id": product_id, "is_deleted": True, "sku": "", "property_values": [], "offerings": []}


def _default_readiness(existing: Optional[LiveListing], context: ShopContext) -> Optional[int]:
    if existing is not None:
        rid = existing.first_readiness_state_id()
        if rid:
            return rid
    return context.readiness_state_id


def valid_price(new_price: Optional[float], existing_price: Optional[float], min_price: float) -> float:
    """Edited price if it meets the marketplace minimum, else the live price, else the minimum."""
    if new_price is not None and new_price >= min_price:
        return new_price
    if new_price is not None:
        logger.warning("[INVENTORY] price %s is below the minimum of %.2f; using live price or minimum",
                       new_price, min_price)
    if existing_price is not None and existing_price >= min_price:
        return existing_price
    return min_price


# ---- Identifier resolution (async) ----

async def resolve_variation_properties(listing: ProcessedListing, resolver: PropertyResolver) -> List[ResolvedVariation]:
    out: List[ResolvedVariation] = []
    for v in listing.variations:
        if v.to_delete:
            out.append(ResolvedVariation(v, []))
            continue
        props: List[ResolvedProperty] = []
        for name, option, pid, vids in v.options():
            res = await resolver.resolve(name, option, pid, vids)
            if res is None or res.property_id <= 0:
                logger.warning("[RESOLVE] listing %s: property '%s' (value '%s') unresolved, left out of product",
                               listing.listing_id, name, option)
                continue
            props.append(ResolvedProperty(res.property_id, name, option, list(res.value_ids)))
        out.append(ResolvedVariation(v, props))
    return out


# ---- Payload construction (pure) ----

def build_simple_inventory(listing: ProcessedListing, existing: Optional[LiveListing],
                           context: Optional[ShopContext] = None, min_price: float | None = None) -> Dict[str, Any]:
    """Single product, no properties. Converting from variations marks the old products deleted."""
    context = context or ShopContext()
    min_price = settings.MIN_PRICE if min_price is None else min_price
    products: List[Dict[str, Any]] = []
    if existing is not None and existing.has_variations:
        for p in existing.live_products():
            products.append(_deleted_product(p.product_id))

    price = valid_price(listing.price, existing.listing_price() if existing else None, min_price)
    quantity = listing.quantity if listing.quantity is not None else 1
    if quantity <= 0:
        quantity = 1
    sku = "" if is_delete_sentinel(listing.sku) else listing.sku
    products.append({
        "sku": sku,
        "property_values": [],
        "offerings": [_offering(price, quantity, True, _default_readiness(existing, context))],
    })
    return {"products": products, "price_on_property": [], "quantity_on_property": [], "sku_on_property": []}


def build_variation_inventory(listing: ProcessedListing, existing: Optional[LiveListing],
                              resolved: List[ResolvedVariation], context: Optional[ShopContext] = None,
                              min_price: float | None = None) -> Dict[str, Any]:
    context = context or ShopContext()
    min_price = settings.MIN_PRICE if min_price is None else min_price
    lid = listing.listing_id
    live_products = [p for p in existing.live_products() if p.property_values] if existing else []
    inv = existing.inventory if existing else None
    default_ready = _default_readiness(existing, context)

    # 1. canonical order: first live product, else first edited variation (fixed from then on)
    canonical: List[int] = live_products[0].property_ids() if live_products else []
    by_sig = {_signature(_live_properties(p)): p for p in live_products}
    by_pid = {p.product_id: p for p in live_products}

    price_props: Set[int] = set()
    qty_props: Set[int] = set()
    sku_props: Set[int] = set()
    products: List[Dict[str, Any]] = []
    present: Set[Tuple] = set()
    replaced: Set[int] = set()
    deleted: Set[int] = set()
    listing_sku = "" if is_delete_sentinel(listing.sku) else listing.sku

    # 2-3. edited / new / deleted variations
    for rv in resolved:
        v = rv.variation
        if v.to_delete:
            if v.product_id > 0:
                products.append(_deleted_product(v.product_id))
                deleted.add(v.product_id)
            else:
                logger.info("[INVENTORY] listing %s: new variation marked DELETE dropped", lid)
            continue
        if not rv.properties:
            logger.warning("[INVENTORY] listing %s: variation without resolvable properties skipped", lid)
            continue
        if not canonical:
            canonical = [p.property_id for p in rv.properties]
        props = sort_properties(rv.properties, canonical)
        sig = _signature(props)
        if sig in present:
            logger.warning("[INVENTORY] listing %s: duplicate variation %s skipped", lid, [p.value for p in props])
            continue
        present.add(sig)
        if v.product_id:
            replaced.add(v.product_id)

        ids = [p.property_id for p in props]
        if v.property_price is not None:
            price_props.update(ids)
        if v.property_quantity is not None:
            qty_props.update(ids)
        if v.property_sku and not is_delete_sentinel(v.property_sku):
            sku_props.update(ids)

        match = by_sig.get(sig) or by_pid.get(v.product_id)
        match_off = match.first_offering() if match else None
        price = next((p for p in (
            v.property_price,
            listing.price,
            match_off.price.as_float() if match_off and match_off.price else None,
            existing.listing_price() if existing else None,
        ) if p is not None), min_price)
        if v.property_quantity is not None:
            quantity = v.property_quantity
        elif listing.quantity is not None:
            quantity = listing.quantity
        elif match_off is not None:
            quantity = match_off.quantity
        else:
            quantity = 1
        readiness = (match_off.readiness_state_id if match_off else None) or default_ready
        products.append({
            "sku": v.property_sku if v.property_sku else listing_sku,
            "property_values": [p.payload() for p in props],
            "offerings": [_offering(price, quantity, True, readiness)],
        })

    # 4. carry forward untouched live products
    for p in live_products:
        if p.product_id in deleted or p.product_id in replaced:
            continue
        props = [rp for rp in _live_properties(p) if rp.property_name and rp.value]
        if not props:
            logger.warning("[INVENTORY] listing %s: live product %s has no usable properties, not carried",
                           lid, p.product_id)
            continue
        props = sort_properties(props, canonical)
        sig = _signature(props)
        if sig in present:
            continue
        present.add(sig)
        off = p.first_offering()
        price = off.price.as_float() if off and off.price else (listing.price or min_price)
        products.append({
            "sku": p.sku or "",
            "property_values": [rp.payload() for rp in props],
            "offerings": [_offering(price, off.quantity if off else 0, off.is_enabled if off else True,
                                    (off.readiness_state_id if off else None) or default_ready)],
        })

    active = [prod for prod in products if not prod.get("is_deleted")]

    # 5. missing combinations once a new value shows up
    placeholders = _missing_combinations(active, live_products, canonical)
    if placeholders:
        uniform_price = listing.price if listing.price is not None else active[0]["offerings"][0]["price"]
        for props in placeholders:
            products.append({
                "sku": "",
                "property_values": [p.payload() for p in props],
                "offerings": [_offering(uniform_price, 0, False, default_ready)],
            })
        # placeholders sit at 0 while real products do not, so quantity is property-scoped
        qty_props.update(canonical)
        logger.info("[INVENTORY] listing %s: %s placeholder combination(s) added", lid, len(placeholders))
        active = [prod for prod in products if not prod.get("is_deleted")]

    payload = {
        "products": products,
        "price_on_property": _on_property(inv.price_on_property if inv else [], price_props, canonical),
        "quantity_on_property": _on_property(inv.quantity_on_property if inv else [], qty_props, canonical),
        "sku_on_property": _on_property(inv.sku_on_property if inv else [], sku_props, canonical),
    }

    # 6. quantity consistency
    offers = [o for prod in active for o in prod["offerings"]]
    if offers and not payload["quantity_on_property"]:
        q = next((o["quantity"] for o in offers if o["quantity"] > 0), 1)
        for o in offers:
            o["quantity"] = q
    if offers and not any(o["quantity"] > 0 for o in offers):
        offers[0]["quantity"] = 1

    # 7. validation gate
    validate_structure(active, canonical, lid)
    return payload


def _on_property(existing_ids: Sequence[int], flagged: Set[int], canonical: Sequence[int]) -> List[int]:
    return sorted((set(existing_ids) | flagged) & set(canonical))


def _missing_combinations(active: List[Dict[str, Any]], live_products: List[LiveProduct],
                          canonical: List[int]) -> List[List[ResolvedProperty]]:
    """Every absent combination of the known values, but only when some value is new."""
    if not canonical:
        return []
    live_keys: Dict[int, Set[Tuple]] = {}
    for p in live_products:
        for rp in _live_properties(p):
            live_keys.setdefault(rp.property_id, set()).add(rp.key())

    value_sets: Dict[int, Dict[Tuple, ResolvedProperty]] = {pid: {} for pid in canonical}
    present: Set[Tuple] = set()
    has_new = False
    for prod in active:
        props = _payload_properties(prod)
        present.add(_signature(props))
        for rp in props:
            if rp.property_id not in value_sets:
                continue
            value_sets[rp.property_id].setdefault(rp.key(), rp)
            if rp.key() not in live_keys.get(rp.property_id, set()):
                has_new = True
    if not has_new:
        return []

    missing = []
    for combo in cartesian([list(value_sets[pid].values()) for pid in canonical]):
        if _signature(combo) not in present:
            missing.append(list(combo))
    return missing


def validate_structure(active: List[Dict[str, Any]], canonical: Sequence[int], listing_id: int = 0) -> None:
    """Every product must carry exactly the canonical property ids, in order."""
    if not active:
        raise NoViableProductsError(f"Listing {listing_id}: no products left to send after filtering.", listing_id)
    expected = list(canonical)
    for prod in active:
        ids = [pv["property_id"] for pv in prod.get("property_values") or []]
        if ids != expected:
            values = [", ".join(pv.get("values") or []) for pv in prod.get("property_values") or []]
            raise StructureMismatchError(
                f"Listing {listing_id}: variation {values or '(none)'} uses properties {ids} but the listing "
                f"uses {expected}. Every variation must have the same properties in the same order.",
                listing_id,
            )


async def resolve_inventory(listing: ProcessedListing, existing: Optional[LiveListing],
                            context: Optional[ShopContext] = None, min_price: float | None = None) -> Dict[str, Any]:
    """Complete inventory payload for `listing`, ready for the inventory PUT."""
    context = context or ShopContext()
    if not listing.has_variations:
        return build_simple_inventory(listing, existing, context, min_price)
    resolver = PropertyResolver(existing, context.client, listing.listing_id)
    resolved = await resolve_variation_properties(listing, resolver)
    return build_variation_inventory(listing, existing, resolved, context, min_price)
