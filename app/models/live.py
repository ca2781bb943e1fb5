#=================================================================
# app/models/live.py
# Marketplace-origin records (Etsy v3 listing + inventory shape).
# Validated at the client boundary; the engine never sees raw dicts.
#=================================================================

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class Money(BaseModel):
    amount: int
    divisor: int = 100
    currency_code: str = ""
    class Config:
        extra = "allow"

    def as_float(self) -> float:
        return self.amount / self.divisor if self.divisor else float(self.amount)


class Offering(BaseModel):
    offering_id: Optional[int] = None
    quantity: int = 0
    is_enabled: bool = True
    is_deleted: bool = False
    price: Optional[Money] = None
    readiness_state_id: Optional[int] = None
    class Config:
        extra = "allow"


class PropertyValue(BaseModel):
    property_id: int
    property_name: Optional[str] = None
    scale_id: Optional[int] = None
    scale_name: Optional[str] = None
    value_ids: List[int] = Field(default_factory=list)
    values: List[str] = Field(default_factory=list)
    class Config:
        extra = "allow"


class LiveProduct(BaseModel):
    product_id: int
    sku: str = ""
    is_deleted: bool = False
    offerings: List[Offering] = Field(default_factory=list)
    property_values: List[PropertyValue] = Field(default_factory=list)
    class Config:
        extra = "allow"

    def first_offering(self) -> Optional[Offering]:
        return next((o for o in self.offerings if not o.is_deleted), None)

    def property_ids(self) -> list[int]:
        return [pv.property_id for pv in self.property_values]


class Inventory(BaseModel):
    products: List[LiveProduct] = Field(default_factory=list)
    price_on_property: List[int] = Field(default_factory=list)
    quantity_on_property: List[int] = Field(default_factory=list)
    sku_on_property: List[int] = Field(default_factory=list)
    class Config:
        extra = "allow"


class LiveListing(BaseModel):
    listing_id: int
    shop_id: Optional[int] = None
    title: str = ""
    description: str = ""
    state: str = ""
    quantity: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    price: Optional[Money] = None
    has_variations: bool = False
    inventory: Inventory = Field(default_factory=Inventory)
    taxonomy_id: Optional[int] = None
    shipping_profile_id: Optional[int] = None
    materials: List[str] = Field(default_factory=list)
    processing_min: Optional[int] = None
    processing_max: Optional[int] = None
    class Config:
        extra = "allow"

    def live_products(self) -> list[LiveProduct]:
        return [p for p in self.inventory.products if not p.is_deleted]

    # listing-level values: listing fields first, first live product as fallback

    def listing_price(self) -> Optional[float]:
        if self.price is not None:
            return self.price.as_float()
        products = self.live_products()
        off = products[0].first_offering() if products else None
        return off.price.as_float() if off and off.price else None

    def listing_quantity(self) -> Optional[int]:
        if self.quantity is not None:
            return self.quantity
        products = self.live_products()
        off = products[0].first_offering() if products else None
        return off.quantity if off else None

    def listing_sku(self) -> str:
        products = self.live_products()
        return (products[0].sku or "") if products else ""

    def first_readiness_state_id(self) -> Optional[int]:
        for p in self.live_products():
            off = p.first_offering()
            if off and off.readiness_state_id:
                return off.readiness_state_id
        return None
