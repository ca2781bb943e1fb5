#=================================================================
# app/models/listing.py
# Spreadsheet-origin records produced by the row parser.
#=================================================================

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class ProcessedVariation(BaseModel):
    product_id: int = 0                      # 0 = new
    property_name1: str = ""
    property_option1: str = ""
    property_name2: str = ""
    property_option2: str = ""
    property_sku: str = ""
    property_price: Optional[float] = None
    property_quantity: Optional[int] = None
    property_id1: int = 0
    property_option_ids1: List[int] = Field(default_factory=list)
    property_id2: int = 0
    property_option_ids2: List[int] = Field(default_factory=list)
    to_delete: bool = False

    def options(self) -> list[tuple[str, str, int, list[int]]]:
        """(name, option, property_id, option_ids) for each populated property slot."""
        out = []
        if self.property_option1:
            out.append((self.property_name1, self.property_option1, self.property_id1, list(self.property_option_ids1)))
        if self.property_option2:
            out.append((self.property_name2, self.property_option2, self.property_id2, list(self.property_option_ids2)))
        return out


class ProcessedListing(BaseModel):
    listing_id: int = 0                      # 0 = not yet created upstream
    title: str = ""
    description: str = ""
    status: str = ""
    tags: List[str] = Field(default_factory=list)
    sku: str = ""
    price: Optional[float] = None
    currency_code: str = ""
    quantity: Optional[int] = None
    has_variations: bool = False
    variations: List[ProcessedVariation] = Field(default_factory=list)
    to_delete: bool = False
    materials: Optional[List[str]] = None
    shipping_profile_id: Optional[int] = None
    processing_min: Optional[int] = None
    processing_max: Optional[int] = None

    def active_variations(self) -> list[ProcessedVariation]:
        return [v for v in self.variations if not v.to_delete]
