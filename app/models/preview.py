#=================================================================
# app/models/preview.py
# Preview output: pure values, serialized camelCase for the UI.
#=================================================================

from __future__ import annotations

from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

FieldChangeType = Literal["modified", "added", "removed"]
ChangeType = Literal["create", "update", "delete"]


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class FieldChange(_CamelModel):
    field: str
    before: Any = None
    after: Any = None
    change_type: FieldChangeType


class VariationChange(_CamelModel):
    variation_id: str
    change_type: ChangeType
    product_id: Optional[int] = None
    field_changes: List[FieldChange] = Field(default_factory=list)


class PreviewChange(_CamelModel):
    change_id: str
    change_type: ChangeType
    listing_id: int
    title: str = ""
    field_changes: List[FieldChange] = Field(default_factory=list)
    variation_changes: List[VariationChange] = Field(default_factory=list)


class PreviewSummary(_CamelModel):
    total_changes: int = 0
    creates: int = 0
    updates: int = 0
    deletes: int = 0


class PreviewResponse(_CamelModel):
    changes: List[PreviewChange] = Field(default_factory=list)
    summary: PreviewSummary = Field(default_factory=PreviewSummary)
