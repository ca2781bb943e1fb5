#=================================================================
# app/errors.py
# Error taxonomy for the reconciliation engine.
#=================================================================

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base class; `message` is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(SyncError):
    """Malformed grid: too short, or no header row. Aborts the whole sync."""


class ValidationError(SyncError):
    """A listing cannot be turned into a valid payload. Fatal for that listing only."""

    def __init__(self, message: str, listing_id: int | None = None):
        super().__init__(message)
        self.listing_id = listing_id


class StructureMismatchError(ValidationError):
    """Products of one listing disagree on their ordered property ids."""


class NoViableProductsError(ValidationError):
    pass


class MissingContextError(SyncError):
    """Shop-level defaults (taxonomy, shipping profile, readiness state) cannot be derived."""


class TransportError(SyncError):
    """An HTTP call failed after retries."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ListingNotFoundError(TransportError):
    pass
