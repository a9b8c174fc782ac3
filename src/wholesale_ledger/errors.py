"""Error taxonomy raised by the ledger services.

Every error derives from :class:`LedgerError`. The ``client_fixable`` flag
separates problems the caller can correct (bad input, unknown references,
missing stock, serial collisions) from server-side persistence faults, so
front-ends can render distinct messages without inspecting concrete types.
"""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger failures."""

    client_fixable: bool = True


class ValidationError(LedgerError):
    """Raised when an input value is malformed or out of range."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFound(LedgerError):
    """Raised when a product, customer, invoice, or journal is unknown."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class InsufficientStock(LedgerError):
    """Raised when an invoice requests more units than a product holds."""

    def __init__(self, product_id: str, *, requested: int, available: Optional[int] = None) -> None:
        detail = f"requested {requested}"
        if available is not None:
            detail += f", available {available}"
        super().__init__(f"Insufficient stock for product {product_id} ({detail})")
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ConflictError(LedgerError):
    """Raised when a unique invoice serial cannot be allocated."""


class PersistenceError(LedgerError):
    """Raised when a transaction fails for a reason the caller cannot fix."""

    client_fixable = False


__all__ = [
    "LedgerError",
    "ValidationError",
    "NotFound",
    "InsufficientStock",
    "ConflictError",
    "PersistenceError",
]
