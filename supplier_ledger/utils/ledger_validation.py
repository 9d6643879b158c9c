"""Ledger errors and input validation."""
from typing import Any

from supplier_ledger.utils.money import to_cents
from supplier_ledger.utils.names import normalize_party


class LedgerError(Exception):
    """Base class for ledger errors."""
    pass


class LedgerValidationError(LedgerError):
    """Input rejected before anything was written."""
    pass


class LedgerConflictError(LedgerError):
    """An obligation changed between read and write."""

    def __init__(self, obligation_id: str, message: str = ""):
        self.obligation_id = obligation_id
        super().__init__(message or f"Obligation {obligation_id} was modified concurrently")


class LedgerStorageError(LedgerError):
    """
    Persistence failed.

    allocated_cents reports how much of a settlement was already committed
    when the failure happened (0 outside settlements).
    """

    def __init__(self, message: str, allocated_cents: int = 0):
        self.allocated_cents = allocated_cents
        super().__init__(message)


def validate_settlement_amount(amount: Any) -> int:
    """
    Validate a settlement amount and return it in cents.

    Rules:
    - must be numeric (int, Decimal, numeric string; bool rejected)
    - must be finite
    - must be > 0 after rounding to 2 places
    """
    try:
        cents = to_cents(amount)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"Invalid settlement amount: {amount!r}") from exc
    if cents <= 0:
        raise LedgerValidationError(f"Settlement amount must be positive, got {amount!r}")
    return cents


def require_party(raw: Any) -> str:
    """Normalize a party name; empty names are rejected."""
    party = normalize_party(raw)
    if not party:
        raise LedgerValidationError("Party name is required")
    return party


def require_method(method: Any) -> str:
    if not isinstance(method, str) or not method.strip():
        raise LedgerValidationError("Payment method is required")
    return method.strip()
