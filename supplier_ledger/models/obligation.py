"""
Obligation model - money owed to an external party.

Design principles:
- One obligation per externally sourced line item (or per unmatched payment)
- amount_cents is fixed at creation
- Only paid_cents/remaining_cents change, and only through settlement
- All amounts in integer cents
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from supplier_ledger.models.base import LedgerModel, _utcnow

PARTS_CATEGORY = "Parts"
MANUAL_ITEMS = "Manual"
PENDING_METHOD = "Pending"


class Allocation(BaseModel):
    """Cents a single payment moved onto an obligation."""
    payment_id: str
    cents: int = Field(gt=0)

    model_config = ConfigDict(frozen=True)


class Obligation(LedgerModel):
    """
    Amount owed to `party`.

    Invariants:
    - paid_cents + remaining_cents == amount_cents
    - paid_cents >= 0, remaining_cents >= 0
    - party is normalized and non-empty
    """

    party: str = Field(min_length=1)
    description: str = ""
    category: str = PARTS_CATEGORY
    items: str = ""
    payment_method: str = PENDING_METHOD
    transaction_id: Optional[str] = None

    # Financial
    amount_cents: int = Field(gt=0)
    paid_cents: int = Field(default=0, ge=0)
    remaining_cents: int = Field(default=0, ge=0)

    # One entry per payment that settled part of this obligation
    allocations: List[Allocation] = Field(default_factory=list)

    # Insertion order, assigned by the store; breaks created_at ties
    sequence: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _default_remaining(cls, data):
        if isinstance(data, dict) and data.get("remaining_cents") is None:
            amount = data.get("amount_cents")
            paid = data.get("paid_cents") or 0
            if isinstance(amount, int):
                data = {**data, "remaining_cents": amount - paid}
        return data

    @model_validator(mode="after")
    def _check_balance(self):
        if self.paid_cents + self.remaining_cents != self.amount_cents:
            raise ValueError(
                f"paid_cents ({self.paid_cents}) + remaining_cents "
                f"({self.remaining_cents}) != amount_cents ({self.amount_cents})"
            )
        return self

    def is_open(self) -> bool:
        return self.remaining_cents > 0

    def allocated_to(self, payment_id: str) -> int:
        return sum(a.cents for a in self.allocations if a.payment_id == payment_id)

    def apply(self, cents: int, payment_id: Optional[str] = None) -> "Obligation":
        """Return a copy with `cents` moved from remaining to paid."""
        if cents <= 0 or cents > self.remaining_cents:
            raise ValueError(f"Cannot apply {cents} cents; open amount is {self.remaining_cents}")
        return Obligation.model_validate(
            {
                **self.model_dump(),
                "paid_cents": self.paid_cents + cents,
                "remaining_cents": self.remaining_cents - cents,
                "allocations": self.allocations + (
                    [Allocation(payment_id=payment_id, cents=cents)] if payment_id else []
                ),
                "updated_at": _utcnow(),
            }
        )
