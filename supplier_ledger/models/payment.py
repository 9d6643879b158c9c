from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from supplier_ledger.models.base import LedgerModel
from supplier_ledger.models.obligation import Obligation

PAYMENT_PENDING = "pending"
PAYMENT_RECORDED = "recorded"


class Payment(LedgerModel):
    """
    Money paid to a party.

    A payment carrying a request id is stored as pending before any money
    is allocated, then finalized once with its allocated and unallocated
    amounts. After that it is never modified.
    """
    party: str = Field(min_length=1)
    amount_cents: int = Field(gt=0)
    method: str
    description: str = ""
    request_id: Optional[str] = None  # client idempotency key

    # What the settlement did with the money
    allocated_cents: int = Field(default=0, ge=0)
    unallocated_cents: int = Field(default=0, ge=0)
    status: str = PAYMENT_RECORDED

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, frozen=True)


class SettlementResult(BaseModel):
    total_allocated_cents: int
    remaining_unallocated_cents: int
    payment: Payment
    obligations: List[Obligation] = []  # touched obligations, after settlement
    synthesized: bool = False
    replayed: bool = False
