from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment, SettlementResult
from supplier_ledger.models.summary import PartySummary
from supplier_ledger.utils.money import format_cents


class PaymentCreate(BaseModel):
    """Request body to pay a supplier."""
    party: str
    amount: Union[int, float, str]  # validated and converted to cents by the ledger
    method: str
    description: Optional[str] = None
    request_id: Optional[str] = Field(default=None, max_length=128)


class ObligationResponse(BaseModel):
    id: str
    party: str
    description: str
    category: str
    items: str
    payment_method: str
    transaction_id: Optional[str] = None
    amount_cents: int
    paid_cents: int
    remaining_cents: int
    amount: str
    paid_amount: str
    remaining_amount: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, obligation: Obligation) -> "ObligationResponse":
        return cls(
            id=obligation.id,
            party=obligation.party,
            description=obligation.description,
            category=obligation.category,
            items=obligation.items,
            payment_method=obligation.payment_method,
            transaction_id=obligation.transaction_id,
            amount_cents=obligation.amount_cents,
            paid_cents=obligation.paid_cents,
            remaining_cents=obligation.remaining_cents,
            amount=format_cents(obligation.amount_cents),
            paid_amount=format_cents(obligation.paid_cents),
            remaining_amount=format_cents(obligation.remaining_cents),
            created_at=obligation.created_at,
            updated_at=obligation.updated_at,
        )


class PaymentResponse(BaseModel):
    id: str
    party: str
    amount_cents: int
    amount: str
    method: str
    description: str
    request_id: Optional[str] = None
    allocated_cents: int
    unallocated_cents: int
    status: str
    created_at: datetime

    @classmethod
    def from_model(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            party=payment.party,
            amount_cents=payment.amount_cents,
            amount=format_cents(payment.amount_cents),
            method=payment.method,
            description=payment.description,
            request_id=payment.request_id,
            allocated_cents=payment.allocated_cents,
            unallocated_cents=payment.unallocated_cents,
            status=payment.status,
            created_at=payment.created_at,
        )


class SettlementResponse(BaseModel):
    total_allocated_cents: int
    remaining_unallocated_cents: int
    total_allocated: str
    remaining_unallocated: str
    synthesized: bool
    replayed: bool
    payment: PaymentResponse
    obligations: List[ObligationResponse]

    @classmethod
    def from_result(cls, result: SettlementResult) -> "SettlementResponse":
        return cls(
            total_allocated_cents=result.total_allocated_cents,
            remaining_unallocated_cents=result.remaining_unallocated_cents,
            total_allocated=format_cents(result.total_allocated_cents),
            remaining_unallocated=format_cents(result.remaining_unallocated_cents),
            synthesized=result.synthesized,
            replayed=result.replayed,
            payment=PaymentResponse.from_model(result.payment),
            obligations=[ObligationResponse.from_model(o) for o in result.obligations],
        )


class PartySummaryResponse(BaseModel):
    party: str
    total_obligated_cents: int
    total_paid_cents: int
    total_remaining_cents: int
    total_due_cents: int
    total_obligated: str
    total_paid: str
    total_remaining: str
    total_due: str
    obligation_count: int
    last_payment_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, summary: PartySummary) -> "PartySummaryResponse":
        return cls(
            party=summary.party,
            total_obligated_cents=summary.total_obligated_cents,
            total_paid_cents=summary.total_paid_cents,
            total_remaining_cents=summary.total_remaining_cents,
            total_due_cents=summary.total_due_cents,
            total_obligated=format_cents(summary.total_obligated_cents),
            total_paid=format_cents(summary.total_paid_cents),
            total_remaining=format_cents(summary.total_remaining_cents),
            total_due=format_cents(summary.total_due_cents),
            obligation_count=summary.obligation_count,
            last_payment_at=summary.last_payment_at,
        )
