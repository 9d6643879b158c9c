import itertools
from typing import Dict, List, Optional

from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.utils.ledger_validation import LedgerConflictError, LedgerValidationError


def _order_key(obligation: Obligation):
    return (obligation.created_at, obligation.sequence)


class MemoryObligationStore(ObligationStore):
    """
    In-process store.

    Records are frozen pydantic models; updates swap the whole record, so
    a reader holding a list never sees half of a paid/remaining change.
    """

    name = "memory"

    def __init__(self):
        self._obligations: Dict[str, Obligation] = {}
        self._payments: Dict[str, Payment] = {}
        self._payments_by_request: Dict[str, str] = {}
        self._sequence = itertools.count(1)

    async def insert_obligation(self, obligation: Obligation) -> Obligation:
        if obligation.id in self._obligations:
            raise LedgerValidationError(f"Obligation {obligation.id} already exists")
        stored = obligation.model_copy(update={"sequence": next(self._sequence)})
        self._obligations[stored.id] = stored
        return stored

    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        return self._obligations.get(obligation_id)

    async def list_obligations(
        self, party: Optional[str] = None, open_only: bool = False
    ) -> List[Obligation]:
        found = [
            o for o in self._obligations.values()
            if (party is None or o.party == party) and (not open_only or o.is_open())
        ]
        found.sort(key=_order_key)
        return found

    async def apply_payment(
        self, obligation: Obligation, cents: int, payment_id: Optional[str] = None
    ) -> Obligation:
        current = self._obligations.get(obligation.id)
        if current is None or current.remaining_cents != obligation.remaining_cents:
            raise LedgerConflictError(obligation.id)
        updated = current.apply(cents, payment_id)
        self._obligations[updated.id] = updated
        return updated

    async def delete_obligation(self, obligation_id: str) -> bool:
        return self._obligations.pop(obligation_id, None) is not None

    async def insert_payment(self, payment: Payment) -> Payment:
        if payment.request_id and payment.request_id in self._payments_by_request:
            raise LedgerConflictError(
                payment.id, f"Payment with request id {payment.request_id} already recorded"
            )
        self._payments[payment.id] = payment
        if payment.request_id:
            self._payments_by_request[payment.request_id] = payment.id
        return payment

    async def finalize_payment(self, payment: Payment) -> Payment:
        if payment.id not in self._payments:
            raise LedgerConflictError(payment.id, f"Payment {payment.id} was never reserved")
        self._payments[payment.id] = payment
        return payment

    async def get_payment_by_request_id(self, request_id: str) -> Optional[Payment]:
        payment_id = self._payments_by_request.get(request_id)
        return self._payments.get(payment_id) if payment_id else None

    async def list_payments(self, party: Optional[str] = None) -> List[Payment]:
        found = [p for p in self._payments.values() if party is None or p.party == party]
        found.sort(key=lambda p: p.created_at)
        return found

    async def clear(self) -> None:
        self._obligations.clear()
        self._payments.clear()
        self._payments_by_request.clear()
