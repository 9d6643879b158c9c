"""
Settlement engine - applies a payment to a party's obligations.

Allocation is oldest-first: open obligations are walked in
(created_at, sequence) order and each takes min(its remaining, money left).
The payment is always recorded for the full amount received; anything left
over is reported as unallocated, never stored as negative debt.

A payment with a request id is reserved (pending) before allocation and
finalized afterwards. Every allocation is tagged with the payment id, so a
retry of an interrupted settlement resumes from what was already applied.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from supplier_ledger.models.obligation import MANUAL_ITEMS, Obligation, PARTS_CATEGORY
from supplier_ledger.models.payment import (
    PAYMENT_PENDING,
    PAYMENT_RECORDED,
    Payment,
    SettlementResult,
)
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.services.party_locks import PartyLocks
from supplier_ledger.utils.ledger_validation import (
    LedgerConflictError,
    LedgerStorageError,
    LedgerValidationError,
    require_method,
    require_party,
    validate_settlement_amount,
)

logger = logging.getLogger(__name__)


class SettlementEngine:
    def __init__(
        self,
        store: ObligationStore,
        locks: Optional[PartyLocks] = None,
        synthesize_unmatched: bool = True,
        conflict_retries: int = 3,
    ):
        self.store = store
        self.locks = locks or PartyLocks()
        # Policy: a payment that finds no open debt creates a manual
        # obligation for itself instead of staying wholly unallocated.
        self.synthesize_unmatched = synthesize_unmatched
        self.conflict_retries = conflict_retries

    async def settle(
        self,
        party: Any,
        amount: Any,
        method: Any,
        description: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> SettlementResult:
        amount_cents = validate_settlement_amount(amount)
        party = require_party(party)
        method = require_method(method)

        async with self.locks.for_party(party):
            payment: Optional[Payment] = None
            already = 0
            if request_id:
                previous = await self.store.get_payment_by_request_id(request_id)
                if previous is not None:
                    self._check_same_payment(previous, party, amount_cents)
                    if previous.status == PAYMENT_RECORDED:
                        return self._replay(previous)
                    payment = previous
                    already = await self._allocated_by(party, previous.id)
                    logger.info(
                        "Resuming payment %s for request id %s; %d cents already allocated",
                        previous.id, request_id, already,
                    )

            if payment is None:
                payment = Payment(
                    party=party,
                    amount_cents=amount_cents,
                    method=method,
                    description=description or f"Payment to {party}",
                    request_id=request_id,
                    unallocated_cents=amount_cents,
                    status=PAYMENT_PENDING,
                )
                if request_id:
                    # claim the request id before any money moves
                    await self.store.insert_payment(payment)

            left = amount_cents - already
            open_obligations = await self.store.list_obligations(party, open_only=True)

            synthesized = False
            if left and not open_obligations and self.synthesize_unmatched:
                await self.store.insert_obligation(
                    Obligation(
                        party=party,
                        description=f"Manual payment for {party}",
                        category=PARTS_CATEGORY,
                        items=MANUAL_ITEMS,
                        payment_method=method,
                        amount_cents=left,
                        paid_cents=0,
                        remaining_cents=left,
                    )
                )
                synthesized = True
                logger.info("No open obligations for %s; created manual obligation", party)
                open_obligations = await self.store.list_obligations(party, open_only=True)

            touched: Dict[str, Obligation] = {}
            for obligation in open_obligations:
                if left == 0:
                    break
                try:
                    outcome = await self._apply(obligation, left, payment.id)
                except LedgerStorageError as exc:
                    raise LedgerStorageError(str(exc), allocated_cents=amount_cents - left) from exc
                if outcome is None:
                    continue
                updated, applied = outcome
                left -= applied
                touched[updated.id] = updated

            allocated = amount_cents - left
            payment = payment.model_copy(update={
                "allocated_cents": allocated,
                "unallocated_cents": left,
                "status": PAYMENT_RECORDED,
            })
            try:
                if request_id:
                    await self.store.finalize_payment(payment)
                else:
                    await self.store.insert_payment(payment)
            except LedgerStorageError as exc:
                raise LedgerStorageError(str(exc), allocated_cents=allocated) from exc

        logger.info(
            "Payment %s to %s: %d cents, allocated %d across %d obligation(s), unallocated %d",
            payment.id, party, amount_cents, allocated, len(touched), left,
        )
        return SettlementResult(
            total_allocated_cents=allocated,
            remaining_unallocated_cents=left,
            payment=payment,
            obligations=list(touched.values()),
            synthesized=synthesized,
        )

    async def _apply(
        self, obligation: Obligation, left: int, payment_id: str
    ) -> Optional[Tuple[Obligation, int]]:
        """
        Apply up to `left` cents to one obligation.

        On a conflict the obligation is re-read and the share recomputed.
        Returns (updated obligation, cents applied), or None if it was
        deleted or closed in the meantime.
        """
        current = obligation
        for attempt in range(self.conflict_retries + 1):
            to_apply = min(current.remaining_cents, left)
            if to_apply <= 0:
                return None
            try:
                updated = await self.store.apply_payment(current, to_apply, payment_id)
            except LedgerConflictError:
                logger.warning(
                    "Conflict settling obligation %s (attempt %d/%d)",
                    current.id, attempt + 1, self.conflict_retries + 1,
                )
                fresh = await self.store.get_obligation(current.id)
                if fresh is None:
                    return None
                current = fresh
                continue
            return updated, to_apply

        raise LedgerConflictError(obligation.id)

    async def _allocated_by(self, party: str, payment_id: str) -> int:
        obligations = await self.store.list_obligations(party)
        return sum(o.allocated_to(payment_id) for o in obligations)

    @staticmethod
    def _check_same_payment(previous: Payment, party: str, amount_cents: int) -> None:
        if previous.party != party or previous.amount_cents != amount_cents:
            raise LedgerValidationError(
                f"Request id {previous.request_id} was already used for a different payment"
            )

    def _replay(self, previous: Payment) -> SettlementResult:
        logger.info("Replaying payment %s for request id %s", previous.id, previous.request_id)
        return SettlementResult(
            total_allocated_cents=previous.allocated_cents,
            remaining_unallocated_cents=previous.unallocated_cents,
            payment=previous,
            replayed=True,
        )
