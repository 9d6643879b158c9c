"""
Tests for the settlement engine.

Covers:
- Oldest-first allocation across obligations
- Overpayment reported as unallocated
- Manual obligation for payments with no open debt (and the policy flag)
- Request-id replay
- Validation errors
- Conflict retry and storage failures
"""
import asyncio

import pytest

from supplier_ledger.repositories.memory_store import MemoryObligationStore
from supplier_ledger.services.settlement_service import SettlementEngine
from supplier_ledger.utils.ledger_validation import (
    LedgerConflictError,
    LedgerStorageError,
    LedgerValidationError,
)
from conftest import make_obligation


def assert_balanced(obligations):
    for o in obligations:
        assert o.paid_cents + o.remaining_cents == o.amount_cents
        assert o.paid_cents >= 0
        assert o.remaining_cents >= 0


@pytest.mark.asyncio
async def test_fifo_allocation(store):
    o1 = await store.insert_obligation(make_obligation(amount_cents=10000, minutes=0))
    o2 = await store.insert_obligation(make_obligation(amount_cents=5000, minutes=5))
    engine = SettlementEngine(store)

    result = await engine.settle("Patel", 120, "Cash")

    assert (await store.get_obligation(o1.id)).remaining_cents == 0
    assert (await store.get_obligation(o2.id)).remaining_cents == 3000
    assert result.total_allocated_cents == 12000
    assert result.remaining_unallocated_cents == 0
    assert result.payment.amount_cents == 12000
    assert [o.id for o in result.obligations] == [o1.id, o2.id]
    assert result.synthesized is False


@pytest.mark.asyncio
async def test_order_follows_created_at_not_insertion(store):
    newer = await store.insert_obligation(make_obligation(amount_cents=5000, minutes=10))
    older = await store.insert_obligation(make_obligation(amount_cents=5000, minutes=1))
    engine = SettlementEngine(store)

    await engine.settle("Patel", 50, "Cash")

    assert (await store.get_obligation(older.id)).remaining_cents == 0
    assert (await store.get_obligation(newer.id)).remaining_cents == 5000


@pytest.mark.asyncio
async def test_equal_created_at_uses_insertion_order(store):
    first = await store.insert_obligation(make_obligation(amount_cents=5000, minutes=0))
    second = await store.insert_obligation(make_obligation(amount_cents=5000, minutes=0))
    engine = SettlementEngine(store)

    await engine.settle("Patel", 60, "Cash")

    assert (await store.get_obligation(first.id)).remaining_cents == 0
    assert (await store.get_obligation(second.id)).remaining_cents == 4000


@pytest.mark.asyncio
async def test_overpayment_reported_as_unallocated(store):
    o1 = await store.insert_obligation(make_obligation(amount_cents=10000))
    engine = SettlementEngine(store)

    result = await engine.settle("Patel", 500, "UPI")

    assert (await store.get_obligation(o1.id)).remaining_cents == 0
    assert result.total_allocated_cents == 10000
    assert result.remaining_unallocated_cents == 40000
    assert result.payment.amount_cents == 50000
    assert result.payment.unallocated_cents == 40000
    obligations = await store.list_obligations("Patel")
    assert len(obligations) == 1
    assert_balanced(obligations)


@pytest.mark.asyncio
async def test_payment_with_no_obligations_synthesizes_one(store):
    engine = SettlementEngine(store)

    result = await engine.settle("sharma", 75, "Cash")

    obligations = await store.list_obligations("Sharma")
    assert len(obligations) == 1
    manual = obligations[0]
    assert manual.amount_cents == 7500
    assert manual.paid_cents == 7500
    assert manual.remaining_cents == 0
    assert manual.items == "Manual"
    assert manual.category == "Parts"
    assert manual.description == "Manual payment for Sharma"
    assert manual.payment_method == "Cash"
    assert result.synthesized is True
    assert result.total_allocated_cents == 7500
    assert result.remaining_unallocated_cents == 0


@pytest.mark.asyncio
async def test_payment_after_debts_closed_synthesizes(store):
    await store.insert_obligation(make_obligation(amount_cents=1000))
    engine = SettlementEngine(store)
    await engine.settle("Patel", 10, "Cash")

    result = await engine.settle("Patel", 5, "Cash")

    assert result.synthesized is True
    assert len(await store.list_obligations("Patel")) == 2
    assert await store.list_obligations("Patel", open_only=True) == []


@pytest.mark.asyncio
async def test_synthesis_disabled_leaves_payment_unallocated(store):
    engine = SettlementEngine(store, synthesize_unmatched=False)

    result = await engine.settle("Sharma", 75, "Cash")

    assert result.synthesized is False
    assert result.total_allocated_cents == 0
    assert result.remaining_unallocated_cents == 7500
    assert await store.list_obligations("Sharma") == []
    assert [p.amount_cents for p in await store.list_payments("Sharma")] == [7500]


@pytest.mark.asyncio
async def test_party_name_is_normalized(store):
    o1 = await store.insert_obligation(make_obligation(party="Patel", amount_cents=30000))
    engine = SettlementEngine(store)

    result = await engine.settle("  patel ", "300", "Cash")

    assert result.payment.party == "Patel"
    assert (await store.get_obligation(o1.id)).remaining_cents == 0


@pytest.mark.asyncio
async def test_other_parties_untouched(store):
    sharma = await store.insert_obligation(make_obligation(party="Sharma", amount_cents=1000))
    await store.insert_obligation(make_obligation(party="Patel", amount_cents=1000))
    engine = SettlementEngine(store)

    await engine.settle("Patel", 10, "Cash")

    assert (await store.get_obligation(sharma.id)).remaining_cents == 1000


@pytest.mark.asyncio
async def test_payment_description_defaults(store):
    engine = SettlementEngine(store)
    result = await engine.settle("Patel", 1, "Cash")
    assert result.payment.description == "Payment to Patel"

    result = await engine.settle("Patel", 1, "Cash", description="Weekly settlement")
    assert result.payment.description == "Weekly settlement"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -10, "abc", None, "0.001"])
async def test_invalid_amount_rejected(store, amount):
    engine = SettlementEngine(store)
    with pytest.raises(LedgerValidationError):
        await engine.settle("Patel", amount, "Cash")
    assert await store.list_payments() == []
    assert await store.list_obligations() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("party, method", [("   ", "Cash"), ("Patel", ""), ("Patel", None)])
async def test_missing_party_or_method_rejected(store, party, method):
    engine = SettlementEngine(store)
    with pytest.raises(LedgerValidationError):
        await engine.settle(party, 10, method)


@pytest.mark.asyncio
async def test_request_id_replay_settles_once(store):
    o1 = await store.insert_obligation(make_obligation(amount_cents=10000))
    engine = SettlementEngine(store)

    first = await engine.settle("Patel", 40, "Cash", request_id="req-1")
    second = await engine.settle("patel", 40, "Cash", request_id="req-1")

    assert second.replayed is True
    assert second.payment.id == first.payment.id
    assert second.total_allocated_cents == 4000
    assert (await store.get_obligation(o1.id)).remaining_cents == 6000
    assert len(await store.list_payments()) == 1


@pytest.mark.asyncio
async def test_request_id_reused_for_different_payment(store):
    engine = SettlementEngine(store)
    await engine.settle("Patel", 40, "Cash", request_id="req-1")

    with pytest.raises(LedgerValidationError):
        await engine.settle("Patel", 41, "Cash", request_id="req-1")


@pytest.mark.asyncio
async def test_concurrent_settlements_do_not_lose_updates(store):
    for minute in range(5):
        await store.insert_obligation(make_obligation(amount_cents=1000, minutes=minute))
    engine = SettlementEngine(store, synthesize_unmatched=False)

    results = await asyncio.gather(*(engine.settle("Patel", 7, "Cash") for _ in range(10)))

    obligations = await store.list_obligations("Patel")
    assert_balanced(obligations)
    assert sum(o.paid_cents for o in obligations) == sum(r.total_allocated_cents for r in results)
    assert sum(o.remaining_cents for o in obligations) == 0
    assert sum(r.remaining_unallocated_cents for r in results) == 2000
    assert len(await store.list_payments("Patel")) == 10


class FlakyStore(MemoryObligationStore):
    """Raises a conflict on the first apply, after changing the obligation underneath."""

    def __init__(self):
        super().__init__()
        self.conflicts = 0

    async def apply_payment(self, obligation, cents, payment_id=None):
        if self.conflicts == 0:
            self.conflicts += 1
            # another writer takes 20 cents first
            current = self._obligations[obligation.id]
            self._obligations[obligation.id] = current.apply(20)
            raise LedgerConflictError(obligation.id)
        return await super().apply_payment(obligation, cents, payment_id)


@pytest.mark.asyncio
async def test_conflict_rereads_and_reapplies():
    store = FlakyStore()
    o1 = await store.insert_obligation(make_obligation(amount_cents=100))
    engine = SettlementEngine(store)

    result = await engine.settle("Patel", 5, "Cash")

    assert store.conflicts == 1
    assert result.total_allocated_cents == 80
    assert result.remaining_unallocated_cents == 420
    assert (await store.get_obligation(o1.id)).remaining_cents == 0


class AlwaysConflictingStore(MemoryObligationStore):
    async def apply_payment(self, obligation, cents, payment_id=None):
        raise LedgerConflictError(obligation.id)


@pytest.mark.asyncio
async def test_conflict_retries_are_bounded():
    store = AlwaysConflictingStore()
    await store.insert_obligation(make_obligation(amount_cents=100))
    engine = SettlementEngine(store, conflict_retries=2)

    with pytest.raises(LedgerConflictError):
        await engine.settle("Patel", 1, "Cash")
    assert await store.list_payments() == []


class FailingSecondApplyStore(MemoryObligationStore):
    def __init__(self):
        super().__init__()
        self.applied = 0

    async def apply_payment(self, obligation, cents, payment_id=None):
        if self.applied == 1:
            raise LedgerStorageError("disk on fire")
        self.applied += 1
        return await super().apply_payment(obligation, cents, payment_id)


@pytest.mark.asyncio
async def test_storage_failure_reports_progress():
    store = FailingSecondApplyStore()
    o1 = await store.insert_obligation(make_obligation(amount_cents=1000, minutes=0))
    o2 = await store.insert_obligation(make_obligation(amount_cents=1000, minutes=1))
    engine = SettlementEngine(store)

    with pytest.raises(LedgerStorageError) as exc_info:
        await engine.settle("Patel", 15, "Cash")

    assert exc_info.value.allocated_cents == 1000
    # the committed obligation stays balanced, the other is untouched
    assert (await store.get_obligation(o1.id)).remaining_cents == 0
    assert (await store.get_obligation(o2.id)).remaining_cents == 1000
    assert await store.list_payments() == []


class FinalizeFailsOnceStore(MemoryObligationStore):
    def __init__(self):
        super().__init__()
        self.failed = False

    async def finalize_payment(self, payment):
        if not self.failed:
            self.failed = True
            raise LedgerStorageError("payments collection unavailable")
        return await super().finalize_payment(payment)


@pytest.mark.asyncio
async def test_request_id_retry_after_failed_record_settles_once():
    store = FinalizeFailsOnceStore()
    o1 = await store.insert_obligation(make_obligation(amount_cents=10000))
    engine = SettlementEngine(store)

    with pytest.raises(LedgerStorageError) as exc_info:
        await engine.settle("Patel", 40, "Cash", request_id="req-9")
    assert exc_info.value.allocated_cents == 4000

    result = await engine.settle("Patel", 40, "Cash", request_id="req-9")

    assert result.total_allocated_cents == 4000
    assert result.remaining_unallocated_cents == 0
    assert (await store.get_obligation(o1.id)).remaining_cents == 6000
    [payment] = await store.list_payments()
    assert payment.status == "recorded"
    assert payment.allocated_cents == 4000


class FailingApplyOnceStore(MemoryObligationStore):
    def __init__(self):
        super().__init__()
        self.applied = 0
        self.failed = False

    async def apply_payment(self, obligation, cents, payment_id=None):
        if self.applied == 1 and not self.failed:
            self.failed = True
            raise LedgerStorageError("write timed out")
        self.applied += 1
        return await super().apply_payment(obligation, cents, payment_id)


@pytest.mark.asyncio
async def test_request_id_retry_resumes_interrupted_allocation():
    store = FailingApplyOnceStore()
    o1 = await store.insert_obligation(make_obligation(amount_cents=1000, minutes=0))
    o2 = await store.insert_obligation(make_obligation(amount_cents=1000, minutes=1))
    engine = SettlementEngine(store)

    with pytest.raises(LedgerStorageError):
        await engine.settle("Patel", 15, "Cash", request_id="req-7")
    [pending] = await store.list_payments()
    assert pending.status == "pending"

    result = await engine.settle("Patel", 15, "Cash", request_id="req-7")

    assert result.total_allocated_cents == 1500
    assert result.payment.id == pending.id
    assert (await store.get_obligation(o1.id)).remaining_cents == 0
    assert (await store.get_obligation(o2.id)).remaining_cents == 500
    assert (await store.get_obligation(o2.id)).allocated_to(pending.id) == 500


class ReservationFailsStore(MemoryObligationStore):
    async def insert_payment(self, payment):
        raise LedgerConflictError(payment.id, "request id taken by another process")


@pytest.mark.asyncio
async def test_request_id_is_reserved_before_money_moves():
    store = ReservationFailsStore()
    o1 = await store.insert_obligation(make_obligation(amount_cents=1000))
    engine = SettlementEngine(store)

    with pytest.raises(LedgerConflictError):
        await engine.settle("Patel", 5, "Cash", request_id="req-3")

    assert (await store.get_obligation(o1.id)).remaining_cents == 1000


@pytest.mark.asyncio
async def test_allocations_are_tagged_with_payment(store):
    o1 = await store.insert_obligation(make_obligation(amount_cents=1000))
    engine = SettlementEngine(store)

    result = await engine.settle("Patel", 4, "Cash")

    assert (await store.get_obligation(o1.id)).allocated_to(result.payment.id) == 400


@pytest.mark.asyncio
async def test_locks_are_dropped_after_settlement(store):
    engine = SettlementEngine(store)
    await asyncio.gather(*(engine.settle(party, 1, "Cash") for party in ("A", "B", "C")))
    assert len(engine.locks) == 0
