from typing import Dict, Iterable, List

from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment
from supplier_ledger.models.summary import PartySummary
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.utils.names import normalize_party


def summarize_records(
    obligations: Iterable[Obligation], payments: Iterable[Payment]
) -> List[PartySummary]:
    """
    Group obligations and payments by party.

    total_remaining (the party's "due") is always the plain sum of the
    party's remaining amounts.
    """
    totals: Dict[str, PartySummary] = {}

    for obligation in obligations:
        party = normalize_party(obligation.party)
        if not party:
            continue
        summary = totals.setdefault(party, PartySummary(party=party))
        summary.total_obligated_cents += obligation.amount_cents
        summary.total_paid_cents += obligation.paid_cents
        summary.total_remaining_cents += obligation.remaining_cents
        summary.obligation_count += 1

    for payment in payments:
        party = normalize_party(payment.party)
        if not party:
            continue
        summary = totals.setdefault(party, PartySummary(party=party))
        if summary.last_payment_at is None or payment.created_at > summary.last_payment_at:
            summary.last_payment_at = payment.created_at

    return [totals[party] for party in sorted(totals)]


async def summarize(store: ObligationStore) -> List[PartySummary]:
    obligations = await store.list_obligations()
    payments = await store.list_payments()
    return summarize_records(obligations, payments)
