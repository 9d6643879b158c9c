import logging
from typing import Any, List, Optional

from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment, SettlementResult
from supplier_ledger.models.summary import PartySummary
from supplier_ledger.models.transaction import Transaction
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.services.obligation_factory import derive_obligations
from supplier_ledger.services.party_locks import PartyLocks
from supplier_ledger.services.settlement_service import SettlementEngine
from supplier_ledger.services.summary_service import summarize
from supplier_ledger.utils.names import normalize_party

logger = logging.getLogger(__name__)


class LedgerService:
    """Entry point for the HTTP layer: obligations, payments, summaries."""

    def __init__(
        self,
        store: ObligationStore,
        synthesize_unmatched: bool = True,
        conflict_retries: int = 3,
    ):
        self.store = store
        self.locks = PartyLocks()
        self.engine = SettlementEngine(
            store,
            locks=self.locks,
            synthesize_unmatched=synthesize_unmatched,
            conflict_retries=conflict_retries,
        )

    async def record_obligations_from_transaction(self, transaction: Transaction) -> List[Obligation]:
        """
        Create obligations for a saved transaction's external parts.

        Never raises: a failure here must not undo the transaction.
        Returns whatever was stored before a failure.
        """
        try:
            derived = derive_obligations(transaction)
        except Exception:
            logger.exception("Deriving obligations failed for transaction %s", transaction.id)
            return []

        created: List[Obligation] = []
        for obligation in derived:
            try:
                async with self.locks.for_party(obligation.party):
                    created.append(await self.store.insert_obligation(obligation))
            except Exception:
                logger.exception(
                    "Storing obligation for %s failed (transaction %s)",
                    obligation.party, transaction.id,
                )
                break

        if created:
            logger.info(
                "Recorded %d obligation(s) from transaction %s", len(created), transaction.id
            )
        return created

    async def record_payment(
        self,
        party: Any,
        amount: Any,
        method: Any,
        description: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> SettlementResult:
        return await self.engine.settle(party, amount, method, description, request_id)

    async def get_summary(self) -> List[PartySummary]:
        return await summarize(self.store)

    async def get_party_summary(self, party: Any) -> Optional[PartySummary]:
        key = normalize_party(party)
        if not key:
            return None
        for summary in await self.get_summary():
            if summary.party == key:
                return summary
        return None

    async def list_obligations(self, party: Any = None, open_only: bool = False) -> List[Obligation]:
        """Newest first, like the expenditure list."""
        key = normalize_party(party) if party is not None else None
        if party is not None and not key:
            return []
        obligations = await self.store.list_obligations(key, open_only=open_only)
        return list(reversed(obligations))

    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        return await self.store.get_obligation(obligation_id)

    async def delete_obligation(self, obligation_id: str) -> bool:
        """Administrative removal; not part of settlement."""
        obligation = await self.store.get_obligation(obligation_id)
        if obligation is None:
            return False
        async with self.locks.for_party(obligation.party):
            deleted = await self.store.delete_obligation(obligation_id)
        if deleted:
            logger.info("Deleted obligation %s for %s", obligation_id, obligation.party)
        return deleted

    async def list_payments(self, party: Any = None) -> List[Payment]:
        """Newest first."""
        key = normalize_party(party) if party is not None else None
        if party is not None and not key:
            return []
        payments = await self.store.list_payments(key)
        return list(reversed(payments))

    async def clear(self) -> None:
        await self.store.clear()
        logger.warning("Ledger cleared: all obligations and payments removed")
