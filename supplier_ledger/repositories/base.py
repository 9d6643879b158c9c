"""
ObligationStore - the storage interface the ledger services depend on.

Implementations:
- MemoryObligationStore: process-local dicts (default, tests)
- LedgerRepository: MongoDB via motor
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment


class ObligationStore(ABC):
    """Obligations and payment history, grouped by normalized party."""

    name: str = "abstract"

    @abstractmethod
    async def insert_obligation(self, obligation: Obligation) -> Obligation:
        """Persist a new obligation; returns it with its sequence assigned."""

    @abstractmethod
    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        ...

    @abstractmethod
    async def list_obligations(
        self, party: Optional[str] = None, open_only: bool = False
    ) -> List[Obligation]:
        """Oldest first: ordered by (created_at, sequence)."""

    @abstractmethod
    async def apply_payment(
        self, obligation: Obligation, cents: int, payment_id: Optional[str] = None
    ) -> Obligation:
        """
        Move `cents` from remaining to paid on one obligation, atomically.

        `obligation` is the version the caller read. If the stored
        remaining amount no longer matches it, LedgerConflictError is
        raised and nothing is written. When `payment_id` is given the move
        is recorded as an Allocation on the obligation.
        """

    @abstractmethod
    async def delete_obligation(self, obligation_id: str) -> bool:
        ...

    @abstractmethod
    async def insert_payment(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    async def finalize_payment(self, payment: Payment) -> Payment:
        """Store the final allocated/unallocated amounts and status of a pending payment."""

    @abstractmethod
    async def get_payment_by_request_id(self, request_id: str) -> Optional[Payment]:
        ...

    @abstractmethod
    async def list_payments(self, party: Optional[str] = None) -> List[Payment]:
        """Oldest first."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every obligation and payment."""
