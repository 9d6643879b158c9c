from supplier_ledger.core.config import settings
from supplier_ledger.db.mongo import get_db
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.repositories.ledger_repo import LedgerRepository
from supplier_ledger.repositories.memory_store import MemoryObligationStore


async def get_store() -> ObligationStore:
    """Return the obligation store selected by LEDGER_STORE."""
    if settings.LEDGER_STORE == "mongo":
        repo = LedgerRepository(
            get_db(),
            timeout_seconds=settings.STORAGE_TIMEOUT_SECONDS,
            retries=settings.STORAGE_RETRIES,
            backoff_seconds=settings.STORAGE_BACKOFF_SECONDS,
        )
        await repo.create_indexes()
        return repo
    if settings.LEDGER_STORE == "memory":
        return MemoryObligationStore()
    raise ValueError(f"Unknown LEDGER_STORE: {settings.LEDGER_STORE!r}")
