"""
LedgerRepository - MongoDB-backed obligation store.

Collections:
- obligations: one document per Obligation, `_id` is the hex id string
- supplier_payments: payment history, unique sparse index on request_id
- ledger_counters: insertion sequence for obligations

Reads and idempotent writes go through `_run`, which applies the configured
timeout and retries transient failures with exponential backoff.

Writes that are not safe to repeat are never resent blindly:
- inserts: a duplicate `_id` on a retried attempt means an earlier attempt
  landed and only its reply was lost
- apply_payment: the update is guarded by the remaining amount the caller
  read and tagged with an allocation id; after a transient error the
  obligation is re-read and the tag decides whether the update landed
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import AutoReconnect, DuplicateKeyError, NetworkTimeout, PyMongoError

from supplier_ledger.models.base import new_id
from supplier_ledger.models.obligation import Obligation
from supplier_ledger.models.payment import Payment
from supplier_ledger.repositories.base import ObligationStore
from supplier_ledger.utils.ledger_validation import (
    LedgerConflictError,
    LedgerStorageError,
    LedgerValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout, asyncio.TimeoutError)


def _is_duplicate_id(exc: DuplicateKeyError) -> bool:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    return "_id" in key_pattern or "index: _id_ " in str(exc)


class LedgerRepository(ObligationStore):
    """Repository for obligations and supplier payments."""

    name = "mongo"

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        timeout_seconds: float = 5.0,
        retries: int = 2,
        backoff_seconds: float = 0.1,
    ):
        self.db = db
        self.collection = db.obligations
        self.payments = db.supplier_payments
        self.counters = db.ledger_counters
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.backoff_seconds = backoff_seconds

    async def create_indexes(self) -> None:
        await self._run("create_indexes", lambda: self.collection.create_index(
            [("party", ASCENDING), ("created_at", ASCENDING), ("sequence", ASCENDING)]
        ))
        await self._run("create_indexes", lambda: self.collection.create_index(
            [("party", ASCENDING), ("remaining_cents", ASCENDING)]
        ))
        await self._run("create_indexes", lambda: self.payments.create_index(
            "request_id", unique=True, sparse=True
        ))
        await self._run("create_indexes", lambda: self.payments.create_index(
            [("party", ASCENDING), ("created_at", ASCENDING)]
        ))

    # ===== OBLIGATIONS =====

    async def insert_obligation(self, obligation: Obligation) -> Obligation:
        sequence = await self._next_sequence("obligations")
        stored = obligation.model_copy(update={"sequence": sequence})
        try:
            await self._insert_one(
                "insert_obligation", self.collection, stored.model_dump(by_alias=True)
            )
        except DuplicateKeyError as exc:
            raise LedgerValidationError(f"Obligation {obligation.id} already exists") from exc
        return stored

    async def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        doc = await self._run(
            "get_obligation", lambda: self.collection.find_one({"_id": obligation_id})
        )
        return Obligation.model_validate(doc) if doc else None

    async def list_obligations(
        self, party: Optional[str] = None, open_only: bool = False
    ) -> List[Obligation]:
        query = {}
        if party is not None:
            query["party"] = party
        if open_only:
            query["remaining_cents"] = {"$gt": 0}

        docs = await self._run(
            "list_obligations",
            lambda: self.collection.find(query)
            .sort([("created_at", ASCENDING), ("sequence", ASCENDING)])
            .to_list(None),
        )
        return [Obligation.model_validate(doc) for doc in docs]

    async def apply_payment(
        self, obligation: Obligation, cents: int, payment_id: Optional[str] = None
    ) -> Obligation:
        """
        Settle `cents` of one obligation.

        - cents must be 1 to the open amount
        - matched only if remaining_cents still equals what the caller read
        - the allocation is pushed onto the document under `payment_id`
          (a fresh id when none is given)
        """
        if cents <= 0 or cents > obligation.remaining_cents:
            raise ValueError(
                f"Settlement amount must be 1 to {obligation.remaining_cents} cents"
            )

        allocation_id = payment_id or new_id()
        query = {"_id": obligation.id, "remaining_cents": obligation.remaining_cents}
        update = {
            "$inc": {"paid_cents": cents, "remaining_cents": -cents},
            "$set": {"updated_at": datetime.now(timezone.utc)},
            "$push": {"allocations": {"payment_id": allocation_id, "cents": cents}},
        }

        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            if attempt:
                await self._backoff(attempt)
            try:
                result = await self._attempt(
                    "apply_payment",
                    lambda: self.collection.find_one_and_update(
                        query, update, return_document=ReturnDocument.AFTER
                    ),
                )
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                self._log_transient("apply_payment", attempt, exc)
                landed = await self._landed_allocation(obligation, allocation_id)
                if landed is not None:
                    return landed
                continue

            if result is None:
                raise LedgerConflictError(obligation.id)
            return Obligation.model_validate(result)

        raise LedgerStorageError(
            f"apply_payment failed after {self.retries + 1} attempts: {last_error}"
        )

    async def delete_obligation(self, obligation_id: str) -> bool:
        result = await self._run(
            "delete_obligation", lambda: self.collection.delete_one({"_id": obligation_id})
        )
        return result.deleted_count == 1

    # ===== PAYMENTS =====

    async def insert_payment(self, payment: Payment) -> Payment:
        doc = payment.model_dump(by_alias=True)
        if doc.get("request_id") is None:
            # sparse unique index only skips documents without the field
            doc.pop("request_id", None)
        try:
            await self._insert_one("insert_payment", self.payments, doc)
        except DuplicateKeyError as exc:
            if payment.request_id:
                existing = await self.get_payment_by_request_id(payment.request_id)
                if existing is not None and existing.id == payment.id:
                    return payment
                raise LedgerConflictError(
                    payment.id, f"Payment with request id {payment.request_id} already recorded"
                ) from exc
            raise LedgerValidationError(f"Payment {payment.id} already exists") from exc
        return payment

    async def finalize_payment(self, payment: Payment) -> Payment:
        result = await self._run(
            "finalize_payment",
            lambda: self.payments.update_one(
                {"_id": payment.id},
                {"$set": {
                    "allocated_cents": payment.allocated_cents,
                    "unallocated_cents": payment.unallocated_cents,
                    "status": payment.status,
                }},
            ),
        )
        if result.matched_count == 0:
            raise LedgerConflictError(payment.id, f"Payment {payment.id} was never reserved")
        return payment

    async def get_payment_by_request_id(self, request_id: str) -> Optional[Payment]:
        doc = await self._run(
            "get_payment_by_request_id",
            lambda: self.payments.find_one({"request_id": request_id}),
        )
        return Payment.model_validate(doc) if doc else None

    async def list_payments(self, party: Optional[str] = None) -> List[Payment]:
        query = {"party": party} if party is not None else {}
        docs = await self._run(
            "list_payments",
            lambda: self.payments.find(query).sort("created_at", ASCENDING).to_list(None),
        )
        return [Payment.model_validate(doc) for doc in docs]

    async def clear(self) -> None:
        await self._run("clear", lambda: self.collection.delete_many({}))
        await self._run("clear", lambda: self.payments.delete_many({}))

    # ===== PRIVATE HELPERS =====

    async def _next_sequence(self, name: str) -> int:
        # a retried $inc can skip a value; gaps do not affect ordering
        try:
            doc = await self._run(
                "next_sequence",
                lambda: self.counters.find_one_and_update(
                    {"_id": name},
                    {"$inc": {"value": 1}},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                ),
            )
        except DuplicateKeyError as exc:
            raise LedgerStorageError(f"next_sequence failed: {exc}") from exc
        return doc["value"]

    async def _insert_one(
        self, operation: str, collection: AsyncIOMotorCollection, doc: dict
    ) -> None:
        attempts = 0

        def call():
            nonlocal attempts
            attempts += 1
            return collection.insert_one(doc)

        try:
            await self._run(operation, call)
        except DuplicateKeyError as exc:
            if attempts > 1 and _is_duplicate_id(exc):
                logger.info("%s for %s had landed before its reply was lost", operation, doc["_id"])
                return
            raise

    async def _landed_allocation(
        self, obligation: Obligation, allocation_id: str
    ) -> Optional[Obligation]:
        """
        After a lost apply reply: the stored obligation if the update landed,
        None if it did not and can be resent.
        """
        current = await self.get_obligation(obligation.id)
        if current is None:
            raise LedgerConflictError(obligation.id)
        if current.allocated_to(allocation_id):
            logger.info("apply_payment on %s had landed before its reply was lost", obligation.id)
            return current
        if current.remaining_cents != obligation.remaining_cents:
            raise LedgerConflictError(obligation.id)
        return None

    async def _run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run one driver call with timeout and bounded retry."""
        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            if attempt:
                await self._backoff(attempt)
            try:
                return await self._attempt(operation, call)
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                self._log_transient(operation, attempt, exc)

        raise LedgerStorageError(f"{operation} failed after {self.retries + 1} attempts: {last_error}")

    async def _attempt(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """
        One driver call under the timeout. Transient errors and duplicate
        keys propagate; any other driver error becomes LedgerStorageError.
        """
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except TRANSIENT_ERRORS:
            raise
        except DuplicateKeyError:
            raise
        except PyMongoError as exc:
            logger.error("Storage error in %s: %s", operation, exc)
            raise LedgerStorageError(f"{operation} failed: {exc}") from exc

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

    def _log_transient(self, operation: str, attempt: int, exc: Any) -> None:
        logger.warning(
            "Transient storage error in %s (attempt %d/%d): %s",
            operation, attempt + 1, self.retries + 1, exc,
        )
