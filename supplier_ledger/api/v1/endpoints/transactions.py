from typing import List

from fastapi import APIRouter, Depends, status

from supplier_ledger.api.deps import get_ledger_service
from supplier_ledger.models.transaction import Transaction
from supplier_ledger.schemas.ledger import ObligationResponse
from supplier_ledger.services.ledger_service import LedgerService

router = APIRouter()


@router.post(
    "/obligations",
    response_model=List[ObligationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_transaction_obligations(
    transaction: Transaction,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """
    Record supplier obligations for a saved transaction.

    Bad line items produce an empty list, never an error.
    """
    obligations = await ledger.record_obligations_from_transaction(transaction)
    return [ObligationResponse.from_model(o) for o in obligations]
