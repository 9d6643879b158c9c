from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from supplier_ledger.api.deps import get_ledger_service
from supplier_ledger.schemas.ledger import PaymentCreate, PaymentResponse, SettlementResponse
from supplier_ledger.services.ledger_service import LedgerService
from supplier_ledger.utils.ledger_validation import (
    LedgerConflictError,
    LedgerStorageError,
    LedgerValidationError,
)

router = APIRouter()


@router.post("/", response_model=SettlementResponse)
async def record_payment(
    payload: PaymentCreate,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Pay a supplier; the amount is applied to their oldest dues first."""
    try:
        result = await ledger.record_payment(
            payload.party,
            payload.amount,
            payload.method,
            description=payload.description,
            request_id=payload.request_id or idempotency_key,
        )
    except LedgerValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc)
        )
    except LedgerConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc)
        )
    except LedgerStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": str(exc), "allocated_cents": exc.allocated_cents}
        )
    return SettlementResponse.from_result(result)


@router.get("/", response_model=List[PaymentResponse])
async def list_payments(
    party: Optional[str] = None,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Payment history, newest first."""
    payments = await ledger.list_payments(party)
    return [PaymentResponse.from_model(p) for p in payments]
