from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from supplier_ledger.api.deps import get_ledger_service
from supplier_ledger.schemas.ledger import ObligationResponse
from supplier_ledger.services.ledger_service import LedgerService

router = APIRouter()


@router.get("/", response_model=List[ObligationResponse])
async def list_obligations(
    party: Optional[str] = None,
    open_only: bool = False,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """List obligations, newest first."""
    obligations = await ledger.list_obligations(party, open_only=open_only)
    return [ObligationResponse.from_model(o) for o in obligations]


@router.get("/{obligation_id}", response_model=ObligationResponse)
async def get_obligation(
    obligation_id: str,
    ledger: LedgerService = Depends(get_ledger_service),
):
    obligation = await ledger.get_obligation(obligation_id)
    if not obligation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Obligation not found"
        )
    return ObligationResponse.from_model(obligation)


@router.delete("/{obligation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_obligation(
    obligation_id: str,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Remove an obligation (administrative)."""
    if not await ledger.delete_obligation(obligation_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Obligation not found"
        )
