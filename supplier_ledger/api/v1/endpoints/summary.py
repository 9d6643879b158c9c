from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from supplier_ledger.api.deps import get_ledger_service
from supplier_ledger.schemas.ledger import PartySummaryResponse
from supplier_ledger.services.ledger_service import LedgerService

router = APIRouter()


@router.get("/", response_model=List[PartySummaryResponse])
async def get_summary(ledger: LedgerService = Depends(get_ledger_service)):
    """Totals and dues for every supplier"""
    return [PartySummaryResponse.from_model(s) for s in await ledger.get_summary()]


@router.get("/{party}", response_model=PartySummaryResponse)
async def get_party_summary(
    party: str,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Totals and due for one supplier"""
    summary = await ledger.get_party_summary(party)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Supplier not found in ledger"
        )
    return PartySummaryResponse.from_model(summary)
