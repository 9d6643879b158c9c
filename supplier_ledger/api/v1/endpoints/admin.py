from fastapi import APIRouter, Depends

from supplier_ledger.api.deps import get_ledger_service
from supplier_ledger.services.ledger_service import LedgerService

router = APIRouter()


@router.post("/clear")
async def clear_ledger(ledger: LedgerService = Depends(get_ledger_service)):
    """Remove all obligations and payments"""
    await ledger.clear()
    return {"message": "Ledger cleared"}
