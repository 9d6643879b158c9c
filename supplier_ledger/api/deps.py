from fastapi import Request

from supplier_ledger.services.ledger_service import LedgerService


def get_ledger_service(request: Request) -> LedgerService:
    """The ledger service created at startup."""
    return request.app.state.ledger
