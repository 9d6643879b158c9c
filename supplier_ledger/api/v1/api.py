from fastapi import APIRouter
from supplier_ledger.api.v1.endpoints import admin, obligations, payments, summary, transactions

api_router = APIRouter()

api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(obligations.router, prefix="/obligations", tags=["obligations"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(summary.router, prefix="/summary", tags=["summary"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
