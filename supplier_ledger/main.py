from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from supplier_ledger.api.v1.api import api_router
from supplier_ledger.core.config import settings
from supplier_ledger.core.logging_config import configure_logging
from supplier_ledger.db.mongo import close_mongo_connection, connect_to_mongo
from supplier_ledger.db.session import get_store
from supplier_ledger.services.ledger_service import LedgerService


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.LEDGER_STORE == "mongo":
        await connect_to_mongo()
    app.state.ledger = LedgerService(
        await get_store(),
        synthesize_unmatched=settings.SYNTHESIZE_UNMATCHED_PAYMENTS,
        conflict_retries=settings.SETTLEMENT_CONFLICT_RETRIES,
    )
    try:
        yield
    finally:
        if settings.LEDGER_STORE == "mongo":
            await close_mongo_connection()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.DESCRIPTION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": "Welcome to Supplier Ledger API"}

    @app.get("/health")
    async def health():
        ledger = getattr(app.state, "ledger", None)
        return {
            "status": "ok" if ledger is not None else "starting",
            "store": ledger.store.name if ledger is not None else None,
        }

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("supplier_ledger.main:app", host=settings.HOST, port=settings.PORT)
