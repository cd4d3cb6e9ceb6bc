import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from inventory_ledger.api.routes import inventories, inventory_transactions
from inventory_ledger.core.config import settings
from inventory_ledger.core.logging_config import setup_logging
from inventory_ledger.db.session import Database
from inventory_ledger.handlers.exception_handlers import init_exception_handlers
from inventory_ledger.services.audit import AuditRecorder
from inventory_ledger.services.inventory import InventoryService
from inventory_ledger.services.ledger import LedgerService
from inventory_ledger.services.reporting import ReportingService
from inventory_ledger.utils.clock import Clock, SystemClock

setup_logging()

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    clock: Optional[Clock] = None,
    audit_recorder: Optional[AuditRecorder] = None,
) -> FastAPI:
    database = database or Database(settings.database_url, echo=settings.debug)
    clock = clock or SystemClock()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await database.start()
        logger.info(f"{settings.app_name} started")
        try:
            yield
        finally:
            await database.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    ledger_service = LedgerService(clock=clock, audit_recorder=audit_recorder)
    reporting_service = ReportingService(clock)
    app.state.database = database
    app.state.ledger_service = ledger_service
    app.state.reporting_service = reporting_service
    app.state.inventory_service = InventoryService(
        mutation_engine=ledger_service.mutation_engine,
        reporting_service=reporting_service,
        clock=clock,
    )

    #init exception handlers
    init_exception_handlers(app)
    app.include_router(inventories.router, prefix="/inventories", tags=["Inventory"])
    app.include_router(inventory_transactions.router, prefix="/inventory-transactions", tags=["Inventory Transactions"])

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "database": database.started}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("inventory_ledger.main:app", host=settings.host, port=settings.port)
