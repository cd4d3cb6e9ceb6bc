import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from inventory_ledger.core.exceptions import BusinessLogicException, DatabaseException

logger = logging.getLogger(__name__)


async def business_logic_exception_handler(request: Request, exc: BusinessLogicException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__, **exc.extra}
    )


async def database_exception_handler(request: Request, exc: DatabaseException):
    logger.error(f"database error path={request.url.path} status={exc.status_code} detail={exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__}
    )


def init_exception_handlers(app: FastAPI):
    app.add_exception_handler(BusinessLogicException, business_logic_exception_handler)
    app.add_exception_handler(DatabaseException, database_exception_handler)
