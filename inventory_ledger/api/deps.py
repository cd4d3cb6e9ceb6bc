from fastapi import Request

from inventory_ledger.services.inventory import InventoryService
from inventory_ledger.services.ledger import LedgerService
from inventory_ledger.services.reporting import ReportingService


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


def get_reporting_service(request: Request) -> ReportingService:
    return request.app.state.reporting_service


def get_inventory_service(request: Request) -> InventoryService:
    return request.app.state.inventory_service
