import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "inventory_ledger_tests.log"))
os.environ.setdefault("LEDGER_RETRY_WAIT_SECONDS", "0.01")

from inventory_ledger.db.session import Database
from inventory_ledger.schemas.inventory import ActorSchema, CreateInventoryItemRequest
from inventory_ledger.services.inventory import InventoryService
from inventory_ledger.services.ledger import LedgerService
from inventory_ledger.services.reporting import ReportingService
from inventory_ledger.utils.clock import FixedClock

from helpers import ACTOR, LOCATION_ID, WAREHOUSE_ID


class RecordingAuditRecorder:
    def __init__(self):
        self.events = []

    async def record(self, event_name, payload, actor):
        self.events.append((event_name, payload, actor))

    def names(self):
        return [name for name, _, _ in self.events]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 9, 0, 0))


@pytest.fixture
def audit_recorder() -> RecordingAuditRecorder:
    return RecordingAuditRecorder()


@pytest.fixture
async def database(tmp_path):
    # a file database so concurrent sessions get their own connections
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await db.start()
    yield db
    await db.stop()


@pytest.fixture
async def session(database):
    async with database.session() as db_session:
        yield db_session


@pytest.fixture
def ledger(clock, audit_recorder) -> LedgerService:
    return LedgerService(clock=clock, audit_recorder=audit_recorder)


@pytest.fixture
def reporting(clock) -> ReportingService:
    return ReportingService(clock)


@pytest.fixture
def inventory_service(ledger, reporting, clock) -> InventoryService:
    return InventoryService(mutation_engine=ledger.mutation_engine, reporting_service=reporting, clock=clock)


# A refused operation rolls the session back and expires every loaded item,
# so tests keep `item.id` in a local before expecting a failure. Touching an
# expired attribute afterwards would need a lazy load outside the event loop.
@pytest.fixture
def make_item(session, inventory_service):
    async def _make(sku: str = "SKU-1", **overrides):
        data = {
            "warehouse_id": WAREHOUSE_ID,
            "location_id": LOCATION_ID,
            "sku": sku,
            "product_name": f"Product {sku}",
            "created_by": ACTOR,
        }
        data.update(overrides)
        return await inventory_service.create_item(session, CreateInventoryItemRequest(**data))
    return _make


@pytest.fixture
def actor() -> ActorSchema:
    return ACTOR
