from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.exceptions import (
    ConcurrentModificationError,
    DuplicateItemError,
    NotFoundError,
    ResourceConflictError,
    ValidationError,
)
from inventory_ledger.models.inventory import InventoryStatusEnum
from inventory_ledger.models.transaction import PartyTypeEnum, TransactionTypeEnum
from inventory_ledger.schemas.inventory import CreateInventoryItemRequest, UpdateInventoryItemRequest
from inventory_ledger.schemas.transaction import TransactionFilters

from helpers import ACTOR, LOCATION_ID, WAREHOUSE_ID, adjustment, inbound


@pytest.mark.anyio
async def test_create_item_defaults(session, make_item):
    item = await make_item(sku="bolt-10")
    assert item.sku == "BOLT-10"
    assert item.currency == "USD"
    assert item.available_qty == Decimal("0")
    assert item.status == InventoryStatusEnum.active
    assert item.last_transaction_number is None


@pytest.mark.anyio
async def test_opening_balance_goes_through_the_ledger(session, make_item, reporting):
    item = await make_item(opening_quantity=Decimal("12"), opening_unit_cost=Decimal("3.5"))
    assert item.available_qty == Decimal("12")
    assert item.average_unit_cost == Decimal("3.5")

    page = await reporting.list_transactions(session, TransactionFilters(inventory_id=item.id))
    assert page.pagination.total_items == 1
    row = page.data[0]
    assert row.type == TransactionTypeEnum.INBOUND
    assert row.party_type == PartyTypeEnum.INTERNAL
    assert row.reason == "Opening balance"

    report = await reporting.replay_item(session, item.id)
    assert report.consistent is True


def test_opening_quantity_needs_a_cost():
    with pytest.raises(SchemaValidationError):
        CreateInventoryItemRequest(
            warehouse_id=WAREHOUSE_ID,
            location_id=LOCATION_ID,
            sku="SKU-9",
            product_name="Widget",
            opening_quantity=Decimal("1"),
            created_by=ACTOR,
        )


@pytest.mark.anyio
async def test_duplicate_slot_is_rejected(session, make_item):
    await make_item(sku="SKU-1")
    with pytest.raises(DuplicateItemError):
        await make_item(sku="sku-1")

    # a different batch is a different slot
    batched = await make_item(sku="SKU-1", batch_number="B-2024-01")
    assert batched.batch_number == "B-2024-01"


@pytest.mark.anyio
async def test_get_item_not_found(session, inventory_service):
    with pytest.raises(NotFoundError):
        await inventory_service.get_item(session, uuid4())


@pytest.mark.anyio
async def test_list_items_filters_by_sku_and_status(session, inventory_service, make_item):
    await make_item(sku="SKU-1")
    second = await make_item(sku="SKU-2")
    await inventory_service.archive_item(session, second.id)

    page = await inventory_service.list_items(session, warehouse_id=WAREHOUSE_ID)
    assert [row.sku for row in page.data] == ["SKU-1", "SKU-2"]

    page = await inventory_service.list_items(session, status=InventoryStatusEnum.active)
    assert [row.sku for row in page.data] == ["SKU-1"]

    page = await inventory_service.list_items(session, sku="sku-2")
    assert page.data[0].status == InventoryStatusEnum.archived


@pytest.mark.anyio
async def test_archive_requires_empty_stock(session, inventory_service, ledger, make_item):
    item_id = (await make_item()).id
    await ledger.record_inbound(session, inbound(item_id, 4, 1))

    with pytest.raises(ValidationError):
        await inventory_service.archive_item(session, item_id)

    await ledger.record_adjustment(session, adjustment(item_id, 0))
    archived = await inventory_service.archive_item(session, item_id)
    assert archived.status == InventoryStatusEnum.archived

    with pytest.raises(ResourceConflictError):
        await inventory_service.archive_item(session, item_id)


@pytest.mark.anyio
async def test_archive_refuses_reserved_stock(session, inventory_service, make_item):
    item = await make_item()
    item.reserved_qty = Decimal("2")
    await session.commit()

    with pytest.raises(ResourceConflictError):
        await inventory_service.archive_item(session, item.id)


def _update(**fields) -> UpdateInventoryItemRequest:
    return UpdateInventoryItemRequest(updated_by=ACTOR, **fields)


@pytest.mark.anyio
async def test_update_item_changes_descriptive_fields(session, inventory_service, make_item):
    item = await make_item()
    version = item.version

    updated = await inventory_service.update_item(
        session, item.id, _update(product_name="Widget, blue", reorder_point=Decimal("5"), status="on_hold")
    )
    assert updated.product_name == "Widget, blue"
    assert updated.reorder_point == Decimal("5")
    assert updated.status == InventoryStatusEnum.on_hold
    assert updated.product_category is None
    assert updated.version == version + 1


def test_update_request_refuses_quantities():
    with pytest.raises(SchemaValidationError):
        UpdateInventoryItemRequest(updated_by=ACTOR, available_qty=Decimal("100"))


@pytest.mark.anyio
async def test_update_item_rejections(session, inventory_service, make_item):
    item_id = (await make_item()).id

    with pytest.raises(ValidationError):
        await inventory_service.update_item(session, item_id, _update())
    with pytest.raises(ValidationError) as exc_info:
        await inventory_service.update_item(session, item_id, _update(product_name=None))
    assert exc_info.value.field == "product_name"
    with pytest.raises(ValidationError):
        await inventory_service.update_item(session, item_id, _update(status="archived"))
    with pytest.raises(NotFoundError):
        await inventory_service.update_item(session, uuid4(), _update(product_name="Ghost"))

    await inventory_service.archive_item(session, item_id)
    with pytest.raises(ResourceConflictError):
        await inventory_service.update_item(session, item_id, _update(product_name="Revived"))


@pytest.mark.anyio
async def test_list_by_sku_spans_warehouses(session, inventory_service, make_item):
    other_warehouse = uuid4()
    await make_item(sku="SKU-1")
    await make_item(sku="SKU-1", batch_number="B-7")
    await make_item(sku="SKU-1", warehouse_id=other_warehouse)
    await make_item(sku="SKU-2")

    rows = await inventory_service.list_by_sku(session, "sku-1")
    assert len(rows) == 3
    assert {row.sku for row in rows} == {"SKU-1"}

    rows = await inventory_service.list_by_sku(session, "SKU-1", warehouse_id=other_warehouse)
    assert [row.warehouse_id for row in rows] == [other_warehouse]

    assert await inventory_service.list_by_sku(session, "NOPE") == []


@pytest.mark.anyio
async def test_low_stock_lists_active_items_at_or_below_reorder_point(session, reporting, inventory_service, make_item):
    await make_item(sku="FULL", opening_quantity=Decimal("50"), opening_unit_cost=Decimal("1"), reorder_point=Decimal("10"))
    await make_item(sku="EDGE", opening_quantity=Decimal("10"), opening_unit_cost=Decimal("1"), reorder_point=Decimal("10"))
    await make_item(sku="EMPTY", reorder_point=Decimal("5"))
    retired = await make_item(sku="RETIRED")
    await inventory_service.archive_item(session, retired.id)

    rows = await reporting.list_low_stock(session)
    assert [row.sku for row in rows] == ["EMPTY", "EDGE"]

    assert await reporting.list_low_stock(session, warehouse_id=uuid4()) == []


@pytest.mark.anyio
async def test_expiring_batches(session, reporting, clock, make_item):
    today = clock.now().date()
    await make_item(sku="OLD", batch_number="B-1", batch_expiry_date=today - timedelta(days=3))
    await make_item(sku="SOON", batch_number="B-2", batch_expiry_date=today + timedelta(days=10))
    await make_item(sku="LATER", batch_number="B-3", batch_expiry_date=today + timedelta(days=90))
    await make_item(sku="NO-BATCH")

    rows = await reporting.list_expiring(session)
    assert [row.sku for row in rows] == ["OLD", "SOON"]

    rows = await reporting.list_expiring(session, days=120)
    assert [row.sku for row in rows] == ["OLD", "SOON", "LATER"]

    with pytest.raises(ValidationError):
        await reporting.list_expiring(session, days=-1)


@pytest.mark.anyio
async def test_archive_retries_a_version_conflict(session, inventory_service, make_item, monkeypatch):
    item_id = (await make_item()).id
    real_commit = session.commit
    calls = {"count": 0}

    async def commit_once_stale():
        calls["count"] += 1
        if calls["count"] == 1:
            raise StaleDataError("inventory_items row changed underneath")
        await real_commit()

    monkeypatch.setattr(session, "commit", commit_once_stale)
    archived = await inventory_service.archive_item(session, item_id)

    assert calls["count"] == 2
    assert archived.status == InventoryStatusEnum.archived


@pytest.mark.anyio
async def test_reindex_conflicts_surface_as_concurrent_modification(session, inventory_service, make_item, monkeypatch):
    item_id = (await make_item()).id
    calls = {"count": 0}

    async def always_stale():
        calls["count"] += 1
        raise StaleDataError("inventory_items row changed underneath")

    monkeypatch.setattr(session, "commit", always_stale)
    with pytest.raises(ConcurrentModificationError):
        await inventory_service.reindex_item(session, item_id)
    assert calls["count"] == 3
