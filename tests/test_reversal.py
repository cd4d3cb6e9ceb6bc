from decimal import Decimal

import pytest

from inventory_ledger.core.exceptions import NotCancellableError
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum
from inventory_ledger.models.transaction import TransactionStatusEnum
from inventory_ledger.services import audit

from helpers import cancel, inbound, outbound


@pytest.mark.anyio
async def test_cancel_outbound_restores_stock_and_marks_row(session, ledger, clock, make_item, audit_recorder):
    item = await make_item()
    await ledger.record_inbound(session, inbound(item.id, 20, 5))
    shipped = await ledger.record_outbound(session, outbound(item.id, 8, notes="Picked from bay 4"))

    clock.advance(60)
    result = await ledger.cancel_transaction(session, shipped.transaction.id, cancel("Customer called back"))

    assert result.item.available_qty == Decimal("20")
    assert result.transaction.status == TransactionStatusEnum.CANCELLED
    assert result.transaction.cancelled_by_name == "Sam Supervisor"
    assert result.transaction.cancelled_at == clock.now()
    assert result.transaction.notes == "Picked from bay 4\nCANCELLED by Sam Supervisor: Customer called back"
    # the snapshot itself is untouched
    assert result.transaction.change_qty == Decimal("-8")
    assert result.transaction.transaction_number == shipped.transaction.transaction_number
    assert audit_recorder.names()[-1] == audit.TRANSACTION_CANCELLED


@pytest.mark.anyio
async def test_cancelling_twice_fails(session, ledger, make_item):
    item = await make_item()
    received = await ledger.record_inbound(session, inbound(item.id, 5, 1))
    await ledger.cancel_transaction(session, received.transaction.id, cancel())

    with pytest.raises(NotCancellableError) as exc_info:
        await ledger.cancel_transaction(session, received.transaction.id, cancel())
    assert exc_info.value.status == "CANCELLED"


@pytest.mark.anyio
async def test_cancel_inbound_already_consumed_is_refused(session, ledger, make_item):
    item = await make_item()
    received = await ledger.record_inbound(session, inbound(item.id, 10, 3))
    await ledger.record_outbound(session, outbound(item.id, 7))

    with pytest.raises(NotCancellableError) as exc_info:
        await ledger.cancel_transaction(session, received.transaction.id, cancel())
    assert "requires 10.0000 available but only 3.0000 remain" in exc_info.value.detail


@pytest.mark.anyio
async def test_cancel_recomputes_last_transaction_cache(session, ledger, make_item):
    item = await make_item()
    first = await ledger.record_inbound(session, inbound(item.id, 10, 3))
    second = await ledger.record_inbound(session, inbound(item.id, 4, 3))
    assert second.item.last_transaction_number == second.transaction.transaction_number

    result = await ledger.cancel_transaction(session, second.transaction.id, cancel())
    assert result.item.last_transaction_number == first.transaction.transaction_number
    assert result.item.last_transaction_quantity == Decimal("10")

    result = await ledger.cancel_transaction(session, first.transaction.id, cancel())
    assert result.item.last_transaction_number is None
    assert result.item.available_qty == Decimal("0")


@pytest.mark.anyio
async def test_cancel_on_archived_item_is_refused(session, ledger, inventory_service, reporting, make_item):
    item_id = (await make_item()).id
    await ledger.record_inbound(session, inbound(item_id, 10, 2))
    shipped = await ledger.record_outbound(session, outbound(item_id, 10))
    await inventory_service.archive_item(session, item_id)

    with pytest.raises(NotCancellableError) as exc_info:
        await ledger.cancel_transaction(session, shipped.transaction.id, cancel())
    assert "is archived" in exc_info.value.detail

    stored = await session.get(InventoryItem, item_id)
    assert stored.status == InventoryStatusEnum.archived
    assert stored.available_qty == Decimal("0")
    row = await reporting.get_transaction(session, shipped.transaction.id)
    assert row.status == TransactionStatusEnum.CONFIRMED
