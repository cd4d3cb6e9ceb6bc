from decimal import Decimal
from uuid import UUID

from inventory_ledger.schemas.inventory import ActorSchema
from inventory_ledger.schemas.transaction import (
    AdjustmentRequest,
    CancelRequest,
    InboundRequest,
    OutboundRequest,
    PartyInfo,
)

WAREHOUSE_ID = UUID("7b0d5e4e-3c1f-4f9a-9d3a-6a1b2c3d4e5f")
LOCATION_ID = UUID("0f1e2d3c-4b5a-4968-8776-a5b4c3d2e1f0")

ACTOR = ActorSchema(user_id="u-100", user_name="Dana Clerk")


def inbound(inventory_id, quantity, unit_cost=None, **extra) -> InboundRequest:
    data = {
        "inventory_id": inventory_id,
        "quantity": Decimal(str(quantity)),
        "unit_cost": Decimal(str(unit_cost)) if unit_cost is not None else None,
        "reason": "Purchase receipt",
        "party": PartyInfo(type="SUPPLIER", name="Acme Supplies"),
        "created_by": ACTOR,
    }
    data.update(extra)
    return InboundRequest(**data)


def outbound(inventory_id, quantity, **extra) -> OutboundRequest:
    data = {
        "inventory_id": inventory_id,
        "quantity": Decimal(str(quantity)),
        "reason": "Sales order shipment",
        "party": PartyInfo(type="CUSTOMER", name="Globex"),
        "created_by": ACTOR,
    }
    data.update(extra)
    return OutboundRequest(**data)


def adjustment(inventory_id, new_quantity, **extra) -> AdjustmentRequest:
    data = {
        "inventory_id": inventory_id,
        "new_quantity": Decimal(str(new_quantity)),
        "reason": "Cycle count",
        "notes": "Counted by night shift",
        "created_by": ACTOR,
    }
    data.update(extra)
    return AdjustmentRequest(**data)


def cancel(reason="Entered twice") -> CancelRequest:
    return CancelRequest(reason=reason, cancelled_by=ActorSchema(user_id="u-200", user_name="Sam Supervisor"))
