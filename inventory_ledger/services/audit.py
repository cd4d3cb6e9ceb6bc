import json
import logging
from typing import Any, Dict, Optional, Protocol

from inventory_ledger.schemas.inventory import ActorSchema

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("inventory_ledger.audit")

INBOUND_RECORDED = "inventory.inbound.recorded"
OUTBOUND_RECORDED = "inventory.outbound.recorded"
ADJUSTMENT_RECORDED = "inventory.adjustment.recorded"
TRANSACTION_CANCELLED = "inventory.transaction.cancelled"
NEGATIVE_STOCK_BLOCKED = "inventory.negative_stock.blocked"


class AuditRecorder(Protocol):
    async def record(self, event_name: str, payload: Dict[str, Any], actor: Optional[ActorSchema]) -> None:
        ...


class LoggingAuditRecorder:
    """Writes one JSON line per event to the inventory_ledger.audit logger."""

    def __init__(self, audit_log: logging.Logger = audit_logger):
        self.audit_log = audit_log

    async def record(self, event_name: str, payload: Dict[str, Any], actor: Optional[ActorSchema]) -> None:
        entry = {
            "event": event_name,
            "actor_id": actor.user_id if actor else None,
            "actor_name": actor.user_name if actor else None,
            "payload": payload,
        }
        self.audit_log.info(json.dumps(entry, default=str, sort_keys=True))


async def record_safely(recorder: AuditRecorder, event_name: str, payload: Dict[str, Any],
                        actor: Optional[ActorSchema]) -> None:
    # the ledger outcome is already decided, a broken recorder must not change it
    try:
        await recorder.record(event_name, payload, actor)
    except Exception:
        logger.exception(f"audit recorder failed event={event_name}")
