import logging

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.models.sequence import NATIVE_SEQUENCES, LedgerSequence

logger = logging.getLogger(__name__)


class SequenceService:
    """Monotonic counters for transaction numbers.

    On databases with native sequences (PostgreSQL) the value comes from
    nextval(), which never blocks a concurrent movement on another item.
    Values are unique and increase in allocation order but may have gaps.

    Elsewhere (SQLite) the counter is a ledger_sequences row incremented with
    a single UPDATE .. RETURNING; the database write lock already serialises
    writers there and a rollback gives the value back. Never computes
    max()+1 over the ledger.
    """

    INVENTORY_TRANSACTION = "inventory_transaction"

    def __init__(self):
        pass

    @staticmethod
    def _native_sequence(db: AsyncSession, name: str):
        if not db.get_bind().dialect.supports_sequences:
            return None
        return NATIVE_SEQUENCES.get(name)

    async def next_value(self, db: AsyncSession, name: str = INVENTORY_TRANSACTION) -> int:
        sequence = self._native_sequence(db, name)
        if sequence is not None:
            value = await db.scalar(select(sequence.next_value()))
            logger.debug(f"sequence={name} value={value} native=true")
            return value

        stmt = (
            update(LedgerSequence)
            .where(LedgerSequence.name == name)
            .values(current_value=LedgerSequence.current_value + 1)
            .returning(LedgerSequence.current_value)
            .execution_options(synchronize_session=False)
        )
        value = (await db.execute(stmt)).scalar_one_or_none()
        if value is not None:
            logger.debug(f"sequence={name} value={value}")
            return value

        # first use: create the counter row, tolerating a concurrent creator
        try:
            async with db.begin_nested():
                db.add(LedgerSequence(name=name, current_value=1))
            logger.info(f"sequence={name} created")
            return 1
        except IntegrityError:
            logger.debug(f"sequence={name} created concurrently, retrying increment")
        value = (await db.execute(stmt)).scalar_one()
        return value

    async def current_value(self, db: AsyncSession, name: str = INVENTORY_TRANSACTION) -> int:
        sequence = self._native_sequence(db, name)
        if sequence is not None:
            result = await db.execute(
                text(f"SELECT CASE WHEN is_called THEN last_value ELSE 0 END FROM {sequence.name}")
            )
            return result.scalar_one()

        result = await db.execute(select(LedgerSequence.current_value).where(LedgerSequence.name == name))
        return result.scalar_one_or_none() or 0
