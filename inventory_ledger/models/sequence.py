# inventory_ledger/models/sequence.py
from sqlalchemy import BigInteger, Column, Sequence, String

from inventory_ledger.models.base import Base


class LedgerSequence(Base):
    """Named monotonic counter for databases without native sequences."""
    __tablename__ = "ledger_sequences"

    name = Column(String(50), primary_key=True)
    current_value = Column(BigInteger, nullable=False, default=0)


# counters created together with the schema
KNOWN_SEQUENCES = ("inventory_transaction",)

# native counterparts, created by create_all only where the dialect supports them.
# nextval() holds no lock until commit; values lost to a rollback leave gaps.
NATIVE_SEQUENCES = {
    "inventory_transaction": Sequence("inventory_transaction_seq", metadata=Base.metadata),
}
