import enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from wallet_ledger.database import Base
from wallet_ledger.models._time import utcnow


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class ReferenceType(str, enum.Enum):
    FUNDING = "funding"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Transaction(Base):
    """Append-only audit row; one per balance change."""

    __tablename__ = "transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(
        Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(
        Enum(TransactionType, name="transaction_type", values_callable=_enum_values),
        nullable=False,
    )
    # Amounts and snapshots stored as cents
    amount = Column(BigInteger, nullable=False)
    description = Column(String(500), nullable=True)
    balance_before = Column(BigInteger, nullable=False)
    balance_after = Column(BigInteger, nullable=False)
    # For transfers: id of the other leg
    reference_id = Column(Integer, nullable=True)
    reference_type = Column(
        Enum(ReferenceType, name="reference_type", values_callable=_enum_values),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    wallet = relationship("Wallet", back_populates="transactions")
