from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from wallet_ledger.database import Base
from wallet_ledger.models._time import utcnow


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    balance = Column(BigInteger, nullable=False, default=0)  # Stored as cents
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="wallet")
    transactions = relationship("Transaction", back_populates="wallet", passive_deletes=True)
