from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from wallet_ledger.database import Base
from wallet_ledger.models._time import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)  # Stored lower-case
    phone_number = Column(String(20), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Deletion cascades in the store (ON DELETE CASCADE), not in the session
    wallet = relationship("Wallet", back_populates="user", uselist=False, passive_deletes=True)
    auth_tokens = relationship("AuthToken", back_populates="user", passive_deletes=True)
