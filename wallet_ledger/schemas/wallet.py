from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from wallet_ledger.core.money import from_minor_units
from wallet_ledger.models import ReferenceType, Transaction, TransactionType, Wallet


class FundRequest(BaseModel):
    """Schema for funding or withdrawing; amount is checked by the wallet engine."""

    amount: Decimal
    description: str | None = Field(default=None, max_length=500)

    @field_validator("description")
    def strip_description(cls, v):
        if v is None:
            return v
        return v.strip() or None


class WithdrawRequest(FundRequest):
    pass


class TransferRequest(FundRequest):
    recipient_email: str

    @field_validator("recipient_email")
    def normalize_email(cls, v):
        return v.lower().strip()


class WalletResponse(BaseModel):
    id: int
    user_id: int
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            id=wallet.id,
            user_id=wallet.user_id,
            balance=from_minor_units(wallet.balance),
            created_at=wallet.created_at,
            updated_at=wallet.updated_at,
        )


class BalanceResponse(BaseModel):
    balance: Decimal


class TransactionResponse(BaseModel):
    """A ledger row with amounts converted from cents to 2-digit Decimals."""

    id: int
    wallet_id: int
    type: TransactionType
    amount: Decimal
    description: str | None
    balance_before: Decimal
    balance_after: Decimal
    reference_id: int | None
    reference_type: ReferenceType | None
    created_at: datetime

    @classmethod
    def from_row(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            wallet_id=transaction.wallet_id,
            type=transaction.type,
            amount=from_minor_units(transaction.amount),
            description=transaction.description,
            balance_before=from_minor_units(transaction.balance_before),
            balance_after=from_minor_units(transaction.balance_after),
            reference_id=transaction.reference_id,
            reference_type=transaction.reference_type,
            created_at=transaction.created_at,
        )


class TransferResponse(BaseModel):
    sender_transaction: TransactionResponse
    recipient_transaction: TransactionResponse


class TransactionListResponse(BaseModel):
    """Paginated list of transactions."""

    items: list[TransactionResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class LedgerAudit(BaseModel):
    """Result of reconciling a wallet's balance against its transaction log."""

    wallet_id: int
    balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    transaction_count: int
    balanced: bool  # balance == credits - debits
    chain_intact: bool  # every row's before/after links to its neighbours
