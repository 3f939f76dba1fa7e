from wallet_ledger.database import Base

# Import all models here so Base.metadata knows every table
from wallet_ledger.models.user import User
from wallet_ledger.models.wallet import Wallet
from wallet_ledger.models.transaction import ReferenceType, Transaction, TransactionType
from wallet_ledger.models.auth_token import AuthToken

__all__ = [
    "Base",
    "User",
    "Wallet",
    "Transaction",
    "TransactionType",
    "ReferenceType",
    "AuthToken",
]
