from dataclasses import dataclass

from wallet_ledger.config import settings
from wallet_ledger.database import Database
from wallet_ledger.services.accounts import AccountDirectory
from wallet_ledger.services.onboarding import OnboardingGuard
from wallet_ledger.services.sessions import SessionAuthority
from wallet_ledger.services.wallet import WalletEngine


@dataclass
class Services:
    accounts: AccountDirectory
    wallets: WalletEngine
    sessions: SessionAuthority


def build_services(
    database: Database,
    onboarding_guard: OnboardingGuard | None = None,
    token_expiry_hours: int = settings.TOKEN_EXPIRY_HOURS,
) -> Services:
    """Wire the ledger services around one Database."""
    accounts = AccountDirectory(database, onboarding_guard or OnboardingGuard())
    wallets = WalletEngine(database, accounts)
    sessions = SessionAuthority(database, accounts, token_expiry_hours=token_expiry_hours)
    return Services(accounts=accounts, wallets=wallets, sessions=sessions)
