from fastapi import Request

from wallet_ledger.core.exceptions import UnauthorizedError
from wallet_ledger.schemas.auth import UserResponse
from wallet_ledger.services import Services
from wallet_ledger.services.accounts import AccountDirectory
from wallet_ledger.services.sessions import SessionAuthority
from wallet_ledger.services.wallet import WalletEngine


async def get_current_user(request: Request) -> UserResponse:
    """
    Get current authenticated user from request state.

    UserInjectionMiddleware has already validated the bearer token and loaded
    the user. This dependency simply retrieves it.

    Raises:
        UnauthorizedError: no valid token on the request
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise UnauthorizedError()
    return user


async def get_current_token(request: Request) -> str:
    """The validated bearer token, for logout."""
    await get_current_user(request)
    return request.state.token


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_accounts(request: Request) -> AccountDirectory:
    return get_services(request).accounts


def get_wallet_engine(request: Request) -> WalletEngine:
    return get_services(request).wallets


def get_session_authority(request: Request) -> SessionAuthority:
    return get_services(request).sessions
