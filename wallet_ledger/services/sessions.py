"""Session Authority: opaque bearer tokens stored in ``auth_tokens``."""
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update

from wallet_ledger.config import settings
from wallet_ledger.core.exceptions import UnauthorizedError
from wallet_ledger.core.logging import ledger_logger
from wallet_ledger.core.security import generate_token, verify_password
from wallet_ledger.database import Database
from wallet_ledger.models import AuthToken, User
from wallet_ledger.models._time import as_utc, utcnow
from wallet_ledger.schemas.auth import UserResponse
from wallet_ledger.services.accounts import AccountDirectory


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: datetime
    user: UserResponse


class SessionAuthority:
    """
    Issues, validates and revokes bearer tokens.

    A user may hold any number of active tokens (one per device). Logout
    clears ``is_active``; rows are only deleted by ``purge_expired``.
    """

    def __init__(
        self,
        database: Database,
        accounts: AccountDirectory,
        token_expiry_hours: int = settings.TOKEN_EXPIRY_HOURS,
    ):
        self.database = database
        self.accounts = accounts
        self.token_expiry = timedelta(hours=token_expiry_hours)

    async def create_token(self, user_id: int) -> IssuedToken:
        token = generate_token()
        expires_at = utcnow() + self.token_expiry

        async with self.database.atomic() as session:
            session.add(AuthToken(user_id=user_id, token=token, expires_at=expires_at))

        return IssuedToken(token=token, expires_at=expires_at)

    async def validate_token(self, token: str) -> UserResponse | None:
        """
        Resolve a token to its user.

        Returns None when the token is unknown, inactive, expired or its user
        no longer exists. An expired token is deactivated on the way out, so
        later calls keep failing even if the clock is moved back.
        """
        if not token:
            return None

        now = utcnow()
        async with self.database.atomic() as session:
            result = await session.execute(
                select(AuthToken).where(AuthToken.token == token, AuthToken.is_active.is_(True))
            )
            auth_token = result.scalar_one_or_none()
            if auth_token is None:
                return None

            if as_utc(auth_token.expires_at) <= now:
                auth_token.is_active = False
                ledger_logger.info(f"Deactivated expired token {auth_token.id}")
                return None

            auth_token.last_used_at = now
            user = await session.get(User, auth_token.user_id)
            if user is None:
                return None
            return UserResponse.model_validate(user)

    async def invalidate(self, token: str) -> None:
        async with self.database.atomic() as session:
            await session.execute(
                update(AuthToken).where(AuthToken.token == token).values(is_active=False)
            )

    async def invalidate_all(self, user_id: int) -> int:
        """Deactivate every token of a user (logout everywhere)."""
        async with self.database.atomic() as session:
            result = await session.execute(
                update(AuthToken)
                .where(AuthToken.user_id == user_id, AuthToken.is_active.is_(True))
                .values(is_active=False)
            )
        ledger_logger.info(f"Invalidated {result.rowcount} token(s) for user {user_id}")
        return result.rowcount

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Check credentials and issue a token.

        Raises:
            UnauthorizedError: unknown email or wrong password (same message)
        """
        user = await self.accounts.get_credentials(email)
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthorizedError("Incorrect email or password")

        issued = await self.create_token(user.id)
        return LoginResult(
            token=issued.token,
            expires_at=issued.expires_at,
            user=UserResponse.model_validate(user),
        )

    async def active_tokens(self, user_id: int) -> list[AuthToken]:
        async with self.database.atomic() as session:
            result = await session.execute(
                select(AuthToken)
                .where(
                    AuthToken.user_id == user_id,
                    AuthToken.is_active.is_(True),
                    AuthToken.expires_at > utcnow(),
                )
                .order_by(AuthToken.created_at.desc())
            )
            return list(result.scalars().all())

    async def purge_expired(self) -> int:
        """Delete tokens past their expiry. Maintenance only, never on a request."""
        async with self.database.atomic() as session:
            result = await session.execute(
                delete(AuthToken).where(AuthToken.expires_at < utcnow())
            )
        return result.rowcount
