"""Account Directory: user identity and profile operations."""
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    OnboardingRejectedError,
)
from wallet_ledger.core.logging import ledger_logger
from wallet_ledger.core.money import from_minor_units
from wallet_ledger.core.security import get_password_hash
from wallet_ledger.database import Database
from wallet_ledger.models import User, Wallet
from wallet_ledger.schemas.auth import (
    UserProfileResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from wallet_ledger.services.onboarding import OnboardingGuard
from wallet_ledger.services.wallet import WalletEngine


class AccountDirectory:
    """
    Reads and writes user rows.

    Lookups return ``UserResponse`` so the password hash never leaves this
    class except through ``get_credentials``, which only the session
    authority uses.
    """

    def __init__(self, database: Database, onboarding_guard: OnboardingGuard):
        self.database = database
        self.onboarding_guard = onboarding_guard

    async def find_by_email(
        self, email: str, session: AsyncSession | None = None
    ) -> UserResponse | None:
        """
        Look up a user by email (case-insensitive).

        Args:
            email: Email address
            session: Run inside the caller's atomic unit instead of a new one
        """
        query = select(User).where(User.email == email.lower().strip())
        if session is not None:
            return _to_response(await _first(session, query))
        async with self.database.atomic() as own_session:
            return _to_response(await _first(own_session, query))

    async def find_by_phone(self, phone_number: str) -> UserResponse | None:
        async with self.database.atomic() as session:
            user = await _first(session, select(User).where(User.phone_number == phone_number))
            return _to_response(user)

    async def find_by_id(self, user_id: int) -> UserResponse | None:
        async with self.database.atomic() as session:
            return _to_response(await session.get(User, user_id))

    async def get_credentials(self, email: str) -> User | None:
        """Full user row, password hash included. Authentication path only."""
        async with self.database.atomic() as session:
            return await _first(session, select(User).where(User.email == email.lower().strip()))

    async def create(self, user_data: UserRegister) -> UserResponse:
        """
        Register a user and open their wallet.

        Uniqueness is checked before anything is written, then the onboarding
        guard is consulted, and only then are the user and a zero-balance
        wallet inserted in one atomic unit.

        Raises:
            ConflictError: email or phone number already registered
            OnboardingRejectedError: blacklisted, or screening could not complete
        """
        email = user_data.email.lower().strip()

        async with self.database.atomic() as session:
            if await _first(session, select(User.id).where(User.email == email)) is not None:
                raise ConflictError("Email already registered")
            phone_taken = await _first(
                session, select(User.id).where(User.phone_number == user_data.phone_number)
            )
            if phone_taken is not None:
                raise ConflictError("Phone number already registered")

        verdict = await self.onboarding_guard.check_admissible(email, user_data.phone_number)
        if not verdict.admissible:
            raise OnboardingRejectedError(verdict.reason or "User is blacklisted")

        password_hash = get_password_hash(user_data.password)

        async with self.database.atomic() as session:
            user = User(
                email=email,
                phone_number=user_data.phone_number,
                password_hash=password_hash,
                first_name=user_data.first_name,
                last_name=user_data.last_name,
            )
            session.add(user)
            try:
                await session.flush()
            except IntegrityError:
                # Lost a race with a concurrent registration
                raise ConflictError("Email or phone number already registered") from None
            if user.id is None:
                raise InternalError()

            await WalletEngine.create_wallet(session, user.id)
            response = UserResponse.model_validate(user)

        ledger_logger.info(f"User {response.id} registered with a new wallet")
        return response

    async def get_profile(self, user_id: int) -> UserProfileResponse:
        async with self.database.atomic() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            balance = await _first(session, select(Wallet.balance).where(Wallet.user_id == user_id))
            return UserProfileResponse(
                **UserResponse.model_validate(user).model_dump(),
                balance=from_minor_units(balance or 0),
            )

    async def update(self, user_id: int, changes: UserUpdate) -> UserResponse:
        """
        Apply a partial profile update.

        Raises:
            NotFoundError: no such user
            ConflictError: the new phone number belongs to another user
        """
        values = changes.model_dump(exclude_unset=True, exclude_none=True)

        async with self.database.atomic() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")

            phone_number = values.get("phone_number")
            if phone_number and phone_number != user.phone_number:
                taken = await _first(
                    session,
                    select(User.id).where(User.phone_number == phone_number, User.id != user_id),
                )
                if taken is not None:
                    raise ConflictError("Phone number already in use")

            for field, value in values.items():
                setattr(user, field, value)
            try:
                await session.flush()
            except IntegrityError:
                raise ConflictError("Phone number already in use") from None
            await session.refresh(user)
            return UserResponse.model_validate(user)

    async def delete(self, user_id: int) -> None:
        """Delete a user; the store cascades to wallet, transactions and tokens."""
        async with self.database.atomic() as session:
            result = await session.execute(delete(User).where(User.id == user_id))
            if result.rowcount == 0:
                raise NotFoundError("User not found")
        ledger_logger.info(f"User {user_id} deleted")


async def _first(session: AsyncSession, query):
    result = await session.execute(query)
    return result.scalars().first()


def _to_response(user: User | None) -> UserResponse | None:
    if user is None:
        return None
    return UserResponse.model_validate(user)
