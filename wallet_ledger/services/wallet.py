"""
Wallet Engine: the ledger core.

Every balance change follows the same protocol inside one store transaction:
lock the wallet row(s), read the balance, validate, write the new balance,
append the transaction row(s), commit. Any failure rolls the whole unit back,
so no partial balance update is ever visible.

Concurrency is coordinated only through row locks in the store. Operations
that touch two wallets lock them in ascending wallet-id order, so opposite
transfers between the same pair cannot deadlock.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.core.exceptions import (
    InsufficientBalanceError,
    InternalError,
    InvalidAmountError,
    InvalidPaginationError,
    NotFoundError,
    SelfTransferNotAllowedError,
)
from wallet_ledger.core.logging import ledger_logger
from wallet_ledger.core.money import MAX_MINOR_UNITS, from_minor_units, to_minor_units
from wallet_ledger.database import Database
from wallet_ledger.models import ReferenceType, Transaction, TransactionType, Wallet
from wallet_ledger.schemas.auth import UserResponse
from wallet_ledger.schemas.wallet import LedgerAudit, TransactionResponse, WalletResponse

MAX_PAGE_SIZE = 100


class UserLookup(Protocol):
    """What the engine needs from the account directory."""

    async def find_by_email(
        self, email: str, session: AsyncSession | None = None
    ) -> UserResponse | None: ...


@dataclass(frozen=True)
class TransferResult:
    sender_transaction: TransactionResponse
    recipient_transaction: TransactionResponse


class WalletEngine:
    def __init__(self, database: Database, accounts: UserLookup):
        self.database = database
        self.accounts = accounts

    @staticmethod
    async def create_wallet(session: AsyncSession, user_id: int) -> Wallet:
        """
        Insert a zero-balance wallet inside the caller's atomic unit.

        Must share the unit that inserts the user, so a user without a wallet
        is never committed.

        Raises:
            InternalError: the insert did not produce a row
        """
        wallet = Wallet(user_id=user_id, balance=0)
        session.add(wallet)
        await session.flush()
        if wallet.id is None:
            raise InternalError()
        return wallet

    async def get_wallet(self, user_id: int) -> WalletResponse:
        async with self.database.atomic() as session:
            wallet = await self._wallet_for_user(session, user_id)
            return WalletResponse.from_row(wallet)

    async def get_balance(self, user_id: int) -> Decimal:
        """
        Current balance of the user's wallet.

        Raises:
            NotFoundError: user has no wallet
        """
        async with self.database.atomic() as session:
            wallet = await self._wallet_for_user(session, user_id)
            return from_minor_units(wallet.balance)

    async def fund(
        self, user_id: int, amount: Decimal, description: str | None = None
    ) -> TransactionResponse:
        """
        Credit the user's wallet.

        Raises:
            InvalidAmountError: amount <= 0, more than 2 decimals, or the
                resulting balance would not fit the balance column
            NotFoundError: user has no wallet
        """
        amount_minor = to_minor_units(amount)

        async with self.database.atomic() as session:
            wallet_id = await self._wallet_id_for_user(session, user_id)
            wallet = (await self._lock_wallets(session, [wallet_id]))[wallet_id]
            transaction = await self._post(
                session,
                wallet,
                TransactionType.CREDIT,
                amount_minor,
                description or "Wallet funding",
                ReferenceType.FUNDING,
            )
            response = TransactionResponse.from_row(transaction)

        ledger_logger.info(
            f"Funded wallet {response.wallet_id}: +{response.amount} "
            f"(balance {response.balance_before} -> {response.balance_after})"
        )
        return response

    async def withdraw(
        self, user_id: int, amount: Decimal, description: str | None = None
    ) -> TransactionResponse:
        """
        Debit the user's wallet.

        Raises:
            InvalidAmountError: amount <= 0 or more than 2 decimals
            NotFoundError: user has no wallet
            InsufficientBalanceError: locked balance is below the amount
        """
        amount_minor = to_minor_units(amount)

        async with self.database.atomic() as session:
            wallet_id = await self._wallet_id_for_user(session, user_id)
            wallet = (await self._lock_wallets(session, [wallet_id]))[wallet_id]
            transaction = await self._post(
                session,
                wallet,
                TransactionType.DEBIT,
                amount_minor,
                description or "Wallet withdrawal",
                ReferenceType.WITHDRAWAL,
            )
            response = TransactionResponse.from_row(transaction)

        ledger_logger.info(
            f"Withdrew from wallet {response.wallet_id}: -{response.amount} "
            f"(balance {response.balance_before} -> {response.balance_after})"
        )
        return response

    async def transfer(
        self,
        sender_id: int,
        recipient_email: str,
        amount: Decimal,
        description: str | None = None,
    ) -> TransferResult:
        """
        Move money from the sender's wallet to the wallet of the user who owns
        ``recipient_email``.

        Both rows are locked in ascending wallet-id order. The debit leg is
        written first and the credit leg second; each carries the other's id
        in ``reference_id``.

        Raises:
            InvalidAmountError: amount <= 0 or more than 2 decimals
            NotFoundError: recipient email unknown, or either wallet missing
            SelfTransferNotAllowedError: recipient resolves to the sender
            InsufficientBalanceError: sender's locked balance is short
        """
        amount_minor = to_minor_units(amount)

        async with self.database.atomic() as session:
            recipient = await self.accounts.find_by_email(recipient_email, session=session)
            if recipient is None:
                raise NotFoundError("Recipient not found")
            if recipient.id == sender_id:
                raise SelfTransferNotAllowedError()

            rows = await session.execute(
                select(Wallet.user_id, Wallet.id).where(
                    Wallet.user_id.in_([sender_id, recipient.id])
                )
            )
            wallet_ids = {user_id: wallet_id for user_id, wallet_id in rows.all()}
            if sender_id not in wallet_ids:
                raise NotFoundError("Wallet not found")
            if recipient.id not in wallet_ids:
                raise NotFoundError("Recipient wallet not found")

            locked = await self._lock_wallets(session, wallet_ids.values())
            sender_wallet = locked[wallet_ids[sender_id]]
            recipient_wallet = locked[wallet_ids[recipient.id]]

            transfer_description = description or f"Transfer to {recipient.email}"
            debit = await self._post(
                session,
                sender_wallet,
                TransactionType.DEBIT,
                amount_minor,
                transfer_description,
                ReferenceType.TRANSFER,
            )
            credit = await self._post(
                session,
                recipient_wallet,
                TransactionType.CREDIT,
                amount_minor,
                description or "Transfer received",
                ReferenceType.TRANSFER,
                reference_id=debit.id,
            )
            debit.reference_id = credit.id
            await session.flush()

            result = TransferResult(
                sender_transaction=TransactionResponse.from_row(debit),
                recipient_transaction=TransactionResponse.from_row(credit),
            )

        ledger_logger.info(
            f"Transferred {result.sender_transaction.amount} from wallet "
            f"{sender_wallet.id} to wallet {recipient_wallet.id} "
            f"(transactions {debit.id}/{credit.id})"
        )
        return result

    async def get_transaction_history(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[TransactionResponse]:
        """
        One page of the user's transactions, newest first.

        Raises:
            InvalidPaginationError: limit outside 1..100 or negative offset
            NotFoundError: user has no wallet
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidPaginationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise InvalidPaginationError("offset must be 0 or greater")

        async with self.database.atomic() as session:
            wallet_id = await self._wallet_id_for_user(session, user_id)
            result = await session.execute(
                select(Transaction)
                .where(Transaction.wallet_id == wallet_id)
                .order_by(Transaction.created_at.desc(), Transaction.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return [TransactionResponse.from_row(row) for row in result.scalars().all()]

    async def get_transaction_count(self, user_id: int) -> int:
        async with self.database.atomic() as session:
            wallet_id = await self._wallet_id_for_user(session, user_id)
            result = await session.execute(
                select(func.count()).select_from(Transaction).where(
                    Transaction.wallet_id == wallet_id
                )
            )
            return result.scalar_one()

    async def audit(self, user_id: int) -> LedgerAudit:
        """
        Reconcile the wallet against its log.

        The wallet row is locked so the balance and the log are read at the
        same point in time. Rows are chained in id order: ids are assigned
        while the wallet lock is held, so they follow the order of the changes.
        """
        async with self.database.atomic() as session:
            wallet_id = await self._wallet_id_for_user(session, user_id)
            wallet = (await self._lock_wallets(session, [wallet_id]))[wallet_id]
            result = await session.execute(
                select(Transaction)
                .where(Transaction.wallet_id == wallet_id)
                .order_by(Transaction.id)
            )
            rows = result.scalars().all()

        credits = sum(row.amount for row in rows if row.type == TransactionType.CREDIT)
        debits = sum(row.amount for row in rows if row.type == TransactionType.DEBIT)

        chain_intact = True
        expected_before = 0
        for row in rows:
            sign = 1 if row.type == TransactionType.CREDIT else -1
            if row.balance_before != expected_before:
                chain_intact = False
            if row.balance_after != row.balance_before + sign * row.amount:
                chain_intact = False
            expected_before = row.balance_after
        if expected_before != wallet.balance:
            chain_intact = False

        return LedgerAudit(
            wallet_id=wallet.id,
            balance=from_minor_units(wallet.balance),
            total_credits=from_minor_units(credits),
            total_debits=from_minor_units(debits),
            transaction_count=len(rows),
            balanced=wallet.balance == credits - debits,
            chain_intact=chain_intact,
        )

    async def _wallet_for_user(self, session: AsyncSession, user_id: int) -> Wallet:
        result = await session.execute(select(Wallet).where(Wallet.user_id == user_id))
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NotFoundError("Wallet not found")
        return wallet

    async def _wallet_id_for_user(self, session: AsyncSession, user_id: int) -> int:
        # Wallet ids never change, so reading one without a lock is safe
        result = await session.execute(select(Wallet.id).where(Wallet.user_id == user_id))
        wallet_id = result.scalar_one_or_none()
        if wallet_id is None:
            raise NotFoundError("Wallet not found")
        return wallet_id

    async def _lock_wallets(
        self, session: AsyncSession, wallet_ids: Iterable[int]
    ) -> dict[int, Wallet]:
        """
        Lock wallet rows one at a time in ascending id order.

        ``populate_existing`` forces the balance to come from the locked read,
        never from an object already in the session.
        """
        locked = {}
        for wallet_id in sorted(set(wallet_ids)):
            result = await session.execute(
                select(Wallet)
                .where(Wallet.id == wallet_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            locked[wallet_id] = result.scalar_one()
        return locked

    async def _post(
        self,
        session: AsyncSession,
        wallet: Wallet,
        kind: TransactionType,
        amount_minor: int,
        description: str,
        reference_type: ReferenceType,
        reference_id: int | None = None,
    ) -> Transaction:
        """Apply one leg to a locked wallet and append its transaction row."""
        balance_before = wallet.balance
        if kind == TransactionType.CREDIT:
            balance_after = balance_before + amount_minor
            if balance_after > MAX_MINOR_UNITS:
                raise InvalidAmountError("Resulting balance exceeds the maximum wallet balance")
        else:
            if balance_before < amount_minor:
                raise InsufficientBalanceError()
            balance_after = balance_before - amount_minor

        wallet.balance = balance_after
        transaction = Transaction(
            wallet_id=wallet.id,
            type=kind,
            amount=amount_minor,
            description=description,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        session.add(transaction)
        await session.flush()
        return transaction
