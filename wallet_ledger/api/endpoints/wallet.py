from fastapi import APIRouter, Depends, Query

from wallet_ledger.core.dependencies import get_current_user, get_wallet_engine
from wallet_ledger.schemas.auth import UserResponse
from wallet_ledger.schemas.wallet import (
    BalanceResponse,
    FundRequest,
    LedgerAudit,
    TransactionListResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
    WithdrawRequest,
)
from wallet_ledger.services.wallet import MAX_PAGE_SIZE, WalletEngine

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    return BalanceResponse(balance=await wallets.get_balance(current_user.id))


@router.post("/fund", response_model=TransactionResponse)
async def fund_wallet(
    payload: FundRequest,
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    """
    Add money to the authenticated user's wallet.

    - **amount**: positive, at most 2 decimal places
    - **description**: optional, up to 500 characters
    """
    return await wallets.fund(current_user.id, payload.amount, payload.description)


@router.post("/withdraw", response_model=TransactionResponse)
async def withdraw_funds(
    payload: WithdrawRequest,
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    return await wallets.withdraw(current_user.id, payload.amount, payload.description)


@router.post("/transfer", response_model=TransferResponse)
async def transfer_funds(
    payload: TransferRequest,
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    """
    Send money to another user, identified by email.

    Returns both legs of the transfer; each references the other.
    """
    result = await wallets.transfer(
        current_user.id, payload.recipient_email, payload.amount, payload.description
    )
    return TransferResponse(
        sender_transaction=result.sender_transaction,
        recipient_transaction=result.recipient_transaction,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    offset: int = Query(0, ge=0, description="Rows to skip"),
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    """
    List the authenticated user's transactions, newest first.
    """
    items = await wallets.get_transaction_history(current_user.id, limit, offset)
    total = await wallets.get_transaction_count(current_user.id)

    return TransactionListResponse(
        items=items,
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )


@router.get("/audit", response_model=LedgerAudit)
async def audit_wallet(
    current_user: UserResponse = Depends(get_current_user),
    wallets: WalletEngine = Depends(get_wallet_engine),
):
    """Reconcile the wallet balance against its transaction log."""
    return await wallets.audit(current_user.id)
