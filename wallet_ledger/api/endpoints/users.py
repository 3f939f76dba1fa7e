from fastapi import APIRouter, Depends, Response, status

from wallet_ledger.core.dependencies import get_accounts, get_current_user
from wallet_ledger.schemas.auth import (
    UserProfileResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from wallet_ledger.services.accounts import AccountDirectory

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    accounts: AccountDirectory = Depends(get_accounts),
):
    """
    Register a new user and open an empty wallet.

    The applicant is screened against the blacklist service first; if the
    screening rejects or cannot complete, nothing is created (403).
    """
    return await accounts.create(user_data)


@router.get("/me", response_model=UserProfileResponse)
async def get_profile(
    current_user: UserResponse = Depends(get_current_user),
    accounts: AccountDirectory = Depends(get_accounts),
):
    return await accounts.get_profile(current_user.id)


@router.put("/me", response_model=UserResponse)
async def update_profile(
    changes: UserUpdate,
    current_user: UserResponse = Depends(get_current_user),
    accounts: AccountDirectory = Depends(get_accounts),
):
    """Update first name, last name and/or phone number."""
    return await accounts.update(current_user.id, changes)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    current_user: UserResponse = Depends(get_current_user),
    accounts: AccountDirectory = Depends(get_accounts),
):
    """Delete the account together with its wallet, history and tokens."""
    await accounts.delete(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
