from fastapi import APIRouter, Depends

from wallet_ledger.core.dependencies import (
    get_current_token,
    get_current_user,
    get_session_authority,
)
from wallet_ledger.schemas.auth import LoginResponse, UserLogin, UserResponse
from wallet_ledger.services.sessions import SessionAuthority

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: UserLogin,
    sessions: SessionAuthority = Depends(get_session_authority),
):
    """Login endpoint. Accepts JSON with email and password, returns a bearer token."""
    result = await sessions.login(credentials.email, credentials.password)
    return LoginResponse(token=result.token, expires_at=result.expires_at, user=result.user)


@router.post("/logout")
async def logout(
    token: str = Depends(get_current_token),
    sessions: SessionAuthority = Depends(get_session_authority),
):
    """Revoke the token used for this request."""
    await sessions.invalidate(token)
    return {"message": "Logged out successfully"}


@router.post("/logout-all")
async def logout_all(
    current_user: UserResponse = Depends(get_current_user),
    sessions: SessionAuthority = Depends(get_session_authority),
):
    """Revoke every token of the current user (all devices)."""
    revoked = await sessions.invalidate_all(current_user.id)
    return {"message": "Logged out from all devices", "revoked": revoked}


@router.get("/verify", response_model=UserResponse)
async def verify(current_user: UserResponse = Depends(get_current_user)):
    return current_user
