"""Background housekeeping that runs beside the request path."""
import asyncio

from wallet_ledger.core.exceptions import LedgerError
from wallet_ledger.core.logging import app_logger, ledger_logger
from wallet_ledger.services.sessions import SessionAuthority


async def sweep_expired_tokens(authority: SessionAuthority) -> int:
    """Run one purge pass; failures are logged and the next pass retries."""
    try:
        purged = await authority.purge_expired()
    except LedgerError as e:
        app_logger.error(f"Expired token sweep failed: {e.message}")
        return 0
    if purged:
        ledger_logger.info(f"Purged {purged} expired token(s)")
    return purged


async def token_sweep_loop(authority: SessionAuthority, interval_seconds: float) -> None:
    """Purge expired tokens every ``interval_seconds`` until cancelled."""
    while True:
        await sweep_expired_tokens(authority)
        await asyncio.sleep(interval_seconds)
