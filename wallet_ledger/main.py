import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from wallet_ledger.api.endpoints import auth, users, wallet
from wallet_ledger.config import settings
from wallet_ledger.core.exceptions import LedgerError
from wallet_ledger.core.middleware import (
    RequestLoggingMiddleware,
    UserInjectionMiddleware,
    ledger_error_response,
)
from wallet_ledger.database import Database
from wallet_ledger.services import build_services
from wallet_ledger.services.maintenance import token_sweep_loop
from wallet_ledger.services.onboarding import OnboardingGuard


@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    if settings.DB_CREATE_TABLES:
        await database.create_all()

    sweeper = None
    if settings.TOKEN_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(
            token_sweep_loop(app.state.services.sessions, settings.TOKEN_SWEEP_INTERVAL_SECONDS)
        )

    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await database.dispose()


def create_app(
    database: Database | None = None,
    onboarding_guard: OnboardingGuard | None = None,
) -> FastAPI:
    """
    Build the API around one Database.

    Tests pass their own Database and a stub onboarding guard; in production
    both come from settings.
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.database = database or Database(settings.DATABASE_URL)
    app.state.services = build_services(app.state.database, onboarding_guard)

    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, exc: LedgerError):
        return ledger_error_response(exc)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging is outermost; it reads the injected user once the response is back
    app.add_middleware(UserInjectionMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(wallet.router, prefix="/wallet", tags=["wallet"])

    @app.get("/")
    async def root():
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
