import json
import time
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from wallet_ledger.config import settings
from wallet_ledger.core.exceptions import LedgerError
from wallet_ledger.core.logging import api_logger, app_logger


def ledger_error_response(exc: LedgerError) -> JSONResponse:
    """Render a ledger failure as ``{"detail", "code"}`` with its status."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every API call: method, path, status, client IP, user id, user agent,
    query string and duration. Request bodies are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in settings.LOG_EXCLUDED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        query_params = dict(request.query_params)

        # Proxy headers first, then the socket peer
        client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        if not client_ip:
            client_ip = request.headers.get("X-Real-IP", "")
        if not client_ip and request.client:
            client_ip = request.client.host

        user_agent = request.headers.get("User-Agent", "Unknown")

        try:
            response = await call_next(request)
        except Exception as e:
            api_logger.error(
                f"{request.method} {request.url.path} - Status: 500 - IP: {client_ip} - "
                f"UserID: {self._user_id(request) or 'Anonymous'} - "
                f"Query: {json.dumps(query_params)} - Error: {e!r}"
            )
            raise

        duration_ms = int((time.perf_counter() - started) * 1000)
        api_logger.info(
            f"{request.method} {request.url.path} - Status: {response.status_code} - "
            f"IP: {client_ip} - UserID: {self._user_id(request) or 'Anonymous'} - "
            f"UserAgent: {user_agent} - Query: {json.dumps(query_params)} - "
            f"Duration: {duration_ms}ms"
        )
        return response

    @staticmethod
    def _user_id(request: Request) -> int | None:
        user = getattr(request.state, "user", None)
        return user.id if user else None


class UserInjectionMiddleware(BaseHTTPMiddleware):
    """
    Resolve the bearer token and inject the user into request state.

    - Reads ``Authorization: Bearer <token>``
    - Validates the opaque token through the app's SessionAuthority
    - Stores the user in ``request.state.user`` and the token in
      ``request.state.token``
    - Missing, malformed, expired or revoked tokens leave ``user=None``;
      routes decide whether authentication is required
    - A store failure while validating is returned as a 500 ledger error
    """

    # Paths that never need a user
    PUBLIC_PATHS = {
        "/",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/users/register",
        "/auth/login",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None
        request.state.token = None

        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        scheme, _, token = auth_header.partition(" ")
        token = token.strip()

        if scheme.lower() == "bearer" and token:
            sessions = request.app.state.services.sessions
            try:
                user = await sessions.validate_token(token)
            except LedgerError as e:
                app_logger.error(f"Token validation failed on {request.url.path}: {e.message}")
                return ledger_error_response(e)
            if user is not None:
                request.state.user = user
                request.state.token = token

        return await call_next(request)
