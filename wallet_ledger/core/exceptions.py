"""Typed failures raised by the ledger core.

Each class carries a stable ``code`` that the HTTP layer returns next to the
message, so clients can branch on the failure kind without parsing text.
``status_code`` is the plain HTTP status the API layer responds with.
"""


class LedgerError(Exception):
    """Base class for every failure the ledger core surfaces."""

    code = "ledger_error"
    status_code = 400
    default_message = "Ledger operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(LedgerError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class ConflictError(LedgerError):
    code = "conflict"
    status_code = 409
    default_message = "Resource already exists"


class InvalidAmountError(LedgerError):
    code = "invalid_amount"
    status_code = 400
    default_message = "Amount must be greater than zero"


class InsufficientBalanceError(LedgerError):
    code = "insufficient_balance"
    status_code = 400
    default_message = "Insufficient balance"


class InvalidPaginationError(LedgerError):
    code = "invalid_pagination"
    status_code = 400
    default_message = "Invalid pagination parameters"


class SelfTransferNotAllowedError(LedgerError):
    code = "self_transfer_not_allowed"
    status_code = 400
    default_message = "Cannot transfer to your own wallet"


class UnauthorizedError(LedgerError):
    code = "unauthorized"
    status_code = 401
    default_message = "Could not validate credentials"


class OnboardingRejectedError(LedgerError):
    code = "onboarding_rejected"
    status_code = 403
    default_message = "User cannot be onboarded"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot onboard user: {reason}")


class InternalError(LedgerError):
    """
    Unexpected store failure.

    The message is fixed so raw driver text never reaches untrusted callers;
    the original exception is chained and logged where it is caught.
    """

    code = "internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, retryable: bool = False):
        self.retryable = retryable
        super().__init__()
