from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application error."""

    code: str = "app_error"
    retryable: bool = False

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class ForbiddenError(AppError):
    code = "forbidden"


class ConflictError(AppError):
    code = "conflict"


class ValidationError(AppError):
    code = "invalid"


class AuthenticationError(AppError):
    """Token missing, invalid or expired. The session must re-authenticate."""

    code = "unauthenticated"


class TransportError(AppError):
    """Network drop, refused connection or unanswered request."""

    code = "transport_error"
    retryable = True


class ConnectTimeoutError(TransportError):
    code = "connect_timeout"


class NotConnectedError(TransportError):
    code = "not_connected"


class ConnectInProgressError(ConflictError):
    code = "connect_in_progress"


class InsufficientBalanceError(AppError):
    """Balance below the unlock price. Route to top-up, never retry."""

    code = "insufficient_balance"

    def __init__(self, detail: str = "", *, balance: int | None = None, cost: int | None = None) -> None:
        self.balance = balance
        self.cost = cost
        super().__init__(detail or "Insufficient credits")


class UnlockInconsistentError(AppError):
    """Debit and grant disagree. Reported, and the whole unlock may be retried."""

    code = "unlock_inconsistent"
    retryable = True


class AccessDeniedError(ForbiddenError):
    code = "access_denied"

    def __init__(self, detail: str = "", *, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(detail or "Messaging is locked for this account")


class SendFailedError(AppError):
    """A single message was not acknowledged. Retry is user-initiated."""

    code = "send_failed"
    retryable = True

    def __init__(self, detail: str = "", *, message: Any = None, reason_code: str | None = None) -> None:
        self.message = message
        self.reason_code = reason_code
        super().__init__(detail or "Message was not delivered")
