"""Domain error types.

Every error carries a stable machine-checkable ``code`` alongside its human
``message``; the API layer maps each class to an HTTP status.
"""
from typing import Optional


class DomainError(Exception):
    """Base domain error."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource not found."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Malformed or missing input."""

    code = "VALIDATION"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class AuthorizationError(DomainError):
    """Caller is not a party to the resource or lacks the required role."""

    code = "ACCESS_DENIED"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class AgeVerificationError(AuthorizationError):
    """Seeker must be age verified before booking."""

    code = "AGE_NOT_VERIFIED"

    def __init__(self, message: str = "Age verification required"):
        super().__init__(message)


class ConflictError(DomainError):
    """Resource conflict error."""

    code = "CONFLICT"

    def __init__(self, message: str):
        super().__init__(message)


class InvalidTransitionError(DomainError):
    """Requested booking status is not reachable from the current one."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot change booking status from {current} to {target}")


class MessagingNotAllowedError(DomainError):
    """Booking status does not accept new chat messages."""

    code = "MESSAGING_NOT_ALLOWED"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Messaging is not allowed for bookings in status {status}")


class InsufficientFundsError(DomainError):
    """Wallet balance (or escrow) does not cover the requested amount."""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, message: str = "Insufficient funds", code: Optional[str] = None):
        super().__init__(message, code=code)


class MissingVariablesError(DomainError):
    """Template rendered without values for some of its placeholders."""

    code = "MISSING_VARIABLES"

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing template variables: {', '.join(self.missing)}")


class ServerError(DomainError):
    """Database failure: contention that survived the retry, or any other driver error."""

    code = "SERVER_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
