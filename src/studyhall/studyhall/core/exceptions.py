class DomainError(Exception):
    """Base exception for business rule violations."""

    retryable = False


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced student or record does not exist."""


class TenantMismatchError(DomainError):
    """Raised when the target belongs to a different library than the caller."""


class InvalidSequenceError(ValidationError):
    """Raised when a manual attendance entry would break in/out alternation."""


class InvalidPayloadError(ValidationError):
    """Raised when a QR payload cannot be parsed or has the wrong schema."""


class InvalidDateRangeError(ValidationError):
    """Raised when a membership start date is after its end date."""


class OverpaymentError(ValidationError):
    """Raised when amount paid exceeds total fee minus discount."""


class ConcurrencyConflictError(DomainError):
    """Raised when a write could not be serialized against a concurrent one.

    The only transient error kind: callers may retry with backoff.
    """

    retryable = True
