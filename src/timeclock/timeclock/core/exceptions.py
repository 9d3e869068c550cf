class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ConflictError(DomainError):
    """Raised when an interval overlaps or duplicates an existing session."""


class NotFoundError(DomainError):
    """Raised for unknown ids and for ids that belong to another tenant."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class InvalidStateError(DomainError):
    """Raised when an operation is illegal for the current state."""


class AuthenticationError(DomainError):
    """Raised when the request carries no usable caller identity."""
