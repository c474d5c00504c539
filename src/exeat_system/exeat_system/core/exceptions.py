class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when credentials or a session token are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when an entity is missing or not visible to the caller."""


class ConflictError(DomainError):
    """Raised when a uniqueness rule would be broken (duplicate student id/email)."""


class QuotaExceededError(DomainError):
    """Raised when a student has used up the semester request limit."""
