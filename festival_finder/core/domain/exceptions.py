"""Base domain exceptions.

All domain errors inherit from DomainException and carry an ``error_code``
class attribute that the rendering collaborator can switch on.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "A domain error occurred"):
        self.message = message
        super().__init__(self.message)


class EntityNotFoundError(DomainException):
    """Raised when an entity is not found."""

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str | None = None):
        message = f"{entity_type} not found"
        if entity_id:
            message = f"{entity_type} with id '{entity_id}' not found"
        super().__init__(message)


class ValidationError(DomainException):
    """Raised when validation fails."""

    error_code = "VALIDATION_ERROR"
