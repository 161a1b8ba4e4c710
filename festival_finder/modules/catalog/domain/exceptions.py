"""Catalog domain exceptions."""

from festival_finder.core.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    ValidationError,
)


class DataLoadError(DomainException):
    """Raised when the data collaborator fails or returns unusable data."""

    error_code = "DATA_LOAD_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("Could not load festivals. Please try again.")


class InvalidFestivalRecordError(ValidationError):
    """Raised when a raw record cannot be turned into a Festival."""

    def __init__(self, reason: str, record_id: str | None = None):
        self.reason = reason
        self.record_id = record_id
        super().__init__(f"Invalid festival record: {reason}")


class FestivalNotFoundError(EntityNotFoundError):
    """Raised when a festival is not in the loaded catalog."""

    def __init__(self, festival_id: str):
        super().__init__("Festival", festival_id)
