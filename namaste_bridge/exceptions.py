"""
Error taxonomy for terminology resolution and bundle handling.

- ValidationError: malformed or incomplete input, names the offending field
- NotFound: lookup miss
- ConflictError: a Bundle with the same id is already stored
- IntegrityError: the builder produced a Bundle with a dangling reference;
  this is a defect, never a user error

An unresolved NAMASTE code is not an error, see terminology.models.Unmapped.
"""
from typing import Optional


class TerminologyServiceError(Exception):
    """Base class for all domain errors."""
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TerminologyServiceError):
    """Input failed validation."""
    
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
    
    def to_dict(self) -> dict:
        return {"error": "validation_error", "field": self.field, "message": self.message}


class NotFound(TerminologyServiceError):
    """Requested code or bundle does not exist."""


class ConflictError(TerminologyServiceError):
    """A bundle with this id has already been stored."""
    
    def __init__(self, bundle_id: str):
        super().__init__(f"Bundle '{bundle_id}' already exists")
        self.bundle_id = bundle_id


class IntegrityError(TerminologyServiceError):
    """A built Bundle violates internal referential integrity."""
