from typing import Optional
from pydantic import BaseModel

class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None


class CrmError(Exception):
    """Base class for errors raised by the customer/custom-field services."""
    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CrmError):
    """Malformed field definition, customer attribute or custom value."""
    code = "validation_error"


class NotFoundError(CrmError):
    """Referenced field definition or customer does not exist."""
    code = "not_found"

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} with id {resource_id} not found")


class ConflictError(CrmError):
    """A field-definition change could not get exclusive access in time."""
    code = "conflict"


class StorageError(CrmError):
    """The database operation failed."""
    code = "storage_error"
