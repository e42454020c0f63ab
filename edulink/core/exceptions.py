# edulink/core/exceptions.py
"""Custom exceptions for the EduLink automation services."""
from typing import Optional


class AutomationError(Exception):
    """Base exception for relationship and workflow automation"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AutomationError):
    """Entity, suggestion or workflow not found"""
    def __init__(self, resource: str, id: Optional[str] = None):
        message = f"{resource} not found"
        if id:
            message += f": {id}"
        super().__init__(message, 404)


class ValidationError(AutomationError):
    """Missing or invalid request data"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, 400)


class UnknownTypeError(AutomationError):
    """Unrecognized workflow, relationship, entity or suggestion type"""
    kind = "type"

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown {self.kind}: {value}", 400)


class UnknownEntityTypeError(UnknownTypeError):
    kind = "entity type"


class UnknownRelationshipTypeError(UnknownTypeError):
    kind = "relationship type"


class UnknownWorkflowTypeError(UnknownTypeError):
    kind = "workflow type"


class UnknownSuggestionTypeError(UnknownTypeError):
    kind = "suggestion type"


class DatabaseError(AutomationError):
    """Opaque pass-through from the storage layer"""
    def __init__(self, message: str):
        super().__init__(message, 500)
