# edulink/models/__init__.py
"""Import all models here so Alembic and metadata.create_all see every table."""
from .base import Base

# Shared models
from .shared.tenant import Tenant

# Tenant-specific models
from .tenant_specific.student import Student
from .tenant_specific.parent import Parent
from .tenant_specific.teacher import Teacher
from .tenant_specific.class_model import ClassModel
from .tenant_specific.subject import Subject
from .tenant_specific.automation import (
    AutomationSuggestion, WorkflowExecution, BulkOperation,
    EntityType, RelationshipType, SuggestionType, WorkflowType,
    ExecutionStatus, BulkOperationStatus
)

__all__ = [
    "Base",
    "Tenant",
    "Student",
    "Parent",
    "Teacher",
    "ClassModel",
    "Subject",
    "AutomationSuggestion",
    "WorkflowExecution",
    "BulkOperation",
    "EntityType",
    "RelationshipType",
    "SuggestionType",
    "WorkflowType",
    "ExecutionStatus",
    "BulkOperationStatus",
]
