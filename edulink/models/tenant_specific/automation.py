# edulink/models/tenant_specific/automation.py
"""Suggestions, workflow executions and bulk operations recorded by the automation services."""
from sqlalchemy import Column, String, Integer, Float, DateTime, Boolean, JSON, ForeignKey, Text, Index
from ..base import Base
import enum


class EntityType(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    PARENT = "parent"
    CLASS = "class"


class RelationshipType(str, enum.Enum):
    STUDENT_CLASS = "student_class"
    TEACHER_CLASS = "teacher_class"
    PARENT_CHILD = "parent_child"
    CLASS_SUBJECT = "class_subject"
    TEACHER_SUBJECT = "teacher_subject"
    STUDENT_SUBJECT = "student_subject"
    CLASS_TEACHER = "class_teacher"


class SuggestionType(str, enum.Enum):
    RELATIONSHIP_INFERENCE = "relationship_inference"
    INTELLIGENT_LINKING = "intelligent_linking"


class WorkflowType(str, enum.Enum):
    STUDENT_CREATION = "student_creation"
    TEACHER_ASSIGNMENT = "teacher_assignment"
    CLASS_CONFIGURATION = "class_configuration"


class ExecutionStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class BulkOperationStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AutomationSuggestion(Base):
    __tablename__ = "automation_suggestions"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    # Entity the inference was run for
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(36), nullable=False)
    target_entity_type = Column(String(20), nullable=True)

    suggestion_type = Column(String(30), nullable=False)
    suggestion_data = Column(JSON, nullable=False)  # relationship type, source/target ids, strategy, reasoning
    confidence_score = Column(Float, nullable=False, default=0.0)

    # accepted only ever moves false -> true; applied_at is set with it
    accepted = Column(Boolean, default=False, nullable=False)
    applied_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_suggestion_entity', 'tenant_id', 'entity_type', 'entity_id', 'suggestion_type'),
        Index('idx_suggestion_confidence', 'tenant_id', 'accepted', 'confidence_score'),
    )


class WorkflowExecution(Base):
    __tablename__ = "workflow_executions"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    workflow_type = Column(String(30), nullable=False, index=True)
    trigger_data = Column(JSON, nullable=False)
    execution_status = Column(String(20), default=ExecutionStatus.RUNNING.value, nullable=False, index=True)
    steps_completed = Column(JSON, default=list, nullable=False)
    result_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class BulkOperation(Base):
    __tablename__ = "bulk_operations"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    operation_type = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)
    status = Column(String(20), default=BulkOperationStatus.PENDING.value, nullable=False, index=True)

    total_records = Column(Integer, nullable=False)
    successful_records = Column(Integer, default=0, nullable=False)
    failed_records = Column(Integer, default=0, nullable=False)
    operation_data = Column(JSON, nullable=True)

    created_by = Column(String(36), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
