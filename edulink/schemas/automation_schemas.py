# edulink/schemas/automation_schemas.py
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Request bodies accept both snake_case and the camelCase used by the admin tooling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


# Requests

class WorkflowExecuteRequest(RequestModel):
    workflow_type: str = Field(..., min_length=1)
    trigger_data: Dict[str, Any]
    created_by: Optional[str] = None


class InferRelationshipsRequest(RequestModel):
    entity_type: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class LinkingRequest(RequestModel):
    source_type: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    target_type: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class ApplyRelationshipRequest(RequestModel):
    suggestion_id: str = Field(..., min_length=1)


class SuggestionUpdateRequest(RequestModel):
    accepted: bool
    applied_data: Optional[Dict[str, Any]] = None


class BulkOperationCreate(RequestModel):
    operation_type: str = Field(..., min_length=1, max_length=50)
    entity_type: str = Field(..., min_length=1, max_length=20)
    total_records: int = Field(..., ge=1)
    operation_data: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None


class BulkOperationUpdate(RequestModel):
    status: str = Field(..., min_length=1)
    successful_records: Optional[int] = Field(default=None, ge=0)
    failed_records: Optional[int] = Field(default=None, ge=0)
    result_data: Optional[Dict[str, Any]] = None


# Matching

class MatchResult(BaseModel):
    """One candidate proposed by a matching strategy."""
    target_id: str
    target_type: str
    strategy: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    data: Dict[str, Any] = Field(default_factory=dict)


class LinkingAnalysis(BaseModel):
    source_type: str
    source_id: str
    target_type: str
    strategies: List[str] = Field(default_factory=list)
    suggestions: List[MatchResult] = Field(default_factory=list)
    reasoning: List[str] = Field(default_factory=list)
    confidence_factors: Dict[str, float] = Field(default_factory=dict)
    confidence_score: float = 0.0
    suggestion_ids: List[str] = Field(default_factory=list)


# Responses

class SuggestionOut(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    target_entity_type: Optional[str] = None
    suggestion_type: str
    suggestion_data: Dict[str, Any]
    confidence_score: float
    accepted: bool
    applied_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WorkflowExecutionOut(BaseModel):
    id: str
    workflow_type: str
    trigger_data: Dict[str, Any]
    execution_status: str
    steps_completed: List[str]
    result_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_by: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BulkOperationOut(BaseModel):
    id: str
    operation_type: str
    entity_type: str
    status: str
    total_records: int
    successful_records: int
    failed_records: int
    operation_data: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
