# edulink/routers/workflows.py
"""Workflow automation and relationship suggestion endpoints."""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache_decorators import cache_response
from ..core.database import get_db
from ..models.tenant_specific.automation import EntityType, RelationshipType, SuggestionType, WorkflowType
from ..schemas.automation_schemas import (
    ApplyRelationshipRequest, BulkOperationCreate, BulkOperationOut, BulkOperationUpdate,
    InferRelationshipsRequest, LinkingRequest, SuggestionOut, SuggestionUpdateRequest,
    WorkflowExecuteRequest, WorkflowExecutionOut,
)
from ..services.bulk_operation_service import BulkOperationService
from ..services.entity_accessor import parse_entity_type
from ..services.linking_service import LinkingService
from ..services.relationship_service import RelationshipService
from ..services.suggestion_applier import SuggestionApplier
from ..services.suggestion_store import SuggestionStore
from ..services.workflow_service import WorkflowService
from ..utils.cache_invalidation import SUGGESTION_CACHE_PREFIX, invalidate_suggestion_cache
from .deps import get_tenant_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/workflows", tags=["Workflow Automation"])


def _suggestion(suggestion) -> dict:
    return SuggestionOut.model_validate(suggestion).model_dump(mode="json")


def _workflow(execution) -> dict:
    return WorkflowExecutionOut.model_validate(execution).model_dump(mode="json")


def _bulk_operation(operation) -> dict:
    return BulkOperationOut.model_validate(operation).model_dump(mode="json")


# Workflows

@router.post("/execute")
async def execute_workflow(
    request: WorkflowExecuteRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Run one of the fixed automation workflows"""
    service = WorkflowService(db, tenant_id)
    execution = await service.execute_workflow(request.workflow_type, request.trigger_data, request.created_by)
    return {"success": True, "workflow": _workflow(execution)}


@router.get("/types")
async def get_workflow_types():
    return {
        "success": True,
        "workflow_types": [workflow_type.value for workflow_type in WorkflowType],
    }


@router.get("/relationship-types")
async def get_relationship_types():
    return {
        "success": True,
        "relationship_types": [relationship_type.value for relationship_type in RelationshipType],
        "entity_types": [entity_type.value for entity_type in EntityType],
        "suggestion_types": [suggestion_type.value for suggestion_type in SuggestionType],
    }


@router.get("/")
async def get_workflows(
    workflow_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    service = WorkflowService(db, tenant_id)
    executions = await service.get_all_workflows(workflow_type=workflow_type, status=status, limit=limit)
    return {
        "success": True,
        "workflows": [_workflow(execution) for execution in executions],
        "total": len(executions),
    }


@router.get("/{workflow_id}/status")
async def get_workflow_status(
    workflow_id: str,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    service = WorkflowService(db, tenant_id)
    execution = await service.get_workflow_status(workflow_id)
    return {"success": True, "workflow": _workflow(execution)}


# Relationship inference

@router.post("/infer-relationships")
async def infer_relationships(
    request: InferRelationshipsRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Infer and store relationship suggestions for one entity"""
    service = RelationshipService(db, tenant_id)
    relationships = await service.infer_relationships(request.entity_type, request.entity_id, request.context)
    await invalidate_suggestion_cache(tenant_id)
    return {"success": True, "relationships": relationships}


@router.post("/intelligent-linking")
async def intelligent_linking(
    request: LinkingRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Run the linking strategies for a (source, target type) pair and store the results"""
    service = LinkingService(db, tenant_id)
    analysis = await service.analyze_and_store(
        request.source_type, request.source_id, request.target_type, request.context
    )
    await invalidate_suggestion_cache(tenant_id)
    return {"success": True, "analysis": analysis.model_dump(mode="json")}


@router.get("/relationship-suggestions")
@cache_response(SUGGESTION_CACHE_PREFIX)
async def get_relationship_suggestions(
    entity_type: Optional[str] = Query(None),
    min_confidence: Optional[float] = Query(None, ge=0.0, le=1.0),
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    if entity_type:
        entity_type = parse_entity_type(entity_type).value
    store = SuggestionStore(db, tenant_id)
    suggestions = await store.list_all(entity_type=entity_type, min_confidence=min_confidence, limit=limit)
    return {
        "success": True,
        "suggestions": [_suggestion(s) for s in suggestions],
        "total": len(suggestions),
    }


@router.get("/relationship-suggestions/{entity_type}/{entity_id}")
@cache_response(SUGGESTION_CACHE_PREFIX)
async def get_entity_relationship_suggestions(
    entity_type: str,
    entity_id: str,
    min_confidence: Optional[float] = Query(None, ge=0.0, le=1.0),
    limit: Optional[int] = Query(None, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    entity_type = parse_entity_type(entity_type).value
    store = SuggestionStore(db, tenant_id)
    suggestions = await store.list_for(entity_type, entity_id, limit=limit)
    if min_confidence is not None:
        suggestions = [s for s in suggestions if s.confidence_score >= min_confidence]
    return {
        "success": True,
        "suggestions": [_suggestion(s) for s in suggestions],
        "total": len(suggestions),
    }


@router.post("/apply-relationship")
async def apply_relationship(
    request: ApplyRelationshipRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Apply a suggestion's entity mutation and mark it accepted"""
    applier = SuggestionApplier(db, tenant_id)
    result = await applier.accept(request.suggestion_id)
    await invalidate_suggestion_cache(tenant_id)
    return {"success": True, "result": result}


@router.get("/relationship-graph")
async def get_relationship_graph(
    entity_ids: str = Query("", description="Comma separated entity ids"),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    ids = [entity_id.strip() for entity_id in entity_ids.split(",") if entity_id.strip()]
    service = LinkingService(db, tenant_id)
    graph = await service.get_relationship_graph(ids)
    return {"success": True, "graph": graph}


# Generic suggestion review

@router.get("/suggestions")
async def get_suggestions(
    entity_type: Optional[str] = Query(None),
    suggestion_type: Optional[str] = Query(None),
    accepted: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    store = SuggestionStore(db, tenant_id)
    suggestions = await store.list_generic(
        entity_type=entity_type, suggestion_type=suggestion_type, accepted=accepted, limit=limit
    )
    return {
        "success": True,
        "suggestions": [_suggestion(s) for s in suggestions],
        "total": len(suggestions),
    }


@router.put("/suggestions/{suggestion_id}")
async def update_suggestion(
    suggestion_id: str,
    request: SuggestionUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Record a review decision; entities are not changed here, see /apply-relationship"""
    store = SuggestionStore(db, tenant_id)
    suggestion = await store.set_accepted(suggestion_id, request.accepted, request.applied_data)
    await invalidate_suggestion_cache(tenant_id)
    return {"success": True, "suggestion": _suggestion(suggestion)}


# Bulk operations

@router.get("/bulk-operations")
async def get_bulk_operations(
    operation_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    service = BulkOperationService(db, tenant_id)
    operations = await service.list_operations(
        operation_type=operation_type, status=status, created_by=created_by, limit=limit
    )
    return {
        "success": True,
        "operations": [_bulk_operation(operation) for operation in operations],
        "total": len(operations),
    }


@router.post("/bulk-operations", status_code=201)
async def create_bulk_operation(
    request: BulkOperationCreate,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    service = BulkOperationService(db, tenant_id)
    operation = await service.create_operation(
        operation_type=request.operation_type,
        entity_type=request.entity_type,
        total_records=request.total_records,
        operation_data=request.operation_data,
        created_by=request.created_by,
    )
    return {"success": True, "operation": _bulk_operation(operation)}


@router.put("/bulk-operations/{operation_id}")
async def update_bulk_operation(
    operation_id: str,
    request: BulkOperationUpdate,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    service = BulkOperationService(db, tenant_id)
    operation = await service.update_status(
        operation_id,
        request.status,
        successful_records=request.successful_records,
        failed_records=request.failed_records,
        result_data=request.result_data,
    )
    return {"success": True, "operation": _bulk_operation(operation)}
