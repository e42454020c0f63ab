# edulink/services/bulk_operation_service.py
"""Progress records for bulk operations run by the admin tooling."""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ValidationError
from ..models.base import utcnow
from ..models.tenant_specific.automation import BulkOperation, BulkOperationStatus
from .base_service import BaseService

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {BulkOperationStatus.COMPLETED, BulkOperationStatus.FAILED}


def parse_bulk_status(value) -> BulkOperationStatus:
    try:
        return BulkOperationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown bulk operation status: {value}", field="status")


class BulkOperationService(BaseService[BulkOperation]):
    resource_name = "Bulk operation"

    def __init__(self, db: AsyncSession, tenant_id: str):
        super().__init__(BulkOperation, db, tenant_id)

    async def list_operations(
        self,
        operation_type: Optional[str] = None,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        limit: int = 100,
    ) -> List[BulkOperation]:
        if status:
            status = parse_bulk_status(status).value
        return await self.get_multi(
            limit=limit,
            order_by=BulkOperation.created_at.desc(),
            operation_type=operation_type,
            status=status,
            created_by=created_by,
        )

    async def create_operation(
        self,
        operation_type: str,
        entity_type: str,
        total_records: int,
        operation_data: Optional[Dict[str, Any]] = None,
        created_by: Optional[str] = None,
    ) -> BulkOperation:
        if not operation_type or not entity_type or total_records is None:
            raise ValidationError("operation_type, entity_type and total_records are required")

        operation = await self.create({
            "operation_type": operation_type,
            "entity_type": entity_type,
            "total_records": total_records,
            "successful_records": 0,
            "failed_records": 0,
            "operation_data": operation_data,
            "status": BulkOperationStatus.PENDING.value,
            "created_by": created_by,
        })
        logger.info(f"Bulk operation {operation.id} ({operation_type}) created for tenant {self.tenant_id}")
        return operation

    async def update_status(
        self,
        operation_id: str,
        status: str,
        successful_records: Optional[int] = None,
        failed_records: Optional[int] = None,
        result_data: Optional[Dict[str, Any]] = None,
    ) -> BulkOperation:
        """Move an operation to a new status; completed and failed stamp completed_at."""
        new_status = parse_bulk_status(status)

        update = {"status": new_status.value}
        if successful_records is not None:
            update["successful_records"] = successful_records
        if failed_records is not None:
            update["failed_records"] = failed_records
        if new_status in TERMINAL_STATUSES:
            update["completed_at"] = utcnow()

        if result_data is not None:
            operation = await self.get_or_404(operation_id)
            update["operation_data"] = {**(operation.operation_data or {}), "result": result_data}

        return await self.update(operation_id, update)
