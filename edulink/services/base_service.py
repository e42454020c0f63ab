# edulink/services/base_service.py
"""Base service with common tenant-scoped CRUD operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Type, Any, Dict, Optional, List, TypeVar, Generic

from ..core.exceptions import NotFoundError

# Define generic type
T = TypeVar('T')

class BaseService(Generic[T]):
    resource_name = "Record"

    def __init__(self, model: Type[T], db: AsyncSession, tenant_id: Optional[str] = None):
        self.model = model
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self, include_deleted: bool = False):
        stmt = select(self.model)
        if self.tenant_id is not None:
            stmt = stmt.where(self.model.tenant_id == self.tenant_id)
        if hasattr(self.model, 'is_deleted') and not include_deleted:
            stmt = stmt.where(self.model.is_deleted == False)
        return stmt

    async def get(self, id: Any) -> Optional[T]:
        stmt = self._base_query().where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, id: Any) -> T:
        obj = await self.get(id)
        if obj is None:
            raise NotFoundError(self.resource_name, id)
        return obj

    async def get_multi(self, limit: int = 100, order_by=None, include_deleted: bool = False, **filters) -> List[T]:
        stmt = self._base_query(include_deleted)

        # Add additional filters, skipping the ones the caller left unset
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)

        if order_by is not None:
            stmt = stmt.order_by(order_by)
        stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, obj_in: Dict) -> T:
        if self.tenant_id is not None:
            obj_in = {"tenant_id": self.tenant_id, **obj_in}
        obj = self.model(**obj_in)
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def update(self, id: Any, obj_in: Dict) -> T:
        obj = await self.get_or_404(id)
        for key, value in obj_in.items():
            setattr(obj, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj
