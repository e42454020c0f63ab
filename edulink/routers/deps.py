# edulink/routers/deps.py
"""Shared router dependencies."""
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import NotFoundError
from ..models.shared.tenant import Tenant


async def get_tenant_id(
    x_school_id: str = Header(..., alias="X-School-Id", description="School (tenant) id"),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Resolve the school context; unknown and inactive schools are 404s."""
    stmt = select(Tenant.id).where(
        Tenant.id == x_school_id,
        Tenant.is_active == True,
        Tenant.is_deleted == False
    )
    result = await db.execute(stmt)
    tenant_id = result.scalar_one_or_none()
    if tenant_id is None:
        raise NotFoundError("School", x_school_id)
    return tenant_id
