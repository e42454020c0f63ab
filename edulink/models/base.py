from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, Boolean, String, func
from datetime import datetime, timezone
import uuid


def generate_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@as_declarative()
class Base:
    __abstract__ = True  # Prevents creating a table for the base class

    id: Mapped[str]

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Opaque string ids so they can live inside JSON id lists
    id = mapped_column(String(36), primary_key=True, index=True, default=generate_id)

    # Timestamps are set client-side too, so they are readable right after a flush
    created_at = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Soft delete - indexed for performance
    is_deleted = mapped_column(Boolean, default=False, nullable=False, index=True)
