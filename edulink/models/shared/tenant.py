# edulink/models/shared/tenant.py
"""Tenant (School) model definition."""
from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import validates
from ..base import Base

class Tenant(Base):
    __tablename__ = "tenants"

    school_code = Column(String(10), unique=True, nullable=False, index=True)
    school_name = Column(String(200), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    @validates('school_code')
    def validate_school_code(self, key, value):
        if not value or not value.strip():
            raise ValueError("school_code is required")
        return value.strip().upper()

    __table_args__ = (
        Index('idx_tenant_active_code', 'is_active', 'school_code'),
    )
