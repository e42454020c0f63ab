# edulink/models/tenant_specific/subject.py
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from ..base import Base

class Subject(Base):
    __tablename__ = "subjects"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False, index=True)
    code = Column(String(20))

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_subject_name"),
    )
