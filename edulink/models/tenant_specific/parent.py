# edulink/models/tenant_specific/parent.py
from sqlalchemy import Column, String, JSON, ForeignKey
from sqlalchemy.orm import relationship
from ..base import Base

class Parent(Base):
    __tablename__ = "parents"

    # Foreign Keys
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    # Basic Information
    name = Column(String(100), nullable=False, index=True)
    email = Column(String(100), index=True)
    phone = Column(String(20))

    # Linked student ids, appended when a parent-child suggestion is applied
    children_ids = Column(JSON, default=list, nullable=False)

    # Students that point back at this parent through students.parent_id
    children = relationship(
        "Student",
        primaryjoin="and_(Parent.id == Student.parent_id, Student.is_deleted == False)",
        viewonly=True,
    )
