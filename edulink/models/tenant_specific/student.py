# edulink/models/tenant_specific/student.py
from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from ..base import Base

class Student(Base):
    __tablename__ = "students"

    # Foreign Keys
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=True, index=True)
    parent_id = Column(String(36), ForeignKey("parents.id"), nullable=True, index=True)

    # Basic Information
    name = Column(String(100), nullable=False, index=True)
    email = Column(String(100), index=True)
    age = Column(Integer, nullable=True)
    grade_level = Column(Integer, nullable=True)
    status = Column(String(20), default="active", nullable=False)

    # Relationships
    class_ref = relationship("ClassModel", foreign_keys=[class_id])
    parent = relationship("Parent", foreign_keys=[parent_id])
