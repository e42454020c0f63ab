# edulink/models/tenant_specific/teacher.py
from sqlalchemy import Column, String, Integer, JSON, ForeignKey
from ..base import Base

class Teacher(Base):
    __tablename__ = "teachers"

    # Foreign Keys
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    # Basic Information
    name = Column(String(100), nullable=False, index=True)
    email = Column(String(100), nullable=True, index=True)
    subject = Column(String(100), nullable=True, index=True)  # Specialization, by subject name
    experience_years = Column(Integer, default=0)
    status = Column(String(20), default="active", nullable=False)

    # Teaching assignments
    class_ids = Column(JSON, default=list, nullable=False)
