# edulink/models/tenant_specific/class_model.py
from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from ..base import Base
from sqlalchemy import UniqueConstraint


class ClassModel(Base):
    __tablename__ = "classes"

    # Foreign Keys
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    # Class Information
    name = Column(String(100), nullable=False, index=True)  # e.g. "Grade 5 Mathematics"
    maximum_students = Column(Integer, default=30, nullable=False)
    classroom = Column(String(50))
    is_active = Column(Boolean, default=True)

    # Curriculum
    subject_ids = Column(JSON, default=list, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_class_identity"),
    )

    # Relationships
    students = relationship(
        "Student",
        primaryjoin="and_(ClassModel.id == Student.class_id, Student.is_deleted == False)",
        viewonly=True,
    )

    @property
    def current_students(self) -> int:
        return len(self.students)
