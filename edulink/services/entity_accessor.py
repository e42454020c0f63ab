# edulink/services/entity_accessor.py
"""Tenant-scoped loading of the entities the automation services reason about."""
from typing import Any, Iterable, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import NotFoundError, UnknownEntityTypeError
from ..models.tenant_specific.automation import EntityType
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.parent import Parent
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.subject import Subject
from ..models.tenant_specific.teacher import Teacher
from .matching import CandidatePool

logger = logging.getLogger(__name__)


def parse_entity_type(value) -> EntityType:
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(str(value).lower())
    except ValueError:
        raise UnknownEntityTypeError(value)


class EntityAccessor:
    """Reads entities and candidate pools for one tenant. No caching, no writes."""

    MODELS = {
        EntityType.STUDENT: Student,
        EntityType.PARENT: Parent,
        EntityType.TEACHER: Teacher,
        EntityType.CLASS: ClassModel,
    }

    # Associations loaded together with a single entity
    LOAD_OPTIONS = {
        EntityType.STUDENT: (
            selectinload(Student.class_ref).selectinload(ClassModel.students),
            selectinload(Student.parent),
        ),
        EntityType.PARENT: (selectinload(Parent.children),),
        EntityType.TEACHER: (),
        EntityType.CLASS: (selectinload(ClassModel.students),),
    }

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    def _scoped(self, model):
        return select(model).where(
            model.tenant_id == self.tenant_id,
            model.is_deleted == False
        )

    async def get_entity(self, entity_type, entity_id: str):
        """Load one entity with its associations, or raise NotFoundError."""
        entity_type = parse_entity_type(entity_type)
        model = self.MODELS[entity_type]

        stmt = self._scoped(model).where(model.id == entity_id).options(*self.LOAD_OPTIONS[entity_type])
        result = await self.db.execute(stmt)
        entity = result.scalar_one_or_none()

        if entity is None:
            logger.info(f"{entity_type.value} {entity_id} not found for tenant {self.tenant_id}")
            raise NotFoundError(entity_type.value.capitalize(), entity_id)
        return entity

    async def get_entities(self, entity_type, entity_ids: Iterable[str]) -> List[Any]:
        entity_type = parse_entity_type(entity_type)
        model = self.MODELS[entity_type]
        ids = list(entity_ids)
        if not ids:
            return []

        stmt = self._scoped(model).where(model.id.in_(ids)).options(*self.LOAD_OPTIONS[entity_type])
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_students(self, class_id: Optional[str] = None) -> List[Student]:
        stmt = self._scoped(Student).options(selectinload(Student.class_ref)).order_by(Student.name)
        if class_id:
            stmt = stmt.where(Student.class_id == class_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_parents(self) -> List[Parent]:
        result = await self.db.execute(self._scoped(Parent).order_by(Parent.name))
        return list(result.scalars().all())

    async def list_teachers(self, subject: Optional[str] = None) -> List[Teacher]:
        stmt = self._scoped(Teacher).order_by(Teacher.name)
        if subject:
            stmt = stmt.where(Teacher.subject == subject)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_classes(self) -> List[ClassModel]:
        stmt = self._scoped(ClassModel).options(selectinload(ClassModel.students)).order_by(ClassModel.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_subjects(self) -> List[Subject]:
        result = await self.db.execute(self._scoped(Subject).order_by(Subject.name))
        return list(result.scalars().all())

    async def get_subject_by_name(self, name: str) -> Optional[Subject]:
        result = await self.db.execute(self._scoped(Subject).where(Subject.name == name))
        return result.scalars().first()

    async def get_subjects_by_ids(self, subject_ids: Iterable[str]) -> List[Subject]:
        ids = list(subject_ids or [])
        if not ids:
            return []
        result = await self.db.execute(self._scoped(Subject).where(Subject.id.in_(ids)))
        return list(result.scalars().all())

    async def build_pool(self, source_type, target_type) -> CandidatePool:
        """Load the candidate rows for target_type plus the subjects every strategy may consult."""
        source_type = parse_entity_type(source_type)
        target_type = parse_entity_type(target_type)
        pool = CandidatePool(source_type=source_type, target_type=target_type)

        pool.subjects = await self.list_subjects()
        if target_type == EntityType.STUDENT:
            pool.students = await self.list_students()
        elif target_type == EntityType.PARENT:
            pool.parents = await self.list_parents()
        elif target_type == EntityType.TEACHER:
            pool.teachers = await self.list_teachers()
        elif target_type == EntityType.CLASS:
            pool.classes = await self.list_classes()
        return pool
