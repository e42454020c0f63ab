# edulink/services/suggestion_applier.py
"""Commits an accepted relationship suggestion to the entities it names."""
from typing import Any, Awaitable, Callable, Dict
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import DatabaseError, NotFoundError, UnknownRelationshipTypeError
from ..models.base import utcnow
from ..models.tenant_specific.automation import EntityType, RelationshipType
from .entity_accessor import EntityAccessor
from .suggestion_store import SuggestionStore

logger = logging.getLogger(__name__)


def parse_relationship_type(value) -> RelationshipType:
    if isinstance(value, RelationshipType):
        return value
    try:
        return RelationshipType(value)
    except ValueError:
        raise UnknownRelationshipTypeError(value)


def _appended(values, item):
    # JSON columns are not mutation-tracked, so always assign a new list
    return [*(values or []), item]


class SuggestionApplier:
    """Applies one suggestion per call inside a single transaction."""

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self.store = SuggestionStore(db, tenant_id)
        self.entities = EntityAccessor(db, tenant_id)

        self.handlers: Dict[RelationshipType, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            RelationshipType.STUDENT_CLASS: self._apply_student_class,
            RelationshipType.PARENT_CHILD: self._apply_parent_child,
            RelationshipType.TEACHER_CLASS: self._apply_teacher_class,
            RelationshipType.CLASS_TEACHER: self._apply_class_teacher,
            RelationshipType.CLASS_SUBJECT: self._apply_class_subject,
        }

    async def accept(self, suggestion_id: str) -> Dict[str, Any]:
        """Apply the suggestion's mutation and mark it accepted.

        Accepting an already accepted suggestion applies the mutation again,
        so list fields receive the id a second time.
        """
        try:
            suggestion = await self.store.get_or_404(suggestion_id)
            relationship = suggestion.suggestion_data or {}
            relationship_type = parse_relationship_type(relationship.get("type"))

            handler = self.handlers.get(relationship_type)
            if handler is None:
                raise UnknownRelationshipTypeError(relationship_type.value)

            result = await handler(relationship)

            suggestion.accepted = True
            suggestion.applied_at = utcnow()
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Applying suggestion {suggestion_id} failed: {e}")
            raise DatabaseError(f"Failed to apply suggestion: {str(e)}")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Applied {relationship_type.value} suggestion {suggestion_id}")
        result["suggestion_id"] = suggestion.id
        result["applied_at"] = suggestion.applied_at.isoformat()
        return result

    async def _apply_student_class(self, relationship: Dict[str, Any]) -> Dict[str, Any]:
        student = await self.entities.get_entity(EntityType.STUDENT, relationship.get("source_entity"))
        class_obj = await self.entities.get_entity(EntityType.CLASS, relationship.get("target_entity"))

        student.class_id = class_obj.id
        await self.db.flush()

        return {
            "type": "student_class_assigned",
            "student_id": student.id,
            "class_id": class_obj.id,
        }

    async def _apply_parent_child(self, relationship: Dict[str, Any]) -> Dict[str, Any]:
        parent = await self.entities.get_entity(EntityType.PARENT, relationship.get("source_entity"))
        student = await self.entities.get_entity(EntityType.STUDENT, relationship.get("target_entity"))

        parent.children_ids = _appended(parent.children_ids, student.id)
        student.parent_id = parent.id
        await self.db.flush()

        return {
            "type": "parent_child_assigned",
            "parent_id": parent.id,
            "student_id": student.id,
            "children_ids": list(parent.children_ids),
        }

    async def _assign_teacher(self, teacher_id: str, class_id: str) -> Dict[str, Any]:
        teacher = await self.entities.get_entity(EntityType.TEACHER, teacher_id)
        class_obj = await self.entities.get_entity(EntityType.CLASS, class_id)

        teacher.class_ids = _appended(teacher.class_ids, class_obj.id)
        await self.db.flush()

        return {
            "type": "teacher_class_assigned",
            "teacher_id": teacher.id,
            "class_id": class_obj.id,
            "class_ids": list(teacher.class_ids),
        }

    async def _apply_teacher_class(self, relationship: Dict[str, Any]) -> Dict[str, Any]:
        return await self._assign_teacher(relationship.get("source_entity"), relationship.get("target_entity"))

    async def _apply_class_teacher(self, relationship: Dict[str, Any]) -> Dict[str, Any]:
        # class -> teacher suggestions name the class as source
        return await self._assign_teacher(relationship.get("target_entity"), relationship.get("source_entity"))

    async def _apply_class_subject(self, relationship: Dict[str, Any]) -> Dict[str, Any]:
        class_obj = await self.entities.get_entity(EntityType.CLASS, relationship.get("source_entity"))
        subject_id = relationship.get("target_entity")
        subjects = await self.entities.get_subjects_by_ids([subject_id])
        if not subjects:
            raise NotFoundError("Subject", subject_id)

        class_obj.subject_ids = _appended(class_obj.subject_ids, subjects[0].id)
        await self.db.flush()

        return {
            "type": "class_subject_assigned",
            "class_id": class_obj.id,
            "subject_id": subjects[0].id,
            "subject_ids": list(class_obj.subject_ids),
        }
