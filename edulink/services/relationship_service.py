# edulink/services/relationship_service.py
"""Per-entity relationship inference backed by the shared matching strategies."""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.tenant_specific.automation import EntityType, RelationshipType, SuggestionType
from .entity_accessor import EntityAccessor, parse_entity_type
from .matching import (
    MatchStrategy, CandidatePool, class_maximum, class_suitability_score,
    core_subjects_for, extract_grade, extract_surname, grade_from_age, is_grade_appropriate, run_strategies,
)
from .suggestion_store import SuggestionStore, relationship_payload

logger = logging.getLogger(__name__)

# Fixed confidences per inferred relationship
PARENT_CHILD_FROM_STUDENT = 0.8
PARENT_CHILD_FROM_PARENT = 0.7
STUDENT_SUBJECT = 0.9
TEACHER_CLASS = 0.85
TEACHER_SUBJECT_KNOWN = 0.95
TEACHER_SUBJECT_UNKNOWN = 0.1
CLASS_SUBJECT = 0.8
CLASS_TEACHER = 0.75

TARGET_TYPES = {
    RelationshipType.STUDENT_CLASS: EntityType.CLASS.value,
    RelationshipType.STUDENT_SUBJECT: "subject",
    RelationshipType.TEACHER_CLASS: EntityType.CLASS.value,
    RelationshipType.TEACHER_SUBJECT: "subject",
    RelationshipType.CLASS_SUBJECT: "subject",
    RelationshipType.CLASS_TEACHER: EntityType.TEACHER.value,
}


def context_grade(context: Dict[str, Any]) -> Optional[int]:
    """Grade supplied by the caller, or derived from a supplied age."""
    if context.get("grade") is not None:
        return int(context["grade"])
    if context.get("age") is not None:
        return grade_from_age(int(context["age"]))
    return None


class RelationshipService:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self.entities = EntityAccessor(db, tenant_id)
        self.store = SuggestionStore(db, tenant_id)

        self.inferers = {
            EntityType.STUDENT: self._infer_student,
            EntityType.TEACHER: self._infer_teacher,
            EntityType.CLASS: self._infer_class,
            EntityType.PARENT: self._infer_parent,
        }

    async def infer_relationships(
        self,
        entity_type,
        entity_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Infer and store relationship suggestions for one entity."""
        entity_type = parse_entity_type(entity_type)
        entity = await self.entities.get_entity(entity_type, entity_id)

        relationships = await self.inferers[entity_type](entity, context or {})

        stored = [
            self.store.build(
                entity_type=entity_type.value,
                entity_id=entity.id,
                target_entity_type=self._target_type(entity_type, relationship),
                suggestion_type=SuggestionType.RELATIONSHIP_INFERENCE,
                suggestion_data={**relationship, "context": context} if context else relationship,
                confidence_score=relationship["confidence"],
            )
            for relationship in relationships
        ]
        if stored:
            await self.store.save_all(stored)

        for relationship, suggestion in zip(relationships, stored):
            relationship["suggestion_id"] = suggestion.id

        high_confidence = [r for r in relationships if r["confidence"] >= settings.high_confidence_threshold]
        logger.info(
            f"Inferred {len(relationships)} relationships for {entity_type.value} {entity.id} "
            f"({len(high_confidence)} high confidence)"
        )

        return {
            "entity_type": entity_type.value,
            "entity_id": entity.id,
            "relationships": relationships,
            "total_inferred": len(relationships),
            "high_confidence": len(high_confidence),
        }

    @staticmethod
    def _target_type(entity_type: EntityType, relationship: Dict[str, Any]) -> str:
        relationship_type = RelationshipType(relationship["type"])
        if relationship_type == RelationshipType.PARENT_CHILD:
            # The inferred entity is one end; the target is the other
            return EntityType.PARENT.value if entity_type == EntityType.STUDENT else EntityType.STUDENT.value
        return TARGET_TYPES[relationship_type]

    async def _pool(self, source_type: EntityType, target_type: EntityType) -> CandidatePool:
        return await self.entities.build_pool(source_type, target_type)

    # Students

    async def _infer_student(self, student, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        relationships = []

        if not student.class_id:
            best_class = await self._best_class_for(student, context)
            if best_class:
                relationships.append(best_class)

        if not student.parent_id:
            relationships.extend(await self._parents_for(student))

        if student.class_id:
            relationships.extend(await self._subjects_for(student))

        return relationships

    async def _best_class_for(self, student, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Classes passing both grade and capacity checks, ranked by suitability.

        A student without a known grade is placed by the `grade` or `age`
        given in the inference context.
        """
        pool = await self._pool(EntityType.STUDENT, EntityType.CLASS)
        results = run_strategies(student, pool, (MatchStrategy.GRADE, MatchStrategy.CAPACITY))
        grade = extract_grade(student)
        if grade is None:
            grade = context_grade(context)

        capacity_ids = {m.target_id for m in results[MatchStrategy.CAPACITY]}
        eligible_ids = {m.target_id for m in results[MatchStrategy.GRADE]} & capacity_ids
        suitable = [c for c in pool.classes if c.id in eligible_ids and is_grade_appropriate(c.name, grade)]
        if not suitable:
            return None

        suitable.sort(key=lambda c: class_suitability_score(c, grade), reverse=True)
        best = suitable[0]
        maximum = class_maximum(best)

        return relationship_payload(
            RelationshipType.STUDENT_CLASS,
            student.id,
            best.id,
            class_suitability_score(best, grade) / 100,
            f"Best match based on grade level and class capacity ({best.current_students}/{maximum} students)",
            data={
                "class_name": best.name,
                "grade": grade,
                "alternatives": [c.id for c in suitable[1:3]],
                "capacity_info": {
                    "current": best.current_students,
                    "max": maximum,
                    "available": maximum - best.current_students,
                },
            },
        )

    async def _parents_for(self, student) -> List[Dict[str, Any]]:
        pool = await self._pool(EntityType.STUDENT, EntityType.PARENT)
        matches = run_strategies(student, pool, (MatchStrategy.SURNAME,))[MatchStrategy.SURNAME]
        surname = extract_surname(student.name).lower()

        return [
            relationship_payload(
                RelationshipType.PARENT_CHILD,
                match.target_id,
                student.id,
                PARENT_CHILD_FROM_STUDENT,
                f'Surname match: "{surname}"',
                data={"match_type": "surname", "parent_name": match.data.get("target_name"), "student_name": student.name},
            )
            for match in matches
        ]

    async def _subjects_for(self, student) -> List[Dict[str, Any]]:
        class_obj = student.class_ref
        if class_obj is None or not class_obj.subject_ids:
            return []

        subjects = await self.entities.get_subjects_by_ids(class_obj.subject_ids)
        return [
            relationship_payload(
                RelationshipType.STUDENT_SUBJECT,
                student.id,
                subject.id,
                STUDENT_SUBJECT,
                f'Subject "{subject.name}" is part of class "{class_obj.name}" curriculum',
                data={"subject_name": subject.name, "class_id": class_obj.id},
            )
            for subject in subjects
        ]

    # Teachers

    async def _infer_teacher(self, teacher, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        relationships = []
        if not teacher.subject:
            return relationships

        pool = await self._pool(EntityType.TEACHER, EntityType.CLASS)
        for match in run_strategies(teacher, pool, (MatchStrategy.SUBJECT,))[MatchStrategy.SUBJECT]:
            relationships.append(relationship_payload(
                RelationshipType.TEACHER_CLASS,
                teacher.id,
                match.target_id,
                TEACHER_CLASS,
                f'Class teaches "{teacher.subject}", the teacher\'s specialization',
                data={"subject": teacher.subject, "current_students": match.data.get("current_students")},
            ))

        subject = pool.subject_by_name(teacher.subject)
        if subject is None:
            relationships.append(relationship_payload(
                RelationshipType.TEACHER_SUBJECT,
                teacher.id,
                None,
                TEACHER_SUBJECT_UNKNOWN,
                f'Subject "{teacher.subject}" does not exist in the school curriculum',
                data={"subject": teacher.subject, "valid": False},
            ))
        else:
            relationships.append(relationship_payload(
                RelationshipType.TEACHER_SUBJECT,
                teacher.id,
                subject.id,
                TEACHER_SUBJECT_KNOWN,
                f'Teacher specialization "{subject.name}" is a valid subject',
                data={"subject": subject.name, "valid": True},
            ))

        return relationships

    # Classes

    async def _infer_class(self, class_obj, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        relationships = []
        pool = await self._pool(EntityType.CLASS, EntityType.TEACHER)

        assigned = set(class_obj.subject_ids or [])
        core_names = core_subjects_for(class_obj.name)
        for subject in pool.subjects:
            if subject.name not in core_names or subject.id in assigned:
                continue
            relationships.append(relationship_payload(
                RelationshipType.CLASS_SUBJECT,
                class_obj.id,
                subject.id,
                CLASS_SUBJECT,
                f'"{subject.name}" is a core subject for this grade level',
                data={"subject_name": subject.name, "core_subjects": core_names},
            ))

        # Least loaded specialist per class subject
        best_per_subject: Dict[str, Any] = {}
        for match in run_strategies(class_obj, pool, (MatchStrategy.SUBJECT,))[MatchStrategy.SUBJECT]:
            key = match.data["subject"].casefold()
            current = best_per_subject.get(key)
            if current is None or match.data["current_workload"] < current.data["current_workload"]:
                best_per_subject[key] = match

        for match in best_per_subject.values():
            relationships.append(relationship_payload(
                RelationshipType.CLASS_TEACHER,
                class_obj.id,
                match.target_id,
                CLASS_TEACHER,
                f'Teacher specializes in "{match.data["subject"]}" and has the lowest workload',
                data={"subject": match.data["subject"], "current_workload": match.data["current_workload"]},
            ))

        return relationships

    # Parents

    async def _infer_parent(self, parent, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        pool = await self._pool(EntityType.PARENT, EntityType.STUDENT)
        matches = run_strategies(parent, pool, (MatchStrategy.SURNAME,))[MatchStrategy.SURNAME]
        surname = extract_surname(parent.name).lower()

        return [
            relationship_payload(
                RelationshipType.PARENT_CHILD,
                parent.id,
                match.target_id,
                PARENT_CHILD_FROM_PARENT,
                f'Potential parent-child relationship based on surname "{surname}"',
                data={
                    "match_type": "surname",
                    "student_name": match.data.get("target_name"),
                    "current_children": len(parent.children_ids or []),
                },
            )
            for match in matches
        ]
