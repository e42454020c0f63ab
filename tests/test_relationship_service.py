"""Tests for per-entity relationship inference."""

import pytest

from edulink.core.exceptions import NotFoundError, UnknownEntityTypeError
from edulink.models import SuggestionType
from edulink.services.relationship_service import RelationshipService
from edulink.services.suggestion_store import SuggestionStore


@pytest.fixture
def service(db, tenant):
    return RelationshipService(db, tenant.id)


def by_type(result, relationship_type):
    return [r for r in result["relationships"] if r["type"] == relationship_type]


class TestStudentInference:
    async def test_parent_found_by_surname(self, service, make):
        tom = await make.student("Tom Doe", age=10)
        jane = await make.parent("Jane Doe")
        await make.parent("Joe Bloggs")

        result = await service.infer_relationships("student", tom.id)

        parents = by_type(result, "parent_child")
        assert len(parents) == 1
        assert parents[0]["source_entity"] == jane.id
        assert parents[0]["target_entity"] == tom.id
        assert parents[0]["confidence"] == 0.8
        assert result["entity_type"] == "student"
        assert result["total_inferred"] == len(result["relationships"])

    async def test_best_class_skips_full_and_wrong_grade(self, service, make):
        full = await make.klass("Grade 5 Mathematics")
        await make.students(30, full.id)
        roomy = await make.klass("Grade 5 Science")
        await make.students(3, roomy.id)
        await make.klass("Grade 9 History")
        pupil = await make.student("Ann Smith", grade_level=5)

        result = await service.infer_relationships("student", pupil.id)

        classes = by_type(result, "student_class")
        assert len(classes) == 1
        assert classes[0]["target_entity"] == roomy.id
        assert classes[0]["data"]["capacity_info"] == {"current": 3, "max": 30, "available": 27}
        assert classes[0]["confidence"] == pytest.approx(1.0)

    async def test_no_eligible_class(self, service, make):
        pupil = await make.student("Ann Smith", grade_level=5)
        await make.klass("Grade 9 History")

        result = await service.infer_relationships("student", pupil.id)

        assert by_type(result, "student_class") == []

    async def test_context_grade_places_ungraded_student(self, service, make):
        await make.klass("Grade 2 A")
        upper = await make.klass("Grade 9 A")
        tom = await make.student("Tom Doe")

        result = await service.infer_relationships("student", tom.id, context={"grade": 9})

        classes = by_type(result, "student_class")
        assert [c["target_entity"] for c in classes] == [upper.id]
        assert classes[0]["data"]["grade"] == 9

    async def test_context_age_places_ungraded_student(self, service, make):
        lower = await make.klass("Grade 2 A")
        await make.klass("Grade 9 A")
        tom = await make.student("Tom Doe")

        result = await service.infer_relationships("student", tom.id, context={"age": 7})

        classes = by_type(result, "student_class")
        assert [c["target_entity"] for c in classes] == [lower.id]
        assert classes[0]["data"]["grade"] == 2

    async def test_own_grade_wins_over_context(self, service, make):
        lower = await make.klass("Grade 2 A")
        await make.klass("Grade 9 A")
        pupil = await make.student("Ann Smith", grade_level=2)

        result = await service.infer_relationships("student", pupil.id, context={"grade": 9})

        assert [c["target_entity"] for c in by_type(result, "student_class")] == [lower.id]

    async def test_enrolled_student_gets_class_subjects(self, service, make):
        math = await make.subject("Mathematics")
        science = await make.subject("Science")
        await make.subject("Art")
        current = await make.klass("Grade 5 A", subject_ids=[math.id, science.id])
        pupil = await make.student("Ann Smith", class_id=current.id)

        result = await service.infer_relationships("student", pupil.id)

        subjects = by_type(result, "student_subject")
        assert {r["target_entity"] for r in subjects} == {math.id, science.id}
        assert all(r["confidence"] == 0.9 for r in subjects)
        assert by_type(result, "student_class") == []
        assert result["high_confidence"] == 2

    async def test_results_are_stored(self, service, make, db, tenant):
        tom = await make.student("Tom Doe")
        await make.parent("Jane Doe")
        await make.parent("John Doe")

        result = await service.infer_relationships("student", tom.id, context={"source": "import"})

        stored = await SuggestionStore(db, tenant.id).list_for("student", tom.id)
        assert len(stored) == result["total_inferred"] == 2
        assert {s.id for s in stored} == {r["suggestion_id"] for r in result["relationships"]}
        assert all(s.suggestion_type == SuggestionType.RELATIONSHIP_INFERENCE.value for s in stored)
        assert all(s.target_entity_type == "parent" for s in stored)
        assert stored[0].suggestion_data["context"] == {"source": "import"}

    async def test_repeated_runs_accumulate(self, service, make, db, tenant):
        tom = await make.student("Tom Doe")
        await make.parent("Jane Doe")

        await service.infer_relationships("student", tom.id)
        await service.infer_relationships("student", tom.id)

        assert len(await SuggestionStore(db, tenant.id).list_for("student", tom.id)) == 2


class TestTeacherInference:
    async def test_subject_classes_and_valid_subject(self, service, make):
        math = await make.subject("Mathematics")
        art = await make.subject("Art")
        open_class = await make.klass("Grade 5 Mathematics", subject_ids=[math.id])
        taught = await make.klass("Grade 6 Mathematics", subject_ids=[math.id])
        await make.klass("Grade 5 Art", subject_ids=[art.id])
        ada = await make.teacher("Ada Lovelace", "Mathematics", class_ids=[taught.id])

        result = await service.infer_relationships("teacher", ada.id)

        classes = by_type(result, "teacher_class")
        assert [r["target_entity"] for r in classes] == [open_class.id]
        assert classes[0]["confidence"] == 0.85

        subject = by_type(result, "teacher_subject")
        assert len(subject) == 1
        assert subject[0]["target_entity"] == math.id
        assert subject[0]["confidence"] == 0.95

    async def test_unknown_subject_is_flagged(self, service, make):
        await make.subject("Mathematics")
        teacher = await make.teacher("Madame Irma", "Astrology")

        result = await service.infer_relationships("teacher", teacher.id)

        assert by_type(result, "teacher_class") == []
        subject = by_type(result, "teacher_subject")[0]
        assert subject["target_entity"] is None
        assert subject["confidence"] == 0.1
        assert subject["data"]["valid"] is False

    async def test_no_subject_no_inference(self, service, make):
        teacher = await make.teacher("New Hire")

        result = await service.infer_relationships("teacher", teacher.id)

        assert result["relationships"] == []
        assert result["total_inferred"] == 0


class TestClassInference:
    async def test_missing_core_subjects_and_least_loaded_teacher(self, service, make):
        math = await make.subject("Mathematics")
        english = await make.subject("English")
        science = await make.subject("Science")
        await make.subject("Art")
        klass = await make.klass("Grade 5 Mathematics", subject_ids=[math.id])
        await make.teacher("Busy Teacher", "Mathematics", class_ids=["a", "b"])
        free = await make.teacher("Free Teacher", "Mathematics")
        await make.teacher("English Teacher", "English")

        result = await service.infer_relationships("class", klass.id)

        subjects = by_type(result, "class_subject")
        assert {r["target_entity"] for r in subjects} == {english.id, science.id}
        assert all(r["confidence"] == 0.8 for r in subjects)

        teachers = by_type(result, "class_teacher")
        assert len(teachers) == 1
        assert teachers[0]["source_entity"] == klass.id
        assert teachers[0]["target_entity"] == free.id
        assert teachers[0]["confidence"] == 0.75


class TestParentInference:
    async def test_potential_children_exclude_known_children(self, service, make):
        known = await make.student("Liz Doe")
        tom = await make.student("Tom Doe")
        await make.student("Bob Smith")
        jane = await make.parent("Jane Doe", children_ids=[known.id])

        result = await service.infer_relationships("parent", jane.id)

        children = by_type(result, "parent_child")
        assert [r["target_entity"] for r in children] == [tom.id]
        assert children[0]["source_entity"] == jane.id
        assert children[0]["confidence"] == 0.7
        assert children[0]["data"]["current_children"] == 1


class TestErrors:
    async def test_missing_entity(self, service, tenant):
        with pytest.raises(NotFoundError):
            await service.infer_relationships("student", "missing")

    async def test_unknown_entity_type(self, service, tenant):
        with pytest.raises(UnknownEntityTypeError):
            await service.infer_relationships("janitor", "x")
