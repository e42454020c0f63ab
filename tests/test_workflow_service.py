"""Tests for the automation workflows and their execution records."""

import pytest

from edulink.core.exceptions import NotFoundError, UnknownWorkflowTypeError, ValidationError
from edulink.models import Teacher, WorkflowExecution
from edulink.services.workflow_service import WorkflowService


@pytest.fixture
def service(db, tenant):
    return WorkflowService(db, tenant.id)


async def reload(session_factory, execution_id):
    async with session_factory() as session:
        return await session.get(WorkflowExecution, execution_id)


class TestStudentCreation:
    async def test_steps_run_in_order(self, service, make):
        math = await make.subject("Mathematics")
        klass = await make.klass("Grade 2 A", subject_ids=[math.id])
        await make.students(3, klass.id)
        await make.klass("Grade 6 B")
        jane = await make.parent("Jane Doe")

        execution = await service.execute_workflow(
            "student_creation", {"studentData": {"name": "Tom Doe", "age": 10}}, created_by="admin-1"
        )

        steps = ["suggesting_class", "finding_parents", "recommending_subjects", "setting_up_communication"]
        assert execution.execution_status == "completed"
        assert execution.steps_completed == steps
        assert execution.completed_at is not None
        assert execution.created_by == "admin-1"

        result = execution.result_data
        assert result["steps"] == steps
        assert result["suggested_class"]["suggested"]["id"] == klass.id
        assert result["potential_parents"]["matches"] == [{"id": jane.id, "name": "Jane Doe"}]
        assert result["potential_parents"]["confidence"] == 0.8
        assert result["recommended_subjects"]["recommended"] == [{"id": math.id, "name": "Mathematics"}]

        channels = result["communication_setup"]["channels"]
        assert [c["type"] for c in channels] == ["parent_student", "class_student"]
        assert channels[0]["participants"] == [jane.id]
        assert channels[1]["participants"] == [klass.id]

    async def test_no_class_and_no_parent(self, service, make):
        await make.subject("Mathematics")
        await make.subject("Pottery")

        execution = await service.execute_workflow("student_creation", {"student_data": {"name": "A B", "age": 10}})

        result = execution.result_data
        assert result["suggested_class"]["suggested"] is None
        assert result["potential_parents"]["confidence"] == 0.1
        assert [s["name"] for s in result["recommended_subjects"]["recommended"]] == ["Mathematics"]
        assert result["communication_setup"]["channels"] == []

    async def test_existing_student_by_id(self, service, make):
        pupil = await make.student("Tom Doe", grade_level=5)

        execution = await service.execute_workflow("student_creation", {"studentData": {"id": pupil.id}})

        assert execution.execution_status == "completed"

    async def test_missing_name_fails_at_initialization(self, service, session_factory, tenant):
        tenant_id = tenant.id

        with pytest.raises(ValidationError):
            await service.execute_workflow("student_creation", {"studentData": {"age": 10}})

        executions = await WorkflowService(service.db, tenant_id).get_all_workflows()
        stored = await reload(session_factory, executions[0].id)
        assert stored.execution_status == "rolled_back"
        assert stored.steps_completed == []
        assert stored.error_message.startswith("Student creation workflow failed at step: initialization.")
        assert stored.error_message.endswith(" [ROLLED BACK]")


class TestFailures:
    async def test_unknown_workflow_type_is_recorded(self, service, session_factory, tenant):
        tenant_id = tenant.id

        with pytest.raises(UnknownWorkflowTypeError):
            await service.execute_workflow("graduation", {})

        executions = await WorkflowService(service.db, tenant_id).get_all_workflows()
        assert len(executions) == 1
        stored = await reload(session_factory, executions[0].id)
        assert stored.workflow_type == "graduation"
        assert stored.execution_status == "rolled_back"
        assert stored.error_message == (
            "Automation workflow failed at step: initialization. "
            "Error: Unknown workflow type: graduation [ROLLED BACK]"
        )

    async def test_step_failure_names_the_step(self, service, session_factory, monkeypatch):
        async def broken(student):
            raise RuntimeError("parent directory offline")

        monkeypatch.setattr(service, "_find_parents", broken)

        with pytest.raises(RuntimeError):
            await service.execute_workflow("student_creation", {"studentData": {"name": "Tom Doe"}})

        executions = await service.get_all_workflows()
        stored = await reload(session_factory, executions[0].id)
        assert stored.steps_completed == ["suggesting_class", "finding_parents"]
        assert stored.error_message == (
            "Student creation workflow failed at step: finding_parents. "
            "Error: parent directory offline [ROLLED BACK]"
        )
        assert stored.completed_at is not None

    async def test_failure_discards_teacher_assignment(self, service, make, session_factory, monkeypatch):
        math = await make.subject("Mathematics")
        await make.klass("Grade 5 Mathematics", subject_ids=[math.id])
        ada = await make.teacher("Ada Lovelace", "Mathematics")
        ada_id = ada.id

        async def broken(teacher, assigned_classes):
            raise RuntimeError("messaging unavailable")

        monkeypatch.setattr(service, "_teacher_links", broken)

        with pytest.raises(RuntimeError):
            await service.execute_workflow("teacher_assignment", {"teacherData": {"id": ada_id}})

        async with session_factory() as session:
            assert (await session.get(Teacher, ada_id)).class_ids == []


class TestTeacherAssignment:
    async def test_persisted_teacher_is_assigned(self, service, make, session_factory):
        math = await make.subject("Mathematics")
        classes = [await make.klass(f"Grade {g} Mathematics", subject_ids=[math.id]) for g in (4, 5, 6, 7)]
        await make.students(2, classes[0].id)
        ada = await make.teacher("Ada Lovelace", "Mathematics")
        await make.teacher("Grace Hopper", "Mathematics", class_ids=["x", "y"])

        execution = await service.execute_workflow("teacher_assignment", {"teacherData": {"id": ada.id}})

        result = execution.result_data
        assert execution.steps_completed == [
            "identifying_classes", "checking_workload", "assigning_classes", "creating_communication_links",
        ]
        assert len(result["relevant_classes"]["relevant"]) == 4
        assert result["workload_balance"]["average_workload"] == 1.0
        assert result["workload_balance"]["can_assign_more"] is True

        assigned = [c["id"] for c in result["assignment_result"]["assigned_classes"]]
        assert len(assigned) == 3
        assert result["assignment_result"]["persisted"] is True

        async with session_factory() as session:
            assert (await session.get(Teacher, ada.id)).class_ids == assigned

        assert assigned == [c.id for c in classes[:3]]
        assert len(result["communication_links"]["links"]) == 2

    async def test_transient_teacher_is_not_persisted(self, service, make):
        math = await make.subject("Mathematics")
        await make.klass("Grade 5 Mathematics", subject_ids=[math.id])

        execution = await service.execute_workflow(
            "teacher_assignment", {"teacherData": {"name": "New Hire", "subject": "Mathematics"}}
        )

        assignment = execution.result_data["assignment_result"]
        assert assignment["persisted"] is False
        assert len(assignment["assigned_classes"]) == 1

    async def test_unknown_subject(self, service, make):
        await make.subject("Mathematics")

        execution = await service.execute_workflow(
            "teacher_assignment", {"teacherData": {"name": "Madame Irma", "subject": "Astrology"}}
        )

        result = execution.result_data
        assert result["relevant_classes"]["relevant"] == []
        assert result["assignment_result"]["assigned_classes"] == []


class TestClassConfiguration:
    async def test_core_subjects_and_teachers(self, service, make):
        math = await make.subject("Mathematics")
        english = await make.subject("English")
        await make.subject("Science")
        await make.subject("Art")
        await make.teacher("Busy Teacher", "Mathematics", class_ids=["a", "b"])
        free = await make.teacher("Free Teacher", "Mathematics")
        linguist = await make.teacher("English Teacher", "English")

        execution = await service.execute_workflow(
            "class_configuration", {"classData": {"name": "Grade 5 Mathematics"}}
        )

        result = execution.result_data
        assert execution.steps_completed == [
            "suggesting_subjects", "recommending_teachers", "creating_assessments", "generating_templates",
        ]
        assert {s["name"] for s in result["suggested_subjects"]["suggested"]} == {"Mathematics", "English", "Science"}
        assert result["suggested_subjects"]["grade_level"] == "4-6"

        recommendations = {r["subject"]: r for r in result["recommended_teachers"]["recommendations"]}
        assert recommendations["Mathematics"]["recommended_teacher"] == free.id
        assert len(recommendations["Mathematics"]["alternatives"]) == 1
        assert recommendations["English"]["recommended_teacher"] == linguist.id
        assert result["recommended_teachers"]["covered_subjects"] == 2
        assert result["recommended_teachers"]["total_subjects"] == 3

        assert len(result["assessment_frameworks"]["frameworks"]) == 3
        assert len(result["communication_templates"]["templates"]) == 4
        assert {math.id, english.id} <= {s["id"] for s in result["suggested_subjects"]["suggested"]}


class TestQueries:
    async def test_status_and_listing(self, service, make):
        first = await service.execute_workflow("class_configuration", {"classData": {"name": "Grade 1 A"}})
        await service.execute_workflow("student_creation", {"studentData": {"name": "A B"}})

        assert (await service.get_workflow_status(first.id)).id == first.id
        assert len(await service.get_all_workflows()) == 2
        assert len(await service.get_all_workflows(workflow_type="class_configuration")) == 1
        assert len(await service.get_all_workflows(status="completed")) == 2

    async def test_bad_filters(self, service, tenant):
        with pytest.raises(ValidationError):
            await service.get_all_workflows(status="exploded")
        with pytest.raises(UnknownWorkflowTypeError):
            await service.get_all_workflows(workflow_type="graduation")

    async def test_missing_workflow(self, service, tenant):
        with pytest.raises(NotFoundError):
            await service.get_workflow_status("missing")
