# edulink/services/workflow_service.py
"""Fixed four-step automation workflows recorded as WorkflowExecution rows."""
from typing import Any, Dict, List, Optional
import logging

from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import UnknownWorkflowTypeError, ValidationError
from ..models.base import utcnow
from ..models.tenant_specific.automation import (
    EntityType, ExecutionStatus, WorkflowExecution, WorkflowType,
)
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.teacher import Teacher
from .base_service import BaseService
from .entity_accessor import EntityAccessor
from .matching import (
    CORE_SUBJECTS, MatchStrategy, class_maximum, class_suitability_score,
    core_subjects_for, extract_grade, extract_surname, grade_band, run_strategies,
)

logger = logging.getLogger(__name__)

ROLLBACK_MARKER = " [ROLLED BACK]"

WORKFLOW_LABELS = {
    WorkflowType.STUDENT_CREATION: "Student creation",
    WorkflowType.TEACHER_ASSIGNMENT: "Teacher assignment",
    WorkflowType.CLASS_CONFIGURATION: "Class configuration",
}

ASSESSMENT_PLAN = [
    {"type": "quiz", "weight": 20, "frequency": "weekly"},
    {"type": "test", "weight": 30, "frequency": "monthly"},
    {"type": "project", "weight": 25, "frequency": "quarterly"},
    {"type": "exam", "weight": 25, "frequency": "semester"},
]

GRADING_SCALE = {
    "A": {"min": 90, "max": 100},
    "B": {"min": 80, "max": 89},
    "C": {"min": 70, "max": 79},
    "D": {"min": 60, "max": 69},
    "F": {"min": 0, "max": 59},
}

COMMUNICATION_TEMPLATES = [
    {
        "type": "announcement",
        "name": "General Announcement",
        "template": "Dear Parents/Guardians, {message}. Please contact us if you have any questions.",
        "variables": ["message"],
    },
    {
        "type": "homework",
        "name": "Homework Assignment",
        "template": "Homework for {subject}: {assignment}. Due date: {due_date}.",
        "variables": ["subject", "assignment", "due_date"],
    },
    {
        "type": "progress",
        "name": "Student Progress",
        "template": "Your child {student_name} is performing {performance} in {subject}. {comments}",
        "variables": ["student_name", "performance", "subject", "comments"],
    },
    {
        "type": "absence",
        "name": "Absence Notification",
        "template": "Your child {student_name} was marked absent on {date}. Please provide a reason if applicable.",
        "variables": ["student_name", "date"],
    },
]

# Trigger payload fields copied onto the transient entity a workflow reasons about
ENTITY_FIELDS = {
    EntityType.STUDENT: (Student, ("name", "email", "age", "grade_level", "class_id", "parent_id")),
    EntityType.TEACHER: (Teacher, ("name", "email", "subject", "class_ids")),
    EntityType.CLASS: (ClassModel, ("name", "maximum_students", "subject_ids")),
}


def parse_workflow_type(value) -> WorkflowType:
    if isinstance(value, WorkflowType):
        return value
    try:
        return WorkflowType(value)
    except ValueError:
        raise UnknownWorkflowTypeError(value)


def _field(data: Dict[str, Any], name: str, default=None):
    """Read a trigger field given in snake_case or camelCase."""
    if name in data:
        return data[name]
    return data.get(to_camel(name), default)


def _summary(entity) -> Dict[str, Any]:
    return {"id": entity.id, "name": entity.name}


def _class_summary(class_obj) -> Dict[str, Any]:
    return {
        "id": class_obj.id,
        "name": class_obj.name,
        "current_students": class_obj.current_students,
        "maximum_students": class_maximum(class_obj),
    }


class WorkflowService(BaseService[WorkflowExecution]):
    resource_name = "Workflow"

    def __init__(self, db: AsyncSession, tenant_id: str):
        super().__init__(WorkflowExecution, db, tenant_id)
        self.entities = EntityAccessor(db, tenant_id)

        self.runners = {
            WorkflowType.STUDENT_CREATION: self._run_student_creation,
            WorkflowType.TEACHER_ASSIGNMENT: self._run_teacher_assignment,
            WorkflowType.CLASS_CONFIGURATION: self._run_class_configuration,
        }

    async def execute_workflow(
        self,
        workflow_type,
        trigger_data: Dict[str, Any],
        created_by: Optional[str] = None,
    ) -> WorkflowExecution:
        """Record a running execution, run its steps, then finalize it.

        A failing step rolls back the pending entity writes of this run, marks
        the execution failed and then rolled back, and re-raises the error.
        """
        execution = WorkflowExecution(
            tenant_id=self.tenant_id,
            workflow_type=str(getattr(workflow_type, "value", workflow_type))[:30],
            trigger_data=trigger_data or {},
            execution_status=ExecutionStatus.RUNNING.value,
            steps_completed=[],
            created_by=created_by,
            started_at=utcnow(),
        )
        self.db.add(execution)
        await self.db.commit()
        execution_id = execution.id

        steps: List[str] = []
        label = "Automation"
        try:
            workflow = parse_workflow_type(workflow_type)
            label = WORKFLOW_LABELS[workflow]
            result = await self.runners[workflow](trigger_data or {}, steps)

            execution.steps_completed = list(steps)
            execution.result_data = result
            execution.execution_status = ExecutionStatus.COMPLETED.value
            execution.completed_at = utcnow()
            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            step = steps[-1] if steps else "initialization"
            message = f"{label} workflow failed at step: {step}. Error: {getattr(e, 'message', str(e))}"
            logger.error(f"Workflow {execution_id} failed: {message}")
            await self._mark_rolled_back(execution_id, steps, message)
            raise

        logger.info(f"Workflow {execution_id} ({workflow.value}) completed: {', '.join(steps)}")
        return execution

    async def _mark_rolled_back(self, execution_id: str, steps: List[str], message: str) -> WorkflowExecution:
        """running -> failed -> rolled_back; entity writes were already discarded."""
        execution = await self.get_or_404(execution_id)

        execution.steps_completed = list(steps)
        execution.execution_status = ExecutionStatus.FAILED.value
        execution.error_message = message
        execution.completed_at = utcnow()
        await self.db.commit()

        execution.execution_status = ExecutionStatus.ROLLED_BACK.value
        execution.error_message = message + ROLLBACK_MARKER
        await self.db.commit()
        return execution

    async def get_workflow_status(self, workflow_id: str) -> WorkflowExecution:
        return await self.get_or_404(workflow_id)

    async def get_all_workflows(
        self,
        workflow_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> List[WorkflowExecution]:
        if workflow_type:
            workflow_type = parse_workflow_type(workflow_type).value
        if status:
            try:
                status = ExecutionStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown execution status: {status}", field="status")

        return await self.get_multi(
            limit=limit,
            order_by=WorkflowExecution.started_at.desc(),
            workflow_type=workflow_type,
            execution_status=status,
        )

    async def _source_entity(self, entity_type: EntityType, data: Dict[str, Any]):
        """The persisted entity named by data['id'], or a transient one built from the payload."""
        if data.get("id"):
            return await self.entities.get_entity(entity_type, data["id"])

        model, fields = ENTITY_FIELDS[entity_type]
        values = {name: _field(data, name) for name in fields if _field(data, name) is not None}
        if not values.get("name"):
            raise ValidationError(f"{entity_type.value} name is required", field="name")
        return model(**values)

    # Student creation

    async def _run_student_creation(self, trigger_data: Dict[str, Any], steps: List[str]) -> Dict[str, Any]:
        student = await self._source_entity(EntityType.STUDENT, _field(trigger_data, "student_data") or {})

        steps.append("suggesting_class")
        suggested_class = await self._suggest_class(student)

        steps.append("finding_parents")
        potential_parents = await self._find_parents(student)

        steps.append("recommending_subjects")
        recommended_subjects = await self._recommend_subjects(suggested_class)

        steps.append("setting_up_communication")
        communication = self._student_communication(student, suggested_class, potential_parents)

        return {
            "suggested_class": suggested_class,
            "potential_parents": potential_parents,
            "recommended_subjects": recommended_subjects,
            "communication_setup": communication,
            "steps": list(steps),
        }

    async def _suggest_class(self, student) -> Dict[str, Any]:
        pool = await self.entities.build_pool(EntityType.STUDENT, EntityType.CLASS)
        results = run_strategies(student, pool, (MatchStrategy.GRADE, MatchStrategy.CAPACITY))

        eligible = {m.target_id for m in results[MatchStrategy.GRADE]} & \
            {m.target_id for m in results[MatchStrategy.CAPACITY]}
        grade = extract_grade(student)
        suitable = sorted(
            (c for c in pool.classes if c.id in eligible),
            key=lambda c: class_suitability_score(c, grade),
            reverse=True,
        )

        basis = f"grade {grade}" if grade is not None else "no known grade"
        return {
            "suggested": _class_summary(suitable[0]) if suitable else None,
            "subject_ids": list(suitable[0].subject_ids or []) if suitable else [],
            "alternatives": [_class_summary(c) for c in suitable[1:3]],
            "reasoning": f"Based on {basis} and class capacity",
        }

    async def _find_parents(self, student) -> Dict[str, Any]:
        pool = await self.entities.build_pool(EntityType.STUDENT, EntityType.PARENT)
        matches = run_strategies(student, pool, (MatchStrategy.SURNAME,))[MatchStrategy.SURNAME]
        surname = extract_surname(student.name).lower()

        return {
            "matches": [{"id": m.target_id, "name": m.data.get("target_name")} for m in matches],
            "confidence": 0.8 if matches else 0.1,
            "reasoning": f'Found {len(matches)} parents with matching surname "{surname}"' if matches
                else f'No parents found with matching surname "{surname}"',
        }

    async def _recommend_subjects(self, suggested_class: Dict[str, Any]) -> Dict[str, Any]:
        subjects = await self.entities.list_subjects()

        if suggested_class.get("suggested"):
            class_subject_ids = set(suggested_class.get("subject_ids") or [])
            recommended = [s for s in subjects if s.id in class_subject_ids]
            reasoning = f"Based on class curriculum for {suggested_class['suggested']['name']}"
        else:
            recommended = [s for s in subjects if s.name in CORE_SUBJECTS]
            reasoning = "Core curriculum subjects for general education"

        recommended_ids = {s.id for s in recommended}
        return {
            "recommended": [_summary(s) for s in recommended],
            "alternatives": [_summary(s) for s in subjects if s.id not in recommended_ids],
            "reasoning": reasoning,
        }

    @staticmethod
    def _student_communication(student, suggested_class, potential_parents) -> Dict[str, Any]:
        channels = []
        if potential_parents["matches"]:
            channels.append({
                "type": "parent_student",
                "participants": [pid for pid in [student.id, *(p["id"] for p in potential_parents["matches"])] if pid],
                "status": "ready",
            })

        class_id = student.class_id or (suggested_class.get("suggested") or {}).get("id")
        if class_id:
            channels.append({
                "type": "class_student",
                "participants": [pid for pid in (student.id, class_id) if pid],
                "status": "ready",
            })

        return {
            "channels": channels,
            "status": "configured",
            "reasoning": f"Set up {len(channels)} communication channels",
        }

    # Teacher assignment

    async def _run_teacher_assignment(self, trigger_data: Dict[str, Any], steps: List[str]) -> Dict[str, Any]:
        teacher = await self._source_entity(EntityType.TEACHER, _field(trigger_data, "teacher_data") or {})

        steps.append("identifying_classes")
        relevant = await self._relevant_classes(teacher)

        steps.append("checking_workload")
        workload = await self._teacher_workload(teacher)

        steps.append("assigning_classes")
        assignment = await self._assign_classes(teacher, relevant, workload)

        steps.append("creating_communication_links")
        links = await self._teacher_links(teacher, assignment["assigned_classes"])

        return {
            "relevant_classes": relevant,
            "workload_balance": workload,
            "assignment_result": assignment,
            "communication_links": links,
            "steps": list(steps),
        }

    async def _relevant_classes(self, teacher) -> Dict[str, Any]:
        if not teacher.subject:
            return {"relevant": [], "subject": None, "reasoning": "No subject specified for teacher"}

        pool = await self.entities.build_pool(EntityType.TEACHER, EntityType.CLASS)
        subject = pool.subject_by_name(teacher.subject)
        if subject is None:
            return {
                "relevant": [],
                "subject": None,
                "reasoning": f'Subject "{teacher.subject}" not found in the school curriculum',
            }

        matches = run_strategies(teacher, pool, (MatchStrategy.SUBJECT,))[MatchStrategy.SUBJECT]
        by_id = {c.id: c for c in pool.classes}
        classes = [_class_summary(by_id[m.target_id]) for m in matches]
        return {
            "relevant": classes,
            "subject": _summary(subject),
            "reasoning": f"Found {len(classes)} classes that teach {teacher.subject}",
        }

    async def _teacher_workload(self, teacher) -> Dict[str, Any]:
        teachers = await self.entities.list_teachers(subject=teacher.subject) if teacher.subject else []
        workloads = [
            {"teacher": t.id, "name": t.name, "class_count": len(t.class_ids or [])}
            for t in teachers
        ]
        average = sum(w["class_count"] for w in workloads) / len(workloads) if workloads else 0.0
        own = len(teacher.class_ids or [])

        return {
            "current_workloads": workloads,
            "average_workload": round(average, 2),
            "teacher_workload": own,
            "can_assign_more": average < settings.max_classes_per_teacher and own < settings.max_classes_per_teacher,
            "reasoning": f"Current average workload is {average:.1f} classes per teacher",
        }

    async def _assign_classes(self, teacher, relevant: Dict[str, Any], workload: Dict[str, Any]) -> Dict[str, Any]:
        if not workload["can_assign_more"]:
            return {"assigned_classes": [], "persisted": False, "reasoning": "Teacher workload at maximum capacity"}

        room = settings.max_classes_per_teacher - len(teacher.class_ids or [])
        assigned = relevant["relevant"][:min(settings.max_new_teacher_assignments, room)]

        persisted = teacher.id is not None
        if persisted and assigned:
            # Flushed only; committed together with the execution record
            teacher.class_ids = [*(teacher.class_ids or []), *(c["id"] for c in assigned)]
            await self.db.flush()

        return {
            "assigned_classes": assigned,
            "persisted": persisted,
            "reasoning": f"Assigned to {len(assigned)} classes based on availability and workload balance",
        }

    async def _teacher_links(self, teacher, assigned_classes: List[Dict[str, Any]]) -> Dict[str, Any]:
        links = []
        for class_info in assigned_classes:
            for student in await self.entities.list_students(class_id=class_info["id"]):
                links.append({
                    "type": "teacher_student",
                    "teacher": teacher.id,
                    "student": student.id,
                    "class": class_info["id"],
                    "status": "active",
                })

        return {
            "links": links,
            "status": "established",
            "reasoning": f"Created {len(links)} teacher-student communication links",
        }

    # Class configuration

    async def _run_class_configuration(self, trigger_data: Dict[str, Any], steps: List[str]) -> Dict[str, Any]:
        class_obj = await self._source_entity(EntityType.CLASS, _field(trigger_data, "class_data") or {})

        steps.append("suggesting_subjects")
        suggested = await self._suggest_subjects(class_obj)

        steps.append("recommending_teachers")
        teachers = await self._recommend_teachers(class_obj, suggested)

        steps.append("creating_assessments")
        frameworks = self._assessment_frameworks(suggested)

        steps.append("generating_templates")
        templates = {
            "templates": COMMUNICATION_TEMPLATES,
            "reasoning": f"Generated {len(COMMUNICATION_TEMPLATES)} communication templates for class {class_obj.name}",
        }

        return {
            "suggested_subjects": suggested,
            "recommended_teachers": teachers,
            "assessment_frameworks": frameworks,
            "communication_templates": templates,
            "steps": list(steps),
        }

    async def _suggest_subjects(self, class_obj) -> Dict[str, Any]:
        subjects = await self.entities.list_subjects()
        core_names = core_subjects_for(class_obj.name)
        band = grade_band(class_obj.name)

        return {
            "suggested": [_summary(s) for s in subjects if s.name in core_names],
            "grade_level": band,
            "reasoning": f"Core subjects for grade level {band}",
        }

    async def _recommend_teachers(self, class_obj, suggested: Dict[str, Any]) -> Dict[str, Any]:
        pool = await self.entities.build_pool(EntityType.CLASS, EntityType.TEACHER)
        # Match against the suggested curriculum rather than the class's current one
        probe = ClassModel(name=class_obj.name, subject_ids=[s["id"] for s in suggested["suggested"]])
        probe.id = class_obj.id
        matches = run_strategies(probe, pool, (MatchStrategy.SUBJECT,))[MatchStrategy.SUBJECT]

        by_subject: Dict[str, List[Any]] = {}
        for match in matches:
            by_subject.setdefault(match.data["subject"].casefold(), []).append(match)

        recommendations = []
        for subject in suggested["suggested"]:
            candidates = sorted(by_subject.get(subject["name"].casefold(), []),
                                key=lambda m: m.data["current_workload"])
            if not candidates:
                continue
            recommendations.append({
                "subject": subject["name"],
                "recommended_teacher": candidates[0].target_id,
                "alternatives": [m.target_id for m in candidates[1:3]],
                "reasoning": "Best match based on subject expertise and current workload",
            })

        total = len(suggested["suggested"])
        return {
            "recommendations": recommendations,
            "total_subjects": total,
            "covered_subjects": len(recommendations),
            "reasoning": f"Found teachers for {len(recommendations)} out of {total} subjects",
        }

    @staticmethod
    def _assessment_frameworks(suggested: Dict[str, Any]) -> Dict[str, Any]:
        frameworks = [
            {"subject": subject["name"], "assessments": ASSESSMENT_PLAN, "grading_scale": GRADING_SCALE}
            for subject in suggested["suggested"]
        ]
        return {
            "frameworks": frameworks,
            "reasoning": f"Created assessment frameworks for {len(frameworks)} subjects",
        }
