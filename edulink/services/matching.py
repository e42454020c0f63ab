# edulink/services/matching.py
"""Heuristic matching strategies for relationship suggestions.

Every strategy is a pure function ``strategy(source, pool) -> List[MatchResult]``
over rows that were already loaded by the entity accessor (or transient rows
built from workflow trigger data). Nothing here touches the database.

One selection table decides which strategies apply to a (source, target) pair;
the linking analyzer, the relationship engine and the workflow orchestrator
all score candidates through it.
"""
import enum
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.config import settings
from ..models.tenant_specific.automation import EntityType
from ..schemas.automation_schemas import MatchResult

GRADE_PATTERN = re.compile(r"Grade\s*(\d+)", re.IGNORECASE)


class MatchStrategy(str, enum.Enum):
    SURNAME = "surname_matching"
    SUBJECT = "subject_matching"
    GRADE = "grade_matching"
    CAPACITY = "capacity_matching"
    SEMANTIC = "semantic_analysis"


# Weights used to blend per-strategy confidence factors into one score
CONFIDENCE_WEIGHTS: Dict[str, float] = {
    "surname_exact_match": 0.9,
    "surname_partial_match": 0.6,
    "subject_match": 0.8,
    "grade_match": 0.7,
    "capacity_match": 0.6,
    "semantic_similarity": 0.5,
}

CORE_SUBJECTS = ["Mathematics", "English", "Science", "History"]

CORE_SUBJECTS_BY_GRADE_BAND: Dict[str, List[str]] = {
    "1-3": ["Mathematics", "English", "Science", "Art"],
    "4-6": ["Mathematics", "English", "Science", "History", "Geography"],
    "7-9": ["Mathematics", "English", "Science", "History", "Geography", "Computer Science"],
    "10-12": ["Mathematics", "English", "Physics", "Chemistry", "Biology", "History"],
}
DEFAULT_GRADE_BAND = "4-6"

IDEAL_TEACHER_WORKLOAD = 4


@dataclass
class CandidatePool:
    """Tenant rows a strategy may propose as targets."""
    source_type: EntityType
    target_type: EntityType
    students: List[Any] = field(default_factory=list)
    parents: List[Any] = field(default_factory=list)
    teachers: List[Any] = field(default_factory=list)
    classes: List[Any] = field(default_factory=list)
    subjects: List[Any] = field(default_factory=list)
    capacity_buffer: int = settings.class_capacity_soft_buffer
    max_classes_per_teacher: int = settings.max_classes_per_teacher

    def candidates(self) -> List[Any]:
        return {
            EntityType.STUDENT: self.students,
            EntityType.PARENT: self.parents,
            EntityType.TEACHER: self.teachers,
            EntityType.CLASS: self.classes,
        }[self.target_type]

    def subject_by_name(self, name: Optional[str]):
        if not name:
            return None
        return next((s for s in self.subjects if s.name == name), None)

    def subject_names(self, subject_ids: Iterable[str]) -> List[str]:
        wanted = set(subject_ids or [])
        return [s.name for s in self.subjects if s.id in wanted]


# Extraction helpers

def extract_surname(name: Optional[str]) -> str:
    parts = (name or "").split()
    return parts[-1] if parts else ""


def extract_grade_from_class(class_name: Optional[str]) -> Optional[int]:
    match = GRADE_PATTERN.search(class_name or "")
    return int(match.group(1)) if match else None


def grade_from_age(age: Optional[int]) -> Optional[int]:
    if age is None:
        return None
    return age // 6 + 1


def extract_grade(entity) -> Optional[int]:
    """Grade of a class (from its name) or of a student (class, grade level, then age)."""
    if entity is None:
        return None
    if hasattr(entity, "maximum_students"):
        return extract_grade_from_class(entity.name)

    class_ref = getattr(entity, "class_ref", None)
    if class_ref is not None:
        grade = extract_grade_from_class(class_ref.name)
        if grade is not None:
            return grade
    if getattr(entity, "grade_level", None) is not None:
        return entity.grade_level
    return grade_from_age(getattr(entity, "age", None))


def name_mentions_grade(name: Optional[str], grade: Optional[int]) -> bool:
    if grade is None or not name:
        return False
    return re.search(rf"\b{grade}\b", name) is not None


def grade_band(class_name: Optional[str]) -> str:
    grade = extract_grade_from_class(class_name)
    if grade is None:
        return DEFAULT_GRADE_BAND
    if grade <= 3:
        return "1-3"
    if grade <= 6:
        return "4-6"
    if grade <= 9:
        return "7-9"
    return "10-12"


def core_subjects_for(class_name: Optional[str]) -> List[str]:
    return CORE_SUBJECTS_BY_GRADE_BAND[grade_band(class_name)]


# Confidence helpers

def surname_confidence(source_name: Optional[str], target_name: Optional[str]) -> float:
    source_surname = extract_surname(source_name)
    target_surname = extract_surname(target_name)

    if source_surname and source_surname == target_surname:
        return 0.9
    if source_surname and source_surname.lower() in target_surname.lower():
        return 0.7
    return 0.3


def subject_confidence(source_subject: Optional[str], target_subject: Optional[str]) -> float:
    if source_subject and source_subject == target_subject:
        return 0.8
    if source_subject and target_subject and source_subject.casefold() == target_subject.casefold():
        return 0.6
    return 0.4


def is_grade_appropriate(class_name: Optional[str], grade: Optional[int]) -> bool:
    if grade is None:
        return True
    class_grade = extract_grade_from_class(class_name)
    if class_grade is None:
        return True
    return abs(class_grade - grade) <= 1


def grade_confidence(source_grade: Optional[int], target_grade: Optional[int]) -> float:
    if source_grade is None or target_grade is None:
        return 0.3
    distance = abs(source_grade - target_grade)
    if distance <= 1:
        return 0.8
    if distance <= 2:
        return 0.6
    return 0.3


def class_maximum(class_obj) -> int:
    return class_obj.maximum_students or settings.class_default_capacity


def has_capacity(class_obj, buffer: int) -> bool:
    maximum = class_maximum(class_obj)
    soft_limit = maximum - buffer if maximum > buffer else maximum
    return class_obj.current_students < soft_limit


def capacity_confidence(current: int, maximum: int) -> float:
    maximum = maximum or settings.class_default_capacity
    available = max(maximum - current, 0)
    return min(0.8, available / maximum * 2)


def workload_balance(workload: int) -> float:
    if workload == 0:
        return 1.0
    if workload <= IDEAL_TEACHER_WORKLOAD:
        return 0.8
    if workload <= IDEAL_TEACHER_WORKLOAD + 2:
        return 0.6
    return 0.3  # Overloaded


def semantic_score(grade_hit: bool, subject_hit: bool) -> float:
    score = 0.3
    if grade_hit:
        score += 0.3
    if subject_hit:
        score += 0.3
    return round(min(0.8, score), 4)


def class_suitability_score(class_obj, grade: Optional[int]) -> float:
    """0-100 ranking used to pick the best class for a student."""
    maximum = class_maximum(class_obj)
    current = class_obj.current_students
    score = 50.0

    if is_grade_appropriate(class_obj.name, grade):
        score += 40
    score += min(30.0, max(maximum - current, 0) / maximum * 30)

    if current < 25:
        score += 20
    elif current < 28:
        score += 10

    if len(class_obj.subject_ids or []) >= 3:
        score += 10

    return min(100.0, score)


def _assigned_class_ids(source) -> set:
    if getattr(source, "class_ids", None):
        return set(source.class_ids)
    if getattr(source, "class_id", None):
        return {source.class_id}
    return set()


# Strategies

def surname_matching(source, pool: CandidatePool) -> List[MatchResult]:
    """Parent <-> student candidates that share the source's surname."""
    surname = extract_surname(source.name).lower()
    if not surname:
        return []

    excluded = set(getattr(source, "children_ids", None) or [])
    excluded.add(source.id)
    if getattr(source, "parent_id", None):
        excluded.add(source.parent_id)

    results = []
    for candidate in pool.candidates():
        if candidate.id in excluded:
            continue
        if extract_surname(candidate.name).lower() != surname:
            continue
        results.append(MatchResult(
            target_id=candidate.id,
            target_type=pool.target_type.value,
            strategy=MatchStrategy.SURNAME.value,
            confidence=surname_confidence(source.name, candidate.name),
            reasoning=f'Surname match: "{surname}"',
            data={"match_type": "surname", "surname": surname, "target_name": candidate.name},
        ))
    return results


def subject_matching(source, pool: CandidatePool) -> List[MatchResult]:
    """Teacher <-> class candidates that share a subject."""
    results = []

    if pool.source_type == EntityType.TEACHER and pool.target_type == EntityType.CLASS:
        subject = pool.subject_by_name(source.subject)
        if subject is None:
            return []
        assigned = _assigned_class_ids(source)
        for class_obj in pool.classes:
            if class_obj.id in assigned or subject.id not in (class_obj.subject_ids or []):
                continue
            results.append(MatchResult(
                target_id=class_obj.id,
                target_type=EntityType.CLASS.value,
                strategy=MatchStrategy.SUBJECT.value,
                confidence=subject_confidence(source.subject, subject.name),
                reasoning=f'Subject match: "{subject.name}"',
                data={
                    "match_type": "subject",
                    "subject": subject.name,
                    "subject_id": subject.id,
                    "current_students": class_obj.current_students,
                },
            ))

    elif pool.source_type == EntityType.CLASS and pool.target_type == EntityType.TEACHER:
        class_subjects = pool.subject_names(source.subject_ids)
        for teacher in pool.teachers:
            if not teacher.subject or source.id in (teacher.class_ids or []):
                continue
            matching = [name for name in class_subjects if name.casefold() == teacher.subject.casefold()]
            if not matching:
                continue
            results.append(MatchResult(
                target_id=teacher.id,
                target_type=EntityType.TEACHER.value,
                strategy=MatchStrategy.SUBJECT.value,
                confidence=max(subject_confidence(name, teacher.subject) for name in matching),
                reasoning=f'Subject match: "{teacher.subject}"',
                data={
                    "match_type": "subject",
                    "subject": teacher.subject,
                    "current_workload": len(teacher.class_ids or []),
                },
            ))

    return results


def grade_matching(source, pool: CandidatePool) -> List[MatchResult]:
    """Classes within one grade of the student."""
    if pool.target_type != EntityType.CLASS:
        return []

    grade = extract_grade(source)
    assigned = _assigned_class_ids(source)
    results = []
    for class_obj in pool.classes:
        if class_obj.id in assigned or not is_grade_appropriate(class_obj.name, grade):
            continue
        class_grade = extract_grade_from_class(class_obj.name)
        results.append(MatchResult(
            target_id=class_obj.id,
            target_type=EntityType.CLASS.value,
            strategy=MatchStrategy.GRADE.value,
            confidence=grade_confidence(grade, class_grade),
            reasoning=f"Grade-appropriate class for grade {grade}" if grade is not None
                else "Student grade unknown; class not excluded",
            data={"match_type": "grade", "grade": grade, "class_grade": class_grade},
        ))
    return results


def capacity_matching(source, pool: CandidatePool) -> List[MatchResult]:
    """Classes with free seats, or teachers with room in their workload."""
    results = []

    if pool.target_type == EntityType.CLASS:
        assigned = _assigned_class_ids(source)
        for class_obj in pool.classes:
            if class_obj.id in assigned or not has_capacity(class_obj, pool.capacity_buffer):
                continue
            current = class_obj.current_students
            maximum = class_maximum(class_obj)
            results.append(MatchResult(
                target_id=class_obj.id,
                target_type=EntityType.CLASS.value,
                strategy=MatchStrategy.CAPACITY.value,
                confidence=capacity_confidence(current, maximum),
                reasoning=f"Available capacity: {current}/{maximum}",
                data={
                    "match_type": "capacity",
                    "capacity_info": {"current": current, "max": maximum, "available": maximum - current},
                },
            ))

    elif pool.target_type == EntityType.TEACHER:
        for teacher in pool.teachers:
            class_ids = teacher.class_ids or []
            if source.id in class_ids or len(class_ids) >= pool.max_classes_per_teacher:
                continue
            results.append(MatchResult(
                target_id=teacher.id,
                target_type=EntityType.TEACHER.value,
                strategy=MatchStrategy.CAPACITY.value,
                confidence=min(0.8, workload_balance(len(class_ids))),
                reasoning=f"Current workload: {len(class_ids)}/{pool.max_classes_per_teacher} classes",
                data={"match_type": "capacity", "current_workload": len(class_ids)},
            ))

    return results


def semantic_matching(source, pool: CandidatePool) -> List[MatchResult]:
    """Weak attribute-overlap matching: grade numbers in names and shared subjects."""
    grade = extract_grade(source) if pool.source_type != EntityType.TEACHER else None
    if pool.source_type == EntityType.TEACHER:
        subject = pool.subject_by_name(source.subject)
        subject_ids = {subject.id} if subject else set()
        subject_names = {source.subject.casefold()} if source.subject else set()
    else:
        subject_ids = set(getattr(source, "subject_ids", None) or [])
        subject_names = {name.casefold() for name in pool.subject_names(subject_ids)}

    assigned = _assigned_class_ids(source)
    results = []
    for candidate in pool.candidates():
        if pool.target_type == EntityType.CLASS:
            if candidate.id in assigned:
                continue
            grade_hit = name_mentions_grade(candidate.name, grade)
            subject_hit = bool(subject_ids & set(candidate.subject_ids or []))
        elif pool.target_type == EntityType.TEACHER:
            if source.id in (candidate.class_ids or []):
                continue
            grade_hit = False
            subject_hit = bool(candidate.subject) and candidate.subject.casefold() in subject_names
        elif pool.target_type == EntityType.STUDENT:
            if candidate.class_id == source.id:
                continue
            grade_hit = name_mentions_grade(source.name, extract_grade(candidate))
            subject_hit = False
        else:
            continue

        if not (grade_hit or subject_hit):
            continue
        relation = "grade and subject overlap" if grade_hit and subject_hit else (
            "grade overlap" if grade_hit else "subject overlap")
        results.append(MatchResult(
            target_id=candidate.id,
            target_type=pool.target_type.value,
            strategy=MatchStrategy.SEMANTIC.value,
            confidence=semantic_score(grade_hit, subject_hit),
            reasoning=f"Semantic relationship: {relation}",
            data={"match_type": "semantic", "grade_hit": grade_hit, "subject_hit": subject_hit},
        ))
    return results


STRATEGY_FUNCTIONS: Dict[MatchStrategy, Callable[[Any, CandidatePool], List[MatchResult]]] = {
    MatchStrategy.SURNAME: surname_matching,
    MatchStrategy.SUBJECT: subject_matching,
    MatchStrategy.GRADE: grade_matching,
    MatchStrategy.CAPACITY: capacity_matching,
    MatchStrategy.SEMANTIC: semantic_matching,
}

STRATEGY_TABLE: Dict[Tuple[EntityType, EntityType], Tuple[MatchStrategy, ...]] = {
    (EntityType.PARENT, EntityType.STUDENT): (MatchStrategy.SURNAME,),
    (EntityType.STUDENT, EntityType.PARENT): (MatchStrategy.SURNAME,),
    (EntityType.TEACHER, EntityType.CLASS): (MatchStrategy.SUBJECT, MatchStrategy.CAPACITY, MatchStrategy.SEMANTIC),
    (EntityType.CLASS, EntityType.TEACHER): (MatchStrategy.SUBJECT, MatchStrategy.CAPACITY, MatchStrategy.SEMANTIC),
    (EntityType.STUDENT, EntityType.CLASS): (MatchStrategy.GRADE, MatchStrategy.SEMANTIC),
    (EntityType.CLASS, EntityType.STUDENT): (MatchStrategy.SEMANTIC,),
}


def applicable_strategies(source_type: EntityType, target_type: EntityType) -> Tuple[MatchStrategy, ...]:
    return STRATEGY_TABLE.get((source_type, target_type), ())


def narrow_pool(source, pool: CandidatePool) -> CandidatePool:
    """Teachers with a specialization are only ever linked to classes teaching it."""
    if pool.source_type == EntityType.TEACHER and pool.target_type == EntityType.CLASS and source.subject:
        subject = pool.subject_by_name(source.subject)
        subject_id = subject.id if subject else None
        pool.classes = [c for c in pool.classes if subject_id and subject_id in (c.subject_ids or [])]
    return pool


def run_strategies(source, pool: CandidatePool,
                   strategies: Optional[Iterable[MatchStrategy]] = None) -> Dict[MatchStrategy, List[MatchResult]]:
    """Run strategies (default: the selection table's) in order; results keep per-strategy duplicates."""
    if strategies is None:
        strategies = applicable_strategies(pool.source_type, pool.target_type)
    pool = narrow_pool(source, pool)
    return {strategy: STRATEGY_FUNCTIONS[strategy](source, pool) for strategy in strategies}


def confidence_factors(results: Dict[MatchStrategy, List[MatchResult]]) -> Dict[str, float]:
    """One factor per strategy that ran: the best confidence it produced (0 if none)."""
    factor_keys = {
        MatchStrategy.SUBJECT: "subject_match",
        MatchStrategy.GRADE: "grade_match",
        MatchStrategy.CAPACITY: "capacity_match",
        MatchStrategy.SEMANTIC: "semantic_similarity",
    }
    factors: Dict[str, float] = {}
    for strategy, matches in results.items():
        best = max((m.confidence for m in matches), default=0.0)
        if strategy == MatchStrategy.SURNAME:
            key = "surname_exact_match" if best > 0.8 or not matches else "surname_partial_match"
        else:
            key = factor_keys[strategy]
        factors[key] = max(factors.get(key, 0.0), best)
    return factors


def overall_confidence(factors: Dict[str, float]) -> float:
    """Weight-normalized average of the confidence factors; 0.5 when there are none."""
    total_weight = sum(CONFIDENCE_WEIGHTS[key] for key in factors)
    if not total_weight:
        return 0.5
    total = sum(CONFIDENCE_WEIGHTS[key] * value for key, value in factors.items())
    return round(total / total_weight, 4)
