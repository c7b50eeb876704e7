"""
services/grade_engine.py

Score -> grade -> grade point, and GPA / CGPA aggregation.
Pure functions: no DB access, never raises. Bad input is read as 0.

5.0 grading scale:
  A: 70-100 (5.0)  B: 60-69 (4.0)  C: 50-59 (3.0)
  D: 45-49  (2.0)  E: 40-44 (1.0)  F: <40   (0.0)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.enums import ApprovalStatus

# ==========================================================
# [Grade table] the only place the boundaries live
# ==========================================================
GRADE_THRESHOLDS: List[Tuple[float, str]] = [
    (70.0, "A"),
    (60.0, "B"),
    (50.0, "C"),
    (45.0, "D"),
    (40.0, "E"),
]
FAIL_GRADE = "F"

GRADE_POINTS: Dict[str, float] = {
    "A": 5.0,
    "B": 4.0,
    "C": 3.0,
    "D": 2.0,
    "E": 1.0,
    "F": 0.0,
}

# E counts as a weak pass, F as a fail
PASS_GRADES = frozenset({"A", "B", "C", "D"})
WEAK_PASS_GRADES = frozenset({"E"})

SEMESTER_ORDER = {"FIRST": 1, "SECOND": 2, "SUMMER": 3}
LEVEL_ORDER = {"LEVEL_100": 1, "LEVEL_200": 2, "LEVEL_300": 3, "LEVEL_400": 4, "LEVEL_500": 5}

# (minimum cgpa, class of degree)
ACADEMIC_STANDINGS: List[Tuple[float, str]] = [
    (4.5, "First Class"),
    (3.5, "Second Class Upper"),
    (2.4, "Second Class Lower"),
    (1.5, "Third Class"),
    (1.0, "Pass"),
]

TREND_TOLERANCE = 0.1

# progression rules
LEVEL_CREDIT_THRESHOLD = 20     # credits needed to count as being at a level
CREDITS_PER_LEVEL = 24
GRADUATION_CREDITS = 120
GRADUATION_MIN_CGPA = 1.0
FINAL_LEVEL = "LEVEL_500"
GRADUATION = "GRADUATION"
PROCEED_MIN_GPA = 1.5


@dataclass(frozen=True)
class GradeEntry:
    """One graded course as seen by the aggregations."""

    grade: str
    credit_unit: float
    status: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[str] = None
    level: Optional[str] = None


@dataclass
class SessionGPA:
    academic_year: str
    semester: str
    gpa: float
    total_credits: float
    total_grade_points: float
    course_count: int


@dataclass
class LevelGPA:
    level: str
    gpa: float
    total_credits: float
    total_grade_points: float
    sessions: List[str] = field(default_factory=list)
    can_proceed: bool = False


@dataclass
class GradeStatistics:
    total_courses: int = 0
    passed: int = 0
    weak_passed: int = 0
    failed: int = 0
    total_credits: float = 0.0
    pass_rate: int = 0
    distribution: Dict[str, int] = field(default_factory=lambda: {g: 0 for g in GRADE_POINTS})


@dataclass
class GraduationRequirements:
    total_credits: float
    required_credits: float
    remaining_credits: float
    min_cgpa_required: float


@dataclass
class Progression:
    current_level: str
    next_level: str
    credits_to_next_level: float
    can_graduate: bool
    graduation_requirements: GraduationRequirements


@dataclass
class TranscriptSummary:
    cgpa: float
    total_credits: float
    total_grade_points: float
    standing: str
    trend: Dict[str, Any]
    sessions: List[SessionGPA]
    levels: List[LevelGPA]
    statistics: GradeStatistics
    progression: Progression


def _as_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _normalize_grade(grade: Any) -> str:
    return str(grade or "").strip().upper()


def _status_value(status: Any) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", status)


# ==========================================================
# [Per-course]
# ==========================================================
def total_score(ca_score: Any, exam_score: Any) -> float:
    return _as_number(ca_score) + _as_number(exam_score)


def grade_for(score: Any) -> str:
    """Letter grade for a total score. Boundary values take the higher grade."""
    s = _as_number(score)
    for minimum, letter in GRADE_THRESHOLDS:
        if s >= minimum:
            return letter
    return FAIL_GRADE


def points_for(grade: Any) -> float:
    return GRADE_POINTS.get(_normalize_grade(grade), 0.0)


def is_valid_grade(grade: Any) -> bool:
    return _normalize_grade(grade) in GRADE_POINTS


# ==========================================================
# [Aggregations]
# ==========================================================
def _weighted_totals(entries: Iterable[GradeEntry]) -> Tuple[float, float]:
    grade_points = 0.0
    credits = 0.0
    for entry in entries:
        letter = _normalize_grade(entry.grade)
        if letter not in GRADE_POINTS:
            continue
        unit = _as_number(entry.credit_unit)
        if unit <= 0:
            continue
        grade_points += GRADE_POINTS[letter] * unit
        credits += unit
    return grade_points, credits


def gpa(entries: Iterable[GradeEntry]) -> float:
    """
    sum(points * credit_unit) / sum(credit_unit)

    - 0.0 when there is no credit-bearing entry
    - not rounded; callers format for display
    """
    grade_points, credits = _weighted_totals(entries)
    if credits <= 0:
        return 0.0
    return grade_points / credits


def approved_only(entries: Iterable[GradeEntry]) -> List[GradeEntry]:
    return [e for e in entries if _status_value(e.status) == ApprovalStatus.SENATE_APPROVED.value]


def cgpa(entries: Iterable[GradeEntry]) -> float:
    """GPA over every senate-approved result; pending and rejected ones never count."""
    return gpa(approved_only(entries))


def session_gpas(entries: Iterable[GradeEntry]) -> List[SessionGPA]:
    """GPA per (academic_year, semester), oldest first."""
    grouped: Dict[Tuple[str, str], List[GradeEntry]] = {}
    for entry in entries:
        key = (entry.academic_year or "", _status_value(entry.semester) or "")
        grouped.setdefault(key, []).append(entry)

    sessions = []
    for (academic_year, semester), courses in grouped.items():
        grade_points, credits = _weighted_totals(courses)
        sessions.append(SessionGPA(
            academic_year=academic_year,
            semester=semester,
            gpa=grade_points / credits if credits > 0 else 0.0,
            total_credits=credits,
            total_grade_points=grade_points,
            course_count=len(courses),
        ))

    return sorted(sessions, key=lambda s: (s.academic_year, SEMESTER_ORDER.get(s.semester, 99)))


def level_gpas(entries: Iterable[GradeEntry]) -> List[LevelGPA]:
    grouped: Dict[str, List[GradeEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.level or "UNKNOWN", []).append(entry)

    levels = []
    for level, courses in grouped.items():
        grade_points, credits = _weighted_totals(courses)
        sessions = sorted({f"{c.academic_year}-{_status_value(c.semester)}" for c in courses})
        levels.append(LevelGPA(
            level=level,
            gpa=grade_points / credits if credits > 0 else 0.0,
            total_credits=credits,
            total_grade_points=grade_points,
            sessions=sessions,
        ))
    for level in levels:
        level.can_proceed = can_proceed_to_next_level(level)

    return sorted(levels, key=lambda l: LEVEL_ORDER.get(l.level, 99))


def can_proceed_to_next_level(level: LevelGPA, minimum_gpa: float = PROCEED_MIN_GPA) -> bool:
    return _as_number(level.gpa) >= minimum_gpa


def grade_statistics(entries: Iterable[GradeEntry]) -> GradeStatistics:
    stats = GradeStatistics()
    for entry in entries:
        letter = _normalize_grade(entry.grade)
        if letter not in GRADE_POINTS:
            continue
        stats.total_courses += 1
        stats.total_credits += max(_as_number(entry.credit_unit), 0.0)
        stats.distribution[letter] += 1
        if letter in PASS_GRADES:
            stats.passed += 1
        elif letter in WEAK_PASS_GRADES:
            stats.weak_passed += 1
        else:
            stats.failed += 1

    stats.pass_rate = round(stats.passed / stats.total_courses * 100) if stats.total_courses else 0
    return stats


def academic_standing(cgpa_value: Any) -> str:
    value = _as_number(cgpa_value)
    for minimum, standing in ACADEMIC_STANDINGS:
        if value >= minimum:
            return standing
    return "Fail"


def gpa_trend(sessions: List[SessionGPA]) -> Dict[str, Any]:
    if len(sessions) < 2:
        return {"trend": "stable", "change": 0.0, "sessions": len(sessions)}

    change = sessions[-1].gpa - sessions[0].gpa
    trend = "stable"
    if change > TREND_TOLERANCE:
        trend = "improving"
    elif change < -TREND_TOLERANCE:
        trend = "declining"
    return {"trend": trend, "change": round(change, 2), "sessions": len(sessions)}


# ==========================================================
# [Progression]
# ==========================================================
def progression(entries: Iterable[GradeEntry], cgpa_value: Any) -> Progression:
    """
    Where a student stands on the way to graduation.

    - current level: highest level holding at least LEVEL_CREDIT_THRESHOLD credits
      (LEVEL_100 when none does)
    - next level: the one after it, or GRADUATION after LEVEL_500
    - graduation: GRADUATION_CREDITS in total, at LEVEL_500, cgpa >= GRADUATION_MIN_CGPA
    """
    entries = list(entries)
    level_credits = {level: 0.0 for level in LEVEL_ORDER}
    total_credits = 0.0
    for entry in entries:
        unit = max(_as_number(entry.credit_unit), 0.0)
        total_credits += unit
        if entry.level in level_credits:
            level_credits[entry.level] += unit

    levels = list(LEVEL_ORDER)
    current = levels[0]
    for level in reversed(levels):
        if level_credits[level] >= LEVEL_CREDIT_THRESHOLD:
            current = level
            break

    index = levels.index(current)
    next_level = levels[index + 1] if index < len(levels) - 1 else GRADUATION

    return Progression(
        current_level=current,
        next_level=next_level,
        credits_to_next_level=max(0.0, CREDITS_PER_LEVEL - level_credits[current]),
        can_graduate=(
            total_credits >= GRADUATION_CREDITS
            and current == FINAL_LEVEL
            and _as_number(cgpa_value) >= GRADUATION_MIN_CGPA
        ),
        graduation_requirements=GraduationRequirements(
            total_credits=total_credits,
            required_credits=GRADUATION_CREDITS,
            remaining_credits=max(0.0, GRADUATION_CREDITS - total_credits),
            min_cgpa_required=GRADUATION_MIN_CGPA,
        ),
    )


def summarize(entries: Iterable[GradeEntry]) -> TranscriptSummary:
    """Transcript figures computed over senate-approved entries only."""
    approved = approved_only(entries)
    grade_points, credits = _weighted_totals(approved)
    cumulative = grade_points / credits if credits > 0 else 0.0
    sessions = session_gpas(approved)

    return TranscriptSummary(
        cgpa=cumulative,
        total_credits=credits,
        total_grade_points=grade_points,
        standing=academic_standing(round(cumulative, 2)),
        trend=gpa_trend(sessions),
        sessions=sessions,
        levels=level_gpas(approved),
        statistics=grade_statistics(approved),
        progression=progression(approved, cumulative),
    )
