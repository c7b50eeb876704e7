"""
Flattened result rows for spreadsheets.

One row per (student, course, term). Term GPA and CGPA only count
senate-approved results, matching what the transcript shows.
"""

import csv
import io
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models.courses import Course
from models.results import Result
from models.students import Student
from services import grade_engine
from services.approval_repository import ApprovalRepository
from services.errors import RepositoryError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "student_id",
    "matric_number",
    "student_name",
    "course_code",
    "course_title",
    "credit_unit",
    "academic_year",
    "semester",
    "ca_score",
    "exam_score",
    "total_score",
    "grade",
    "grade_point",
    "gpa",
    "cgpa",
    "approval_status",
]

MISSING = "N/A"


def _fmt(value, digits: Optional[int] = None) -> str:
    if value is None or value == "":
        return MISSING
    if digits is not None:
        return f"{float(value):.{digits}f}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(getattr(value, "value", value))


def build_rows(session_factory, approval_repository: ApprovalRepository,
               academic_year: Optional[str] = None, semester=None,
               student_id: Optional[int] = None) -> List[Dict[str, str]]:
    stmt = (
        select(Result, Student, Course)
        .join(Student, Student.id == Result.student_id)
        .join(Course, Course.id == Result.course_id)
    )
    if student_id is not None:
        stmt = stmt.where(Result.student_id == student_id)
    stmt = stmt.order_by(Student.matric_number, Result.academic_year, Result.semester, Course.code)

    try:
        with session_factory() as db:
            rows = db.execute(stmt).all()
    except SQLAlchemyError as exc:
        raise RepositoryError("Could not read results for export") from exc

    latest = approval_repository.latest_for_results(result.id for result, _, _ in rows)

    # CGPA spans every term on record, so entries are collected before the term filter
    by_student: Dict[int, List[grade_engine.GradeEntry]] = {}
    by_term: Dict[tuple, List[grade_engine.GradeEntry]] = {}
    for result, student, course in rows:
        approval = latest.get(result.id)
        entry = grade_engine.GradeEntry(
            grade=result.grade,
            credit_unit=result.credit_unit,
            status=approval.status.value if approval else None,
            academic_year=result.academic_year,
            semester=result.semester.value,
            level=course.level,
        )
        by_student.setdefault(student.id, []).append(entry)
        by_term.setdefault((student.id, result.academic_year, result.semester.value), []).append(entry)

    semester_value = getattr(semester, "value", semester)
    export = []
    for result, student, course in rows:
        if academic_year and result.academic_year != academic_year:
            continue
        if semester_value and result.semester.value != semester_value:
            continue
        approval = latest.get(result.id)
        term_entries = by_term[(student.id, result.academic_year, result.semester.value)]
        export.append({
            "student_id": _fmt(student.id),
            "matric_number": _fmt(student.matric_number),
            "student_name": _fmt(student.name),
            "course_code": _fmt(course.code),
            "course_title": _fmt(course.title),
            "credit_unit": _fmt(result.credit_unit),
            "academic_year": _fmt(result.academic_year),
            "semester": _fmt(result.semester),
            "ca_score": _fmt(result.ca_score),
            "exam_score": _fmt(result.exam_score),
            "total_score": _fmt(result.total_score),
            "grade": _fmt(result.grade),
            "grade_point": _fmt(result.grade_point, 1),
            "gpa": _fmt(grade_engine.cgpa(term_entries), 2),
            "cgpa": _fmt(grade_engine.cgpa(by_student[student.id]), 2),
            "approval_status": _fmt(approval.status if approval else None),
        })

    logger.info(f"Export built: {len(export)} rows (academic_year={academic_year}, semester={semester_value})")
    return export


def to_csv(rows: Iterable[Dict[str, str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()
