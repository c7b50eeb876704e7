"""
services/result_service.py

Score submission and the read side built on top of the approval workflow:
- record_scores : validate -> grade -> store Result -> open approval cycle
- delete_result : only while no tier has ever approved it
- list_approvals: filtered listing + status statistics
- transcript    : approved-only GPA / CGPA summary for a student
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config.settings import ACADEMIC_YEAR_PATTERN
from models.approval_actions import ApprovalAction
from models.courses import Course
from models.enums import ApprovalStatus, Semester, UserRole
from models.result_approvals import ResultApproval
from models.results import Result
from models.students import Student
from services import grade_engine
from services.approval_repository import ApprovalRepository
from services.approval_state_machine import ApprovalStateMachine
from services.assignment_repository import AssignmentRepository
from services.errors import (
    AuthorizationError, ConflictError, DuplicateError, NotFoundError, RepositoryError, StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SCORE_EDITORS = frozenset({UserRole.LECTURER, UserRole.DEPARTMENT_ADMIN})


def validate_academic_year(academic_year: str) -> str:
    match = ACADEMIC_YEAR_PATTERN.match(academic_year or "")
    if not match or int(match.group(2)) != int(match.group(1)) + 1:
        raise ValidationError(
            "academic_year must look like 2024/2025",
            details={"academic_year": academic_year},
        )
    return academic_year


def parse_semester(semester) -> Semester:
    try:
        return Semester(getattr(semester, "value", semester))
    except ValueError:
        raise ValidationError(f"Unknown semester: {semester}", details={"allowed": [s.value for s in Semester]})


def parse_role(role) -> UserRole:
    try:
        return UserRole(getattr(role, "value", role))
    except ValueError:
        raise AuthorizationError(f"Unknown role: {role}")


@dataclass
class ApprovalRow:
    approval: ResultApproval
    result: Result
    student: Student
    course: Course


class ResultService:
    def __init__(self, session_factory, state_machine: ApprovalStateMachine,
                 approval_repository: ApprovalRepository, assignment_repository: AssignmentRepository,
                 ca_max_score: float = 30.0, exam_max_score: float = 70.0):
        self._session_factory = session_factory
        self._state_machine = state_machine
        self._approvals = approval_repository
        self._assignments = assignment_repository
        self._ca_max = ca_max_score
        self._exam_max = exam_max_score

    # ==========================================================
    # [Write side]
    # ==========================================================
    def record_scores(self, actor_id: str, actor_role, student_id: int, course_id: int,
                      academic_year: str, semester, ca_score: Optional[float],
                      exam_score: Optional[float]) -> Tuple[Result, ResultApproval]:
        role = parse_role(actor_role)
        academic_year = validate_academic_year(academic_year)
        semester = parse_semester(semester)
        ca = self._check_score("ca_score", ca_score, self._ca_max)
        exam = self._check_score("exam_score", exam_score, self._exam_max)

        self._check_can_edit_scores(actor_id, role, course_id, academic_year, semester)

        total = grade_engine.total_score(ca, exam)
        grade = grade_engine.grade_for(total)
        points = grade_engine.points_for(grade)

        try:
            with self._session_factory() as db:
                if db.get(Student, student_id) is None:
                    raise NotFoundError(f"Student {student_id} not found", details={"student_id": student_id})
                course = db.get(Course, course_id)
                if course is None:
                    raise NotFoundError(f"Course {course_id} not found", details={"course_id": course_id})

                result = db.execute(
                    select(Result).where(
                        Result.student_id == student_id,
                        Result.course_id == course_id,
                        Result.academic_year == academic_year,
                        Result.semester == semester,
                    )
                ).scalar_one_or_none()

                reopen = True
                if result is not None:
                    current = self._correctable_approval(result)
                    reopen = current is None
                    if current is not None:
                        self._claim_pending_approval(db, current)
                else:
                    result = Result(
                        student_id=student_id,
                        course_id=course_id,
                        academic_year=academic_year,
                        semester=semester,
                    )
                    db.add(result)

                result.ca_score = ca
                result.exam_score = exam
                result.total_score = total
                result.grade = grade
                result.grade_point = points
                result.credit_unit = course.credit_unit or 0
                result.submitted_by = str(actor_id)
                db.commit()
                db.refresh(result)
        except IntegrityError as exc:
            raise DuplicateError(
                "A result for this student, course and term was submitted concurrently",
                details={"student_id": student_id, "course_id": course_id},
            ) from exc
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to store result: student_id={student_id} course_id={course_id}")
            raise RepositoryError("Could not store result") from exc

        if reopen:
            approval = self._state_machine.submit(result)
        else:
            approval = self._approvals.find_approval(result.id)

        logger.info(
            f"Scores recorded: result_id={result.id} total={total} grade={grade} by {role.value}:{actor_id}"
        )
        return result, approval

    def delete_result(self, result_id: int) -> None:
        if self._approvals.has_approved_history(result_id):
            raise StateError(
                "Results approved at any tier are kept for audit and cannot be deleted",
                error_code="RESULT_LOCKED",
                details={"result_id": result_id},
            )
        try:
            with self._session_factory() as db:
                result = db.get(Result, result_id)
                if result is None:
                    raise NotFoundError(f"Result {result_id} not found", details={"result_id": result_id})
                approval_ids = select(ResultApproval.id).where(ResultApproval.result_id == result_id)
                db.execute(delete(ApprovalAction).where(ApprovalAction.approval_id.in_(approval_ids)))
                db.execute(delete(ResultApproval).where(ResultApproval.result_id == result_id))
                db.delete(result)
                db.commit()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not delete result") from exc
        logger.info(f"Result deleted: result_id={result_id}")

    def _check_score(self, name: str, value: Optional[float], maximum: float) -> float:
        if value is None:
            return 0.0
        try:
            score = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a number", details={name: value})
        if score != score or score < 0 or score > maximum:
            raise ValidationError(
                f"{name} must be between 0 and {maximum:g}",
                error_code="SCORE_OUT_OF_RANGE",
                details={name: value, "max": maximum},
            )
        return score

    def _check_can_edit_scores(self, actor_id, role: UserRole, course_id, academic_year, semester) -> None:
        if role not in SCORE_EDITORS:
            raise AuthorizationError("Only lecturers and department admins can submit scores")
        if role != UserRole.LECTURER:
            return
        assignment = self._assignments.find(course_id, academic_year, semester)
        if assignment is None or str(assignment.lecturer_id) != str(actor_id):
            raise AuthorizationError(
                "Lecturer is not assigned to this course for the term",
                details={"course_id": course_id, "academic_year": academic_year, "semester": semester.value},
            )

    def _correctable_approval(self, result: Result) -> Optional[ResultApproval]:
        """
        Whether an existing result may take new scores.
        Returns the approval to correct in place, or None when the correction
        needs a fresh approval cycle.
        """
        try:
            approval = self._approvals.find_approval(result.id)
        except NotFoundError:
            return None
        if approval.status == ApprovalStatus.REJECTED:
            return None
        if approval.status == ApprovalStatus.PENDING and approval.level == UserRole.DEPARTMENT_ADMIN:
            return approval
        raise StateError(
            f"Result is locked while its approval is {approval.status.value}",
            error_code="RESULT_LOCKED",
            details={"result_id": result.id, "approval_id": approval.id, "status": approval.status.value},
        )

    def _claim_pending_approval(self, db, approval: ResultApproval) -> None:
        """
        Bump the approval's version inside the score-writing transaction.
        The write only goes through while the approval is still PENDING at the
        department, and any decision taken on the old version then conflicts.
        """
        outcome = db.execute(
            update(ResultApproval)
            .where(
                ResultApproval.id == approval.id,
                ResultApproval.version == approval.version,
                ResultApproval.status == ApprovalStatus.PENDING,
                ResultApproval.level == UserRole.DEPARTMENT_ADMIN,
            )
            .values(version=approval.version + 1)
        )
        if outcome.rowcount != 1:
            db.rollback()
            raise ConflictError(
                "Approval changed while the scores were being corrected; reload and retry",
                details={"result_id": approval.result_id, "approval_id": approval.id},
            )

    # ==========================================================
    # [Read side]
    # ==========================================================
    def get_result(self, result_id: int) -> Tuple[Result, Optional[ResultApproval]]:
        try:
            with self._session_factory() as db:
                result = db.get(Result, result_id)
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read result") from exc
        if result is None:
            raise NotFoundError(f"Result {result_id} not found", details={"result_id": result_id})
        return result, self._approvals.latest_for_results([result_id]).get(result_id)

    def list_results(self, student_id: Optional[int] = None, course_id: Optional[int] = None,
                     academic_year: Optional[str] = None, semester=None) -> List[Tuple[Result, Optional[ResultApproval]]]:
        stmt = select(Result)
        if student_id is not None:
            stmt = stmt.where(Result.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(Result.course_id == course_id)
        if academic_year:
            stmt = stmt.where(Result.academic_year == academic_year)
        if semester:
            stmt = stmt.where(Result.semester == parse_semester(semester))
        try:
            with self._session_factory() as db:
                results = list(db.execute(stmt.order_by(Result.id)).scalars().all())
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not list results") from exc
        latest = self._approvals.latest_for_results(r.id for r in results)
        return [(r, latest.get(r.id)) for r in results]

    def list_approvals(self, status=None, level=None, academic_year: Optional[str] = None,
                       semester=None) -> Tuple[List[ApprovalRow], Dict[str, int]]:
        status = ApprovalStatus(status) if status else None
        level = UserRole(level) if level else None
        semester = parse_semester(semester) if semester else None
        rows = [ApprovalRow(*row) for row in self._approvals.list_approvals(status, level, academic_year, semester)]
        return rows, approval_statistics(r.approval for r in rows)

    def grade_entries(self, student_id: int) -> List[grade_engine.GradeEntry]:
        try:
            with self._session_factory() as db:
                if db.get(Student, student_id) is None:
                    raise NotFoundError(f"Student {student_id} not found", details={"student_id": student_id})
                rows = db.execute(
                    select(Result, Course.level)
                    .join(Course, Course.id == Result.course_id)
                    .where(Result.student_id == student_id)
                ).all()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read results") from exc

        latest = self._approvals.latest_for_results(result.id for result, _ in rows)
        entries = []
        for result, level in rows:
            approval = latest.get(result.id)
            entries.append(grade_engine.GradeEntry(
                grade=result.grade,
                credit_unit=result.credit_unit,
                status=approval.status.value if approval else None,
                academic_year=result.academic_year,
                semester=result.semester.value,
                level=level,
            ))
        return entries

    def transcript(self, student_id: int) -> grade_engine.TranscriptSummary:
        return grade_engine.summarize(self.grade_entries(student_id))


def approval_statistics(approvals) -> Dict[str, Any]:
    stats = {"total": 0}
    stats.update({status.value.lower(): 0 for status in ApprovalStatus})
    for approval in approvals:
        stats["total"] += 1
        stats[approval.status.value.lower()] += 1
    return stats
