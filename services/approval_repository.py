"""
ApprovalRepository: persistence contract for ResultApproval records.

The SQLAlchemy implementation opens one short session per call, so rows it
returns are detached snapshots. Transitions are written with a version check
(optimistic concurrency) together with their audit row.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.approval_actions import ApprovalAction
from models.courses import Course
from models.enums import ApprovalStatus, Decision, Semester, UserRole
from models.result_approvals import ResultApproval
from models.results import Result
from models.students import Student
from services.errors import ConflictError, DuplicateError, NotFoundError, RepositoryError

logger = logging.getLogger(__name__)


class ApprovalRepository(ABC):
    @abstractmethod
    def create_approval(self, result: Result) -> ResultApproval:
        """Open a new approval cycle at DEPARTMENT_ADMIN / PENDING."""

    @abstractmethod
    def find_approval(self, result_id: int) -> ResultApproval:
        """Latest cycle for a result; NotFoundError when there is none."""

    @abstractmethod
    def get(self, approval_id: int) -> ResultApproval:
        pass

    @abstractmethod
    def save_transition(self, approval: ResultApproval, changes: Dict[str, Any], action: ApprovalAction) -> ResultApproval:
        """
        Apply `changes` if the stored version still equals `approval.version`,
        append `action`, and return the stored record.
        Raises ConflictError when someone else wrote first.
        """

    @abstractmethod
    def list_approvals(
        self,
        status: Optional[ApprovalStatus] = None,
        level: Optional[UserRole] = None,
        academic_year: Optional[str] = None,
        semester: Optional[Semester] = None,
    ) -> List[Tuple[ResultApproval, Result, Student, Course]]:
        """Latest cycle of each matching result."""

    @abstractmethod
    def latest_for_results(self, result_ids: Iterable[int]) -> Dict[int, ResultApproval]:
        pass

    @abstractmethod
    def has_approved_history(self, result_id: int) -> bool:
        """True once any tier approved any cycle of the result."""

    @abstractmethod
    def actions_for(self, approval_id: int) -> List[ApprovalAction]:
        pass


class SqlAlchemyApprovalRepository(ApprovalRepository):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create_approval(self, result: Result) -> ResultApproval:
        try:
            with self._session_factory() as db:
                last_cycle = db.execute(
                    select(func.max(ResultApproval.cycle)).where(ResultApproval.result_id == result.id)
                ).scalar()
                now = datetime.now(timezone.utc)
                approval = ResultApproval(
                    result_id=result.id,
                    cycle=(last_cycle or 0) + 1,
                    level=UserRole.DEPARTMENT_ADMIN,
                    status=ApprovalStatus.PENDING,
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
                db.add(approval)
                db.commit()
                db.refresh(approval)
                return approval
        except IntegrityError as exc:
            raise DuplicateError(
                "An approval cycle for this result was opened concurrently",
                details={"result_id": result.id},
            ) from exc
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to create approval: result_id={result.id}")
            raise RepositoryError("Could not create approval record") from exc

    def find_approval(self, result_id: int) -> ResultApproval:
        try:
            with self._session_factory() as db:
                approval = db.execute(
                    select(ResultApproval)
                    .where(ResultApproval.result_id == result_id)
                    .order_by(ResultApproval.cycle.desc())
                    .limit(1)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read approval record") from exc
        if approval is None:
            raise NotFoundError(f"No approval record for result {result_id}", details={"result_id": result_id})
        return approval

    def get(self, approval_id: int) -> ResultApproval:
        try:
            with self._session_factory() as db:
                approval = db.get(ResultApproval, approval_id)
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read approval record") from exc
        if approval is None:
            raise NotFoundError(f"Approval {approval_id} not found", details={"approval_id": approval_id})
        return approval

    def save_transition(self, approval: ResultApproval, changes: Dict[str, Any], action: ApprovalAction) -> ResultApproval:
        try:
            with self._session_factory() as db:
                values = dict(changes)
                values["version"] = approval.version + 1
                values["updated_at"] = datetime.now(timezone.utc)
                outcome = db.execute(
                    update(ResultApproval)
                    .where(ResultApproval.id == approval.id, ResultApproval.version == approval.version)
                    .values(**values)
                )
                if outcome.rowcount != 1:
                    db.rollback()
                    raise ConflictError(
                        "Approval was modified by another request; reload and retry",
                        details={"approval_id": approval.id, "expected_version": approval.version},
                    )
                action.approval_id = approval.id
                db.add(action)
                db.commit()
                return db.get(ResultApproval, approval.id, populate_existing=True)
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to save transition: approval_id={approval.id}")
            raise RepositoryError("Could not save approval transition") from exc

    def list_approvals(self, status=None, level=None, academic_year=None, semester=None):
        # current cycle only; earlier cycles stay reachable through actions_for
        latest = (
            select(ResultApproval.result_id, func.max(ResultApproval.cycle).label("cycle"))
            .group_by(ResultApproval.result_id)
            .subquery()
        )
        stmt = (
            select(ResultApproval, Result, Student, Course)
            .join(latest, (latest.c.result_id == ResultApproval.result_id) & (latest.c.cycle == ResultApproval.cycle))
            .join(Result, Result.id == ResultApproval.result_id)
            .join(Student, Student.id == Result.student_id)
            .join(Course, Course.id == Result.course_id)
        )
        if status is not None:
            stmt = stmt.where(ResultApproval.status == status)
        if level is not None:
            stmt = stmt.where(ResultApproval.level == level)
        if academic_year:
            stmt = stmt.where(Result.academic_year == academic_year)
        if semester is not None:
            stmt = stmt.where(Result.semester == semester)
        stmt = stmt.order_by(Student.matric_number.asc(), Result.academic_year.desc(), Course.code.asc())

        try:
            with self._session_factory() as db:
                return [tuple(row) for row in db.execute(stmt).all()]
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not list approvals") from exc

    def latest_for_results(self, result_ids: Iterable[int]) -> Dict[int, ResultApproval]:
        ids = list(result_ids)
        if not ids:
            return {}
        try:
            with self._session_factory() as db:
                rows = db.execute(
                    select(ResultApproval)
                    .where(ResultApproval.result_id.in_(ids))
                    .order_by(ResultApproval.result_id, ResultApproval.cycle)
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read approval records") from exc
        # later cycles overwrite earlier ones
        return {row.result_id: row for row in rows}

    def has_approved_history(self, result_id: int) -> bool:
        try:
            with self._session_factory() as db:
                count = db.execute(
                    select(func.count(ApprovalAction.id))
                    .join(ResultApproval, ResultApproval.id == ApprovalAction.approval_id)
                    .where(ResultApproval.result_id == result_id, ApprovalAction.decision == Decision.APPROVE)
                ).scalar()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read approval history") from exc
        return bool(count)

    def actions_for(self, approval_id: int) -> List[ApprovalAction]:
        try:
            with self._session_factory() as db:
                return list(
                    db.execute(
                        select(ApprovalAction)
                        .where(ApprovalAction.approval_id == approval_id)
                        .order_by(ApprovalAction.id)
                    ).scalars().all()
                )
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read approval actions") from exc
