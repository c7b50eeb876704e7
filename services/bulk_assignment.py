"""
services/bulk_assignment.py

Two-phase course assignment:
  1) stage   : admin proposes course -> lecturer pairs inside a StagingSession
  2) confirm : every staged pair is written independently (best effort)

Nothing reaches the assignment table before confirm(). Pairs that fail stay
staged so the admin can retry or drop them; pairs that succeed leave the session.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from models.enums import Semester
from services.assignment_repository import AssignmentRepository
from services.errors import DuplicateError, RepositoryError, ServiceError, StateError

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CREATED = "created"
    STAGED = "staged"
    FAILED = "failed"


class BatchItem(BaseModel):
    course_id: int
    lecturer_id: int
    outcome: Outcome
    assignment_id: Optional[int] = None
    error_code: Optional[str] = None
    reason: Optional[str] = None


class BatchResult(BaseModel):
    items: List[BatchItem] = Field(default_factory=list)

    @property
    def created(self) -> List[BatchItem]:
        return [i for i in self.items if i.outcome != Outcome.FAILED]

    @property
    def failed(self) -> List[BatchItem]:
        return [i for i in self.items if i.outcome == Outcome.FAILED]


class StagingSession(BaseModel):
    """One admin's unconfirmed proposals for one term. Serializable, never persisted."""

    admin_id: str
    academic_year: str
    semester: Semester
    pending: Dict[int, int] = Field(default_factory=dict)   # course_id -> lecturer_id

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.admin_id, self.academic_year, self.semester.value)


class StagingSessionStore:
    """In-process sessions keyed by admin + term; no admin can see another's session."""

    def __init__(self):
        self._sessions: Dict[Tuple[str, str, str], StagingSession] = {}
        self._lock = threading.RLock()

    def get_or_create(self, admin_id: str, academic_year: str, semester) -> StagingSession:
        key = (str(admin_id), academic_year, Semester(semester).value)
        with self._lock:
            if key not in self._sessions:
                self._sessions[key] = StagingSession(
                    admin_id=str(admin_id), academic_year=academic_year, semester=Semester(semester)
                )
            return self._sessions[key]

    def find(self, admin_id: str, academic_year: str, semester) -> Optional[StagingSession]:
        with self._lock:
            return self._sessions.get((str(admin_id), academic_year, Semester(semester).value))

    def discard(self, session: StagingSession) -> None:
        with self._lock:
            if self._sessions.get(session.key) is session:
                del self._sessions[session.key]

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class BulkAssignmentCoordinator:
    def __init__(self, repository: AssignmentRepository, current_academic_year: str,
                 store: Optional[StagingSessionStore] = None, max_workers: int = 8):
        self._repository = repository
        self._current_academic_year = current_academic_year
        self._store = store if store is not None else StagingSessionStore()
        self._max_workers = max(1, max_workers)

    def open_session(self, admin_id: str, academic_year: str, semester) -> StagingSession:
        return self._store.get_or_create(admin_id, academic_year, semester)

    def view_session(self, admin_id: str, academic_year: str, semester) -> StagingSession:
        """The stored session, or an empty unstored one; reading never grows the store."""
        session = self._store.find(admin_id, academic_year, semester)
        if session is None:
            session = StagingSession(admin_id=str(admin_id), academic_year=academic_year, semester=Semester(semester))
        return session

    # ==========================================================
    # [Staging]
    # ==========================================================
    def stage(self, session: StagingSession, course_id: int, lecturer_id: int) -> StagingSession:
        """Propose a pair; restaging a course replaces the earlier lecturer."""
        if self._repository.exists(course_id, session.academic_year, session.semester):
            raise DuplicateError(
                "Course already has a lecturer assigned for this academic year/semester",
                details={"course_id": course_id, "academic_year": session.academic_year,
                         "semester": session.semester.value},
            )
        previous = session.pending.get(course_id)
        session.pending[course_id] = lecturer_id
        if previous is not None and previous != lecturer_id:
            logger.debug(f"Restaged course_id={course_id}: lecturer {previous} -> {lecturer_id}")
        return session

    def stage_many(self, session: StagingSession, course_ids: Iterable[int], lecturer_id: int) -> BatchResult:
        """One lecturer for many selected courses; each course is staged or refused on its own."""
        batch = BatchResult()
        for course_id in course_ids:
            try:
                self.stage(session, course_id, lecturer_id)
                batch.items.append(BatchItem(course_id=course_id, lecturer_id=lecturer_id, outcome=Outcome.STAGED))
            except ServiceError as exc:
                batch.items.append(BatchItem(
                    course_id=course_id, lecturer_id=lecturer_id, outcome=Outcome.FAILED,
                    error_code=exc.error_code, reason=exc.message,
                ))
        return batch

    def unstage(self, session: StagingSession, course_id: int) -> StagingSession:
        session.pending.pop(course_id, None)
        return session

    def clear(self, session: StagingSession) -> StagingSession:
        session.pending.clear()
        return session

    def cancel(self, session: StagingSession) -> None:
        session.pending.clear()
        self._store.discard(session)

    # ==========================================================
    # [Confirm]
    # ==========================================================
    def confirm(self, session: StagingSession) -> BatchResult:
        if session.academic_year != self._current_academic_year:
            logger.warning(
                f"Refusing confirm for past academic year {session.academic_year} "
                f"(current {self._current_academic_year}), admin={session.admin_id}"
            )
            return BatchResult()

        pairs = list(session.pending.items())
        if not pairs:
            self._store.discard(session)
            return BatchResult()

        workers = min(self._max_workers, len(pairs))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            items = list(executor.map(lambda pair: self._attempt(session, *pair), pairs))

        for item in items:
            # only drop the entry if it still holds the lecturer we just wrote
            if item.outcome == Outcome.CREATED and session.pending.get(item.course_id) == item.lecturer_id:
                del session.pending[item.course_id]
        if not session.pending:
            self._store.discard(session)

        batch = BatchResult(items=items)
        logger.info(
            f"Bulk assignment confirm admin={session.admin_id} term={session.academic_year}/{session.semester.value}: "
            f"{len(batch.created)} created, {len(batch.failed)} failed"
        )
        return batch

    def _attempt(self, session: StagingSession, course_id: int, lecturer_id: int) -> BatchItem:
        try:
            if self._repository.exists(course_id, session.academic_year, session.semester):
                raise DuplicateError("Course already has a lecturer assigned for this academic year/semester")
            assignment = self._repository.create(
                course_id, lecturer_id, session.academic_year, session.semester, assigned_by=session.admin_id
            )
        except ServiceError as exc:
            logger.info(f"Assignment failed course_id={course_id} lecturer_id={lecturer_id}: {exc.error_code}")
            return BatchItem(
                course_id=course_id, lecturer_id=lecturer_id, outcome=Outcome.FAILED,
                error_code=exc.error_code, reason=exc.message,
            )
        except Exception as exc:
            logger.exception(f"Assignment write crashed course_id={course_id} lecturer_id={lecturer_id}")
            return BatchItem(
                course_id=course_id, lecturer_id=lecturer_id, outcome=Outcome.FAILED,
                error_code=RepositoryError.error_code, reason=str(exc) or type(exc).__name__,
            )
        return BatchItem(
            course_id=course_id, lecturer_id=lecturer_id, outcome=Outcome.CREATED, assignment_id=assignment.id,
        )

    # ==========================================================
    # [Existing assignments]
    # ==========================================================
    def remove_assignment(self, assignment_id: int) -> None:
        assignment = self._repository.get(assignment_id)
        if assignment.academic_year != self._current_academic_year:
            raise StateError(
                "Assignments from past academic years are read-only",
                error_code="PAST_ACADEMIC_YEAR",
                details={"assignment_id": assignment_id, "academic_year": assignment.academic_year},
            )
        self._repository.delete(assignment_id)
        logger.info(f"Course assignment removed: assignment_id={assignment_id}")
