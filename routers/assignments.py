from typing import Optional

from fastapi import APIRouter, Depends

from config.settings import settings
from dependencies.security import Actor, get_actor, require_role
from dependencies.services import get_assignment_repository, get_coordinator
from models.enums import Semester, UserRole
from schemas.assignments import AssignmentOut, StageManyRequest, StageRequest, StagingTerm
from schemas.common import envelope
from services.assignment_repository import AssignmentRepository
from services.bulk_assignment import BatchResult, BulkAssignmentCoordinator, StagingSession
from services.result_service import validate_academic_year

router = APIRouter(prefix="/assignments", tags=["assignments"])

assigner = require_role(UserRole.DEPARTMENT_ADMIN)


def _term_semester(semester: Optional[Semester]) -> Semester:
    # no semester given: the configured current one
    return semester or Semester(settings.CURRENT_SEMESTER)


def _session_data(session: StagingSession):
    return {
        "academic_year": session.academic_year,
        "semester": session.semester.value,
        "pending": [
            {"course_id": course_id, "lecturer_id": lecturer_id}
            for course_id, lecturer_id in sorted(session.pending.items())
        ],
    }


def _batch_data(batch: BatchResult):
    return {
        "items": [item.model_dump(mode="json") for item in batch.items],
        "created": len(batch.created),
        "failed": len(batch.failed),
    }


# ==========================================================
# [Staging] nothing is written until confirm
# ==========================================================

# ✅ [READ] the caller's staged pairs for a term
@router.get("/staging")
def get_staging(
    academic_year: str,
    semester: Optional[Semester] = None,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    session = coordinator.view_session(actor.id, validate_academic_year(academic_year), _term_semester(semester))
    return envelope(_session_data(session))


# ✅ [STAGE] one course -> lecturer (restaging a course replaces the lecturer)
@router.post("/staging")
def stage(
    payload: StageRequest,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    semester = _term_semester(payload.semester)
    session = coordinator.open_session(actor.id, validate_academic_year(payload.academic_year), semester)
    coordinator.stage(session, payload.course_id, payload.lecturer_id)
    return envelope(_session_data(session), message="Assignment staged")


# ✅ [STAGE MANY] several courses -> one lecturer
@router.post("/staging/batch")
def stage_many(
    payload: StageManyRequest,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    semester = _term_semester(payload.semester)
    session = coordinator.open_session(actor.id, validate_academic_year(payload.academic_year), semester)
    batch = coordinator.stage_many(session, payload.course_ids, payload.lecturer_id)
    return envelope({"batch": _batch_data(batch), "session": _session_data(session)})


# ✅ [CONFIRM] write every staged pair; failures stay staged
@router.post("/staging/confirm")
def confirm(
    payload: StagingTerm,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    semester = _term_semester(payload.semester)
    session = coordinator.view_session(actor.id, validate_academic_year(payload.academic_year), semester)
    batch = coordinator.confirm(session)
    if not batch.items and session.pending:
        message = f"{session.academic_year} is not the current academic year; nothing was assigned"
    else:
        message = f"{len(batch.created)} assigned, {len(batch.failed)} failed"
    return envelope({"batch": _batch_data(batch), "session": _session_data(session)}, message=message)


# ✅ [UNSTAGE] drop one course from the staged set
@router.delete("/staging/{course_id}")
def unstage(
    course_id: int,
    academic_year: str,
    semester: Optional[Semester] = None,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    session = coordinator.view_session(actor.id, validate_academic_year(academic_year), _term_semester(semester))
    coordinator.unstage(session, course_id)
    return envelope(_session_data(session))


# ✅ [CANCEL] discard the whole staging session
@router.delete("/staging")
def cancel(
    academic_year: str,
    semester: Optional[Semester] = None,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    session = coordinator.view_session(actor.id, validate_academic_year(academic_year), _term_semester(semester))
    coordinator.cancel(session)
    return envelope(None, message="Staging cleared")


# ==========================================================
# [Confirmed assignments]
# ==========================================================

# ✅ [LIST]
@router.get("")
def list_assignments(
    academic_year: Optional[str] = None,
    semester: Optional[Semester] = None,
    lecturer_id: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    repository: AssignmentRepository = Depends(get_assignment_repository),
):
    assignments = repository.list(academic_year, semester, lecturer_id)
    return envelope([AssignmentOut.model_validate(a).model_dump(mode="json") for a in assignments])


# ✅ [DELETE] current academic year only
@router.delete("/{assignment_id}")
def remove_assignment(
    assignment_id: int,
    actor: Actor = Depends(assigner),
    coordinator: BulkAssignmentCoordinator = Depends(get_coordinator),
):
    coordinator.remove_assignment(assignment_id)
    return envelope({"id": assignment_id}, message="Assignment removed")
