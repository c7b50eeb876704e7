from typing import Optional

from fastapi import APIRouter, Depends

from dependencies.security import Actor, get_actor, require_role
from dependencies.services import get_result_service
from models.enums import Semester, UserRole
from schemas.common import envelope
from schemas.results import ApprovalOut, ResultCreate, ResultOut
from services.errors import AuthorizationError
from services.result_service import ResultService

router = APIRouter(prefix="/results", tags=["results"])

score_editor = require_role(UserRole.LECTURER, UserRole.DEPARTMENT_ADMIN)


def _dump(result, approval):
    return {
        "result": ResultOut.model_validate(result).model_dump(mode="json"),
        "approval": ApprovalOut.model_validate(approval).model_dump(mode="json") if approval else None,
    }


# ==========================================================
# [Score submission]
# ==========================================================

# ✅ [CREATE] submit or correct CA/exam scores
# - new result -> approval opens at DEPARTMENT_ADMIN / PENDING
# - REJECTED result -> corrected and a new approval cycle opens
@router.post("", status_code=201)
def record_scores(
    payload: ResultCreate,
    actor: Actor = Depends(score_editor),
    service: ResultService = Depends(get_result_service),
):
    result, approval = service.record_scores(
        actor.id,
        actor.role,
        payload.student_id,
        payload.course_id,
        payload.academic_year,
        payload.semester,
        payload.ca_score,
        payload.exam_score,
    )
    return envelope(_dump(result, approval), message=f"Grade {result.grade} recorded")


# ==========================================================
# [Read]
# ==========================================================

# ✅ [LIST] results with their latest approval
# - students only ever see their own results
@router.get("")
def list_results(
    student_id: Optional[int] = None,
    course_id: Optional[int] = None,
    academic_year: Optional[str] = None,
    semester: Optional[Semester] = None,
    actor: Actor = Depends(get_actor),
    service: ResultService = Depends(get_result_service),
):
    if actor.role == UserRole.STUDENT:
        student_id = int(actor.id) if actor.id.isdigit() else -1
    rows = service.list_results(student_id, course_id, academic_year, semester)
    return envelope([_dump(result, approval) for result, approval in rows])


# ✅ [DETAIL]
@router.get("/{result_id}")
def get_result(
    result_id: int,
    actor: Actor = Depends(get_actor),
    service: ResultService = Depends(get_result_service),
):
    result, approval = service.get_result(result_id)
    if actor.role == UserRole.STUDENT and str(result.student_id) != actor.id:
        raise AuthorizationError("Students can only view their own results")
    return envelope(_dump(result, approval))


# ✅ [DELETE] only while no tier has approved it
@router.delete("/{result_id}")
def delete_result(
    result_id: int,
    actor: Actor = Depends(score_editor),
    service: ResultService = Depends(get_result_service),
):
    service.delete_result(result_id)
    return envelope({"id": result_id}, message="Result deleted")
