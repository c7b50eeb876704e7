from typing import Optional

from fastapi import APIRouter, Depends

from dependencies.security import Actor, get_actor, require_role
from dependencies.services import get_approval_repository, get_result_service, get_state_machine
from models.enums import ApprovalStatus, Semester, UserRole
from schemas.approvals import ActOutcomeOut, ApprovalActRequest, ApprovalListItem, BulkApprovalActRequest
from schemas.common import envelope
from schemas.results import ApprovalOut, ResultOut
from services.approval_repository import ApprovalRepository
from services.approval_state_machine import TIER_ORDER, ApprovalStateMachine
from services.result_service import ResultService

router = APIRouter(prefix="/approvals", tags=["approvals"])

approver = require_role(*TIER_ORDER)


# ==========================================================
# [Queue]
# ==========================================================

# ✅ [LIST] approvals with status statistics
# - e.g. ?level=SCHOOL_ADMIN&status=DEPARTMENT_APPROVED is the school admin's queue
@router.get("")
def list_approvals(
    status: Optional[ApprovalStatus] = None,
    level: Optional[UserRole] = None,
    academic_year: Optional[str] = None,
    semester: Optional[Semester] = None,
    actor: Actor = Depends(approver),
    service: ResultService = Depends(get_result_service),
):
    rows, statistics = service.list_approvals(status, level, academic_year, semester)
    items = [
        ApprovalListItem(
            approval=ApprovalOut.model_validate(row.approval),
            result=ResultOut.model_validate(row.result),
            student_id=row.student.id,
            matric_number=row.student.matric_number,
            student_name=row.student.name,
            course_code=row.course.code,
            course_title=row.course.title,
            semester=row.result.semester,
        ).model_dump(mode="json")
        for row in rows
    ]
    return envelope({"items": items, "statistics": statistics})


# ✅ [HISTORY] audit trail of one approval record
@router.get("/{approval_id}/actions")
def list_actions(
    approval_id: int,
    actor: Actor = Depends(approver),
    repository: ApprovalRepository = Depends(get_approval_repository),
):
    repository.get(approval_id)
    actions = [
        {
            "id": a.id,
            "level": a.level.value,
            "decision": a.decision.value,
            "from_status": a.from_status.value,
            "to_status": a.to_status.value,
            "actor_id": a.actor_id,
            "comments": a.comments,
            "acted_at": a.acted_at.isoformat() if a.acted_at else None,
        }
        for a in repository.actions_for(approval_id)
    ]
    return envelope(actions)


# ==========================================================
# [Decisions] role checks happen in the state machine
# ==========================================================

# ✅ [ACT] approve / reject one record
@router.post("/{approval_id}/act")
def act(
    approval_id: int,
    payload: ApprovalActRequest,
    actor: Actor = Depends(get_actor),
    machine: ApprovalStateMachine = Depends(get_state_machine),
):
    approval = machine.act(approval_id, actor.id, actor.role, payload.decision, payload.comments)
    return envelope(
        ApprovalOut.model_validate(approval).model_dump(mode="json"),
        message=f"Result {approval.status.value.lower()}",
    )


# ✅ [BULK ACT] same decision for several records, outcome per record
@router.post("/act")
def act_many(
    payload: BulkApprovalActRequest,
    actor: Actor = Depends(get_actor),
    machine: ApprovalStateMachine = Depends(get_state_machine),
):
    outcomes = machine.act_many(payload.approval_ids, actor.id, actor.role, payload.decision, payload.comments)
    items = [
        ActOutcomeOut(
            approval_id=o.approval_id,
            ok=o.ok,
            approval=ApprovalOut.model_validate(o.approval) if o.approval is not None else None,
            error_code=o.error_code,
            reason=o.reason,
        ).model_dump(mode="json")
        for o in outcomes
    ]
    succeeded = sum(1 for o in outcomes if o.ok)
    return envelope(
        {"items": items, "succeeded": succeeded, "failed": len(outcomes) - succeeded},
        message=f"{succeeded} of {len(outcomes)} processed",
    )
