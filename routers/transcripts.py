from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from dependencies.security import Actor, get_actor, require_role
from dependencies.services import get_approval_repository, get_result_service, get_session_factory
from models.enums import Semester, UserRole
from schemas.common import envelope
from schemas.transcripts import TranscriptOut
from services import export_service
from services.approval_repository import ApprovalRepository
from services.approval_state_machine import TIER_ORDER
from services.errors import AuthorizationError
from services.result_service import ResultService

router = APIRouter(prefix="/transcripts", tags=["transcripts"])

exporter = require_role(*TIER_ORDER)


# ✅ [EXPORT] flattened rows as CSV (admins only)
# - declared before /{student_id} so "export.csv" is not read as an id
@router.get("/export.csv")
def export_csv(
    academic_year: Optional[str] = None,
    semester: Optional[Semester] = None,
    student_id: Optional[int] = None,
    actor: Actor = Depends(exporter),
    session_factory=Depends(get_session_factory),
    approvals: ApprovalRepository = Depends(get_approval_repository),
):
    rows = export_service.build_rows(session_factory, approvals, academic_year, semester, student_id)
    filename = f"transcripts_{(academic_year or 'all').replace('/', '-')}.csv"
    return Response(
        content=export_service.to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ✅ [TRANSCRIPT] CGPA / GPA per term and level, senate-approved results only
@router.get("/{student_id}")
def get_transcript(
    student_id: int,
    actor: Actor = Depends(get_actor),
    service: ResultService = Depends(get_result_service),
):
    if actor.role == UserRole.STUDENT and actor.id != str(student_id):
        raise AuthorizationError("Students can only view their own transcript")
    summary = service.transcript(student_id)
    data = TranscriptOut(student_id=student_id, **asdict(summary)).model_dump(mode="json")
    return envelope(data)
