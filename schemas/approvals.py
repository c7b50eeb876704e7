from typing import List, Optional

from pydantic import BaseModel, Field

from models.enums import Decision, Semester
from schemas.results import ApprovalOut, ResultOut


class ApprovalActRequest(BaseModel):
    decision: Decision
    comments: Optional[str] = Field(None, description="required when rejecting")


class BulkApprovalActRequest(ApprovalActRequest):
    approval_ids: List[int] = Field(..., min_length=1)


class ActOutcomeOut(BaseModel):
    approval_id: int
    ok: bool
    approval: Optional[ApprovalOut] = None
    error_code: Optional[str] = None
    reason: Optional[str] = None


class ApprovalListItem(BaseModel):
    approval: ApprovalOut
    result: ResultOut
    student_id: int
    matric_number: str
    student_name: str
    course_code: str
    course_title: str
    semester: Semester
