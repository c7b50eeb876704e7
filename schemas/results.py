from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enums import ApprovalStatus, Semester, UserRole


class ResultCreate(BaseModel):
    student_id: int
    course_id: int
    academic_year: str = Field(..., description="e.g. 2024/2025")
    semester: Semester
    ca_score: Optional[float] = None      # missing score counts as 0
    exam_score: Optional[float] = None


class ApprovalOut(BaseModel):
    id: int
    result_id: int
    cycle: int
    level: UserRole
    status: ApprovalStatus
    comments: Optional[str] = None
    department_admin_id: Optional[str] = None
    department_acted_at: Optional[datetime] = None
    school_admin_id: Optional[str] = None
    school_acted_at: Optional[datetime] = None
    senate_admin_id: Optional[str] = None
    senate_acted_at: Optional[datetime] = None
    version: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ResultOut(BaseModel):
    id: int
    student_id: int
    course_id: int
    academic_year: str
    semester: Semester
    ca_score: float
    exam_score: float
    total_score: float
    grade: str
    grade_point: float
    credit_unit: int
    submitted_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
