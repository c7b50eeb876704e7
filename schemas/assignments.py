from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enums import Semester


class StagingTerm(BaseModel):
    academic_year: str = Field(..., description="e.g. 2024/2025")
    semester: Optional[Semester] = None     # defaults to CURRENT_SEMESTER


class StageRequest(StagingTerm):
    course_id: int
    lecturer_id: int


class StageManyRequest(StagingTerm):
    course_ids: List[int] = Field(..., min_length=1)
    lecturer_id: int


class AssignmentOut(BaseModel):
    id: int
    course_id: int
    lecturer_id: int
    academic_year: str
    semester: Semester
    assigned_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
