from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict


class SessionGPAOut(BaseModel):
    academic_year: str
    semester: str
    gpa: float
    total_credits: float
    total_grade_points: float
    course_count: int

    model_config = ConfigDict(from_attributes=True)


class LevelGPAOut(BaseModel):
    level: str
    gpa: float
    total_credits: float
    total_grade_points: float
    sessions: List[str] = []
    can_proceed: bool = False

    model_config = ConfigDict(from_attributes=True)


class GradeStatisticsOut(BaseModel):
    total_courses: int
    passed: int
    weak_passed: int
    failed: int
    total_credits: float
    pass_rate: int
    distribution: Dict[str, int]

    model_config = ConfigDict(from_attributes=True)


class GraduationRequirementsOut(BaseModel):
    total_credits: float
    required_credits: float
    remaining_credits: float
    min_cgpa_required: float


class ProgressionOut(BaseModel):
    current_level: str
    next_level: str              # LEVEL_xxx or GRADUATION
    credits_to_next_level: float
    can_graduate: bool
    graduation_requirements: GraduationRequirementsOut


class TranscriptOut(BaseModel):
    student_id: int
    cgpa: float
    total_credits: float
    total_grade_points: float
    standing: str
    trend: Dict[str, Any]
    sessions: List[SessionGPAOut]
    levels: List[LevelGPAOut]
    statistics: GradeStatisticsOut
    progression: ProgressionOut
