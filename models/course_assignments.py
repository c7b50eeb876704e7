from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint

from database.db import Base
from models.enums import Semester
from models.results import _utcnow


class CourseAssignment(Base):
    __tablename__ = "course_assignments"  # lecturer in charge of a course for one term
    __table_args__ = (
        # at most one lecturer per course per term
        UniqueConstraint("course_id", "academic_year", "semester", name="uq_course_assignment_term"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    lecturer_id = Column(Integer, ForeignKey("lecturers.id"), nullable=False, index=True)
    academic_year = Column(String(9), nullable=False)
    semester = Column(SAEnum(Semester, native_enum=False, length=10), nullable=False)
    assigned_by = Column(String(64))                     # department admin actor id
    created_at = Column(DateTime(timezone=True), default=_utcnow)
