from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, UniqueConstraint

from database.db import Base
from models.enums import Semester


def _utcnow():
    return datetime.now(timezone.utc)


class Result(Base):
    __tablename__ = "results"  # one student's score in one course for one term
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "academic_year", "semester", name="uq_result_term"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    academic_year = Column(String(9), nullable=False)                      # "2024/2025"
    semester = Column(SAEnum(Semester, native_enum=False, length=10), nullable=False)
    ca_score = Column(Float, nullable=False, default=0.0)                  # 0 ~ 30
    exam_score = Column(Float, nullable=False, default=0.0)                # 0 ~ 70
    total_score = Column(Float, nullable=False, default=0.0)               # ca + exam
    grade = Column(String(2), nullable=False)                              # A ~ F
    grade_point = Column(Float, nullable=False, default=0.0)               # 5.0 ~ 0.0
    credit_unit = Column(Integer, nullable=False, default=0)               # copied from the course
    submitted_by = Column(String(64))                                      # lecturer actor id
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

