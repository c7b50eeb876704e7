"""
AssignmentRepository: persistence contract for CourseAssignment records.

Every call uses its own session so the bulk confirm can fan writes out
across threads. Uniqueness on (course, academic year, semester) is enforced
by the table; a losing concurrent insert comes back as DuplicateError.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.course_assignments import CourseAssignment
from models.courses import Course
from models.enums import Semester
from models.lecturers import Lecturer
from services.errors import DuplicateError, NotFoundError, RepositoryError

logger = logging.getLogger(__name__)


class AssignmentRepository(ABC):
    @abstractmethod
    def exists(self, course_id: int, academic_year: str, semester: Semester) -> bool:
        pass

    @abstractmethod
    def create(self, course_id: int, lecturer_id: int, academic_year: str, semester: Semester,
               assigned_by: Optional[str] = None) -> CourseAssignment:
        """Raises DuplicateError if the course already has a lecturer for the term."""

    @abstractmethod
    def delete(self, assignment_id: int) -> None:
        pass

    @abstractmethod
    def get(self, assignment_id: int) -> CourseAssignment:
        pass

    @abstractmethod
    def find(self, course_id: int, academic_year: str, semester: Semester) -> Optional[CourseAssignment]:
        pass

    @abstractmethod
    def list(self, academic_year: Optional[str] = None, semester: Optional[Semester] = None,
             lecturer_id: Optional[int] = None) -> List[CourseAssignment]:
        pass


class SqlAlchemyAssignmentRepository(AssignmentRepository):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def exists(self, course_id, academic_year, semester) -> bool:
        return self.find(course_id, academic_year, semester) is not None

    def find(self, course_id, academic_year, semester) -> Optional[CourseAssignment]:
        try:
            with self._session_factory() as db:
                return db.execute(
                    select(CourseAssignment).where(
                        CourseAssignment.course_id == course_id,
                        CourseAssignment.academic_year == academic_year,
                        CourseAssignment.semester == Semester(semester),
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read course assignments") from exc

    def create(self, course_id, lecturer_id, academic_year, semester, assigned_by=None) -> CourseAssignment:
        try:
            with self._session_factory() as db:
                if db.get(Course, course_id) is None:
                    raise NotFoundError(f"Course {course_id} not found", details={"course_id": course_id})
                if db.get(Lecturer, lecturer_id) is None:
                    raise NotFoundError(f"Lecturer {lecturer_id} not found", details={"lecturer_id": lecturer_id})

                assignment = CourseAssignment(
                    course_id=course_id,
                    lecturer_id=lecturer_id,
                    academic_year=academic_year,
                    semester=Semester(semester),
                    assigned_by=assigned_by,
                )
                db.add(assignment)
                try:
                    db.commit()
                except IntegrityError as exc:
                    db.rollback()
                    raise DuplicateError(
                        "Course already has a lecturer assigned for this academic year/semester",
                        details={"course_id": course_id, "academic_year": academic_year,
                                 "semester": Semester(semester).value},
                    ) from exc
                db.refresh(assignment)
                return assignment
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to create course assignment: course_id={course_id}")
            raise RepositoryError("Could not create course assignment") from exc

    def get(self, assignment_id) -> CourseAssignment:
        try:
            with self._session_factory() as db:
                assignment = db.get(CourseAssignment, assignment_id)
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not read course assignment") from exc
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found", details={"assignment_id": assignment_id})
        return assignment

    def delete(self, assignment_id) -> None:
        try:
            with self._session_factory() as db:
                assignment = db.get(CourseAssignment, assignment_id)
                if assignment is None:
                    raise NotFoundError(f"Assignment {assignment_id} not found", details={"assignment_id": assignment_id})
                db.delete(assignment)
                db.commit()
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not delete course assignment") from exc

    def list(self, academic_year=None, semester=None, lecturer_id=None) -> List[CourseAssignment]:
        stmt = select(CourseAssignment)
        if academic_year:
            stmt = stmt.where(CourseAssignment.academic_year == academic_year)
        if semester is not None:
            stmt = stmt.where(CourseAssignment.semester == Semester(semester))
        if lecturer_id is not None:
            stmt = stmt.where(CourseAssignment.lecturer_id == lecturer_id)
        try:
            with self._session_factory() as db:
                return list(db.execute(stmt.order_by(CourseAssignment.id)).scalars().all())
        except SQLAlchemyError as exc:
            raise RepositoryError("Could not list course assignments") from exc
