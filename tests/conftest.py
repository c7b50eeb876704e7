import os

# settings are read at import time, so the environment is pinned before any app import
os.environ["SQLITE_PATH"] = ":memory:"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["CURRENT_ACADEMIC_YEAR"] = "2024/2025"
os.environ["CURRENT_SEMESTER"] = "FIRST"
os.environ["BULK_CONFIRM_MAX_WORKERS"] = "1"
os.environ["INTERNAL_API_TOKEN"] = ""
os.environ["NOTIFY_API_BASE_URL"] = ""

import threading
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.db import create_tables
from models.courses import Course
from models.enums import Semester
from models.lecturers import Lecturer
from models.students import Student
from services.approval_repository import SqlAlchemyApprovalRepository
from services.approval_state_machine import ApprovalStateMachine
from services.assignment_repository import AssignmentRepository, SqlAlchemyAssignmentRepository
from services.bulk_assignment import BulkAssignmentCoordinator, StagingSessionStore
from services.errors import DuplicateError, NotFoundError
from services.result_service import ResultService

CURRENT_YEAR = "2024/2025"
PAST_YEAR = "2023/2024"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def catalog(session_factory):
    """Two students, three courses (cu 3 / 2 / 3), two lecturers."""
    with session_factory() as db:
        db.add_all([
            Student(id=1, matric_number="ENG/2021/001", name="Ada Obi", department="Mechatronics", level="LEVEL_300"),
            Student(id=2, matric_number="ENG/2021/002", name="Tunde Bello", department="Mechatronics", level="LEVEL_300"),
            Course(id=1, code="MCE 324", title="Software Engineering", credit_unit=3, level="LEVEL_300", department="Mechatronics"),
            Course(id=2, code="MCE 326", title="Control Systems", credit_unit=2, level="LEVEL_300", department="Mechatronics"),
            Course(id=3, code="MCE 328", title="Robotics", credit_unit=3, level="LEVEL_300", department="Mechatronics"),
            Lecturer(id=1, name="Dr. Okafor", email="okafor@uni.edu", department="Mechatronics"),
            Lecturer(id=2, name="Dr. Musa", email="musa@uni.edu", department="Mechatronics"),
        ])
        db.commit()
    return SimpleNamespace(students=[1, 2], courses=[1, 2, 3], lecturers=[1, 2])


@pytest.fixture
def approval_repository(session_factory):
    return SqlAlchemyApprovalRepository(session_factory)


@pytest.fixture
def assignment_repository(session_factory):
    return SqlAlchemyAssignmentRepository(session_factory)


@pytest.fixture
def notifications():
    sent = []
    notifier = lambda approval, action: sent.append((approval.id, action.decision.value, approval.status.value))
    return SimpleNamespace(sent=sent, notifier=notifier)


@pytest.fixture
def state_machine(approval_repository, notifications):
    return ApprovalStateMachine(approval_repository, notifier=notifications.notifier)


@pytest.fixture
def result_service(session_factory, state_machine, approval_repository, assignment_repository):
    return ResultService(session_factory, state_machine, approval_repository, assignment_repository)


@pytest.fixture
def coordinator(assignment_repository):
    # one worker: the in-memory SQLite connection is shared
    return BulkAssignmentCoordinator(assignment_repository, CURRENT_YEAR, store=StagingSessionStore(), max_workers=1)


@pytest.fixture
def client(session_factory, catalog):
    from main import app
    from dependencies.services import get_session_factory, staging_store

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    staging_store.clear()


def actor(actor_id, role):
    return {"X-Actor-Id": str(actor_id), "X-Actor-Role": role}


# ==========================================================
# [In-memory assignment repository] for threaded confirm tests
# ==========================================================
class InMemoryAssignmentRepository(AssignmentRepository):
    def __init__(self, known_courses=(1, 2, 3), known_lecturers=(1, 2)):
        self._lock = threading.Lock()
        self._rows = {}
        self._next_id = 1
        self.known_courses = set(known_courses)
        self.known_lecturers = set(known_lecturers)

    def _key(self, course_id, academic_year, semester):
        return (course_id, academic_year, Semester(semester).value)

    def exists(self, course_id, academic_year, semester):
        return self.find(course_id, academic_year, semester) is not None

    def find(self, course_id, academic_year, semester):
        with self._lock:
            return self._rows.get(self._key(course_id, academic_year, semester))

    def create(self, course_id, lecturer_id, academic_year, semester, assigned_by=None):
        if course_id not in self.known_courses:
            raise NotFoundError(f"Course {course_id} not found")
        if lecturer_id not in self.known_lecturers:
            raise NotFoundError(f"Lecturer {lecturer_id} not found")
        key = self._key(course_id, academic_year, semester)
        with self._lock:
            if key in self._rows:
                raise DuplicateError("Course already has a lecturer assigned for this academic year/semester")
            row = SimpleNamespace(
                id=self._next_id, course_id=course_id, lecturer_id=lecturer_id,
                academic_year=academic_year, semester=Semester(semester), assigned_by=assigned_by,
            )
            self._next_id += 1
            self._rows[key] = row
            return row

    def delete(self, assignment_id):
        with self._lock:
            for key, row in list(self._rows.items()):
                if row.id == assignment_id:
                    del self._rows[key]
                    return
        raise NotFoundError(f"Assignment {assignment_id} not found")

    def get(self, assignment_id):
        with self._lock:
            for row in self._rows.values():
                if row.id == assignment_id:
                    return row
        raise NotFoundError(f"Assignment {assignment_id} not found")

    def list(self, academic_year=None, semester=None, lecturer_id=None):
        with self._lock:
            return sorted(self._rows.values(), key=lambda r: r.id)


@pytest.fixture
def memory_repository():
    return InMemoryAssignmentRepository()
