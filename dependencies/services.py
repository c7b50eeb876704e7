"""
Service wiring for the routers.

Everything hangs off get_session_factory so tests can swap the database
with a single dependency override.
"""

from fastapi import Depends

from config.settings import settings
from database.db import SessionLocal
from services.approval_repository import SqlAlchemyApprovalRepository
from services.approval_state_machine import ApprovalStateMachine
from services.assignment_repository import SqlAlchemyAssignmentRepository
from services.bulk_assignment import BulkAssignmentCoordinator, StagingSessionStore
from services.notifications import notification_client
from services.result_service import ResultService

# staged proposals live for the lifetime of the process
staging_store = StagingSessionStore()


def get_session_factory():
    return SessionLocal


def get_approval_repository(session_factory=Depends(get_session_factory)) -> SqlAlchemyApprovalRepository:
    return SqlAlchemyApprovalRepository(session_factory)


def get_assignment_repository(session_factory=Depends(get_session_factory)) -> SqlAlchemyAssignmentRepository:
    return SqlAlchemyAssignmentRepository(session_factory)


def get_state_machine(repository=Depends(get_approval_repository)) -> ApprovalStateMachine:
    return ApprovalStateMachine(repository, notifier=notification_client)


def get_result_service(
    session_factory=Depends(get_session_factory),
    state_machine=Depends(get_state_machine),
    approvals=Depends(get_approval_repository),
    assignments=Depends(get_assignment_repository),
) -> ResultService:
    return ResultService(
        session_factory,
        state_machine,
        approvals,
        assignments,
        ca_max_score=settings.CA_MAX_SCORE,
        exam_max_score=settings.EXAM_MAX_SCORE,
    )


def get_coordinator(repository=Depends(get_assignment_repository)) -> BulkAssignmentCoordinator:
    return BulkAssignmentCoordinator(
        repository,
        settings.CURRENT_ACADEMIC_YEAR,
        store=staging_store,
        max_workers=settings.BULK_CONFIRM_MAX_WORKERS,
    )
