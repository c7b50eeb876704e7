import csv
import sys
from database.db import SessionLocal
from models.enums import UserRole
from services.approval_repository import SqlAlchemyApprovalRepository
from services.approval_state_machine import ApprovalStateMachine
from services.assignment_repository import SqlAlchemyAssignmentRepository
from services.errors import ServiceError
from services.result_service import ResultService
from config.settings import settings

CSV_PATH = "data/results.csv"  # student_id,course_id,academic_year,semester,ca_score,exam_score
IMPORT_ACTOR = "csv-import"


def _score(value):
    # blank cell = missing score (counted as 0)
    return float(value) if value not in (None, "") else None


def migrate_results(path: str = CSV_PATH):
    approvals = SqlAlchemyApprovalRepository(SessionLocal)
    service = ResultService(
        SessionLocal,
        ApprovalStateMachine(approvals),
        approvals,
        SqlAlchemyAssignmentRepository(SessionLocal),
        ca_max_score=settings.CA_MAX_SCORE,
        exam_max_score=settings.EXAM_MAX_SCORE,
    )

    imported, skipped = 0, 0
    with open(path, newline="", encoding="utf-8-sig") as csvfile:
        reader = csv.DictReader(csvfile)
        for line, row in enumerate(reader, start=2):
            try:
                # imported as a department admin: every row enters the approval queue at PENDING
                service.record_scores(
                    IMPORT_ACTOR,
                    UserRole.DEPARTMENT_ADMIN,
                    int(row["student_id"]),
                    int(row["course_id"]),
                    row["academic_year"].strip(),
                    row["semester"].strip().upper(),
                    _score(row.get("ca_score")),
                    _score(row.get("exam_score")),
                )
                imported += 1
            except (ServiceError, ValueError) as exc:
                skipped += 1
                print(f"⚠️ line {line} skipped: {getattr(exc, 'message', exc)}")

    print(f"✅ results CSV -> DB done ({imported} imported, {skipped} skipped)")


if __name__ == "__main__":
    migrate_results(sys.argv[1] if len(sys.argv) > 1 else CSV_PATH)
