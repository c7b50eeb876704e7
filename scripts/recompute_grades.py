"""
Recompute total / grade / grade point from the stored CA and exam scores.

Locked results (approved at some tier, or waiting above the department) are
only reported. Results still PENDING at the department, REJECTED, or without
an approval record are rewritten.

    python -m scripts.recompute_grades            # report + fix unlocked rows
    python -m scripts.recompute_grades --dry-run  # report only
"""

import sys
from sqlalchemy import select
from sqlalchemy.orm import Session
from database.db import SessionLocal
from models.enums import ApprovalStatus, UserRole
from models.results import Result as ResultModel
from services import grade_engine
from services.approval_repository import SqlAlchemyApprovalRepository


def _is_unlocked(approval) -> bool:
    if approval is None:
        return True
    if approval.status == ApprovalStatus.REJECTED:
        return True
    return approval.status == ApprovalStatus.PENDING and approval.level == UserRole.DEPARTMENT_ADMIN


def recompute_grades(dry_run: bool = False):
    approvals = SqlAlchemyApprovalRepository(SessionLocal)
    db: Session = SessionLocal()
    fixed, locked = 0, 0
    try:
        results = db.execute(select(ResultModel).order_by(ResultModel.id)).scalars().all()
        latest = approvals.latest_for_results(r.id for r in results)

        for result in results:
            total = grade_engine.total_score(result.ca_score, result.exam_score)
            grade = grade_engine.grade_for(total)
            points = grade_engine.points_for(grade)
            if (result.total_score, result.grade, result.grade_point) == (total, grade, points):
                continue

            drift = f"{result.total_score}/{result.grade} -> {total}/{grade}"
            if not _is_unlocked(latest.get(result.id)):
                locked += 1
                print(f"🔒 result {result.id}: {drift} (locked, not changed)")
                continue

            fixed += 1
            print(f"✏️ result {result.id}: {drift}")
            if not dry_run:
                result.total_score = total
                result.grade = grade
                result.grade_point = points

        if not dry_run:
            db.commit()
    finally:
        db.close()

    print(f"✅ recompute done ({fixed} {'to fix' if dry_run else 'fixed'}, {locked} locked)")


if __name__ == "__main__":
    recompute_grades(dry_run="--dry-run" in sys.argv)
