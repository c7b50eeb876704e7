from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, UniqueConstraint

from database.db import Base
from models.enums import ApprovalStatus, UserRole
from models.results import _utcnow


class ResultApproval(Base):
    __tablename__ = "result_approvals"  # workflow state of one result, one row per approval cycle
    __table_args__ = (
        UniqueConstraint("result_id", "cycle", name="uq_result_approval_cycle"),
    )

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("results.id"), nullable=False, index=True)
    cycle = Column(Integer, nullable=False, default=1)                       # 1, 2, ... per resubmission
    level = Column(SAEnum(UserRole, native_enum=False, length=20), nullable=False)       # tier awaited
    status = Column(SAEnum(ApprovalStatus, native_enum=False, length=20), nullable=False)
    comments = Column(Text)                                                  # rejection reason

    # ==========================================================
    # [Per-tier sign-off] written once by the acting tier
    # ==========================================================
    department_admin_id = Column(String(64))
    department_acted_at = Column(DateTime(timezone=True))
    school_admin_id = Column(String(64))
    school_acted_at = Column(DateTime(timezone=True))
    senate_admin_id = Column(String(64))
    senate_acted_at = Column(DateTime(timezone=True))

    version = Column(Integer, nullable=False, default=1)                      # optimistic concurrency
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
