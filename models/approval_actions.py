from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text

from database.db import Base
from models.enums import ApprovalStatus, Decision, UserRole
from models.results import _utcnow


class ApprovalAction(Base):
    __tablename__ = "approval_actions"  # append-only audit trail, never updated

    id = Column(Integer, primary_key=True, index=True)
    approval_id = Column(Integer, ForeignKey("result_approvals.id"), nullable=False, index=True)
    level = Column(SAEnum(UserRole, native_enum=False, length=20), nullable=False)    # tier that acted
    decision = Column(SAEnum(Decision, native_enum=False, length=10), nullable=False)
    from_status = Column(SAEnum(ApprovalStatus, native_enum=False, length=20), nullable=False)
    to_status = Column(SAEnum(ApprovalStatus, native_enum=False, length=20), nullable=False)
    actor_id = Column(String(64), nullable=False)
    comments = Column(Text)
    acted_at = Column(DateTime(timezone=True), default=_utcnow)
