"""
services/approval_state_machine.py

Lifecycle of one result's approval record:

    PENDING@DEPARTMENT_ADMIN
      -> DEPARTMENT_APPROVED@SCHOOL_ADMIN
      -> FACULTY_APPROVED@SENATE_ADMIN
      -> SENATE_APPROVED            (terminal)

REJECTED (terminal) is reachable from any state still awaiting a tier.
Role checks for approvals live here and nowhere else.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from models.approval_actions import ApprovalAction
from models.enums import TERMINAL_STATUSES, ApprovalStatus, Decision, UserRole
from models.result_approvals import ResultApproval
from models.results import Result
from services.approval_repository import ApprovalRepository
from services.errors import AuthorizationError, NotFoundError, ServiceError, StateError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tier:
    role: UserRole
    awaiting_status: ApprovalStatus     # status while this tier's decision is awaited
    approved_status: ApprovalStatus     # status once this tier approves
    next_role: Optional[UserRole]       # None: approving here is final
    actor_column: str
    acted_at_column: str


# ==========================================================
# [Tier table] department -> school/faculty -> senate
# ==========================================================
TIERS: Dict[UserRole, Tier] = {
    UserRole.DEPARTMENT_ADMIN: Tier(
        role=UserRole.DEPARTMENT_ADMIN,
        awaiting_status=ApprovalStatus.PENDING,
        approved_status=ApprovalStatus.DEPARTMENT_APPROVED,
        next_role=UserRole.SCHOOL_ADMIN,
        actor_column="department_admin_id",
        acted_at_column="department_acted_at",
    ),
    UserRole.SCHOOL_ADMIN: Tier(
        role=UserRole.SCHOOL_ADMIN,
        awaiting_status=ApprovalStatus.DEPARTMENT_APPROVED,
        approved_status=ApprovalStatus.FACULTY_APPROVED,
        next_role=UserRole.SENATE_ADMIN,
        actor_column="school_admin_id",
        acted_at_column="school_acted_at",
    ),
    UserRole.SENATE_ADMIN: Tier(
        role=UserRole.SENATE_ADMIN,
        awaiting_status=ApprovalStatus.FACULTY_APPROVED,
        approved_status=ApprovalStatus.SENATE_APPROVED,
        next_role=None,
        actor_column="senate_admin_id",
        acted_at_column="senate_acted_at",
    ),
}
TIER_ORDER: List[UserRole] = [UserRole.DEPARTMENT_ADMIN, UserRole.SCHOOL_ADMIN, UserRole.SENATE_ADMIN]


def is_terminal(approval: ResultApproval) -> bool:
    return approval.status in TERMINAL_STATUSES


def is_eligible_for_cgpa(approval: Optional[ResultApproval]) -> bool:
    return approval is not None and approval.status == ApprovalStatus.SENATE_APPROVED


def tier_for_role(role) -> Tier:
    try:
        return TIERS[UserRole(role)]
    except (ValueError, KeyError):
        raise AuthorizationError(
            "Only department, school or senate admins can act on result approvals",
            details={"role": getattr(role, "value", role)},
        )


def is_consistent(approval: ResultApproval) -> bool:
    """level/status pairing is one the machine can produce."""
    if approval.status == ApprovalStatus.REJECTED:
        return approval.level in TIERS
    if approval.status == ApprovalStatus.SENATE_APPROVED:
        return approval.level == UserRole.SENATE_ADMIN
    tier = TIERS.get(approval.level)
    return tier is not None and tier.awaiting_status == approval.status


@dataclass
class ActOutcome:
    approval_id: int
    ok: bool
    approval: Optional[ResultApproval] = None
    error_code: Optional[str] = None
    reason: Optional[str] = None


class ApprovalStateMachine:
    def __init__(self, repository: ApprovalRepository,
                 notifier: Optional[Callable[[ResultApproval, ApprovalAction], None]] = None):
        self._repository = repository
        self._notifier = notifier

    def submit(self, result: Result) -> ResultApproval:
        """Open a cycle at DEPARTMENT_ADMIN/PENDING; only one cycle may be in flight."""
        try:
            current = self._repository.find_approval(result.id)
        except NotFoundError:
            current = None

        if current is not None and not is_terminal(current):
            raise ValidationError(
                "Result already has an approval in progress",
                error_code="APPROVAL_IN_FLIGHT",
                details={"result_id": result.id, "approval_id": current.id, "status": current.status.value},
            )

        approval = self._repository.create_approval(result)
        logger.info(f"Approval opened: result_id={result.id} approval_id={approval.id} cycle={approval.cycle}")
        return approval

    def act(self, approval_id: int, actor_id: str, actor_role, decision, comments: Optional[str] = None) -> ResultApproval:
        try:
            decision = Decision(getattr(decision, "value", decision))
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision}", details={"allowed": [d.value for d in Decision]})
        tier = tier_for_role(actor_role)
        approval = self._repository.get(approval_id)

        self._check_can_act(approval, tier)

        now = datetime.now(timezone.utc)
        if decision == Decision.REJECT:
            if not comments or not comments.strip():
                raise ValidationError("Comments are required to reject a result", error_code="COMMENTS_REQUIRED")
            changes = {"status": ApprovalStatus.REJECTED, "comments": comments.strip()}
        else:
            changes = {"status": tier.approved_status}
            if tier.next_role is not None:
                changes["level"] = tier.next_role
            if comments and comments.strip():
                changes["comments"] = comments.strip()

        changes[tier.actor_column] = str(actor_id)
        changes[tier.acted_at_column] = now

        action = ApprovalAction(
            level=tier.role,
            decision=decision,
            from_status=approval.status,
            to_status=changes["status"],
            actor_id=str(actor_id),
            comments=changes.get("comments"),
            acted_at=now,
        )
        stored = self._repository.save_transition(approval, changes, action)
        logger.info(
            f"Approval {decision.value}: approval_id={approval_id} by {tier.role.value}:{actor_id} "
            f"{approval.status.value} -> {stored.status.value}"
        )
        self._notify(stored, action)
        return stored

    def act_many(self, approval_ids: Iterable[int], actor_id: str, actor_role, decision,
                 comments: Optional[str] = None) -> List[ActOutcome]:
        """Apply one decision to several approvals; each item succeeds or fails on its own."""
        outcomes = []
        for approval_id in approval_ids:
            try:
                stored = self.act(approval_id, actor_id, actor_role, decision, comments)
                outcomes.append(ActOutcome(approval_id=approval_id, ok=True, approval=stored))
            except ServiceError as exc:
                outcomes.append(ActOutcome(approval_id=approval_id, ok=False, error_code=exc.error_code, reason=exc.message))
        return outcomes

    # ==========================================================
    # [Guards]
    # ==========================================================
    def _check_can_act(self, approval: ResultApproval, tier: Tier) -> None:
        if is_terminal(approval):
            raise StateError(
                f"Result approval is already finalized ({approval.status.value})",
                error_code="ALREADY_FINALIZED",
                details={"approval_id": approval.id, "status": approval.status.value},
            )

        actor_index = TIER_ORDER.index(tier.role)
        level_index = TIER_ORDER.index(approval.level)
        if actor_index < level_index:
            raise StateError(
                f"{tier.role.value} has already acted on this result",
                error_code="ALREADY_ACTED",
                details={"approval_id": approval.id, "level": approval.level.value},
            )
        if actor_index > level_index:
            raise AuthorizationError(
                f"Awaiting {approval.level.value}, not {tier.role.value}",
                details={"approval_id": approval.id, "level": approval.level.value},
            )

    def _notify(self, approval: ResultApproval, action: ApprovalAction) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(approval, action)
        except Exception:
            # the transition is committed; a lost notification must not surface as a failed action
            logger.exception(f"Notification dispatch failed: approval_id={approval.id}")
