import logging
from typing import Optional

import httpx

from config.settings import settings
from models.approval_actions import ApprovalAction
from models.result_approvals import ResultApproval

logger = logging.getLogger(__name__)


class NotificationClient:
    """Posts approval events to the notification service once a transition is committed."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: Optional[int] = None):
        base = base_url if base_url is not None else settings.NOTIFY_API_BASE_URL
        self.base = base.rstrip("/") if base else None
        self.headers = {"Authorization": f"Bearer {token if token is not None else settings.NOTIFY_INTERNAL_TOKEN}"}
        self.timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.base)

    def post(self, path: str, json: dict):
        url = f"{self.base}{path}"
        with httpx.Client(timeout=self.timeout) as client:
            r = client.post(url, json=json, headers=self.headers)
            r.raise_for_status()
            return r.json() if r.content else None

    def result_approval_changed(self, approval: ResultApproval, action: ApprovalAction):
        if not self.enabled:
            logger.debug(f"Notifications disabled, skipping approval_id={approval.id}")
            return None
        payload = {
            "approval_id": approval.id,
            "result_id": approval.result_id,
            "decision": action.decision.value,
            "acted_by": action.actor_id,
            "tier": action.level.value,
            "status": approval.status.value,
            "level": approval.level.value,
            "comments": approval.comments,
        }
        return self.post("/notifications/result-approval", payload)

    # ApprovalStateMachine calls the notifier as notifier(approval, action)
    __call__ = result_approval_changed


notification_client = NotificationClient()
