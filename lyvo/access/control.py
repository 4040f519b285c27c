"""
Access Control

Gate in front of the app: paying subscribers always get in, everyone
else gets a free trial that starts the first time they are seen.

DESIGN DECISION: A user without a record (signup still in flight) or
without a trial end date is granted a fresh trial instead of being
locked out.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from lyvo.models.agenda import AccessPlan, UserAccess
from lyvo.models.audit import AuditEventBuilder
from lyvo.services.storage import AccessStorageInterface

logger = structlog.get_logger(__name__)


class AccessController:
    """Decides whether a user may use the app."""

    def __init__(
        self,
        storage: AccessStorageInterface,
        trial_days: int = 3,
        clock: Callable[[], datetime] = datetime.utcnow,
        audit_logger=None,
    ):
        self._storage = storage
        self._trial = timedelta(days=trial_days)
        self._clock = clock
        self._audit = audit_logger

    def _granted(self, uid: str, granted: bool, reason: str) -> bool:
        logger.info("access_checked", uid=uid, granted=granted, reason=reason)
        if self._audit:
            self._audit.log(AuditEventBuilder.access_checked(uid, granted, reason))
        return granted

    def start_trial(self, uid: str, existing: Optional[UserAccess] = None) -> UserAccess:
        now = self._clock()
        if existing is None:
            access = UserAccess(uid=uid, created_at=now)
        else:
            access = existing.model_copy()
        access.active = False
        access.plan = AccessPlan.TRIAL
        access.trial_ends_at = now + self._trial
        self._storage.put(access)
        return access

    def check_user_access(self, uid: str) -> bool:
        access = self._storage.get(uid)

        if access is None:
            self.start_trial(uid)
            return self._granted(uid, True, "new user, trial started")

        if access.active:
            return self._granted(uid, True, "active subscription")

        if access.trial_ends_at is None:
            self.start_trial(uid, access)
            return self._granted(uid, True, "trial started")

        if self._clock() < access.trial_ends_at:
            return self._granted(uid, True, "within trial")

        return self._granted(uid, False, "trial expired")

    def set_subscription_status(self, uid: str, payment_status: str) -> UserAccess:
        """
        Apply a payment-provider status (billing webhook). "approved" and
        "active" turn the subscription on; anything else turns it off.
        """
        access = self._storage.get(uid) or UserAccess(uid=uid, created_at=self._clock())
        access.active = payment_status in ("approved", "active")
        if access.active:
            access.plan = AccessPlan.PREMIUM
        self._storage.put(access)
        return access
