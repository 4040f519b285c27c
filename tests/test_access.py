"""
Tests for the trial / subscription gate.
"""

import pytest
from datetime import datetime, timedelta

from lyvo.access import AccessController
from lyvo.models.agenda import AccessPlan, UserAccess
from lyvo.services.storage import InMemoryAccessStorage

START = datetime(2025, 3, 20, 9, 0)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture
def storage():
    return InMemoryAccessStorage()


@pytest.fixture
def access(storage, clock):
    return AccessController(storage, trial_days=3, clock=clock)


class TestCheckUserAccess:

    def test_new_user_gets_trial(self, access, storage):
        assert access.check_user_access("ana@example.com")

        record = storage.get("ana@example.com")
        assert record.plan == AccessPlan.TRIAL
        assert record.trial_ends_at == START + timedelta(days=3)

    def test_within_trial(self, access, clock):
        access.check_user_access("ana@example.com")
        clock.now = START + timedelta(days=2, hours=23)
        assert access.check_user_access("ana@example.com")

    def test_trial_expired(self, access, clock):
        access.check_user_access("ana@example.com")
        clock.now = START + timedelta(days=3)
        assert not access.check_user_access("ana@example.com")

    def test_missing_trial_end_starts_trial(self, access, storage):
        storage.put(UserAccess(uid="bia@example.com"))
        assert access.check_user_access("bia@example.com")
        assert storage.get("bia@example.com").trial_ends_at is not None

    def test_active_subscriber(self, access, storage, clock):
        storage.put(UserAccess(uid="caio@example.com", active=True, trial_ends_at=START))
        clock.now = START + timedelta(days=365)
        assert access.check_user_access("caio@example.com")

    def test_decisions_are_audited(self, storage, clock, audit_logger, audit_storage):
        gate = AccessController(storage, clock=clock, audit_logger=audit_logger)
        gate.check_user_access("ana@example.com")
        assert audit_storage.events[0].details["granted"] is True


class TestSubscriptionStatus:

    def test_approved_payment_unlocks(self, access, clock):
        access.check_user_access("ana@example.com")
        clock.now = START + timedelta(days=10)

        record = access.set_subscription_status("ana@example.com", "approved")

        assert record.active
        assert record.plan == AccessPlan.PREMIUM
        assert access.check_user_access("ana@example.com")

    def test_cancelled_payment_locks(self, access, clock):
        access.set_subscription_status("ana@example.com", "approved")
        access.set_subscription_status("ana@example.com", "cancelled")
        clock.now = START + timedelta(days=1)

        # No trial end date yet, so a fresh trial starts
        assert access.check_user_access("ana@example.com")
        clock.now = START + timedelta(days=10)
        assert not access.check_user_access("ana@example.com")
