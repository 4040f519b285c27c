"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by tests
and by the app when no spreadsheet is configured.
"""

from typing import Optional
from uuid import UUID

from lyvo.models.agenda import AgendaSnapshot, UserAccess
from lyvo.models.audit import AuditEvent
from lyvo.models.ledger import LedgerSnapshot
from lyvo.services.storage.interface import (
    AccessStorageInterface,
    AgendaStorageInterface,
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps a private copy of each user's last saved snapshot."""

    def __init__(self):
        self._snapshots: dict[str, LedgerSnapshot] = {}

    def load(self, uid: str) -> LedgerSnapshot:
        snapshot = self._snapshots.get(uid)
        return snapshot.model_copy(deep=True) if snapshot else LedgerSnapshot()

    def save(self, uid: str, snapshot: LedgerSnapshot) -> bool:
        self._snapshots[uid] = snapshot.model_copy(deep=True)
        return True


class InMemoryAgendaStorage(AgendaStorageInterface):

    def __init__(self):
        self._snapshots: dict[str, AgendaSnapshot] = {}

    def load(self, uid: str) -> AgendaSnapshot:
        snapshot = self._snapshots.get(uid)
        return snapshot.model_copy(deep=True) if snapshot else AgendaSnapshot()

    def save(self, uid: str, snapshot: AgendaSnapshot) -> bool:
        self._snapshots[uid] = snapshot.model_copy(deep=True)
        return True


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


class InMemoryAccessStorage(AccessStorageInterface):

    def __init__(self):
        self._records: dict[str, UserAccess] = {}

    def get(self, uid: str) -> Optional[UserAccess]:
        record = self._records.get(uid)
        return record.model_copy() if record else None

    def put(self, access: UserAccess) -> bool:
        self._records[access.uid] = access.model_copy()
        return True
