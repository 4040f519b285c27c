"""
Tests for the agenda store.
"""

import pytest
from datetime import datetime
from uuid import uuid4

from lyvo.agenda import AgendaStore
from lyvo.ledger import NotFoundError, ValidationError
from lyvo.models.agenda import ConnectionStatus, EventSource
from lyvo.models.audit import AuditEventType

NOW = datetime(2025, 3, 20, 12, 0)


@pytest.fixture
def agenda(audit_logger):
    return AgendaStore(clock=lambda: NOW, audit_logger=audit_logger)


class TestEvents:

    def test_events_are_sorted_by_start(self, agenda):
        agenda.add_event({"title": "Dentista", "starts_at": datetime(2025, 3, 22, 14, 0)})
        agenda.add_event({"title": "Reunião", "starts_at": datetime(2025, 3, 21, 10, 0)})

        titles = [e.title for e in agenda.get_consolidated_events()]
        assert titles == ["Reunião", "Dentista"]

    def test_added_events_are_internal(self, agenda):
        event = agenda.add_event({
            "title": "Sync",
            "starts_at": datetime(2025, 3, 21, 10, 0),
            "source": EventSource.GOOGLE,
        })
        assert event.source == EventSource.INTERNAL

    def test_invalid_event(self, agenda):
        with pytest.raises(ValidationError):
            agenda.add_event({"title": "", "starts_at": datetime(2025, 3, 21, 10, 0)})

    def test_delete_event(self, agenda, audit_storage):
        event = agenda.add_event({"title": "Reunião", "starts_at": datetime(2025, 3, 21, 10, 0)})
        agenda.delete_event(event.id)

        assert agenda.get_consolidated_events() == []
        types = [e.event_type for e in audit_storage.events]
        assert types == [AuditEventType.EVENT_ADDED, AuditEventType.EVENT_DELETED]

    def test_delete_unknown_event(self, agenda):
        with pytest.raises(NotFoundError):
            agenda.delete_event(uuid4())


class TestConnections:

    def test_add_connection(self, agenda):
        connection = agenda.add_connection("ana@gmail.com", "GOOGLE")
        assert connection.status == ConnectionStatus.CONNECTED
        assert connection.last_sync_at == NOW

    def test_internal_cannot_be_connected(self, agenda):
        with pytest.raises(ValidationError):
            agenda.add_connection("local", EventSource.INTERNAL)

    def test_toggle(self, agenda):
        connection = agenda.add_connection("ana@outlook.com", EventSource.OUTLOOK)

        assert agenda.toggle_connection(connection.id).status == ConnectionStatus.DISCONNECTED
        assert agenda.toggle_connection(connection.id).status == ConnectionStatus.CONNECTED
        assert agenda.connections[0].status == ConnectionStatus.CONNECTED

    def test_toggle_unknown(self, agenda):
        with pytest.raises(NotFoundError):
            agenda.toggle_connection(uuid4())


class TestSnapshots:

    def test_round_trip(self, agenda):
        agenda.add_event({"title": "Dentista", "starts_at": datetime(2025, 3, 22, 14, 30)})
        agenda.add_connection("ana@gmail.com", EventSource.GOOGLE)

        restored = AgendaStore.from_snapshot(agenda.snapshot())

        assert restored.snapshot().model_dump() == agenda.snapshot().model_dump()

    def test_snapshot_is_detached(self, agenda):
        agenda.add_event({"title": "Dentista", "starts_at": datetime(2025, 3, 22, 14, 30)})
        snapshot = agenda.snapshot()
        snapshot.events[0].title = "changed"
        assert agenda.get_consolidated_events()[0].title == "Dentista"
