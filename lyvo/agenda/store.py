"""
Agenda Store

Appointments created from chat, plus the external calendar accounts the
user has linked. The consolidated agenda is every event in start order.
"""

from datetime import datetime
from typing import Callable, Optional, Union

import pydantic

from lyvo.ledger.errors import NotFoundError, ValidationError
from lyvo.models.agenda import (
    AgendaSnapshot,
    CalendarConnection,
    CalendarEvent,
    ConnectionStatus,
    EventSource,
)
from lyvo.models.audit import AuditEventBuilder, AuditEventType


class AgendaStore:
    """One user's agenda, held in memory between loads and saves. Not reentrant."""

    def __init__(
        self,
        events: Optional[list[CalendarEvent]] = None,
        connections: Optional[list[CalendarConnection]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        audit_logger=None,
    ):
        self._events = [e.model_copy() for e in events or []]
        self._connections = [c.model_copy() for c in connections or []]
        self._clock = clock
        self._audit = audit_logger

    @classmethod
    def from_snapshot(cls, snapshot: AgendaSnapshot, **kwargs) -> "AgendaStore":
        return cls(events=snapshot.events, connections=snapshot.connections, **kwargs)

    def snapshot(self) -> AgendaSnapshot:
        return AgendaSnapshot(
            events=self._events,
            connections=self._connections,
        ).model_copy(deep=True)

    def _record(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    @property
    def connections(self) -> list[CalendarConnection]:
        return [c.model_copy() for c in self._connections]

    def add_event(self, event: Union[CalendarEvent, dict]) -> CalendarEvent:
        """Events entered in the app are always INTERNAL."""
        try:
            data = event.model_dump() if isinstance(event, CalendarEvent) else dict(event)
            data["source"] = EventSource.INTERNAL
            created = CalendarEvent.model_validate(data)
        except pydantic.ValidationError as e:
            issues = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError(f"Invalid event: {'; '.join(issues)}", issues)

        self._events.append(created)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.EVENT_ADDED, "event", created.id,
            f"Event added: {created.title}",
            details={"starts_at": created.starts_at.isoformat()},
        ))
        return created.model_copy()

    def delete_event(self, event_id) -> None:
        for index, event in enumerate(self._events):
            if str(event.id) == str(event_id):
                del self._events[index]
                self._record(AuditEventBuilder.entity_changed(
                    AuditEventType.EVENT_DELETED, "event", event.id, "Event deleted",
                ))
                return
        raise NotFoundError("event", event_id)

    def get_consolidated_events(self) -> list[CalendarEvent]:
        """All events sorted by start time, earliest first."""
        return [e.model_copy() for e in sorted(self._events, key=lambda e: e.starts_at)]

    def add_connection(self, account_name: str, source: Union[EventSource, str]) -> CalendarConnection:
        try:
            connection = CalendarConnection(
                account_name=account_name,
                source=source,
                last_sync_at=self._clock(),
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid calendar connection: {e}")
        if connection.source == EventSource.INTERNAL:
            raise ValidationError("Only external calendars can be connected")
        self._connections.append(connection)
        return connection.model_copy()

    def toggle_connection(self, connection_id) -> CalendarConnection:
        """Flip CONNECTED / DISCONNECTED. Reconnecting stamps a sync time."""
        for connection in self._connections:
            if str(connection.id) == str(connection_id):
                if connection.status == ConnectionStatus.CONNECTED:
                    connection.status = ConnectionStatus.DISCONNECTED
                else:
                    connection.status = ConnectionStatus.CONNECTED
                    connection.last_sync_at = self._clock()
                return connection.model_copy()
        raise NotFoundError("calendar connection", connection_id)
