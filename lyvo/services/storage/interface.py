"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ledger engine decoupled from storage implementation

The ledger and agenda engines work on in-memory snapshots; storage only
loads and saves whole snapshots, one per user. We're not building a
full ORM.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from lyvo.models.agenda import AgendaSnapshot, UserAccess
from lyvo.models.audit import AuditEvent
from lyvo.models.ledger import LedgerSnapshot


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods. Every user owns a separate ledger.
    """

    @abstractmethod
    def load(self, uid: str) -> LedgerSnapshot:
        """
        Load every ledger collection of one user.

        Returns an empty snapshot when nothing has been saved yet.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, uid: str, snapshot: LedgerSnapshot) -> bool:
        """
        Replace the user's stored ledger with `snapshot`. Other users'
        data is left untouched.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AgendaStorageInterface(ABC):
    """Per-user events and calendar connections."""

    @abstractmethod
    def load(self, uid: str) -> AgendaSnapshot:
        """The user's agenda, or an empty one."""
        pass

    @abstractmethod
    def save(self, uid: str, snapshot: AgendaSnapshot) -> bool:
        """Replace the user's stored agenda with `snapshot`."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one chat turn, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class AccessStorageInterface(ABC):
    """Per-user access records behind the trial gate."""

    @abstractmethod
    def get(self, uid: str) -> Optional[UserAccess]:
        """The user's record, or None if the user was never seen."""
        pass

    @abstractmethod
    def put(self, access: UserAccess) -> bool:
        """Insert or replace the user's record."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
