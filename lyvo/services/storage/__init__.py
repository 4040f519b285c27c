"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; in-memory storage backs tests
and unconfigured runs.
"""

from lyvo.services.storage.interface import (
    AccessStorageInterface,
    AgendaStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from lyvo.services.storage.memory import (
    InMemoryAccessStorage,
    InMemoryAgendaStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from lyvo.services.storage.google_sheets import (
    GoogleSheetsAccessStorage,
    GoogleSheetsAgendaStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AccessStorageInterface",
    "AgendaStorageInterface",
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccessStorage",
    "InMemoryAgendaStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAccessStorage",
    "GoogleSheetsAgendaStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
