"""Services package."""

from lyvo.services.storage import (
    AccessStorageInterface,
    AgendaStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAccessStorage,
    GoogleSheetsAgendaStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAccessStorage,
    InMemoryAgendaStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)

__all__ = [
    "AccessStorageInterface",
    "AgendaStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAccessStorage",
    "GoogleSheetsAgendaStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAccessStorage",
    "InMemoryAgendaStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "StorageError",
]
