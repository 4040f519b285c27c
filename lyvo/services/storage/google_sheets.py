"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The user can view and fix their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a save rewrites each worksheet in turn, one write
  per worksheet
- Limited query capabilities (the engine works in memory anyway)

One worksheet per collection, one row per entity. Ledger and agenda
rows start with the owner's uid so every user only sees their own
data. List and nested fields are stored as JSON in `*_json` columns.
"""

import json
from datetime import datetime
from typing import Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential

from lyvo.config import GoogleSheetsSettings, get_settings
from lyvo.models.agenda import AgendaSnapshot, CalendarConnection, CalendarEvent, UserAccess
from lyvo.models.audit import AuditEvent, AuditEventType, AuditSeverity
from lyvo.models.ledger import (
    BudgetLimit,
    CreditCard,
    FixedBill,
    Forecast,
    LedgerSnapshot,
    Transaction,
)
from lyvo.services.storage.interface import (
    AccessStorageInterface,
    AgendaStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)

M = TypeVar("M", bound=BaseModel)

logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "kind",
    "amount",
    "description",
    "category",
    "occurred_at",
    "card_ref",
    "billing_month",
    "payment_ref_json",
]

FIXED_BILL_COLUMNS = [
    "id",
    "name",
    "base_value",
    "due_day",
    "category",
    "is_recurring",
    "start_month",
    "ended_at",
    "paid_months_json",
    "skipped_months_json",
]

FORECAST_COLUMNS = [
    "id",
    "kind",
    "value",
    "expected_date",
    "description",
    "category",
    "is_recurring",
    "status",
    "start_month",
    "ended_at",
    "skipped_months_json",
]

CREDIT_CARD_COLUMNS = [
    "id",
    "name",
    "limit",
    "due_day",
    "best_purchase_day",
    "color",
    "brand",
    "paid_invoices_json",
]

BUDGET_LIMIT_COLUMNS = [
    "id",
    "category",
    "monthly_limit",
    "spent",
]

EVENT_COLUMNS = [
    "id",
    "title",
    "starts_at",
    "description",
    "location",
    "source",
    "color",
]

CONNECTION_COLUMNS = [
    "id",
    "account_name",
    "status",
    "source",
    "last_sync_at",
]

# Leading column of every ledger and agenda worksheet
OWNER_COLUMN = "owner_uid"

USER_COLUMNS = [
    "uid",
    "active",
    "plan",
    "trial_ends_at",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def model_to_row(model: BaseModel, columns: list[str]) -> list[str]:
    """Flatten a model into cells following `columns`."""
    data = model.model_dump(mode="json")
    row = []
    for column in columns:
        if column.endswith("_json"):
            value = data.get(column[:-5])
            row.append(json.dumps(value) if value is not None else "")
            continue
        value = data.get(column)
        row.append("" if value is None else str(value))
    return row


def row_to_model(model_cls: type[M], row: list, columns: list[str]) -> M:
    """
    Rebuild a model from cells. Empty cells are left out so model
    defaults apply.
    """
    data = {}
    for index, column in enumerate(columns):
        cell = row[index] if index < len(row) else ""
        if cell == "":
            continue
        if column.endswith("_json"):
            data[column[:-5]] = json.loads(cell)
        else:
            data[column] = cell
    return model_cls.model_validate(data)


def rewrite_owned_rows(sheet, uid: str, columns: list[str], rows: list[list[str]]) -> None:
    """
    Replace the rows owned by `uid` with a single write.

    Rows of other owners are kept. Rows left over from a longer previous
    version of the sheet are blanked.
    """
    header = [OWNER_COLUMN] + columns
    width = len(header)
    existing = sheet.get_all_values()

    kept = [row for row in existing[1:] if row and row[0] and row[0] != uid]
    values = [header] + kept + [[uid] + row for row in rows]
    values = [(list(row) + [""] * width)[:width] for row in values]
    values += [[""] * width for _ in range(len(existing) - len(values))]

    if len(values) > sheet.row_count:
        sheet.add_rows(len(values) - sheet.row_count)
    sheet.update(range_name="A1", values=values)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class _OwnedSheetsStorage:
    """
    Whole-snapshot storage spread over several worksheets, one per
    collection, scoped by owner uid.
    """

    snapshot_cls: type[BaseModel]
    label = "data"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _collections(self) -> list[tuple[str, str, type[BaseModel], list[str]]]:
        raise NotImplementedError

    def _worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        return self._client.get_worksheet(title, [OWNER_COLUMN] + columns)

    def _load(self, uid: str):
        data = {}
        try:
            for field, title, model_cls, columns in self._collections():
                sheet = self._worksheet(title, columns)
                items = []
                for row in sheet.get_all_values()[1:]:  # Skip header
                    if len(row) < 2 or row[0] != uid or not row[1]:
                        continue
                    try:
                        items.append(row_to_model(model_cls, row[1:], columns))
                    except (ValueError, TypeError) as e:
                        logger.warning(
                            "sheets_row_skipped",
                            worksheet=title,
                            row_id=row[1],
                            error=str(e),
                        )
                data[field] = items
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load {self.label}: {e}")

        return self.snapshot_cls(**data)

    def _save(self, uid: str, snapshot) -> bool:
        try:
            for field, title, _, columns in self._collections():
                sheet = self._worksheet(title, columns)
                rows = [model_to_row(item, columns) for item in getattr(snapshot, field)]
                rewrite_owned_rows(sheet, uid, columns, rows)
            return True
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {self.label}: {e}")


class GoogleSheetsLedgerStorage(_OwnedSheetsStorage, LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    `load` reads the user's rows of every collection worksheet; `save`
    rewrites them.
    """

    snapshot_cls = LedgerSnapshot
    label = "ledger"

    def _collections(self) -> list[tuple[str, str, type[BaseModel], list[str]]]:
        settings = self._client.settings
        return [
            ("transactions", settings.transactions_sheet_name, Transaction, TRANSACTION_COLUMNS),
            ("fixed_bills", settings.fixed_bills_sheet_name, FixedBill, FIXED_BILL_COLUMNS),
            ("forecasts", settings.forecasts_sheet_name, Forecast, FORECAST_COLUMNS),
            ("credit_cards", settings.credit_cards_sheet_name, CreditCard, CREDIT_CARD_COLUMNS),
            ("budget_limits", settings.budget_limits_sheet_name, BudgetLimit, BUDGET_LIMIT_COLUMNS),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def load(self, uid: str) -> LedgerSnapshot:
        return self._load(uid)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def save(self, uid: str, snapshot: LedgerSnapshot) -> bool:
        return self._save(uid, snapshot)


class GoogleSheetsAgendaStorage(_OwnedSheetsStorage, AgendaStorageInterface):
    """Events and calendar connections, one worksheet each."""

    snapshot_cls = AgendaSnapshot
    label = "agenda"

    def _collections(self) -> list[tuple[str, str, type[BaseModel], list[str]]]:
        settings = self._client.settings
        return [
            ("events", settings.events_sheet_name, CalendarEvent, EVENT_COLUMNS),
            ("connections", settings.calendar_connections_sheet_name, CalendarConnection, CONNECTION_COLUMNS),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def load(self, uid: str) -> AgendaSnapshot:
        return self._load(uid)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def save(self, uid: str, snapshot: AgendaSnapshot) -> bool:
        return self._save(uid, snapshot)


class GoogleSheetsAccessStorage(AccessStorageInterface):
    """User access records, one row per uid."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._client.settings.users_sheet_name, USER_COLUMNS)

    def get(self, uid: str) -> Optional[UserAccess]:
        try:
            for row in self._sheet().get_all_values()[1:]:
                if row and row[0] == uid:
                    return row_to_model(UserAccess, row, USER_COLUMNS)
            return None
        except Exception as e:
            raise StorageError(f"Failed to read access record: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def put(self, access: UserAccess) -> bool:
        try:
            sheet = self._sheet()
            new_row = model_to_row(access, USER_COLUMNS)
            all_rows = sheet.get_all_values()

            # Start from 2 (row 1 is header)
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == access.uid:
                    sheet.update(range_name=f"A{idx}", values=[new_row])
                    return True

            sheet.append_row(new_row, value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save access record: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self, predicate) -> list[AuditEvent]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("audit_row_skipped", row_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = self._read_events(
            lambda row: len(row) > 6 and row[6] == str(correlation_id)
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
