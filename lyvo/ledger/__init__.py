"""Ledger engine for Lyvo."""

from lyvo.ledger.errors import (
    InvalidCardReference,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from lyvo.ledger.billing import resolve_billing_month, split_installments
from lyvo.ledger.recurrence import applies_to_month, filter_for_month
from lyvo.ledger.settlement import SettlementOutcome
from lyvo.ledger.store import LedgerStore
from lyvo.ledger.export import export_transactions_csv, export_filename

__all__ = [
    "LedgerError",
    "ValidationError",
    "InvalidCardReference",
    "NotFoundError",
    "resolve_billing_month",
    "split_installments",
    "applies_to_month",
    "filter_for_month",
    "SettlementOutcome",
    "LedgerStore",
    "export_transactions_csv",
    "export_filename",
]
