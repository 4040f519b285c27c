"""
Shared fixtures.

Every store gets a fixed clock so payment and confirmation dates are
predictable. No test touches Google Sheets or Gemini.
"""

from datetime import date
from decimal import Decimal

import pytest

from lyvo.audit import AuditLogger
from lyvo.ledger import LedgerStore
from lyvo.services.storage import InMemoryAuditStorage

TODAY = date(2025, 3, 20)

# Zero-based month indexes, the way the UI passes them
JAN, FEB, MAR, APR, MAY, JUN = range(6)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def store(audit_logger):
    return LedgerStore(clock=lambda: TODAY, audit_logger=audit_logger)


@pytest.fixture
def card(store):
    """Card with best purchase day 10, due on the 17th."""
    return store.add_credit_card({
        "name": "Nubank",
        "limit": Decimal("5000"),
        "due_day": 17,
        "best_purchase_day": 10,
    })


def cash(kind: str, amount: str, on: date, category: str = "Outros", description: str = "Lançamento") -> dict:
    return {
        "kind": kind,
        "amount": amount,
        "description": description,
        "category": category,
        "occurred_at": on,
    }


def purchase(card_id, amount: str, on: date, description: str = "Compra") -> dict:
    return {
        "kind": "EXPENSE",
        "amount": amount,
        "description": description,
        "category": "Lazer",
        "occurred_at": on,
        "card_ref": card_id,
    }
