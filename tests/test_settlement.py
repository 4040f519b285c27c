"""
Tests for invoice settlement math.
"""

import pytest
from datetime import date
from decimal import Decimal

from lyvo.ledger.settlement import (
    calculate_card_invoice,
    calculate_total_paid,
    card_transactions,
    settle_invoice,
)
from lyvo.models.ledger import CreditCard, PaymentRefKind, Transaction, TransactionKind


@pytest.fixture
def card():
    return CreditCard(name="Inter", limit=Decimal("3000"), due_day=5, best_purchase_day=28)


def charge(card, amount, billing_month="2025-03"):
    return Transaction(
        kind=TransactionKind.EXPENSE,
        amount=Decimal(amount),
        description="Compra",
        category="Lazer",
        occurred_at=date(2025, 3, 1),
        card_ref=card.id,
        billing_month=billing_month,
    )


class TestInvoiceTotals:

    def test_invoice_sums_billing_month_only(self, card):
        transactions = [charge(card, "100"), charge(card, "50"), charge(card, "70", "2025-04")]
        assert calculate_card_invoice(transactions, card.id, "2025-03") == Decimal("150")
        assert len(card_transactions(transactions, card.id, "2025-04")) == 1

    def test_empty_invoice(self, card):
        assert calculate_card_invoice([], card.id, "2025-03") == Decimal("0")
        assert calculate_total_paid([], card.id, "2025-03") == Decimal("0")


class TestSettleInvoice:

    def test_partial_payment_rolls_residual(self, card):
        outcome = settle_invoice(
            [charge(card, "500")], card, "2025-03", Decimal("300"),
            paid_on=date(2025, 3, 20), category="Cartão de Crédito",
        )

        assert not outcome.fully_paid
        assert outcome.payment.card_ref is None
        assert outcome.payment.payment_ref.kind == PaymentRefKind.INVOICE
        assert outcome.residual.amount == Decimal("200")
        assert outcome.residual.billing_month == "2025-04"
        assert outcome.residual.occurred_at == date(2025, 4, 1)
        assert outcome.residual.payment_ref.month == "2025-03"

    def test_full_payment(self, card):
        outcome = settle_invoice(
            [charge(card, "500")], card, "2025-03", Decimal("500"),
            paid_on=date(2025, 3, 20), category="Cartão de Crédito",
        )
        assert outcome.fully_paid
        assert outcome.total_paid == Decimal("500")

    def test_earlier_payments_count(self, card):
        first = settle_invoice(
            [charge(card, "500")], card, "2025-03", Decimal("300"),
            paid_on=date(2025, 3, 20), category="Cartão de Crédito",
        )
        second = settle_invoice(
            [charge(card, "500"), first.payment], card, "2025-03", Decimal("200"),
            paid_on=date(2025, 3, 21), category="Cartão de Crédito",
        )
        assert second.total_paid == Decimal("500")
        assert second.fully_paid
