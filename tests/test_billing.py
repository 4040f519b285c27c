"""
Tests for month keys, the billing-cycle resolver and the installment splitter.
"""

import pytest
from datetime import date
from decimal import Decimal

from lyvo.ledger import InvalidCardReference, ValidationError
from lyvo.ledger.billing import resolve_billing_month, split_installments
from lyvo.ledger.months import add_months, clamp_day, month_key, shift_month_key
from lyvo.models.ledger import CreditCard, TransactionDraft, TransactionKind


@pytest.fixture
def card():
    return CreditCard(
        name="Nubank",
        limit=Decimal("5000"),
        due_day=17,
        best_purchase_day=10,
    )


def draft(card, amount="300", on=date(2025, 1, 31)):
    return TransactionDraft(
        kind=TransactionKind.EXPENSE,
        amount=Decimal(amount),
        description="Geladeira",
        category="Moradia",
        occurred_at=on,
        card_ref=card.id,
    )


class TestMonthKeys:
    """Tests for month key helpers."""

    def test_month_key_is_zero_based(self):
        assert month_key(0, 2025) == "2025-01"
        assert month_key(11, 2025) == "2025-12"

    @pytest.mark.parametrize("month", [-1, 12, 1.5, True])
    def test_month_key_rejects_bad_month(self, month):
        with pytest.raises(ValidationError):
            month_key(month, 2025)

    def test_shift_crosses_years(self):
        assert shift_month_key("2025-12", 1) == "2026-01"
        assert shift_month_key("2025-01", -1) == "2024-12"

    def test_add_months_clamps_day(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_clamp_day(self):
        assert clamp_day(2025, 4, 31) == date(2025, 4, 30)


class TestBillingMonth:
    """Purchases on or after the best purchase day roll to the next invoice."""

    def test_before_best_day(self, card):
        assert resolve_billing_month(date(2025, 3, 9), card) == "2025-03"

    def test_on_best_day(self, card):
        assert resolve_billing_month(date(2025, 3, 10), card) == "2025-04"

    def test_after_best_day_in_december(self, card):
        assert resolve_billing_month(date(2025, 12, 15), card) == "2026-01"

    def test_missing_card(self):
        with pytest.raises(InvalidCardReference):
            resolve_billing_month(date(2025, 3, 9), None)


class TestInstallments:
    """Tests for split_installments."""

    def test_three_installments(self, card):
        parts = split_installments(draft(card), 3, card)

        assert len(parts) == 3
        assert sum(p.amount for p in parts) == Decimal("300")
        assert [p.occurred_at for p in parts] == [
            date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31),
        ]
        assert [p.billing_month for p in parts] == ["2025-02", "2025-03", "2025-04"]
        assert parts[0].description == "Geladeira (1/3)"
        assert parts[2].description == "Geladeira (3/3)"

    def test_billing_months_never_decrease(self, card):
        parts = split_installments(draft(card, on=date(2025, 11, 25)), 12, card)
        months = [p.billing_month for p in parts]
        assert months == sorted(months)
        assert months[0] == "2025-12"

    def test_single_installment_keeps_description(self, card):
        parts = split_installments(draft(card), 1, card)
        assert len(parts) == 1
        assert parts[0].description == "Geladeira"
        assert parts[0].amount == Decimal("300")

    def test_installments_are_independent(self, card):
        parts = split_installments(draft(card), 2, card)
        assert parts[0].id != parts[1].id
        assert all(p.card_ref == card.id for p in parts)

    @pytest.mark.parametrize("count", [0, -2])
    def test_rejects_non_positive_count(self, card, count):
        with pytest.raises(ValidationError):
            split_installments(draft(card), count, card)

    def test_requires_card(self, card):
        with pytest.raises(InvalidCardReference):
            split_installments(draft(card), 2, None)
