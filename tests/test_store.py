"""
Tests for the entry store.

Covers the ledger behaviour end to end through the public store API:
billing months, installments, invoice settlement, fixed bills,
forecasts, cards, budgets and the month aggregates.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import APR, FEB, JAN, JUN, MAR, MAY, TODAY, cash, purchase
from lyvo.ledger import InvalidCardReference, LedgerStore, NotFoundError, ValidationError
from lyvo.ledger.billing import resolve_billing_month
from lyvo.models.audit import AuditEventType
from lyvo.models.ledger import (
    DeleteMode,
    ForecastStatus,
    LedgerSnapshot,
    PaymentRefKind,
    TransactionKind,
)


class TestTransactions:
    """Tests for adding, updating and reading transactions."""

    def test_add_cash_transaction(self, store):
        [t] = store.add_transaction(cash("EXPENSE", "45.90", date(2025, 3, 9)))
        assert t.amount == Decimal("45.90")
        assert t.billing_month is None
        assert store.transactions[0].id == t.id

    def test_card_purchase_gets_billing_month(self, store, card):
        [before] = store.add_transaction(purchase(card.id, "80", date(2025, 3, 9)))
        [after] = store.add_transaction(purchase(card.id, "80", date(2025, 3, 10)))
        assert before.billing_month == "2025-03"
        assert after.billing_month == "2025-04"

    def test_installments(self, store, card):
        parts = store.add_transaction(purchase(card.id, "300", date(2025, 1, 31)), installment_count=3)

        assert len(parts) == 3
        assert sum(p.amount for p in parts) == Decimal("300")
        months = [p.billing_month for p in parts]
        assert months == sorted(months)
        assert len(store.transactions) == 3

    def test_cash_entry_cannot_be_split(self, store):
        with pytest.raises(ValidationError):
            store.add_transaction(cash("EXPENSE", "300", date(2025, 3, 9)), installment_count=3)

    def test_invalid_installment_count(self, store, card):
        with pytest.raises(ValidationError):
            store.add_transaction(purchase(card.id, "300", date(2025, 3, 9)), installment_count=0)

    def test_unknown_card(self, store):
        with pytest.raises(InvalidCardReference):
            store.add_transaction(purchase(uuid4(), "80", date(2025, 3, 9)))

    def test_missing_description(self, store):
        entry = cash("EXPENSE", "10", date(2025, 3, 9))
        del entry["description"]
        with pytest.raises(ValidationError) as exc:
            store.add_transaction(entry)
        assert any("description" in issue for issue in exc.value.issues)

    def test_returned_copies_are_detached(self, store):
        [t] = store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 9)))
        t.description = "changed"
        store.transactions[0].description = "changed again"
        assert store.transactions[0].description == "Lançamento"

    def test_get_transactions_by_month_cash_only_newest_first(self, store, card):
        store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 2)))
        store.add_transaction(cash("INCOME", "20", date(2025, 3, 15)))
        store.add_transaction(cash("EXPENSE", "30", date(2025, 4, 1)))
        store.add_transaction(purchase(card.id, "40", date(2025, 3, 5)))

        found = store.get_transactions_by_month(MAR, 2025)
        assert [t.amount for t in found] == [Decimal("20"), Decimal("10")]

    def test_update_moves_billing_month(self, store, card):
        [t] = store.add_transaction(purchase(card.id, "80", date(2025, 3, 9)))
        updated = store.update_transaction(t.id, {"occurred_at": date(2025, 3, 12)})
        assert updated.billing_month == "2025-04"

    def test_update_dropping_card_clears_billing_month(self, store, card):
        [t] = store.add_transaction(purchase(card.id, "80", date(2025, 3, 9)))
        updated = store.update_transaction(t.id, {"card_ref": None})
        assert updated.card_ref is None
        assert updated.billing_month is None

    def test_update_rejects_unknown_field(self, store):
        [t] = store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 9)))
        with pytest.raises(ValidationError):
            store.update_transaction(t.id, {"billing_month": "2025-09"})

    def test_delete_transaction(self, store):
        [t] = store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 9)))
        store.delete_transaction(t.id)
        assert store.transactions == []
        with pytest.raises(NotFoundError):
            store.delete_transaction(t.id)

    def test_mutations_are_audited(self, store, audit_storage):
        store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 9)))
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.TRANSACTION_ADDED in types


class TestInvoiceSettlement:
    """Tests for paying card invoices."""

    def test_invoice_total(self, store, card):
        store.add_transaction(purchase(card.id, "120", date(2025, 3, 1)))
        store.add_transaction(purchase(card.id, "80", date(2025, 3, 5)))
        assert store.calculate_card_invoice(card.id, MAR, 2025) == Decimal("200")
        assert len(store.get_card_transactions(card.id, MAR, 2025)) == 2

    def test_partial_payment_leaves_residual(self, store, card):
        store.add_transaction(purchase(card.id, "500", date(2025, 3, 1)))

        outcome = store.pay_card_invoice(card.id, "300", MAR, 2025)

        assert not outcome.fully_paid
        assert store.calculate_card_invoice(card.id, APR, 2025) == Decimal("200")
        assert store.calculate_total_paid_on_invoice(card.id, MAR, 2025) == Decimal("300")
        assert not store.is_invoice_paid(card.id, MAR, 2025)

    def test_residual_keeps_next_month_with_cutoff_on_the_first(self, store):
        """A residual dated the 1st stays on the next invoice even when day 1 is the cutoff."""
        card = store.add_credit_card({
            "name": "Inter", "limit": "3000", "due_day": 10, "best_purchase_day": 1,
        })
        store.add_transaction(purchase(card.id, "400", date(2025, 2, 15)))
        assert store.calculate_card_invoice(card.id, MAR, 2025) == Decimal("400")

        outcome = store.pay_card_invoice(card.id, "100", MAR, 2025)

        assert outcome.residual.occurred_at == date(2025, 4, 1)
        assert outcome.residual.billing_month == "2025-04"
        assert resolve_billing_month(date(2025, 4, 1), card) == "2025-05"
        assert store.calculate_card_invoice(card.id, APR, 2025) == Decimal("300")
        assert store.calculate_card_invoice(card.id, MAY, 2025) == Decimal("0")

    def test_repeated_partial_payments_converge(self, store, card):
        store.add_transaction(purchase(card.id, "300", date(2025, 3, 1)))

        store.pay_card_invoice(card.id, "100", MAR, 2025)
        assert store.calculate_card_invoice(card.id, APR, 2025) == Decimal("200")

        store.pay_card_invoice(card.id, "100", MAR, 2025)
        assert store.calculate_card_invoice(card.id, APR, 2025) == Decimal("100")

        outcome = store.pay_card_invoice(card.id, "100", MAR, 2025)
        assert outcome.fully_paid
        assert store.calculate_card_invoice(card.id, APR, 2025) == Decimal("0")
        assert store.is_invoice_paid(card.id, MAR, 2025)

        residuals = [
            t for t in store.transactions
            if t.payment_ref and t.payment_ref.kind == PaymentRefKind.INVOICE_RESIDUAL
        ]
        assert residuals == []

    def test_payment_is_a_dated_cash_expense(self, store, card):
        store.add_transaction(purchase(card.id, "300", date(2025, 3, 1)))
        outcome = store.pay_card_invoice(card.id, "300", MAR, 2025)

        assert outcome.payment.card_ref is None
        assert outcome.payment.occurred_at == TODAY
        assert outcome.payment.category == "Cartão de Crédito"

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_rejects_non_positive_payment(self, store, card, amount):
        with pytest.raises(ValidationError):
            store.pay_card_invoice(card.id, amount, MAR, 2025)

    def test_unknown_card(self, store):
        with pytest.raises(InvalidCardReference):
            store.pay_card_invoice(uuid4(), "10", MAR, 2025)


class TestBalances:
    """Card purchases only reach the cash view through invoice payments."""

    def test_card_purchase_does_not_move_balance(self, store, card):
        store.add_transaction(cash("INCOME", "1000", date(2025, 3, 5)))
        store.add_transaction(cash("EXPENSE", "200", date(2025, 3, 6)))
        store.add_transaction(purchase(card.id, "500", date(2025, 3, 7)))

        balances = store.calculate_balances(MAR, 2025)
        assert balances.income == Decimal("1000")
        assert balances.expense == Decimal("200")
        assert balances.balance == Decimal("800")

        store.pay_card_invoice(card.id, "500", MAR, 2025)
        balances = store.calculate_balances(MAR, 2025)
        assert balances.expense == Decimal("700")
        assert balances.balance == Decimal("300")

    def test_balance_is_all_time(self, store):
        store.add_transaction(cash("INCOME", "1000", date(2025, 1, 5)))
        store.add_transaction(cash("EXPENSE", "100", date(2025, 3, 6)))

        balances = store.calculate_balances(MAR, 2025)
        assert balances.income == Decimal("0")
        assert balances.expense == Decimal("100")
        assert balances.balance == Decimal("900")

    def test_category_spend(self, store, card):
        store.add_transaction(cash("EXPENSE", "30", date(2025, 3, 6), "Alimentação"))
        store.add_transaction(cash("EXPENSE", "20", date(2025, 3, 7), "Alimentação"))
        store.add_transaction(cash("EXPENSE", "50", date(2025, 3, 8), "Transporte"))
        store.add_transaction(purchase(card.id, "99", date(2025, 3, 8)))

        assert store.category_spend(MAR, 2025) == {
            "Alimentação": Decimal("50"),
            "Transporte": Decimal("50"),
        }

    def test_projected_balance(self, store, card):
        store.add_transaction(cash("INCOME", "1000", date(2025, 3, 5)))
        store.add_fixed_bill({"name": "Internet", "base_value": "300", "due_day": 10}, MAR, 2025)
        store.add_transaction(purchase(card.id, "200", date(2025, 3, 1)))
        store.add_forecast({
            "kind": "EXPECTED_EXPENSE", "value": "100",
            "expected_date": date(2025, 3, 25), "description": "IPVA",
        }, MAR, 2025)
        store.add_forecast({
            "kind": "EXPECTED_INCOME", "value": "500",
            "expected_date": date(2025, 3, 28), "description": "Freela",
        }, MAR, 2025)

        projection = store.projected_balance(MAR, 2025)
        assert projection.balance == Decimal("1000")
        assert projection.unpaid_fixed_bills == Decimal("300")
        assert projection.pending_card_invoices == Decimal("200")
        assert projection.projected == Decimal("900")

    def test_paid_invoice_not_pending(self, store, card):
        store.add_transaction(purchase(card.id, "200", date(2025, 3, 1)))
        store.pay_card_invoice(card.id, "200", MAR, 2025)
        assert store.projected_balance(MAR, 2025).pending_card_invoices == Decimal("0")

    def test_monthly_trend(self, store):
        store.add_transaction(cash("INCOME", "1000", date(2025, 1, 5)))
        store.add_transaction(cash("EXPENSE", "100", date(2025, 3, 6)))

        trend = store.monthly_trend(MAR, 2025, 3)
        assert [p.month for p in trend] == ["2025-01", "2025-02", "2025-03"]
        assert trend[0].income == Decimal("1000")
        assert trend[2].expense == Decimal("100")


class TestFixedBills:
    """Tests for fixed bills."""

    def test_toggle_round_trip(self, store):
        bill = store.add_fixed_bill({"name": "Aluguel", "base_value": "1500", "due_day": 31}, FEB, 2025)
        before = store.transactions

        assert store.toggle_fixed_bill_status(bill.id, FEB, 2025) is True
        [payment] = store.transactions
        assert payment.amount == Decimal("1500")
        assert payment.occurred_at == date(2025, 2, 28)
        assert payment.description == "Pagamento: Aluguel"
        assert store.get_fixed_bills_by_month(FEB, 2025)[0].is_paid_in("2025-02")

        assert store.toggle_fixed_bill_status(bill.id, FEB, 2025) is False
        assert store.transactions == before
        assert not store.get_fixed_bills_by_month(FEB, 2025)[0].is_paid_in("2025-02")

    def test_paying_one_month_leaves_others(self, store):
        bill = store.add_fixed_bill({"name": "Luz", "base_value": "200", "due_day": 5}, JAN, 2025)
        store.toggle_fixed_bill_status(bill.id, FEB, 2025)
        assert not store.get_fixed_bills_by_month(MAR, 2025)[0].is_paid_in("2025-03")

    def test_delete_modes(self, store):
        bill = store.add_fixed_bill({"name": "Academia", "base_value": "90", "due_day": 5}, JAN, 2025)

        store.delete_fixed_bill(bill.id, DeleteMode.THIS_MONTH_ONLY, MAR, 2025)
        store.delete_fixed_bill(bill.id, "THIS_AND_FUTURE", MAY, 2025)

        present = [m for m in (JAN, FEB, MAR, APR, MAY, JUN) if store.get_fixed_bills_by_month(m, 2025)]
        assert present == [JAN, FEB, APR]

    def test_invalid_delete_mode(self, store):
        bill = store.add_fixed_bill({"name": "Academia", "base_value": "90", "due_day": 5}, JAN, 2025)
        with pytest.raises(ValidationError):
            store.delete_fixed_bill(bill.id, "EVERYTHING", MAR, 2025)

    def test_unknown_bill(self, store):
        with pytest.raises(NotFoundError):
            store.toggle_fixed_bill_status(uuid4(), MAR, 2025)


class TestForecasts:
    """Tests for forecasts."""

    def test_confirm_one_shot_income(self, store):
        forecast = store.add_forecast({
            "kind": "EXPECTED_INCOME", "value": "1000",
            "expected_date": date(2025, 3, 5), "description": "Salário", "category": "Salário",
        }, MAR, 2025)

        transaction = store.confirm_forecast(forecast.id, MAR, 2025)

        assert transaction.kind == TransactionKind.INCOME
        assert transaction.occurred_at == TODAY
        assert store.forecasts[0].status == ForecastStatus.RECEIVED
        assert store.get_forecasts_by_month(MAR, 2025) == []

    def test_confirm_twice_fails(self, store):
        forecast = store.add_forecast({
            "kind": "EXPECTED_EXPENSE", "value": "100",
            "expected_date": date(2025, 3, 5), "description": "IPVA",
        }, MAR, 2025)
        store.confirm_forecast(forecast.id, MAR, 2025)
        with pytest.raises(ValidationError):
            store.confirm_forecast(forecast.id, MAR, 2025)

    def test_confirm_recurring_keeps_other_months(self, store):
        forecast = store.add_forecast({
            "kind": "EXPECTED_EXPENSE", "value": "100", "is_recurring": True,
            "expected_date": date(2025, 3, 5), "description": "Diarista",
        }, MAR, 2025)

        store.confirm_forecast(forecast.id, MAR, 2025)

        assert store.forecasts[0].status == ForecastStatus.PENDING
        assert store.get_forecasts_by_month(MAR, 2025) == []
        assert len(store.get_forecasts_by_month(APR, 2025)) == 1

    def test_update_forecast(self, store):
        forecast = store.add_forecast({
            "kind": "EXPECTED_EXPENSE", "value": "100",
            "expected_date": date(2025, 3, 5), "description": "IPVA",
        }, MAR, 2025)
        updated = store.update_forecast(forecast.id, {"value": "150"})
        assert updated.value == Decimal("150")

    def test_delete_forecast(self, store):
        forecast = store.add_forecast({
            "kind": "EXPECTED_INCOME", "value": "300", "is_recurring": True,
            "expected_date": date(2025, 3, 5), "description": "Aluguel recebido",
        }, MAR, 2025)
        store.delete_forecast(forecast.id, DeleteMode.THIS_AND_FUTURE, APR, 2025)
        assert len(store.get_forecasts_by_month(MAR, 2025)) == 1
        assert store.get_forecasts_by_month(APR, 2025) == []


class TestCreditCards:
    """Tests for credit cards."""

    def test_find_card_by_name(self, store, card):
        assert store.find_card_by_name("nu").id == card.id
        assert store.find_card_by_name("Itaú") is None
        assert store.find_card_by_name("") is None

    def test_delete_cascades_to_card_transactions(self, store, card):
        store.add_transaction(purchase(card.id, "300", date(2025, 3, 1)), installment_count=3)
        store.add_transaction(cash("EXPENSE", "10", date(2025, 3, 2)))
        store.pay_card_invoice(card.id, "50", MAR, 2025)

        store.delete_credit_card(card.id)

        assert store.credit_cards == []
        assert all(t.card_ref is None for t in store.transactions)
        assert len(store.transactions) == 2

    def test_best_day_change_rebills_purchases(self, store, card):
        store.add_transaction(purchase(card.id, "80", date(2025, 3, 9)))
        store.update_credit_card(card.id, {"best_purchase_day": 5})
        assert store.transactions[0].billing_month == "2025-04"

    def test_best_day_change_keeps_residuals(self, store, card):
        store.add_transaction(purchase(card.id, "500", date(2025, 3, 1)))
        store.pay_card_invoice(card.id, "300", MAR, 2025)
        store.update_credit_card(card.id, {"best_purchase_day": 1})

        residual = next(
            t for t in store.transactions
            if t.payment_ref and t.payment_ref.kind == PaymentRefKind.INVOICE_RESIDUAL
        )
        assert residual.billing_month == "2025-04"


class TestBudgets:
    """The budget accumulator only ever grows."""

    def test_cash_expense_accumulates(self, store, card):
        store.add_budget_limit("Alimentação", "800")
        [t] = store.add_transaction(cash("EXPENSE", "50", date(2025, 3, 6), "Alimentação"))
        store.add_transaction(cash("INCOME", "50", date(2025, 3, 6), "Alimentação"))
        store.add_transaction(purchase(card.id, "70", date(2025, 3, 6)))

        store.delete_transaction(t.id)

        assert store.budget_limits[0].spent == Decimal("50")

    def test_update_keeps_spent(self, store):
        limit = store.add_budget_limit("Lazer", "400")
        store.add_transaction(cash("EXPENSE", "100", date(2025, 3, 6), "Lazer"))
        updated = store.update_budget_limit(limit.id, "Lazer", "500")
        assert updated.spent == Decimal("100")
        [overview] = store.budget_overview()
        assert overview["usage_ratio"] == 0.2
        assert not overview["over_limit"]


class TestSnapshots:

    def test_snapshot_round_trip(self, store, card):
        store.add_transaction(purchase(card.id, "300", date(2025, 3, 1)), installment_count=3)
        restored = LedgerStore.from_snapshot(store.snapshot())
        assert restored.calculate_card_invoice(card.id, MAR, 2025) == Decimal("100")

    def test_snapshot_is_a_copy(self, store):
        snapshot = LedgerSnapshot()
        isolated = LedgerStore(snapshot)
        isolated.add_budget_limit("Lazer", "100")
        assert snapshot.budget_limits == []
