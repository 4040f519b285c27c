"""
Tests for deterministic query resolution and execution.
"""

import pytest
from datetime import date
from decimal import Decimal

from conftest import MAR, cash, purchase
from lyvo.models.chat import QueryDetails, QueryIntent, StructuredQuery
from lyvo.queries import QueryExecutionError, QueryExecutor, resolve_time_reference

TODAY = date(2025, 3, 15)


def ask(query_type, time_reference="2025-03", **kwargs):
    return QueryIntent(
        question="?",
        query=QueryDetails(query_type=query_type, time_reference=time_reference, **kwargs),
    )


@pytest.fixture
def executor(store):
    return QueryExecutor(store, trend_months=3)


class TestTimeReference:

    @pytest.mark.parametrize("reference,expected", [
        (None, "2025-03"),
        ("", "2025-03"),
        ("este mês", "2025-03"),
        ("Mês passado", "2025-02"),
        ("next month", "2025-04"),
        ("2024-12", "2024-12"),
        ("janeiro", "2025-01"),
        ("Março de 2024", "2024-03"),
        ("dezembro/2023", "2023-12"),
    ])
    def test_resolves(self, reference, expected):
        assert resolve_time_reference(reference, TODAY) == expected

    def test_unrecognised_reference(self):
        with pytest.raises(QueryExecutionError):
            resolve_time_reference("quando der", TODAY)


class TestPlan:

    def test_resolves_card(self, executor, card):
        query = executor.plan(ask("invoice", card_name="nu"), TODAY)
        assert query.card_id == card.id
        assert query.month == "2025-03"

    def test_unknown_card(self, executor, card):
        with pytest.raises(QueryExecutionError):
            executor.plan(ask("invoice", card_name="Itaú"), TODAY)

    def test_unknown_query_type(self, executor):
        with pytest.raises(QueryExecutionError):
            executor.plan(ask("stocks"), TODAY)


class TestExecute:
    """Each handler reads only what the store holds."""

    def test_balance(self, executor, store):
        store.add_transaction(cash("INCOME", "1000", date(2025, 3, 5)))
        result = executor.execute(executor.plan(ask("balance"), TODAY))

        assert result.success
        assert result.data_found
        assert result.aggregation_result["balance"] == Decimal("1000")

    def test_projection(self, executor, store):
        store.add_fixed_bill({"name": "Luz", "base_value": "200", "due_day": 5}, MAR, 2025)
        result = executor.execute(executor.plan(ask("projection"), TODAY))
        assert result.aggregation_result["projected"] == Decimal("-200")

    def test_invoice(self, executor, store, card):
        store.add_transaction(purchase(card.id, "150", date(2025, 3, 2)))
        result = executor.execute(executor.plan(ask("invoice"), TODAY))

        assert result.result_count == 1
        assert result.results[0]["card"] == "Nubank"
        assert result.results[0]["total_due"] == Decimal("150")
        assert result.aggregation_result["total_due"] == Decimal("150")

    def test_invoice_without_cards(self, executor):
        result = executor.execute(executor.plan(ask("invoice"), TODAY))
        assert result.success
        assert not result.data_found

    def test_category_spend_filter(self, executor, store):
        store.add_transaction(cash("EXPENSE", "40", date(2025, 3, 5), "Alimentação"))
        store.add_transaction(cash("EXPENSE", "60", date(2025, 3, 6), "Transporte"))

        result = executor.execute(executor.plan(ask("category_spend", category="alimentacao"), TODAY))

        assert result.results == [{"category": "Alimentação", "total": Decimal("40")}]

    def test_trend(self, executor):
        result = executor.execute(executor.plan(ask("trend"), TODAY))
        assert [r["month"] for r in result.results] == ["2025-01", "2025-02", "2025-03"]

    def test_fixed_bills(self, executor, store):
        bill = store.add_fixed_bill({"name": "Luz", "base_value": "200", "due_day": 5}, MAR, 2025)
        store.add_fixed_bill({"name": "Água", "base_value": "80", "due_day": 8}, MAR, 2025)
        store.toggle_fixed_bill_status(bill.id, MAR, 2025)

        result = executor.execute(executor.plan(ask("fixed_bills"), TODAY))

        assert result.result_count == 2
        assert result.aggregation_result["unpaid_total"] == Decimal("80")

    def test_forecasts(self, executor, store):
        store.add_forecast({
            "kind": "EXPECTED_INCOME", "value": "500",
            "expected_date": date(2025, 3, 28), "description": "Freela",
        }, MAR, 2025)
        result = executor.execute(executor.plan(ask("forecasts"), TODAY))
        assert result.results[0]["description"] == "Freela"

    def test_transactions_with_category(self, executor, store):
        store.add_transaction(cash("EXPENSE", "40", date(2025, 3, 5), "Alimentação"))
        store.add_transaction(cash("EXPENSE", "60", date(2025, 3, 6), "Transporte"))

        result = executor.execute(executor.plan(ask("transactions", category="Transporte"), TODAY))

        assert result.result_count == 1
        assert result.results[0]["amount"] == Decimal("60")

    def test_no_transactions(self, executor):
        result = executor.execute(executor.plan(ask("transactions"), TODAY))
        assert result.success
        assert not result.data_found

    def test_ledger_errors_become_failed_results(self, executor):
        query = StructuredQuery(query_type="balance", month="2025-03")
        query.month = "2025-3"
        result = executor.execute(query)
        assert not result.success
        assert result.error_message
