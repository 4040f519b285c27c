"""
Aggregator

Month flow, all-time balance, projections and trends.

DESIGN DECISION: `income` and `expense` are this month's cash flow,
while `balance` is the net of every cash movement ever recorded.
Card purchases never count here directly: they reach the cash view
only when their invoice is paid.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from lyvo.ledger.months import shift_month_key
from lyvo.ledger.recurrence import filter_for_month
from lyvo.ledger.settlement import calculate_card_invoice
from lyvo.models.ledger import (
    Balances,
    BudgetLimit,
    CreditCard,
    FixedBill,
    Forecast,
    ForecastStatus,
    ProjectedBalance,
    Transaction,
    TransactionKind,
    TrendPoint,
)

ZERO = Decimal("0")


def cash_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if not t.is_card_entry]


def calculate_balances(transactions: Iterable[Transaction], month: str) -> Balances:
    cash = cash_transactions(transactions)

    income = expense = ZERO
    total_income = total_expense = ZERO
    for t in cash:
        if t.kind == TransactionKind.INCOME:
            total_income += t.amount
            if t.month == month:
                income += t.amount
        else:
            total_expense += t.amount
            if t.month == month:
                expense += t.amount

    return Balances(
        month=month,
        income=income,
        expense=expense,
        balance=total_income - total_expense,
    )


def category_spend(transactions: Iterable[Transaction], month: str) -> dict[str, Decimal]:
    """Cash expenses of the month, summed per category."""
    totals = defaultdict(lambda: ZERO)
    for t in cash_transactions(transactions):
        if t.kind == TransactionKind.EXPENSE and t.month == month:
            totals[t.category] += t.amount
    return dict(totals)


def projected_balance(
    transactions: list[Transaction],
    fixed_bills: Iterable[FixedBill],
    forecasts: Iterable[Forecast],
    credit_cards: Iterable[CreditCard],
    month: str,
) -> ProjectedBalance:
    """
    balance + pending forecast income
            - (unpaid fixed bills + pending card invoices + pending forecast expense)
    """
    balances = calculate_balances(transactions, month)

    unpaid_bills = sum(
        (b.base_value for b in filter_for_month(fixed_bills, month) if not b.is_paid_in(month)),
        ZERO,
    )

    pending_invoices = ZERO
    for card in credit_cards:
        if month in card.paid_invoices:
            continue
        due = calculate_card_invoice(transactions, card.id, month)
        if due > 0:
            pending_invoices += due

    pending = [
        f for f in filter_for_month(forecasts, month)
        if f.status == ForecastStatus.PENDING
    ]
    pending_income = sum((f.value for f in pending if f.is_income), ZERO)
    pending_expense = sum((f.value for f in pending if not f.is_income), ZERO)

    projected = balances.balance + pending_income - (
        unpaid_bills + pending_invoices + pending_expense
    )

    return ProjectedBalance(
        month=month,
        balance=balances.balance,
        pending_income=pending_income,
        unpaid_fixed_bills=unpaid_bills,
        pending_card_invoices=pending_invoices,
        pending_forecast_expense=pending_expense,
        projected=projected,
    )


def monthly_trend(
    transactions: list[Transaction],
    month: str,
    months: int = 6,
) -> list[TrendPoint]:
    """Income and expense for the `months` months ending at `month`, oldest first."""
    points = []
    for offset in range(months - 1, -1, -1):
        key = shift_month_key(month, -offset)
        balances = calculate_balances(transactions, key)
        points.append(TrendPoint(month=key, income=balances.income, expense=balances.expense))
    return points


def budget_overview(budget_limits: Iterable[BudgetLimit]) -> list[dict]:
    """Spent vs. limit per category, for the spending distribution chart."""
    return [
        {
            "category": limit.category,
            "monthly_limit": limit.monthly_limit,
            "spent": limit.spent,
            "usage_ratio": limit.usage_ratio,
            "over_limit": limit.spent > limit.monthly_limit,
        }
        for limit in budget_limits
    ]
