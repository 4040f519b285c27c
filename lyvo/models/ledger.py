"""
Core Ledger Models for Lyvo

These models define the strict schemas for every entity the ledger
engine owns: transactions, fixed bills, forecasts, credit cards and
budget limits. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Month keys are plain "YYYY-MM" strings everywhere.
They sort lexicographically in calendar order, which is what the
recurrence rules compare against.

DESIGN DECISION: References between entries are typed (PaymentRef),
never encoded inside free-text descriptions.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

MonthKey = Annotated[str, Field(pattern=MONTH_KEY_PATTERN)]


def _dedupe(values: list[str]) -> list[str]:
    """Drop repeated keys, keeping first-insertion order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a realized money movement."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ForecastKind(str, Enum):
    """Direction of an expected (not yet realized) money movement."""
    EXPECTED_INCOME = "EXPECTED_INCOME"
    EXPECTED_EXPENSE = "EXPECTED_EXPENSE"


class ForecastStatus(str, Enum):
    """
    Forecast lifecycle.

    RECEIVED / PAID are terminal for one-shot forecasts. Recurring
    forecasts stay PENDING and track confirmed months as skipped months.
    """
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    PAID = "PAID"


class CardBrand(str, Enum):
    VISA = "visa"
    MASTERCARD = "mastercard"
    OTHER = "other"


class PaymentRefKind(str, Enum):
    """What a settlement transaction pays for."""
    INVOICE = "INVOICE"                    # cash payment towards a card invoice
    INVOICE_RESIDUAL = "INVOICE_RESIDUAL"  # shortfall rolled onto the next invoice
    FIXED_BILL = "FIXED_BILL"              # fixed bill marked as paid
    FORECAST = "FORECAST"                  # forecast confirmed as realized


class DeleteMode(str, Enum):
    """How far a deletion of a recurring entry reaches."""
    THIS_MONTH_ONLY = "THIS_MONTH_ONLY"
    THIS_AND_FUTURE = "THIS_AND_FUTURE"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class PaymentRef(BaseModel):
    """
    Typed link from a transaction to the entry it settles.

    `month` is the month being settled (the invoice month, or the month
    in which the fixed bill / forecast was paid).
    """
    model_config = ConfigDict(frozen=True)

    kind: PaymentRefKind
    target_id: UUID
    month: MonthKey


class TransactionDraft(BaseModel):
    """
    A transaction as entered by the user, before the engine assigns an
    id and (for card purchases) a billing month.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        description="Amount in BRL"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=300,
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    occurred_at: date
    card_ref: Optional[UUID] = Field(
        default=None,
        description="Credit card this purchase belongs to"
    )


class Transaction(BaseModel):
    """
    A realized ledger entry.

    A transaction with `card_ref` belongs to that card's invoice for
    `billing_month` and is excluded from the cash view of the month.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    kind: TransactionKind
    amount: Decimal
    description: str = Field(..., min_length=1, max_length=300)
    category: str = Field(..., min_length=1, max_length=100)
    occurred_at: date
    card_ref: Optional[UUID] = None
    billing_month: Optional[MonthKey] = None
    payment_ref: Optional[PaymentRef] = None

    @model_validator(mode='after')
    def validate_card_fields(self) -> 'Transaction':
        """billing_month is present exactly when card_ref is."""
        if self.card_ref is None and self.billing_month is not None:
            raise ValueError("billing_month requires card_ref")
        if self.card_ref is not None and self.billing_month is None:
            raise ValueError("card transactions require billing_month")
        return self

    @property
    def is_card_entry(self) -> bool:
        return self.card_ref is not None

    @property
    def month(self) -> str:
        """Calendar month key of the transaction date."""
        return f"{self.occurred_at.year:04d}-{self.occurred_at.month:02d}"


# =============================================================================
# RECURRING ENTRIES
# =============================================================================

class FixedBillDraft(BaseModel):
    """A fixed bill as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    base_value: Decimal
    due_day: int = Field(..., ge=1, le=31)
    category: str = Field(default="Moradia", min_length=1, max_length=100)
    is_recurring: bool = True


class FixedBill(BaseModel):
    """
    A recurring monthly obligation.

    Tracked independently from transactions until it is marked paid
    for a month, which books a payment transaction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    base_value: Decimal
    due_day: int = Field(..., ge=1, le=31)
    category: str = Field(..., min_length=1, max_length=100)
    is_recurring: bool = True
    start_month: MonthKey
    ended_at: Optional[MonthKey] = None
    paid_months: list[MonthKey] = Field(default_factory=list)
    skipped_months: list[MonthKey] = Field(default_factory=list)

    @field_validator('paid_months', 'skipped_months')
    @classmethod
    def unique_months(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    def is_paid_in(self, month: str) -> bool:
        return month in self.paid_months


class ForecastDraft(BaseModel):
    """A forecast as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: ForecastKind
    value: Decimal
    expected_date: date
    description: str = Field(..., min_length=1, max_length=300)
    category: str = Field(default="Outros", min_length=1, max_length=100)
    is_recurring: bool = False


class Forecast(BaseModel):
    """An expected future income or expense, not yet realized."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    kind: ForecastKind
    value: Decimal
    expected_date: date
    description: str = Field(..., min_length=1, max_length=300)
    category: str = Field(default="Outros", min_length=1, max_length=100)
    is_recurring: bool = False
    status: ForecastStatus = ForecastStatus.PENDING
    start_month: MonthKey
    ended_at: Optional[MonthKey] = None
    skipped_months: list[MonthKey] = Field(default_factory=list)

    @field_validator('skipped_months')
    @classmethod
    def unique_months(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @property
    def is_income(self) -> bool:
        return self.kind == ForecastKind.EXPECTED_INCOME


# =============================================================================
# CARDS AND BUDGETS
# =============================================================================

class CreditCardDraft(BaseModel):
    """A credit card as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(..., ge=0)
    due_day: int = Field(..., ge=1, le=31)
    best_purchase_day: int = Field(
        ...,
        ge=1,
        le=31,
        description="Purchases on or after this day roll to next month's invoice"
    )
    color: str = Field(default="bg-purple-600", max_length=50)
    brand: CardBrand = CardBrand.OTHER


class CreditCard(CreditCardDraft):
    """A credit card with its invoice bookkeeping."""

    id: UUID = Field(default_factory=uuid4)
    paid_invoices: list[MonthKey] = Field(default_factory=list)

    @field_validator('paid_invoices')
    @classmethod
    def unique_months(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class BudgetLimit(BaseModel):
    """
    Monthly spending limit for a category.

    `spent` is an accumulator: it grows on every cash expense of the
    category and is never decremented.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    category: str = Field(..., min_length=1, max_length=100)
    monthly_limit: Decimal = Field(..., ge=0)
    spent: Decimal = Decimal("0")

    @property
    def usage_ratio(self) -> float:
        if self.monthly_limit == 0:
            return 0.0
        return float(self.spent / self.monthly_limit)


# =============================================================================
# AGGREGATES
# =============================================================================

class Balances(BaseModel):
    """
    Month flow and all-time position.

    income / expense: cash movements dated in the month.
    balance: net of every cash movement ever recorded.
    """

    month: MonthKey
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class TrendPoint(BaseModel):
    """One month of the income/expense trend."""

    month: MonthKey
    income: Decimal
    expense: Decimal


class ProjectedBalance(BaseModel):
    """Balance after everything still pending for the month settles."""

    month: MonthKey
    balance: Decimal
    pending_income: Decimal
    unpaid_fixed_bills: Decimal
    pending_card_invoices: Decimal
    pending_forecast_expense: Decimal
    projected: Decimal

    @property
    def is_positive(self) -> bool:
        return self.projected >= 0


class LedgerSnapshot(BaseModel):
    """Everything the entry store owns, for persistence."""

    transactions: list[Transaction] = Field(default_factory=list)
    fixed_bills: list[FixedBill] = Field(default_factory=list)
    forecasts: list[Forecast] = Field(default_factory=list)
    credit_cards: list[CreditCard] = Field(default_factory=list)
    budget_limits: list[BudgetLimit] = Field(default_factory=list)
