"""
Entry Store

The single owner of every ledger collection. All mutation goes through
this class; query methods hand out copies, so callers can never change
the store behind its back.

Writes delegate to the billing-cycle resolver and installment splitter;
reads delegate to the recurrence resolver, invoice settlement and the
aggregator.

DESIGN DECISION: The store is an explicit object, not a module-level
singleton. Flows receive it by injection and tests build isolated
instances.

The store is synchronous and not reentrant: the host must serialize
calls into it.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, TypeVar, Union
from uuid import UUID

import pydantic

from lyvo.ledger import aggregator
from lyvo.ledger.billing import resolve_billing_month, split_installments
from lyvo.ledger.errors import InvalidCardReference, NotFoundError, ValidationError
from lyvo.ledger.months import day_in_month, month_key, next_month_key
from lyvo.ledger.recurrence import filter_for_month
from lyvo.ledger.settlement import (
    SettlementOutcome,
    calculate_card_invoice,
    calculate_total_paid,
    card_transactions,
    is_residual_for,
    settle_invoice,
)
from lyvo.models.audit import AuditEventBuilder, AuditEventType
from lyvo.models.ledger import (
    Balances,
    BudgetLimit,
    CreditCard,
    CreditCardDraft,
    DeleteMode,
    FixedBill,
    FixedBillDraft,
    Forecast,
    ForecastDraft,
    ForecastKind,
    ForecastStatus,
    LedgerSnapshot,
    PaymentRef,
    PaymentRefKind,
    ProjectedBalance,
    Transaction,
    TransactionDraft,
    TransactionKind,
    TrendPoint,
)

M = TypeVar("M", bound=pydantic.BaseModel)

TRANSACTION_FIELDS = frozenset({"kind", "amount", "description", "category", "occurred_at", "card_ref"})
FORECAST_FIELDS = frozenset({
    "kind", "value", "expected_date", "description", "category", "is_recurring", "status",
})
CARD_FIELDS = frozenset({"name", "limit", "due_day", "best_purchase_day", "color", "brand"})


def _coerce(model_cls: type[M], data: Union[M, dict]) -> M:
    """Validate caller input into `model_cls`, failing with a ledger ValidationError."""
    if isinstance(data, model_cls):
        return data.model_copy(deep=True)
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        issues = [
            f"{'.'.join(str(p) for p in err['loc']) or model_cls.__name__}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {model_cls.__name__}: {'; '.join(issues)}", issues)


def _as_uuid(value) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid id: {value!r}")


def _as_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"Amount must be numeric, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount must be numeric, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Amount must be finite, got {value!r}")
    return amount


def _check_fields(changes: dict, allowed: frozenset, entity: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(
            f"Cannot update {entity} field(s): {', '.join(sorted(unknown))}"
        )


class LedgerStore:
    """
    In-memory ledger: transactions, fixed bills, forecasts, credit cards
    and budget limits.

    Months are passed as a zero-based month index plus a year, exactly
    like the UI holds them, and normalized to "YYYY-MM" internally.
    """

    def __init__(
        self,
        snapshot: Optional[LedgerSnapshot] = None,
        clock: Callable[[], date] = date.today,
        invoice_payment_category: str = "Cartão de Crédito",
        fallback_category: str = "Outros",
        audit_logger=None,
    ):
        snapshot = snapshot.model_copy(deep=True) if snapshot else LedgerSnapshot()
        self._transactions: list[Transaction] = snapshot.transactions
        self._fixed_bills: list[FixedBill] = snapshot.fixed_bills
        self._forecasts: list[Forecast] = snapshot.forecasts
        self._credit_cards: list[CreditCard] = snapshot.credit_cards
        self._budget_limits: list[BudgetLimit] = snapshot.budget_limits

        self._clock = clock
        self._payment_category = invoice_payment_category
        self._fallback_category = fallback_category
        self._audit = audit_logger

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot, **kwargs) -> "LedgerStore":
        return cls(snapshot=snapshot, **kwargs)

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            transactions=self._transactions,
            fixed_bills=self._fixed_bills,
            forecasts=self._forecasts,
            credit_cards=self._credit_cards,
            budget_limits=self._budget_limits,
        ).model_copy(deep=True)

    # ------------------------------------------------------------------
    # Read snapshots
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> list[Transaction]:
        return [t.model_copy(deep=True) for t in self._transactions]

    @property
    def fixed_bills(self) -> list[FixedBill]:
        return [b.model_copy(deep=True) for b in self._fixed_bills]

    @property
    def forecasts(self) -> list[Forecast]:
        return [f.model_copy(deep=True) for f in self._forecasts]

    @property
    def credit_cards(self) -> list[CreditCard]:
        return [c.model_copy(deep=True) for c in self._credit_cards]

    @property
    def budget_limits(self) -> list[BudgetLimit]:
        return [b.model_copy(deep=True) for b in self._budget_limits]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    def _index_of(self, collection: list, entity_id, entity_type: str) -> int:
        entity_id = _as_uuid(entity_id)
        for index, item in enumerate(collection):
            if item.id == entity_id:
                return index
        raise NotFoundError(entity_type, entity_id)

    def _card(self, card_id) -> CreditCard:
        try:
            return self._credit_cards[self._index_of(self._credit_cards, card_id, "credit card")]
        except NotFoundError:
            raise InvalidCardReference(card_id)

    def _insert(self, transaction: Transaction) -> Transaction:
        """
        Append a transaction.

        Cash expenses feed the budget accumulator of their category. The
        accumulator is never decremented, not even on delete.
        """
        self._transactions.append(transaction)
        if transaction.kind == TransactionKind.EXPENSE and not transaction.is_card_entry:
            for budget in self._budget_limits:
                if budget.category == transaction.category:
                    budget.spent += transaction.amount
                    break
        self._record(AuditEventBuilder.transaction_added(
            transaction_id=transaction.id,
            description=transaction.description,
            amount=str(transaction.amount),
            card_id=transaction.card_ref,
        ))
        return transaction

    def _remove_where(self, predicate) -> list[Transaction]:
        removed = [t for t in self._transactions if predicate(t)]
        if removed:
            self._transactions = [t for t in self._transactions if not predicate(t)]
        return removed

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(
        self,
        entry: Union[TransactionDraft, dict],
        installment_count: int = 1,
    ) -> list[Transaction]:
        """
        Record a transaction.

        Card purchases are split into `installment_count` monthly
        installments, each resolved to its own billing month. Cash
        entries are inserted as-is and cannot be split.

        Returns the inserted transactions.
        """
        draft = _coerce(TransactionDraft, entry)
        if isinstance(installment_count, bool) or not isinstance(installment_count, int) \
                or installment_count < 1:
            raise ValidationError(
                f"Installment count must be a positive integer, got {installment_count!r}"
            )

        if draft.card_ref is not None:
            card = self._card(draft.card_ref)
            installments = split_installments(draft, installment_count, card)
            for installment in installments:
                self._insert(installment)
            return [t.model_copy(deep=True) for t in installments]

        if installment_count != 1:
            raise ValidationError("Only credit card purchases can be split in installments")

        transaction = self._insert(Transaction(**draft.model_dump()))
        return [transaction.model_copy(deep=True)]

    def delete_transaction(self, transaction_id) -> None:
        index = self._index_of(self._transactions, transaction_id, "transaction")
        removed = self._transactions.pop(index)
        self._record(AuditEventBuilder.transaction_deleted(removed.id))

    def update_transaction(self, transaction_id, changes: dict) -> Transaction:
        """
        Apply a partial update.

        The billing month is re-resolved whenever the date or the card
        changes; dropping the card drops the billing month.
        """
        _check_fields(changes, TRANSACTION_FIELDS, "transaction")
        index = self._index_of(self._transactions, transaction_id, "transaction")
        current = self._transactions[index]

        data = current.model_dump()
        data.update(changes)

        card_ref = data.get("card_ref")
        if card_ref is None:
            data["billing_month"] = None
        else:
            card = self._card(card_ref)
            moved = "occurred_at" in changes or "card_ref" in changes
            if moved or current.billing_month is None:
                occurred_at = _coerce(TransactionDraft, {
                    **{k: data[k] for k in TRANSACTION_FIELDS},
                }).occurred_at
                data["billing_month"] = resolve_billing_month(occurred_at, card)

        updated = _coerce(Transaction, data)
        self._transactions[index] = updated
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.TRANSACTION_UPDATED,
            "transaction",
            updated.id,
            "Transaction updated",
            details={"fields": sorted(changes)},
        ))
        return updated.model_copy(deep=True)

    def get_transactions_by_month(self, month: int, year: int) -> list[Transaction]:
        """Cash transactions dated in the month, newest first."""
        key = month_key(month, year)
        found = [t for t in self._transactions if not t.is_card_entry and t.month == key]
        found.sort(key=lambda t: t.occurred_at, reverse=True)
        return [t.model_copy(deep=True) for t in found]

    # ------------------------------------------------------------------
    # Fixed bills
    # ------------------------------------------------------------------

    def add_fixed_bill(self, entry: Union[FixedBillDraft, dict], month: int, year: int) -> FixedBill:
        draft = _coerce(FixedBillDraft, entry)
        bill = FixedBill(**draft.model_dump(), start_month=month_key(month, year))
        self._fixed_bills.append(bill)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.FIXED_BILL_ADDED, "fixed_bill", bill.id,
            f"Fixed bill added: {bill.name}",
            details={"start_month": bill.start_month, "base_value": str(bill.base_value)},
        ))
        return bill.model_copy(deep=True)

    def get_fixed_bills_by_month(self, month: int, year: int) -> list[FixedBill]:
        key = month_key(month, year)
        return [b.model_copy(deep=True) for b in filter_for_month(self._fixed_bills, key)]

    def toggle_fixed_bill_status(self, bill_id, month: int, year: int) -> bool:
        """
        Flip a fixed bill between UNPAID and PAID for one month.

        Paying books an expense linked to the bill and month; un-paying
        deletes exactly that expense. Returns the new paid state.
        """
        key = month_key(month, year)
        bill = self._fixed_bills[self._index_of(self._fixed_bills, bill_id, "fixed bill")]
        ref = PaymentRef(kind=PaymentRefKind.FIXED_BILL, target_id=bill.id, month=key)

        if not bill.is_paid_in(key):
            bill.paid_months.append(key)
            self._insert(Transaction(
                kind=TransactionKind.EXPENSE,
                amount=bill.base_value,
                description=f"Pagamento: {bill.name}",
                category=bill.category,
                occurred_at=day_in_month(key, bill.due_day),
                payment_ref=ref,
            ))
            paid = True
        else:
            bill.paid_months = [m for m in bill.paid_months if m != key]
            self._remove_where(lambda t: t.payment_ref == ref)
            paid = False

        self._record(AuditEventBuilder.fixed_bill_toggled(bill.id, key, paid))
        return paid

    def delete_fixed_bill(self, bill_id, mode: Union[DeleteMode, str], month: int, year: int) -> None:
        """
        THIS_MONTH_ONLY skips the month; THIS_AND_FUTURE ends the bill at
        the month (it keeps applying to earlier months).
        """
        mode = self._delete_mode(mode)
        key = month_key(month, year)
        bill = self._fixed_bills[self._index_of(self._fixed_bills, bill_id, "fixed bill")]
        self._end_or_skip(bill, mode, key)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.FIXED_BILL_DELETED, "fixed_bill", bill.id,
            f"Fixed bill removed ({mode.value}) from {key}",
            details={"mode": mode.value, "month": key},
        ))

    @staticmethod
    def _delete_mode(mode) -> DeleteMode:
        try:
            return DeleteMode(mode)
        except ValueError:
            raise ValidationError(f"Invalid delete mode: {mode!r}")

    @staticmethod
    def _end_or_skip(entity: Union[FixedBill, Forecast], mode: DeleteMode, key: str) -> None:
        if mode == DeleteMode.THIS_AND_FUTURE:
            entity.ended_at = key
        elif key not in entity.skipped_months:
            entity.skipped_months.append(key)

    # ------------------------------------------------------------------
    # Forecasts
    # ------------------------------------------------------------------

    def add_forecast(self, entry: Union[ForecastDraft, dict], month: int, year: int) -> Forecast:
        draft = _coerce(ForecastDraft, entry)
        forecast = Forecast(
            **draft.model_dump(),
            status=ForecastStatus.PENDING,
            start_month=month_key(month, year),
        )
        self._forecasts.append(forecast)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.FORECAST_ADDED, "forecast", forecast.id,
            f"Forecast added: {forecast.description}",
            details={"start_month": forecast.start_month, "value": str(forecast.value)},
        ))
        return forecast.model_copy(deep=True)

    def update_forecast(self, forecast_id, changes: dict) -> Forecast:
        _check_fields(changes, FORECAST_FIELDS, "forecast")
        index = self._index_of(self._forecasts, forecast_id, "forecast")
        data = self._forecasts[index].model_dump()
        data.update(changes)
        updated = _coerce(Forecast, data)
        self._forecasts[index] = updated
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.FORECAST_UPDATED, "forecast", updated.id,
            "Forecast updated",
            details={"fields": sorted(changes)},
        ))
        return updated.model_copy(deep=True)

    def get_forecasts_by_month(self, month: int, year: int) -> list[Forecast]:
        key = month_key(month, year)
        return [f.model_copy(deep=True) for f in filter_for_month(self._forecasts, key)]

    def confirm_forecast(self, forecast_id, month: int, year: int) -> Transaction:
        """
        Realize a forecast for one month.

        Books the actual transaction and skips the month so the forecast
        no longer shows as pending there. One-shot forecasts also move to
        RECEIVED / PAID.
        """
        key = month_key(month, year)
        forecast = self._forecasts[self._index_of(self._forecasts, forecast_id, "forecast")]
        ref = PaymentRef(kind=PaymentRefKind.FORECAST, target_id=forecast.id, month=key)

        if any(t.payment_ref == ref for t in self._transactions):
            raise ValidationError(f"Forecast already confirmed for {key}")

        if key not in forecast.skipped_months:
            forecast.skipped_months.append(key)

        is_income = forecast.kind == ForecastKind.EXPECTED_INCOME
        transaction = self._insert(Transaction(
            kind=TransactionKind.INCOME if is_income else TransactionKind.EXPENSE,
            amount=forecast.value,
            description=forecast.description,
            category=forecast.category or self._fallback_category,
            occurred_at=day_in_month(key, self._clock().day),
            payment_ref=ref,
        ))

        if not forecast.is_recurring:
            forecast.status = ForecastStatus.RECEIVED if is_income else ForecastStatus.PAID

        self._record(AuditEventBuilder.forecast_confirmed(forecast.id, key, transaction.id))
        return transaction.model_copy(deep=True)

    def delete_forecast(self, forecast_id, mode: Union[DeleteMode, str], month: int, year: int) -> None:
        mode = self._delete_mode(mode)
        key = month_key(month, year)
        forecast = self._forecasts[self._index_of(self._forecasts, forecast_id, "forecast")]
        self._end_or_skip(forecast, mode, key)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.FORECAST_DELETED, "forecast", forecast.id,
            f"Forecast removed ({mode.value}) from {key}",
            details={"mode": mode.value, "month": key},
        ))

    # ------------------------------------------------------------------
    # Credit cards
    # ------------------------------------------------------------------

    def add_credit_card(self, entry: Union[CreditCardDraft, dict]) -> CreditCard:
        draft = _coerce(CreditCardDraft, entry)
        card = CreditCard(**draft.model_dump())
        self._credit_cards.append(card)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.CARD_ADDED, "card", card.id, f"Credit card added: {card.name}",
        ))
        return card.model_copy(deep=True)

    def update_credit_card(self, card_id, changes: dict) -> CreditCard:
        """
        Apply a partial update. A new best purchase day re-resolves the
        billing month of every purchase on the card (residual charges
        keep the month they were rolled to).
        """
        _check_fields(changes, CARD_FIELDS, "credit card")
        index = self._index_of(self._credit_cards, card_id, "credit card")
        current = self._credit_cards[index]
        data = current.model_dump()
        data.update(changes)
        updated = _coerce(CreditCard, data)
        self._credit_cards[index] = updated

        if updated.best_purchase_day != current.best_purchase_day:
            for t in self._transactions:
                if t.card_ref != updated.id:
                    continue
                if t.payment_ref and t.payment_ref.kind == PaymentRefKind.INVOICE_RESIDUAL:
                    continue
                t.billing_month = resolve_billing_month(t.occurred_at, updated)

        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.CARD_UPDATED, "card", updated.id, "Credit card updated",
            details={"fields": sorted(changes)},
        ))
        return updated.model_copy(deep=True)

    def delete_credit_card(self, card_id) -> None:
        """Remove a card together with every transaction billed to it."""
        index = self._index_of(self._credit_cards, card_id, "credit card")
        card = self._credit_cards.pop(index)
        removed = self._remove_where(lambda t: t.card_ref == card.id)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.CARD_DELETED, "card", card.id, f"Credit card deleted: {card.name}",
            details={"removed_transactions": len(removed)},
        ))

    def find_card_by_name(self, name: Optional[str]) -> Optional[CreditCard]:
        """Case-insensitive substring match on the card name."""
        if not name or not name.strip():
            return None
        needle = name.strip().lower()
        for card in self._credit_cards:
            if needle in card.name.lower():
                return card.model_copy(deep=True)
        return None

    def get_card_transactions(self, card_id, month: int, year: int) -> list[Transaction]:
        card = self._card(card_id)
        found = card_transactions(self._transactions, card.id, month_key(month, year))
        return [t.model_copy(deep=True) for t in found]

    # ------------------------------------------------------------------
    # Invoice settlement
    # ------------------------------------------------------------------

    def calculate_card_invoice(self, card_id, month: int, year: int) -> Decimal:
        card = self._card(card_id)
        return calculate_card_invoice(self._transactions, card.id, month_key(month, year))

    def calculate_total_paid_on_invoice(self, card_id, month: int, year: int) -> Decimal:
        card = self._card(card_id)
        return calculate_total_paid(self._transactions, card.id, month_key(month, year))

    def is_invoice_paid(self, card_id, month: int, year: int) -> bool:
        return month_key(month, year) in self._card(card_id).paid_invoices

    def pay_card_invoice(self, card_id, amount_paid, month: int, year: int) -> SettlementOutcome:
        """
        Pay towards a card invoice.

        1. book the payment as a cash expense linked to the invoice
        2. drop any residual already rolled onto the next invoice
        3. roll the remaining shortfall onto the next invoice, or mark
           the invoice paid when nothing is left
        """
        key = month_key(month, year)
        card = self._card(card_id)
        amount = _as_amount(amount_paid)
        if amount <= 0:
            raise ValidationError(f"Payment amount must be positive, got {amount}")

        outcome = settle_invoice(
            self._transactions,
            card,
            key,
            amount,
            paid_on=self._clock(),
            category=self._payment_category,
        )

        self._insert(outcome.payment)

        following = next_month_key(key)
        self._remove_where(lambda t: is_residual_for(t, card.id, following))

        if outcome.residual is not None:
            self._insert(outcome.residual)
            self._record(AuditEventBuilder.residual_rolled(
                card.id, key, following, str(outcome.residual.amount),
            ))
        elif key not in card.paid_invoices:
            card.paid_invoices.append(key)

        self._record(AuditEventBuilder.invoice_paid(
            card.id, key, str(amount), outcome.fully_paid,
        ))
        return outcome.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def add_budget_limit(self, category: str, monthly_limit) -> BudgetLimit:
        limit = _coerce(BudgetLimit, {"category": category, "monthly_limit": monthly_limit})
        self._budget_limits.append(limit)
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.BUDGET_LIMIT_SET, "budget_limit", limit.id,
            f"Budget limit set: {limit.category}",
            details={"monthly_limit": str(limit.monthly_limit)},
        ))
        return limit.model_copy(deep=True)

    def update_budget_limit(self, limit_id, category: str, monthly_limit) -> BudgetLimit:
        index = self._index_of(self._budget_limits, limit_id, "budget limit")
        current = self._budget_limits[index]
        updated = _coerce(BudgetLimit, {
            "id": current.id,
            "category": category,
            "monthly_limit": monthly_limit,
            "spent": current.spent,
        })
        self._budget_limits[index] = updated
        self._record(AuditEventBuilder.entity_changed(
            AuditEventType.BUDGET_LIMIT_SET, "budget_limit", updated.id,
            f"Budget limit set: {updated.category}",
            details={"monthly_limit": str(updated.monthly_limit)},
        ))
        return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def calculate_balances(self, month: int, year: int) -> Balances:
        return aggregator.calculate_balances(self._transactions, month_key(month, year))

    def category_spend(self, month: int, year: int) -> dict[str, Decimal]:
        return aggregator.category_spend(self._transactions, month_key(month, year))

    def projected_balance(self, month: int, year: int) -> ProjectedBalance:
        return aggregator.projected_balance(
            self._transactions,
            self._fixed_bills,
            self._forecasts,
            self._credit_cards,
            month_key(month, year),
        )

    def monthly_trend(self, month: int, year: int, months: int = 6) -> list[TrendPoint]:
        return aggregator.monthly_trend(self._transactions, month_key(month, year), months)

    def budget_overview(self) -> list[dict]:
        return aggregator.budget_overview(self._budget_limits)
