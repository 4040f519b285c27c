"""
Invoice Settlement

Computes what a card invoice owes, what has been paid towards it, and
how a payment settles it. A shortfall is rolled onto the next invoice
as a residual charge; each payment recomputes that residual from
scratch, so repeated partial payments converge.

Payments and residuals are linked to the invoice through a typed
PaymentRef, never through description text.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from lyvo.ledger.months import first_day, next_month_key
from lyvo.models.ledger import (
    CreditCard,
    PaymentRef,
    PaymentRefKind,
    Transaction,
    TransactionKind,
)

RESIDUAL_DESCRIPTION = "Resíduo Fatura Anterior: {name}"
PAYMENT_DESCRIPTION = "Pagamento Fatura: {name}"


class SettlementOutcome(BaseModel):
    """What the store must apply after an invoice payment."""

    month: str
    total_due: Decimal
    total_paid: Decimal
    payment: Transaction
    residual: Optional[Transaction] = None

    @property
    def fully_paid(self) -> bool:
        return self.residual is None


def card_transactions(
    transactions: Iterable[Transaction],
    card_id,
    month: str,
) -> list[Transaction]:
    """Everything billed to a card's invoice for a month."""
    return [
        t for t in transactions
        if t.card_ref == card_id and t.billing_month == month
    ]


def calculate_card_invoice(
    transactions: Iterable[Transaction],
    card_id,
    month: str,
) -> Decimal:
    return sum(
        (t.amount for t in card_transactions(transactions, card_id, month)),
        Decimal("0"),
    )


def is_invoice_payment(transaction: Transaction, card_id, month: str) -> bool:
    ref = transaction.payment_ref
    return (
        transaction.card_ref is None
        and ref is not None
        and ref.kind == PaymentRefKind.INVOICE
        and ref.target_id == card_id
        and ref.month == month
    )


def is_residual_for(transaction: Transaction, card_id, billing_month: str) -> bool:
    """A residual charge sitting on a card's invoice for `billing_month`."""
    ref = transaction.payment_ref
    return (
        ref is not None
        and ref.kind == PaymentRefKind.INVOICE_RESIDUAL
        and transaction.card_ref == card_id
        and transaction.billing_month == billing_month
    )


def calculate_total_paid(
    transactions: Iterable[Transaction],
    card_id,
    month: str,
) -> Decimal:
    return sum(
        (t.amount for t in transactions if is_invoice_payment(t, card_id, month)),
        Decimal("0"),
    )


def settle_invoice(
    transactions: list[Transaction],
    card: CreditCard,
    month: str,
    amount_paid: Decimal,
    paid_on: date,
    category: str,
) -> SettlementOutcome:
    """
    Work out the effect of paying `amount_paid` towards a card invoice.

    The payment is a plain cash expense (it reduces the balance). If the
    running total paid is still short of the invoice, the difference
    becomes a residual expense on the next invoice.
    """
    total_due = calculate_card_invoice(transactions, card.id, month)
    previously_paid = calculate_total_paid(transactions, card.id, month)
    total_paid = previously_paid + amount_paid

    payment = Transaction(
        kind=TransactionKind.EXPENSE,
        amount=amount_paid,
        description=PAYMENT_DESCRIPTION.format(name=card.name),
        category=category,
        occurred_at=paid_on,
        payment_ref=PaymentRef(
            kind=PaymentRefKind.INVOICE,
            target_id=card.id,
            month=month,
        ),
    )

    residual = None
    if total_paid < total_due:
        # Billing month is set explicitly, not resolved from the date
        following = next_month_key(month)
        residual = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=total_due - total_paid,
            description=RESIDUAL_DESCRIPTION.format(name=card.name),
            category=category,
            occurred_at=first_day(following),
            card_ref=card.id,
            billing_month=following,
            payment_ref=PaymentRef(
                kind=PaymentRefKind.INVOICE_RESIDUAL,
                target_id=card.id,
                month=month,
            ),
        )

    return SettlementOutcome(
        month=month,
        total_due=total_due,
        total_paid=total_paid,
        payment=payment,
        residual=residual,
    )
