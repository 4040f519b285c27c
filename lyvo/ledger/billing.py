"""
Billing Cycle Resolver and Installment Splitter

A card purchase counts against the invoice of its billing month. The
card's best purchase day is the cutoff: purchases made on or after it
land on the next month's invoice.

Residual charges from a partly paid invoice are the one exception: they
are dated the 1st of the following month and are pinned to that month's
invoice, even for a card whose cutoff is day 1 (where the resolver would
send a purchase on the 1st one month further).
"""

from decimal import Decimal
from typing import Optional

from lyvo.ledger.errors import InvalidCardReference, ValidationError
from lyvo.ledger.months import add_months, month_key_of, next_month_key
from lyvo.models.ledger import CreditCard, Transaction, TransactionDraft


def resolve_billing_month(on, card: Optional[CreditCard]) -> str:
    """
    Map a purchase date to the "YYYY-MM" invoice it belongs to.

    Raises InvalidCardReference if no card is given.
    """
    if card is None:
        raise InvalidCardReference(None)

    own_month = month_key_of(on)
    if on.day >= card.best_purchase_day:
        return next_month_key(own_month)
    return own_month


def split_installments(
    draft: TransactionDraft,
    count: int,
    card: Optional[CreditCard],
) -> list[Transaction]:
    """
    Expand one card purchase into `count` monthly installments.

    Each installment carries total / count (no remainder redistribution),
    is dated i calendar months after the purchase and is resolved to its
    own billing month. Installments are independent transactions.
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError(f"Installment count must be a positive integer, got {count!r}")
    if card is None:
        raise InvalidCardReference(draft.card_ref)

    per_installment = Decimal(draft.amount) / count
    installments = []

    for i in range(count):
        occurred_at = add_months(draft.occurred_at, i)
        description = draft.description
        if count > 1:
            description = f"{draft.description} ({i + 1}/{count})"

        installments.append(Transaction(
            kind=draft.kind,
            amount=per_installment,
            description=description,
            category=draft.category,
            occurred_at=occurred_at,
            card_ref=card.id,
            billing_month=resolve_billing_month(occurred_at, card),
        ))

    return installments
