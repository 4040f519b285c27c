"""
Two-Stage Intent Validation

DESIGN DECISION: Classifier payloads are validated in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Key normalization (camelCase payload -> model fields)
- Type checking and required field presence
- Exactly one intent variant per payload
- Failure raises; nothing reaches the ledger

STAGE 2 - SEMANTIC REVIEW:
- Dates far in the future, events in the past
- Absurd amounts
- Installments on a cash entry
- Produces warnings only; the user sees them before confirming

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

import pydantic
from pydantic import TypeAdapter

from lyvo.ledger.errors import ValidationError
from lyvo.models.chat import (
    AddCreditTransactionIntent,
    AddEventIntent,
    AddTransactionIntent,
    Intent,
)

ACTIONS = ("ADD_TRANSACTION", "ADD_CREDIT_TRANSACTION", "ADD_EVENT", "QUERY", "UNKNOWN")

FUTURE_DATE_TOLERANCE_DAYS = 1
MAX_REASONABLE_AMOUNT = Decimal("100000")

_TRANSACTION_KEYS = {
    "type": "kind",
    "kind": "kind",
    "value": "value",
    "amount": "value",
    "description": "description",
    "category": "category",
    "date": "occurred_at",
    "occurred_at": "occurred_at",
    "cardName": "card_name",
    "card_name": "card_name",
    "installments": "installments",
}

_EVENT_KEYS = {
    "title": "title",
    "date": "event_date",
    "event_date": "event_date",
    "time": "time",
    "description": "description",
}

_QUERY_KEYS = {
    "queryType": "query_type",
    "query_type": "query_type",
    "timeReference": "time_reference",
    "time_reference": "time_reference",
    "cardName": "card_name",
    "card_name": "card_name",
    "category": "category",
}


def _rename(details: Any, mapping: dict[str, str]) -> dict:
    if not isinstance(details, dict):
        return {}
    return {
        mapping[key]: value
        for key, value in details.items()
        if key in mapping and value is not None and value != ""
    }


def _normalize_number(value: Any) -> Any:
    """Accept "45,90" as well as 45.9."""
    if isinstance(value, str):
        value = value.strip().replace("R$", "").strip()
        if "," in value and "." not in value:
            value = value.replace(",", ".")
    return value


class IntentValidator:
    """
    Turns a raw classifier payload into exactly one Intent variant.

    Stage 1 (`parse`) can fail; stage 2 (`review`) only warns.
    """

    _adapter = TypeAdapter(Intent)

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def normalize(self, payload: dict) -> dict:
        """Map the classifier's camelCase payload onto intent fields."""
        if not isinstance(payload, dict):
            raise ValidationError(f"Classifier payload must be an object, got {type(payload).__name__}")

        action = str(payload.get("action") or "").strip().upper()
        if action not in ACTIONS:
            raise ValidationError(
                f"Unknown action: {payload.get('action')!r}",
                [f"action: expected one of {', '.join(ACTIONS)}"],
            )

        data = {
            "action": action,
            "response_message": payload.get("responseMessage") or payload.get("response_message") or "",
        }

        if action in ("ADD_TRANSACTION", "ADD_CREDIT_TRANSACTION"):
            raw = payload.get("transactionDetails") or payload.get("transaction")
            details = _rename(raw, _TRANSACTION_KEYS)
            if "value" in details:
                details["value"] = _normalize_number(details["value"])
            if isinstance(details.get("kind"), str):
                details["kind"] = details["kind"].upper()
            data["transaction"] = details
        elif action == "ADD_EVENT":
            raw = payload.get("eventDetails") or payload.get("event")
            data["event"] = _rename(raw, _EVENT_KEYS)
        elif action == "QUERY":
            raw = payload.get("queryDetails") or payload.get("query")
            data["query"] = _rename(raw, _QUERY_KEYS)
            data["question"] = payload.get("question") or ""

        return data

    def parse(self, payload: dict) -> Intent:
        """
        Stage 1: schema validation.

        Raises:
            ValidationError: with one issue per offending field
        """
        data = self.normalize(payload)
        try:
            return self._adapter.validate_python(data)
        except pydantic.ValidationError as e:
            issues = []
            for err in e.errors():
                # Drop the discriminator tag from the location
                loc = [str(p) for p in err["loc"] if p != data["action"]]
                issues.append(f"{'.'.join(loc) or 'payload'}: {err['msg']}")
            raise ValidationError(
                f"Invalid {data['action']} payload: {'; '.join(issues)}",
                issues,
            )

    def review(self, intent: Intent) -> list[str]:
        """Stage 2: semantic review. Returns warnings for the user."""
        warnings = []
        today = self._today()

        if isinstance(intent, (AddTransactionIntent, AddCreditTransactionIntent)):
            details = intent.transaction
            max_future = today + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS)
            if details.occurred_at and details.occurred_at > max_future:
                warnings.append(f"Transaction date ({details.occurred_at}) is in the future")
            if details.value > MAX_REASONABLE_AMOUNT:
                warnings.append(f"Amount (R${details.value:,.2f}) seems unusually high")
            if isinstance(intent, AddCreditTransactionIntent) and not details.card_name:
                warnings.append("No card was mentioned; the first card will be used")
            if isinstance(intent, AddTransactionIntent) and details.installments > 1:
                warnings.append(
                    f"Installments ({details.installments}x) only apply to card purchases; "
                    "this entry will be saved once for the full amount"
                )

        if isinstance(intent, AddEventIntent):
            if intent.event.starts_at < datetime.combine(today, datetime.min.time()):
                warnings.append(f"Event date ({intent.event.event_date}) is in the past")

        return warnings
