"""
Chat Models for Lyvo

The chat classifier (an LLM) returns loosely structured payloads.
Before anything reaches the ledger engine, the payload is validated
into exactly one of the intent variants below.

CRITICAL: Intents are PROPOSALS. Write intents are only applied after
the user confirms them. Query intents are executed deterministically
against the store; the LLM never answers from its own knowledge.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from lyvo.models.ledger import MonthKey, TransactionKind


# =============================================================================
# INTENT DETAILS
# =============================================================================

class TransactionDetails(BaseModel):
    """Fields of a cash transaction mentioned in chat."""
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: TransactionKind = TransactionKind.EXPENSE
    value: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=300)
    category: Optional[str] = Field(default=None, max_length=100)
    occurred_at: Optional[date] = Field(
        default=None,
        description="Defaults to today when the user did not say"
    )
    installments: int = Field(
        default=1,
        ge=1,
        le=48,
        description="Only card purchases are split; cash entries are saved once"
    )


class CreditTransactionDetails(TransactionDetails):
    """A card purchase, possibly split in installments."""

    card_name: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Card name as the user said it (matched by substring)"
    )


class EventDetails(BaseModel):
    """An appointment mentioned in chat."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    event_date: date
    time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    description: Optional[str] = Field(default=None, max_length=1000)

    @property
    def starts_at(self) -> datetime:
        hour, minute = (int(part) for part in self.time.split(":"))
        day = self.event_date
        return datetime(day.year, day.month, day.day, hour, minute)


class QueryDetails(BaseModel):
    """What the user asked about, before deterministic resolution."""
    model_config = ConfigDict(str_strip_whitespace=True)

    query_type: str = Field(
        default="balance",
        description="balance, projection, invoice, category_spend, trend, fixed_bills, forecasts, transactions"
    )
    time_reference: Optional[str] = Field(
        default=None,
        description="'this month', 'last month', 'março', '2025-03', ..."
    )
    card_name: Optional[str] = None
    category: Optional[str] = None


# =============================================================================
# INTENTS (tagged union on `action`)
# =============================================================================

class _IntentBase(BaseModel):
    intent_id: UUID = Field(default_factory=uuid4)
    response_message: str = Field(
        default="",
        max_length=500,
        description="Friendly sentence confirming what was understood"
    )


class AddTransactionIntent(_IntentBase):
    action: Literal["ADD_TRANSACTION"] = "ADD_TRANSACTION"
    transaction: TransactionDetails


class AddCreditTransactionIntent(_IntentBase):
    action: Literal["ADD_CREDIT_TRANSACTION"] = "ADD_CREDIT_TRANSACTION"
    transaction: CreditTransactionDetails


class AddEventIntent(_IntentBase):
    action: Literal["ADD_EVENT"] = "ADD_EVENT"
    event: EventDetails


class QueryIntent(_IntentBase):
    action: Literal["QUERY"] = "QUERY"
    question: str = Field(default="", max_length=1000)
    query: QueryDetails = Field(default_factory=QueryDetails)


class UnknownIntent(_IntentBase):
    action: Literal["UNKNOWN"] = "UNKNOWN"


Intent = Annotated[
    Union[
        AddTransactionIntent,
        AddCreditTransactionIntent,
        AddEventIntent,
        QueryIntent,
        UnknownIntent,
    ],
    Field(discriminator="action"),
]

WRITE_ACTIONS = frozenset({"ADD_TRANSACTION", "ADD_CREDIT_TRANSACTION", "ADD_EVENT"})


class ChatProposal(BaseModel):
    """
    An intent waiting for user confirmation.

    The UI shows `message` (and the pre-filled fields) and calls
    ChatFlow.confirm() only on explicit approval.
    """

    proposal_id: UUID = Field(default_factory=uuid4)
    correlation_id: UUID
    created_at: datetime = Field(default_factory=datetime.utcnow)
    intent: Intent
    message: str
    requires_confirmation: bool
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# QUERY MODELS
# =============================================================================

class StructuredQuery(BaseModel):
    """
    A query resolved from a QueryIntent.

    Executed DETERMINISTICALLY against the entry store.
    """

    query_id: UUID = Field(default_factory=uuid4)
    original_question: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)

    query_type: str = Field(
        ...,
        pattern="^(balance|projection|invoice|category_spend|trend|fixed_bills|forecasts|transactions)$",
    )
    month: MonthKey
    card_id: Optional[UUID] = None
    category_filter: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=200)


class QueryResult(BaseModel):
    """Result of executing a structured query."""

    query_id: UUID
    executed_at: datetime = Field(default_factory=datetime.utcnow)

    success: bool
    error_message: Optional[str] = None

    data_found: bool
    result_count: int = Field(ge=0)
    results: list[dict] = Field(default_factory=list)
    aggregation_result: Optional[dict] = None

    query_description: str
