"""
Data Models Package

This package contains all Pydantic models used in Lyvo.
All data flowing through the system must conform to these schemas.
"""

from lyvo.models.ledger import (
    MONTH_KEY_PATTERN,
    Balances,
    BudgetLimit,
    CardBrand,
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
from lyvo.models.chat import (
    WRITE_ACTIONS,
    AddCreditTransactionIntent,
    AddEventIntent,
    AddTransactionIntent,
    ChatProposal,
    CreditTransactionDetails,
    EventDetails,
    Intent,
    QueryDetails,
    QueryIntent,
    QueryResult,
    StructuredQuery,
    TransactionDetails,
    UnknownIntent,
)
from lyvo.models.agenda import (
    AccessPlan,
    CalendarConnection,
    CalendarEvent,
    ConnectionStatus,
    EventSource,
    UserAccess,
)
from lyvo.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MONTH_KEY_PATTERN",
    "Balances",
    "BudgetLimit",
    "CardBrand",
    "CreditCard",
    "CreditCardDraft",
    "DeleteMode",
    "FixedBill",
    "FixedBillDraft",
    "Forecast",
    "ForecastDraft",
    "ForecastKind",
    "ForecastStatus",
    "LedgerSnapshot",
    "PaymentRef",
    "PaymentRefKind",
    "ProjectedBalance",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "TrendPoint",
    # Chat models
    "WRITE_ACTIONS",
    "AddCreditTransactionIntent",
    "AddEventIntent",
    "AddTransactionIntent",
    "ChatProposal",
    "CreditTransactionDetails",
    "EventDetails",
    "Intent",
    "QueryDetails",
    "QueryIntent",
    "QueryResult",
    "StructuredQuery",
    "TransactionDetails",
    "UnknownIntent",
    # Agenda / access models
    "AccessPlan",
    "CalendarConnection",
    "CalendarEvent",
    "ConnectionStatus",
    "EventSource",
    "UserAccess",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
