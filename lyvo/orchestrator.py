"""
Main Orchestrator for Lyvo

This module ties together all the components and defines the
end-to-end flows for:
1. Chat (message -> classify -> validate -> propose -> confirm -> apply)
2. Questions (message -> classify -> resolve -> execute -> phrase)
3. Persistence (load a user's ledger and agenda on sign-in, save after changes)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the ledger without human confirmation
- No question is answered without a ledger lookup
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from lyvo.access import AccessController
from lyvo.agenda import AgendaStore
from lyvo.agents import ChatAgent
from lyvo.audit import AuditLogger, configure_logging, create_correlation_id
from lyvo.config import DEFAULT_BUDGET_LIMITS, get_settings
from lyvo.ledger import InvalidCardReference, LedgerError, LedgerStore, ValidationError
from lyvo.models.agenda import CalendarEvent
from lyvo.models.audit import AuditEventBuilder
from lyvo.models.chat import (
    AddCreditTransactionIntent,
    AddEventIntent,
    AddTransactionIntent,
    ChatProposal,
    QueryIntent,
    UnknownIntent,
    WRITE_ACTIONS,
)
from lyvo.models.ledger import CreditCard, Transaction, TransactionDraft, TransactionKind
from lyvo.queries import QueryExecutionError, QueryExecutor
from lyvo.services.storage import (
    AccessStorageInterface,
    AgendaStorageInterface,
    GoogleSheetsAccessStorage,
    GoogleSheetsAgendaStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAccessStorage,
    InMemoryAgendaStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from lyvo.validation import IntentValidator

logger = structlog.get_logger(__name__)

NOT_UNDERSTOOD = "Não entendi. Pode reformular? Ex.: \"gastei 50 no mercado\" ou \"reunião amanhã às 10h\"."


class ChatFlow:
    """
    Orchestrates the chat flow.

    Flow:
    1. Classify -> the agent turns the message into a raw payload
    2. Validate -> the payload becomes exactly one intent (or is rejected)
    3. Questions are answered right away from the ledger
    4. Writes become a PROPOSAL (PAUSE - require confirmation)
    5. Confirm -> user explicitly approves, the proposal is applied

    Human confirmation (step 5) is MANDATORY for writes.
    """

    def __init__(
        self,
        store: LedgerStore,
        agenda: AgendaStore,
        agent: ChatAgent,
        uid: Optional[str] = None,
        validator: Optional[IntentValidator] = None,
        executor: Optional[QueryExecutor] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
        fallback_category: str = "Outros",
    ):
        self._store = store
        self._agenda = agenda
        self._uid = uid
        self._agent = agent
        self._validator = validator or IntentValidator(today)
        self._executor = executor or QueryExecutor(store)
        self._audit_logger = audit_logger
        self._today = today
        self._fallback_category = fallback_category
        self._applied: set[UUID] = set()

    @property
    def uid(self) -> Optional[str]:
        """Owner of the ledger and agenda this flow works on."""
        return self._uid

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def agenda(self) -> AgendaStore:
        return self._agenda

    def _audit(self, event) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)

    def _validation_failed(self, operation: str, message: str, correlation_id: UUID) -> None:
        if self._audit_logger:
            self._audit_logger.log_validation_failed(operation, message, correlation_id)

    async def interpret(
        self,
        text: str,
        image_bytes: Optional[bytes] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ChatProposal:
        """
        Interpret one chat message.

        Returns a proposal. Write intents come back with
        requires_confirmation=True and are NOT applied; questions come
        back already answered.
        """
        correlation_id = correlation_id or create_correlation_id()

        card_names = [card.name for card in self._store.credit_cards]
        payload = await self._agent.classify(text, card_names, image_bytes)

        try:
            intent = self._validator.parse(payload)
        except ValidationError as e:
            self._audit(AuditEventBuilder.intent_rejected(e.issues, correlation_id))
            return ChatProposal(
                correlation_id=correlation_id,
                intent=UnknownIntent(),
                message=NOT_UNDERSTOOD,
                requires_confirmation=False,
                warnings=e.issues,
            )

        self._audit(AuditEventBuilder.intent_classified(
            intent.intent_id, intent.action, correlation_id,
        ))

        if isinstance(intent, QueryIntent):
            if not intent.question:
                intent.question = text
            answer = await self.answer(intent, correlation_id)
            return ChatProposal(
                correlation_id=correlation_id,
                intent=intent,
                message=answer,
                requires_confirmation=False,
            )

        if intent.action in WRITE_ACTIONS:
            return ChatProposal(
                correlation_id=correlation_id,
                intent=intent,
                message=intent.response_message or "Confere os dados antes de salvar.",
                requires_confirmation=True,
                warnings=self._validator.review(intent),
            )

        return ChatProposal(
            correlation_id=correlation_id,
            intent=intent,
            message=intent.response_message or NOT_UNDERSTOOD,
            requires_confirmation=False,
        )

    async def answer(self, intent: QueryIntent, correlation_id: UUID) -> str:
        """
        Answer a question from ledger data.

        FLOW:
        1. Intent -> StructuredQuery (deterministic)
        2. Execute on the entry store (deterministic)
        3. Results -> natural language
        """
        try:
            query = self._executor.plan(intent, self._today())
        except QueryExecutionError as e:
            self._validation_failed("query", str(e), correlation_id)
            return f"Não consegui entender a consulta: {e}"

        result = self._executor.execute(query)
        self._audit(AuditEventBuilder.query_executed(
            query_id=query.query_id,
            query_type=query.query_type,
            result_count=result.result_count,
            correlation_id=correlation_id,
        ))
        return await self._agent.phrase_answer(query, result)

    def resolve_card(self, card_name: Optional[str]) -> CreditCard:
        """
        Card named in chat: substring match on the name, otherwise the
        first registered card.
        """
        card = self._store.find_card_by_name(card_name)
        if card is not None:
            return card
        cards = self._store.credit_cards
        if not cards:
            raise InvalidCardReference(card_name)
        return cards[0]

    def confirm(self, proposal: ChatProposal) -> Union[list[Transaction], CalendarEvent]:
        """
        Apply a confirmed proposal.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Returns the created transactions (card purchases may span
        several installments) or the created event.
        """
        intent = proposal.intent
        correlation_id = proposal.correlation_id

        if not proposal.requires_confirmation or intent.action not in WRITE_ACTIONS:
            raise ValidationError(f"Nothing to confirm for a {intent.action} message")
        if proposal.proposal_id in self._applied:
            raise ValidationError("This proposal was already applied")

        try:
            created = self._apply(intent)
        except LedgerError as e:
            self._validation_failed(intent.action, str(e), correlation_id)
            raise

        self._applied.add(proposal.proposal_id)
        self._audit(AuditEventBuilder.user_confirmed(intent.intent_id, intent.action, correlation_id))
        return created

    def _apply(self, intent) -> Union[list[Transaction], CalendarEvent]:
        today = self._today()

        if isinstance(intent, AddEventIntent):
            details = intent.event
            return self._agenda.add_event({
                "title": details.title,
                "starts_at": details.starts_at,
                "description": details.description,
            })

        details = intent.transaction
        draft = {
            "kind": details.kind,
            "amount": details.value,
            "description": details.description,
            "category": details.category or self._fallback_category,
            "occurred_at": details.occurred_at or today,
        }

        if isinstance(intent, AddCreditTransactionIntent):
            card = self.resolve_card(details.card_name)
            draft["kind"] = TransactionKind.EXPENSE
            draft["card_ref"] = card.id
            return self._store.add_transaction(
                TransactionDraft(**draft),
                installment_count=details.installments,
            )

        if isinstance(intent, AddTransactionIntent):
            return self._store.add_transaction(TransactionDraft(**draft))

        raise ValidationError(f"Unsupported action: {intent.action}")

    def cancel(self, proposal: ChatProposal) -> None:
        """Record that the user discarded a proposal."""
        self._audit(AuditEventBuilder.user_cancelled(
            proposal.intent.intent_id, proposal.correlation_id,
        ))


class PersistenceFlow:
    """
    Loads one user's ledger and agenda into stores and saves them back.

    A ledger without budget limits is seeded with the default categories.
    Storage failures are audited and re-raised.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        agenda_storage: Optional[AgendaStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._agenda_storage = agenda_storage or InMemoryAgendaStorage()
        self._audit_logger = audit_logger

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    @staticmethod
    def _counts(store_or_snapshot) -> dict[str, int]:
        return {
            "transactions": len(store_or_snapshot.transactions),
            "fixed_bills": len(store_or_snapshot.fixed_bills),
            "forecasts": len(store_or_snapshot.forecasts),
            "credit_cards": len(store_or_snapshot.credit_cards),
            "budget_limits": len(store_or_snapshot.budget_limits),
        }

    def _storage_failed(self, error: StorageError) -> None:
        logger.warning("storage_failed", error=str(error))
        if self._audit_logger:
            self._audit_logger.log_external_service_error("storage", str(error))

    def load(self, uid: str, **store_kwargs) -> LedgerStore:
        try:
            snapshot = self._storage.load(uid)
        except StorageError as e:
            self._storage_failed(e)
            raise

        store = LedgerStore.from_snapshot(snapshot, audit_logger=self._audit_logger, **store_kwargs)
        if not snapshot.budget_limits:
            for category, limit in DEFAULT_BUDGET_LIMITS.items():
                store.add_budget_limit(category, limit)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.ledger_persisted(False, self._counts(snapshot), uid))
        return store

    def load_agenda(self, uid: str) -> AgendaStore:
        try:
            snapshot = self._agenda_storage.load(uid)
        except StorageError as e:
            self._storage_failed(e)
            raise
        return AgendaStore.from_snapshot(snapshot, audit_logger=self._audit_logger)

    def save(self, uid: str, store: LedgerStore, agenda: Optional[AgendaStore] = None) -> bool:
        """Save the user's ledger, and their agenda when one is given."""
        snapshot = store.snapshot()
        counts = self._counts(snapshot)
        try:
            saved = self._storage.save(uid, snapshot)
            if agenda is not None:
                agenda_snapshot = agenda.snapshot()
                saved = self._agenda_storage.save(uid, agenda_snapshot) and saved
                counts["events"] = len(agenda_snapshot.events)
        except StorageError as e:
            self._storage_failed(e)
            raise

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.ledger_persisted(True, counts, uid))
        return saved

    def save_flow(self, chat_flow: "ChatFlow") -> bool:
        """Save everything a user's chat flow works on."""
        return self.save(chat_flow.uid, chat_flow.store, chat_flow.agenda)


def create_app_components(
    use_storage: bool = True,
    agent: Optional[ChatAgent] = None,
) -> tuple[PersistenceFlow, AccessController, ChatAgent]:
    """
    Factory function to create the shared application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.
        agent: Chat agent to use (a Gemini agent is built if None).

    Returns:
        (persistence_flow, access_controller, agent). Per-user chat
        flows come from open_chat_flow.
    """
    app_settings = get_settings().app
    configure_logging(app_settings.debug_mode)

    ledger_storage: LedgerStorageInterface = InMemoryLedgerStorage()
    agenda_storage: AgendaStorageInterface = InMemoryAgendaStorage()
    access_storage: AccessStorageInterface = InMemoryAccessStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            agenda_storage = GoogleSheetsAgendaStorage(sheets_client)
            access_storage = GoogleSheetsAccessStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            audit_logger.log_external_service_error("google_sheets", str(e))

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        storage=type(ledger_storage).__name__,
    )

    persistence = PersistenceFlow(ledger_storage, agenda_storage, audit_logger)
    access = AccessController(
        access_storage,
        trial_days=app_settings.trial_days,
        audit_logger=audit_logger,
    )
    return persistence, access, agent or ChatAgent(audit_logger=audit_logger)


def open_chat_flow(uid: str, persistence: PersistenceFlow, agent: ChatAgent) -> ChatFlow:
    """
    Load one user's ledger and agenda and wrap them in a chat flow.

    Raises:
        StorageError: If the user's data cannot be read. Nothing is
            opened in that case, so a later save cannot overwrite it.
    """
    app_settings = get_settings().app
    store = persistence.load(
        uid,
        invoice_payment_category=app_settings.invoice_payment_category,
        fallback_category=app_settings.fallback_category,
    )
    return ChatFlow(
        store=store,
        agenda=persistence.load_agenda(uid),
        agent=agent,
        uid=uid,
        executor=QueryExecutor(store, trend_months=app_settings.trend_months),
        audit_logger=persistence.audit_logger,
        fallback_category=app_settings.fallback_category,
    )
