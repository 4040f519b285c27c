"""
Query Execution Engine

DESIGN DECISION: Query execution is DETERMINISTIC.
The LLM only classifies a question and names what it refers to.
This engine resolves that into a StructuredQuery and runs it on the
live entry store. The LLM then phrases the response.

At no point does the LLM have direct access to answer questions.
It can only see what this engine returns from the ledger.
"""

import unicodedata
from datetime import date
from decimal import Decimal
from typing import Optional

from lyvo.ledger import LedgerError, LedgerStore
from lyvo.ledger.months import month_key_of, parse_month_key, shift_month_key
from lyvo.models.chat import QueryIntent, QueryResult, StructuredQuery

QUERY_TYPES = (
    "balance",
    "projection",
    "invoice",
    "category_spend",
    "trend",
    "fixed_bills",
    "forecasts",
    "transactions",
)

MONTH_NAMES = {
    "janeiro": 1, "january": 1, "jan": 1,
    "fevereiro": 2, "february": 2, "fev": 2, "feb": 2,
    "marco": 3, "march": 3, "mar": 3,
    "abril": 4, "april": 4, "abr": 4, "apr": 4,
    "maio": 5, "may": 5, "mai": 5,
    "junho": 6, "june": 6, "jun": 6,
    "julho": 7, "july": 7, "jul": 7,
    "agosto": 8, "august": 8, "ago": 8, "aug": 8,
    "setembro": 9, "september": 9, "set": 9, "sep": 9,
    "outubro": 10, "october": 10, "out": 10, "oct": 10,
    "novembro": 11, "november": 11, "nov": 11,
    "dezembro": 12, "december": 12, "dez": 12, "dec": 12,
}

RELATIVE_MONTHS = {
    "this month": 0, "este mes": 0, "esse mes": 0, "neste mes": 0, "nesse mes": 0,
    "mes atual": 0, "hoje": 0, "today": 0,
    "last month": -1, "mes passado": -1, "ultimo mes": -1,
    "next month": 1, "proximo mes": 1, "mes que vem": 1,
}


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


def _fold(text: str) -> str:
    """Lowercase and strip accents ("Março" -> "marco")."""
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def resolve_time_reference(reference: Optional[str], today: date) -> str:
    """
    Turn what the user said about time into a "YYYY-MM" key.

    Understands relative months, "YYYY-MM", and month names (optionally
    followed by a year). A missing reference means the current month;
    anything unrecognised raises QueryExecutionError.
    """
    current = month_key_of(today)
    if not reference or not reference.strip():
        return current

    folded = _fold(reference)
    if folded in RELATIVE_MONTHS:
        return shift_month_key(current, RELATIVE_MONTHS[folded])

    try:
        year, month = parse_month_key(folded)
        return f"{year:04d}-{month:02d}"
    except LedgerError:
        pass

    words = folded.replace(" de ", " ").replace("/", " ").split()
    for index, word in enumerate(words):
        if word in MONTH_NAMES:
            year = today.year
            if index + 1 < len(words) and words[index + 1].isdigit() and len(words[index + 1]) == 4:
                year = int(words[index + 1])
            return f"{year:04d}-{MONTH_NAMES[word]:02d}"

    raise QueryExecutionError(f"Could not understand the time reference: {reference!r}")


class QueryExecutor:
    """
    Executes structured queries against the entry store.

    This is the bridge between:
    - AI-classified questions
    - Actual ledger data

    GUARANTEES:
    - Only returns real data from the store
    - Never invents or estimates
    - Clear "no data found" if nothing matches
    """

    def __init__(self, store: LedgerStore, trend_months: int = 6):
        self._store = store
        self._trend_months = trend_months

    def plan(self, intent: QueryIntent, today: date) -> StructuredQuery:
        """Resolve a query intent into a StructuredQuery."""
        details = intent.query
        query_type = _fold(details.query_type or "balance")
        if query_type not in QUERY_TYPES:
            raise QueryExecutionError(f"Unsupported query type: {details.query_type!r}")

        card_id = None
        if details.card_name:
            card = self._store.find_card_by_name(details.card_name)
            if card is None:
                raise QueryExecutionError(f"No card matches {details.card_name!r}")
            card_id = card.id

        return StructuredQuery(
            original_question=intent.question,
            query_type=query_type,
            month=resolve_time_reference(details.time_reference, today),
            card_id=card_id,
            category_filter=details.category,
        )

    def execute(self, query: StructuredQuery) -> QueryResult:
        """
        Execute a structured query and return results.

        The result will be used by the AI agent to generate
        a natural language response.
        """
        handlers = {
            "balance": self._execute_balance,
            "projection": self._execute_projection,
            "invoice": self._execute_invoice,
            "category_spend": self._execute_category_spend,
            "trend": self._execute_trend,
            "fixed_bills": self._execute_fixed_bills,
            "forecasts": self._execute_forecasts,
            "transactions": self._execute_transactions,
        }
        try:
            return handlers[query.query_type](query)
        except (LedgerError, QueryExecutionError) as e:
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {e}",
            )

    @staticmethod
    def _month_args(query: StructuredQuery) -> tuple[int, int]:
        year, month = parse_month_key(query.month)
        return month - 1, year

    def _result(
        self,
        query: StructuredQuery,
        description: str,
        results: Optional[list[dict]] = None,
        aggregation: Optional[dict] = None,
    ) -> QueryResult:
        results = results or []
        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=bool(results) or aggregation is not None,
            result_count=len(results),
            results=results,
            aggregation_result=aggregation,
            query_description=description,
        )

    def _execute_balance(self, query: StructuredQuery) -> QueryResult:
        balances = self._store.calculate_balances(*self._month_args(query))
        return self._result(
            query,
            f"Income, expense and balance for {query.month}",
            aggregation=balances.model_dump(),
        )

    def _execute_projection(self, query: StructuredQuery) -> QueryResult:
        projection = self._store.projected_balance(*self._month_args(query))
        return self._result(
            query,
            f"Projected balance for {query.month}",
            aggregation=projection.model_dump(),
        )

    def _execute_invoice(self, query: StructuredQuery) -> QueryResult:
        month, year = self._month_args(query)
        cards = self._store.credit_cards
        if query.card_id is not None:
            cards = [c for c in cards if c.id == query.card_id]

        results = []
        for card in cards:
            due = self._store.calculate_card_invoice(card.id, month, year)
            results.append({
                "card": card.name,
                "month": query.month,
                "total_due": due,
                "total_paid": self._store.calculate_total_paid_on_invoice(card.id, month, year),
                "paid": self._store.is_invoice_paid(card.id, month, year),
                "due_day": card.due_day,
            })

        total = sum((r["total_due"] for r in results), Decimal("0"))
        return self._result(
            query,
            f"Card invoices for {query.month}",
            results=results,
            aggregation={"total_due": total, "card_count": len(results)} if results else None,
        )

    def _execute_category_spend(self, query: StructuredQuery) -> QueryResult:
        spend = self._store.category_spend(*self._month_args(query))
        results = [
            {"category": category, "total": total}
            for category, total in sorted(spend.items(), key=lambda item: item[1], reverse=True)
            if not query.category_filter or _fold(category) == _fold(query.category_filter)
        ]
        desc = f"Spending by category for {query.month}"
        if query.category_filter:
            desc += f" | category: {query.category_filter}"
        total = sum((r["total"] for r in results), Decimal("0"))
        return self._result(
            query,
            desc,
            results=results,
            aggregation={"total": total} if results else None,
        )

    def _execute_trend(self, query: StructuredQuery) -> QueryResult:
        month, year = self._month_args(query)
        points = self._store.monthly_trend(month, year, self._trend_months)
        return self._result(
            query,
            f"Income and expense for the {self._trend_months} months up to {query.month}",
            results=[p.model_dump() for p in points],
        )

    def _execute_fixed_bills(self, query: StructuredQuery) -> QueryResult:
        bills = self._store.get_fixed_bills_by_month(*self._month_args(query))
        results = [
            {
                "name": b.name,
                "value": b.base_value,
                "due_day": b.due_day,
                "category": b.category,
                "paid": b.is_paid_in(query.month),
            }
            for b in bills
        ]
        unpaid = sum((r["value"] for r in results if not r["paid"]), Decimal("0"))
        return self._result(
            query,
            f"Fixed bills for {query.month}",
            results=results,
            aggregation={"unpaid_total": unpaid} if results else None,
        )

    def _execute_forecasts(self, query: StructuredQuery) -> QueryResult:
        forecasts = self._store.get_forecasts_by_month(*self._month_args(query))
        results = [
            {
                "description": f.description,
                "kind": f.kind.value,
                "value": f.value,
                "expected_date": f.expected_date,
                "status": f.status.value,
            }
            for f in forecasts
        ]
        return self._result(query, f"Forecasts for {query.month}", results=results)

    def _execute_transactions(self, query: StructuredQuery) -> QueryResult:
        transactions = self._store.get_transactions_by_month(*self._month_args(query))
        if query.category_filter:
            wanted = _fold(query.category_filter)
            transactions = [t for t in transactions if _fold(t.category) == wanted]

        results = [
            {
                "date": t.occurred_at,
                "description": t.description,
                "category": t.category,
                "amount": t.amount,
                "kind": t.kind.value,
            }
            for t in transactions[:query.limit]
        ]
        desc_parts = [f"Transactions for {query.month}"]
        if query.category_filter:
            desc_parts.append(f"category: {query.category_filter}")
        return self._result(query, " | ".join(desc_parts), results=results)
