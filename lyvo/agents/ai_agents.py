"""
Chat Agent for Lyvo

CRITICAL BOUNDARIES:

1. CLASSIFICATION:
   - CAN: Turn a chat message (and an optional receipt photo) into a
     structured payload: transaction, card purchase, event or question
   - CANNOT: Write to the ledger; every write is a proposal the user
     confirms
   - CANNOT: Make assumptions the payload validator would not accept

2. ANSWERING QUESTIONS:
   - CAN: Phrase a response FROM the query executor's results
   - CANNOT: Answer questions directly from knowledge
   - MUST: Say "no data found" if the query returns nothing

The LLM is a TRANSLATOR, not an ORACLE.
It NEVER makes up financial data.
"""

import io
import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

import google.generativeai as genai
import structlog
from PIL import Image

from lyvo.audit import AuditLogger
from lyvo.config import AppSettings, GeminiSettings, get_settings
from lyvo.models.chat import QueryResult, StructuredQuery

logger = structlog.get_logger(__name__)

FALLBACK_PAYLOAD = {
    "action": "UNKNOWN",
    "responseMessage": "Erro no processamento. Tente novamente.",
}


def extract_json(text: str) -> str:
    """Strip markdown fences and keep the outermost JSON object."""
    cleaned = text.replace("```json", "").replace("```JSON", "").replace("```", "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1 and start < end:
        return cleaned[start:end + 1]
    return cleaned


def _format_value(key: str, value) -> str:
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        if any(word in key for word in ("amount", "total", "balance", "income", "expense",
                                        "value", "due", "paid", "projected", "pending")):
            return f"R${value:,.2f}"
    return str(value)


def summarize_result(result: QueryResult) -> str:
    """Deterministic plain-text rendering of a query result."""
    lines = []
    if result.aggregation_result:
        for key, value in result.aggregation_result.items():
            lines.append(f"{key}: {_format_value(key, value)}")
    for item in result.results[:10]:
        lines.append(" | ".join(_format_value(k, v) for k, v in item.items()))
    return "\n".join(lines)


class ChatAgent:
    """
    Gemini-backed classifier and answer phraser.

    BOUNDARIES:
    - NEVER persists data
    - NEVER raises on model failure: classification falls back to an
      UNKNOWN payload, answers fall back to a plain data summary
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._app = app_settings or get_settings().app
        self._audit_logger = audit_logger
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )
        self._answer_model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": 0.3,
                "max_output_tokens": 512,
            }
        )

    def _service_error(self, error: Exception) -> None:
        if self._audit_logger:
            self._audit_logger.log_external_service_error("gemini", str(error))

    def _now(self) -> datetime:
        return datetime.now(ZoneInfo(self._app.timezone_name))

    def build_prompt(self, card_names: list[str]) -> str:
        now = self._now()
        expense = ", ".join(self._app.expense_categories_list)
        income = ", ".join(self._app.income_categories_list)
        cards = ", ".join(card_names) or "nenhum"

        return f"""Você é o Lyvo, assistente de finanças e agenda.
Extraia dados estruturados da mensagem do usuário.
DATA ATUAL ({self._app.timezone_name}): {now.strftime('%d/%m/%Y %H:%M')} ({now.strftime('%A')}).
CARTÕES DISPONÍVEIS: {cards}.

CATEGORIAS DE DESPESA: {expense}.
CATEGORIAS DE RECEITA: {income}.

REGRAS DE CLASSIFICAÇÃO:
- Se houver uma imagem de recibo/comprovante, sua PRIORIDADE é extrair o valor total e a descrição.
- 'ADD_EVENT': compromisso, reunião ou agendamento. OBRIGATÓRIO extrair 'date' (YYYY-MM-DD) e 'time' (HH:mm). Resolva 'hoje', 'amanhã' ou 'próxima segunda' a partir da DATA ATUAL.
- 'ADD_CREDIT_TRANSACTION': menção a cartão, crédito ou parcelas.
- 'ADD_TRANSACTION': receitas ou despesas via PIX/dinheiro.
- 'QUERY': perguntas sobre saldo, faturas, gastos, contas fixas ou previsões. NÃO responda a pergunta, apenas classifique.
- 'UNKNOWN': qualquer outra coisa.

Responda APENAS com um objeto JSON neste formato:
{{
  "action": "ADD_TRANSACTION | ADD_CREDIT_TRANSACTION | ADD_EVENT | QUERY | UNKNOWN",
  "transactionDetails": {{"type": "INCOME | EXPENSE", "value": 0.0, "description": "", "category": "", "cardName": "", "installments": 1, "date": "YYYY-MM-DD"}},
  "eventDetails": {{"title": "", "date": "YYYY-MM-DD", "time": "HH:mm", "description": ""}},
  "queryDetails": {{"queryType": "balance | projection | invoice | category_spend | trend | fixed_bills | forecasts | transactions", "timeReference": "", "cardName": "", "category": ""}},
  "responseMessage": "frase amigável confirmando o que entendeu"
}}
Inclua apenas os detalhes da ação escolhida."""

    async def classify(
        self,
        text: str,
        card_names: Optional[list[str]] = None,
        image_bytes: Optional[bytes] = None,
    ) -> dict:
        """
        Classify a chat message into a raw payload.

        The payload is NOT trusted: the caller validates it before use.
        """
        parts = [self.build_prompt(card_names or []), f'Mensagem: "{text}"']
        if image_bytes:
            parts.append(Image.open(io.BytesIO(image_bytes)))

        try:
            response = await self._model.generate_content_async(parts)
            payload = json.loads(extract_json(response.text or "{}"))
        except Exception as e:
            logger.warning("classifier_failed", error=str(e))
            self._service_error(e)
            return dict(FALLBACK_PAYLOAD)

        if not isinstance(payload, dict):
            logger.warning("classifier_non_object", payload_type=type(payload).__name__)
            return dict(FALLBACK_PAYLOAD)

        if "question" not in payload and payload.get("action") == "QUERY":
            payload["question"] = text
        return payload

    async def phrase_answer(
        self,
        query: StructuredQuery,
        result: QueryResult,
    ) -> str:
        """
        Generate a natural language answer from query results.

        CRITICAL: The LLM can ONLY use the data provided.
        """
        if not result.success:
            return f"Não consegui consultar seus dados: {result.error_message}"

        if not result.data_found:
            # No data - must say so explicitly
            return f"Não encontrei registros para essa pergunta. ({result.query_description})"

        data_str = summarize_result(result)

        prompt = f"""Você responde perguntas sobre as finanças pessoais do usuário usando SOMENTE os dados abaixo.

Pergunta original: "{query.original_question}"

Consulta realizada: {result.query_description}

Resultados encontrados: {result.result_count}

Dados:
{data_str}

- Responda em português, de forma curta e amigável
- Valores em reais (R$)
IMPORTANTE: Use APENAS os dados acima. NÃO acrescente informações que não estejam nos dados."""

        try:
            response = await self._answer_model.generate_content_async(prompt)
            return response.text.strip()
        except Exception as e:
            logger.warning("answer_generation_failed", error=str(e))
            self._service_error(e)
            return f"Com base nos seus registros:\n{data_str}"
