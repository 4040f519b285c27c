"""
Streamlit Frontend for Lyvo

Personal finance dashboard plus a chat assistant that turns messages
("gastei 50 no mercado", "reunião amanhã às 10h") into ledger entries
and agenda events.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation for every chat-proposed entry
3. Clear error messages in simple language
4. No hidden actions

The UI enforces the human-in-the-loop principle:
- User sees what the assistant understood
- User confirms or discards
- Nothing from chat is saved without an explicit "Salvar"
"""

import asyncio
from datetime import date

import streamlit as st

from lyvo.config import get_settings, validate_all_settings
from lyvo.ledger import LedgerError, export_filename, export_transactions_csv
from lyvo.models.chat import ChatProposal
from lyvo.models.agenda import EventSource
from lyvo.models.ledger import DeleteMode, ForecastKind, TransactionKind
from lyvo.orchestrator import ChatFlow, PersistenceFlow, create_app_components, open_chat_flow
from lyvo.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Lyvo",
    page_icon="💜",
    layout="wide",
    initial_sidebar_state="expanded",
)

MONTHS = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def brl(value) -> str:
    return f"R$ {value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def get_chat_flow(uid: str, persistence: PersistenceFlow, agent) -> ChatFlow:
    """The signed-in user's chat flow, loaded once per session."""
    chat_flow = st.session_state.get("chat_flow")
    if chat_flow is None or chat_flow.uid != uid:
        chat_flow = open_chat_flow(uid, persistence, agent)
        st.session_state.chat_flow = chat_flow
        st.session_state.messages = []
        st.session_state.pending = None
    return chat_flow


def persist(persistence: PersistenceFlow, chat_flow: ChatFlow) -> None:
    try:
        persistence.save_flow(chat_flow)
    except StorageError as e:
        st.warning(f"Não foi possível salvar na planilha: {e}")


def main():
    """Main application entry point."""
    persistence, access, agent = get_components()

    st.sidebar.title("💜 Lyvo")
    uid = st.sidebar.text_input("Seu e-mail", key="uid")
    if not uid:
        st.info("Entre com seu e-mail para começar.")
        st.stop()

    if not access.check_user_access(uid):
        st.error("Seu período de teste terminou. Assine o Lyvo para continuar usando.")
        st.stop()

    try:
        chat_flow = get_chat_flow(uid, persistence, agent)
    except StorageError as e:
        st.error(f"Não foi possível carregar seus dados: {e}")
        st.stop()

    st.sidebar.markdown("---")
    page = st.sidebar.radio(
        "Navegar:",
        ["💬 Chat", "📊 Finanças", "➕ Lançamentos", "📅 Agenda", "⚙️ Configurações"],
        index=0,
    )

    today = date.today()
    month = st.sidebar.selectbox("Mês", range(12), index=today.month - 1, format_func=lambda m: MONTHS[m])
    year = st.sidebar.number_input("Ano", min_value=2000, max_value=2100, value=today.year, step=1)

    if page == "💬 Chat":
        render_chat_page(chat_flow, persistence)
    elif page == "📊 Finanças":
        render_dashboard_page(chat_flow, persistence, month, int(year))
    elif page == "➕ Lançamentos":
        render_entries_page(chat_flow, persistence, month, int(year))
    elif page == "📅 Agenda":
        render_agenda_page(chat_flow, persistence)
    elif page == "⚙️ Configurações":
        render_settings_page()


def render_chat_page(chat_flow: ChatFlow, persistence: PersistenceFlow):
    """Chat with the assistant. Writes wait for confirmation."""
    st.title("💬 Chat")

    if "messages" not in st.session_state:
        st.session_state.messages = []
    if "pending" not in st.session_state:
        st.session_state.pending = None

    for role, content in st.session_state.messages:
        with st.chat_message(role):
            st.markdown(content)

    photo = st.file_uploader("Comprovante (opcional)", type=["jpg", "jpeg", "png", "webp"])
    text = st.chat_input("Ex.: gastei 45 no almoço, paguei no cartão Nubank em 3x")

    if text:
        st.session_state.messages.append(("user", text))
        with st.spinner("Pensando..."):
            proposal = run_async(chat_flow.interpret(
                text,
                image_bytes=photo.read() if photo else None,
            ))
        st.session_state.messages.append(("assistant", proposal.message))
        st.session_state.pending = proposal if proposal.requires_confirmation else None
        st.rerun()

    proposal: ChatProposal = st.session_state.pending
    if proposal is None:
        return

    st.markdown("---")
    st.subheader("Confirmar lançamento")
    st.json(proposal.intent.model_dump(mode="json", exclude={"intent_id", "response_message"}))
    for warning in proposal.warnings:
        st.warning(warning)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Salvar", type="primary"):
            try:
                chat_flow.confirm(proposal)
                persist(persistence, chat_flow)
                st.session_state.messages.append(("assistant", "Pronto, salvei! ✅"))
            except LedgerError as e:
                st.error(f"Não foi possível salvar: {e}")
                return
            st.session_state.pending = None
            st.rerun()
    with col2:
        if st.button("❌ Descartar"):
            chat_flow.cancel(proposal)
            st.session_state.pending = None
            st.rerun()


def render_dashboard_page(chat_flow: ChatFlow, persistence: PersistenceFlow, month: int, year: int):
    """Month overview: balances, invoices, fixed bills, forecasts and charts."""
    store = chat_flow.store
    st.title(f"📊 {MONTHS[month]} {year}")

    balances = store.calculate_balances(month, year)
    projection = store.projected_balance(month, year)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Receitas do mês", brl(balances.income))
    col2.metric("Despesas do mês", brl(balances.expense))
    col3.metric("Saldo", brl(balances.balance))
    col4.metric("Saldo projetado", brl(projection.projected))

    st.markdown("### 💳 Faturas")
    for card in store.credit_cards:
        due = store.calculate_card_invoice(card.id, month, year)
        paid = store.calculate_total_paid_on_invoice(card.id, month, year)
        is_paid = store.is_invoice_paid(card.id, month, year)
        with st.expander(f"{card.name}: {brl(due)} {'✅' if is_paid else ''}"):
            st.markdown(f"Pago até agora: {brl(paid)} · vencimento dia {card.due_day}")
            rows = [
                {"Data": t.occurred_at, "Descrição": t.description, "Valor": float(t.amount)}
                for t in store.get_card_transactions(card.id, month, year)
            ]
            if rows:
                st.dataframe(rows, hide_index=True)
            if not is_paid and due > 0:
                amount = st.number_input(
                    "Valor do pagamento", min_value=0.0, value=float(max(due - paid, 0)),
                    step=0.01, key=f"pay-{card.id}",
                )
                if st.button("Pagar fatura", key=f"pay-btn-{card.id}"):
                    try:
                        store.pay_card_invoice(card.id, str(amount), month, year)
                        persist(persistence, chat_flow)
                        st.rerun()
                    except LedgerError as e:
                        st.error(str(e))

    st.markdown("### 🏠 Contas fixas")
    for bill in store.get_fixed_bills_by_month(month, year):
        key = f"{year:04d}-{month + 1:02d}"
        col1, col2, col3 = st.columns([3, 1, 1])
        col1.markdown(f"**{bill.name}** · {brl(bill.base_value)} · dia {bill.due_day}")
        label = "Desmarcar" if bill.is_paid_in(key) else "Marcar paga"
        if col2.button(label, key=f"bill-{bill.id}"):
            store.toggle_fixed_bill_status(bill.id, month, year)
            persist(persistence, chat_flow)
            st.rerun()
        if col3.button("Remover", key=f"bill-del-{bill.id}"):
            store.delete_fixed_bill(bill.id, DeleteMode.THIS_AND_FUTURE, month, year)
            persist(persistence, chat_flow)
            st.rerun()

    st.markdown("### 🔮 Previsões")
    for forecast in store.get_forecasts_by_month(month, year):
        col1, col2 = st.columns([4, 1])
        sign = "+" if forecast.is_income else "-"
        col1.markdown(f"**{forecast.description}** · {sign}{brl(forecast.value)} · {forecast.status.value}")
        if col2.button("Confirmar", key=f"fc-{forecast.id}"):
            try:
                store.confirm_forecast(forecast.id, month, year)
                persist(persistence, chat_flow)
                st.rerun()
            except LedgerError as e:
                st.error(str(e))

    st.markdown("### 📈 Tendência")
    trend = store.monthly_trend(month, year, get_settings().app.trend_months)
    st.bar_chart(
        [{"Mês": p.month, "Receitas": float(p.income), "Despesas": float(p.expense)} for p in trend],
        x="Mês",
        y=["Receitas", "Despesas"],
    )

    st.markdown("### 🥧 Gastos por categoria")
    spend = store.category_spend(month, year)
    if spend:
        st.bar_chart(
            [{"Categoria": k, "Valor": float(v)} for k, v in spend.items()],
            x="Categoria",
            y="Valor",
        )
    for item in store.budget_overview():
        st.progress(min(item["usage_ratio"], 1.0), text=f"{item['category']}: {brl(item['spent'])} / {brl(item['monthly_limit'])}")

    st.markdown("### 🧾 Transações do mês")
    transactions = store.get_transactions_by_month(month, year)
    if transactions:
        st.dataframe([
            {
                "Data": t.occurred_at,
                "Descrição": t.description,
                "Categoria": t.category,
                "Valor": float(t.amount),
                "Tipo": t.kind.value,
            }
            for t in transactions
        ], hide_index=True)

    st.download_button(
        "⬇️ Exportar CSV",
        data=export_transactions_csv(store.transactions),
        file_name=export_filename(month, year),
        mime="text/csv",
    )


def render_entries_page(chat_flow: ChatFlow, persistence: PersistenceFlow, month: int, year: int):
    """Manual forms for every kind of ledger entry."""
    store = chat_flow.store
    settings = get_settings().app
    st.title("➕ Lançamentos")

    tab_tx, tab_bill, tab_forecast, tab_card, tab_budget = st.tabs(
        ["Transação", "Conta fixa", "Previsão", "Cartão", "Orçamento"]
    )

    with tab_tx, st.form("transaction"):
        kind = st.selectbox("Tipo", list(TransactionKind), format_func=lambda k: k.value)
        amount = st.number_input("Valor", min_value=0.0, step=0.01)
        description = st.text_input("Descrição")
        category = st.selectbox("Categoria", settings.expense_categories_list + settings.income_categories_list)
        occurred_at = st.date_input("Data", value=date.today())
        cards = store.credit_cards
        card = st.selectbox("Cartão", [None] + cards, format_func=lambda c: "Sem cartão" if c is None else c.name)
        installments = st.number_input("Parcelas", min_value=1, max_value=48, value=1)
        if st.form_submit_button("Salvar"):
            try:
                store.add_transaction({
                    "kind": kind,
                    "amount": str(amount),
                    "description": description,
                    "category": category,
                    "occurred_at": occurred_at,
                    "card_ref": card.id if card else None,
                }, installment_count=int(installments))
                persist(persistence, chat_flow)
                st.success("Transação salva")
            except LedgerError as e:
                st.error(str(e))

    with tab_bill, st.form("fixed_bill"):
        name = st.text_input("Nome")
        value = st.number_input("Valor", min_value=0.0, step=0.01, key="bill-value")
        due_day = st.number_input("Dia de vencimento", min_value=1, max_value=31, value=10)
        bill_category = st.selectbox("Categoria", settings.expense_categories_list, key="bill-cat")
        if st.form_submit_button("Salvar"):
            try:
                store.add_fixed_bill({
                    "name": name,
                    "base_value": str(value),
                    "due_day": int(due_day),
                    "category": bill_category,
                }, month, year)
                persist(persistence, chat_flow)
                st.success("Conta fixa salva")
            except LedgerError as e:
                st.error(str(e))

    with tab_forecast, st.form("forecast"):
        fc_kind = st.selectbox("Tipo", list(ForecastKind), format_func=lambda k: k.value)
        fc_value = st.number_input("Valor", min_value=0.0, step=0.01, key="fc-value")
        fc_date = st.date_input("Data prevista", value=date.today(), key="fc-date")
        fc_description = st.text_input("Descrição", key="fc-desc")
        fc_recurring = st.checkbox("Recorrente")
        if st.form_submit_button("Salvar"):
            try:
                store.add_forecast({
                    "kind": fc_kind,
                    "value": str(fc_value),
                    "expected_date": fc_date,
                    "description": fc_description,
                    "is_recurring": fc_recurring,
                }, month, year)
                persist(persistence, chat_flow)
                st.success("Previsão salva")
            except LedgerError as e:
                st.error(str(e))

    with tab_card, st.form("card"):
        card_name = st.text_input("Nome do cartão")
        limit = st.number_input("Limite", min_value=0.0, step=100.0)
        card_due = st.number_input("Vencimento", min_value=1, max_value=31, value=10, key="card-due")
        best_day = st.number_input("Melhor dia de compra", min_value=1, max_value=31, value=3)
        if st.form_submit_button("Salvar"):
            try:
                store.add_credit_card({
                    "name": card_name,
                    "limit": str(limit),
                    "due_day": int(card_due),
                    "best_purchase_day": int(best_day),
                })
                persist(persistence, chat_flow)
                st.success("Cartão salvo")
            except LedgerError as e:
                st.error(str(e))

    with tab_budget, st.form("budget"):
        budget_category = st.selectbox("Categoria", settings.expense_categories_list, key="budget-cat")
        monthly_limit = st.number_input("Limite mensal", min_value=0.0, step=50.0)
        if st.form_submit_button("Salvar"):
            existing = [b for b in store.budget_limits if b.category == budget_category]
            try:
                if existing:
                    store.update_budget_limit(existing[0].id, budget_category, str(monthly_limit))
                else:
                    store.add_budget_limit(budget_category, str(monthly_limit))
                persist(persistence, chat_flow)
                st.success("Orçamento salvo")
            except LedgerError as e:
                st.error(str(e))


def render_agenda_page(chat_flow: ChatFlow, persistence: PersistenceFlow):
    """Consolidated agenda and linked calendars."""
    agenda = chat_flow.agenda
    st.title("📅 Agenda")

    events = agenda.get_consolidated_events()
    if not events:
        st.info("Nenhum compromisso. Peça no chat: \"reunião amanhã às 10h\".")
    for event in events:
        col1, col2 = st.columns([5, 1])
        col1.markdown(f"**{event.starts_at.strftime('%d/%m %H:%M')}** · {event.title}")
        if col2.button("Remover", key=f"ev-{event.id}"):
            agenda.delete_event(event.id)
            persist(persistence, chat_flow)
            st.rerun()

    st.markdown("### Calendários conectados")
    for connection in agenda.connections:
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"{connection.source.value} · {connection.account_name} · {connection.status.value}")
        if col2.button("Alternar", key=f"conn-{connection.id}"):
            agenda.toggle_connection(connection.id)
            persist(persistence, chat_flow)
            st.rerun()

    with st.form("connection"):
        account_name = st.text_input("Conta (e-mail)")
        source = st.selectbox(
            "Calendário",
            [EventSource.GOOGLE, EventSource.OUTLOOK],
            format_func=lambda s: s.value.title(),
        )
        if st.form_submit_button("Conectar"):
            try:
                agenda.add_connection(account_name, source)
                persist(persistence, chat_flow)
                st.rerun()
            except LedgerError as e:
                st.error(str(e))


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Configurações")
    st.caption(f"Ambiente: {get_settings().app.app_environment}")

    st.markdown("### Connection Status")
    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("App", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
