"""
CSV export of the transaction history, in the layout of the dashboard's
"Exportar CSV" button.
"""

import csv
import io
from typing import Iterable

from lyvo.models.ledger import Transaction

CSV_HEADER = ["Data", "Descricao", "Categoria", "Valor", "Tipo"]


def export_filename(month: int, year: int) -> str:
    """Download name for a report of the month (zero-based month index)."""
    return f"relatorio_financeiro_{year}_{month + 1}.csv"


def export_transactions_csv(transactions: Iterable[Transaction]) -> str:
    """
    One row per transaction: date as DD/MM/YYYY, description without
    commas, category, amount and kind. Fields holding quotes or line
    breaks are quoted.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for t in transactions:
        writer.writerow([
            t.occurred_at.strftime("%d/%m/%Y"),
            t.description.replace(",", ""),
            t.category,
            str(t.amount),
            t.kind.value,
        ])
    return buffer.getvalue()
