from __future__ import annotations

from io import BytesIO
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from budget_ledger.models.budget import Budget

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_SHEET_TITLE = "Orcamentos"
CURRENCY_FORMAT = '"R$" #,##0.00'

EXPORT_COLUMNS = (
    ("Item", 8),
    ("Data", 12),
    ("Cliente", 32),
    ("Descrição", 60),
    ("Valor", 16),
    ("Desconto", 14),
    ("Valor Líquido", 16),
    ("Status", 14),
    ("Pedido", 16),
    ("Confirmação Pedido", 12),
    ("NF Enviada", 12),
    ("Solicitante", 24),
    ("Arquivos", 60),
)
CURRENCY_COLUMNS = (5, 6, 7)


def export_budgets_xlsx(budgets: Iterable[Budget]) -> bytes:
    """Render the ledger as a one-sheet workbook, rows in the order given."""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = EXPORT_SHEET_TITLE

    sheet.append([title for title, _ in EXPORT_COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for budget in budgets:
        sheet.append(
            [
                budget.item_number,
                budget.date,
                budget.client_name,
                budget.service_description,
                budget.budget_amount,
                budget.discount,
                budget.net_amount,
                budget.status.value,
                budget.order_number or "",
                "Sim" if budget.order_confirmation else "Não",
                "Sim" if budget.invoice_sent else "Não",
                budget.requester,
                "\n".join(attached.url or attached.name for attached in budget.files),
            ]
        )

    for column_index in CURRENCY_COLUMNS:
        for row in sheet.iter_rows(min_row=2, min_col=column_index, max_col=column_index):
            row[0].number_format = CURRENCY_FORMAT
    for index, (_, width) in enumerate(EXPORT_COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    sheet.freeze_panes = "A2"

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
