from io import BytesIO

import pytest
from openpyxl import load_workbook

from budget_ledger.exporters import CURRENCY_FORMAT, EXPORT_COLUMNS, export_budgets_xlsx
from budget_ledger.models.budget import AttachedFile, Budget, BudgetStatus


def _load(content: bytes):
    return load_workbook(BytesIO(content)).active


def test_export_writes_header_and_one_row_per_budget():
    budgets = [
        Budget(
            id="a",
            item_number=12,
            date="2025-02-14",
            client_name="ACME",
            service_description="PR01724 Projeto Elétrico",
            budget_amount=42300.5,
            discount=1300.5,
            status=BudgetStatus.APPROVED,
            order_number="PO-88123",
            order_confirmation=True,
            requester="Carla",
            files=[AttachedFile(id="f", name="PR01724-rev03.pdf", url="https://drive.google.com/file/d/f/view")],
        ),
        Budget(id="b", date="2025-02-13", client_name="Beta", service_description="Pintura", budget_amount=250.0),
    ]

    sheet = _load(export_budgets_xlsx(budgets))
    rows = list(sheet.iter_rows(values_only=True))

    assert rows[0] == tuple(title for title, _ in EXPORT_COLUMNS)
    assert sheet["A1"].font.bold
    assert sheet.freeze_panes == "A2"
    assert len(rows) == 3
    first = rows[1]
    assert first[0] == 12
    assert first[6] == pytest.approx(41000.0)
    assert first[7] == "APPROVED"
    assert first[9] == "Sim"
    assert first[12] == "https://drive.google.com/file/d/f/view"
    assert sheet["E2"].number_format == CURRENCY_FORMAT
    second = rows[2]
    assert second[0] is None
    assert second[8] is None or second[8] == ""
    assert second[9] == "Não"


def test_export_of_empty_ledger_has_only_header():
    sheet = _load(export_budgets_xlsx([]))

    assert sheet.max_row == 1
