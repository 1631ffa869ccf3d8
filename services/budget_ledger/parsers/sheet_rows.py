from __future__ import annotations

import json
from datetime import date
from typing import Any, List, Optional, Sequence

from budget_ledger.models.budget import MISSING_TEXT, Budget, BudgetStatus
from budget_ledger.parsers.normalizers import parse_currency, parse_date

# Fixed column offsets of the master spreadsheet (A=0).
ITEM_NUMBER_COLUMN = 0
CLIENT_COLUMN = 1
DESCRIPTION_COLUMN = 2
AMOUNT_COLUMN = 3
ORDER_NUMBER_COLUMN = 5
STATUS_COLUMN = 7
REQUESTER_COLUMN = 11
MIN_CELLS = 3

SHEET_REQUESTER_TAG = "Google Sheets"
REJECTION_KEYWORDS = ("não", "rejeitado", "recusado")
APPROVAL_KEYWORDS = ("aprovado", "fechado")
ORDER_NUMBER_APPROVAL_LENGTH = 2

SheetCell = Optional[dict]


def unwrap_gviz_payload(text: str) -> dict[str, Any]:
    """
    Extract the JSON object from a gviz response such as
    `/*O_o*/ google.visualization.Query.setResponse({...});`.

    Raises ValueError when the wrapper or the JSON inside it is malformed.
    """

    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end <= start:
        raise ValueError("gviz response is missing its JSON wrapper")
    payload = json.loads(text[start + 1 : end])
    if not isinstance(payload, dict):
        raise ValueError("gviz response did not contain a JSON object")
    return payload


def rows_from_gviz(payload: dict[str, Any]) -> List[List[SheetCell]]:
    """Return `table.rows[].c` as lists of cell dicts (None for empty cells)."""

    table = payload.get("table") or {}
    rows: List[List[SheetCell]] = []
    for row in table.get("rows") or []:
        cells = row.get("c") if isinstance(row, dict) else None
        rows.append(list(cells) if cells else [])
    return rows


def infer_status(status_text: str, order_number: str) -> BudgetStatus:
    """
    Map the free-text status column to a BudgetStatus.

    Rejection keywords win over every approval signal; an order number longer than two
    characters counts as approval even when the status column is blank.
    """

    lowered = status_text.lower()
    if any(keyword in lowered for keyword in REJECTION_KEYWORDS):
        return BudgetStatus.NOT_APPROVED
    if any(keyword in lowered for keyword in APPROVAL_KEYWORDS) or len(order_number) > ORDER_NUMBER_APPROVAL_LENGTH:
        return BudgetStatus.APPROVED
    return BudgetStatus.PENDING


def parse_sheet_row(
    cells: Sequence[SheetCell],
    *,
    today: Optional[date] = None,
    requester_tag: str = SHEET_REQUESTER_TAG,
) -> Optional[Budget]:
    """
    Map one spreadsheet row to a Budget candidate, or None when the row is skipped.

    The sheet carries no date column, so candidates are dated at parse time.
    """

    if not cells or len(cells) < MIN_CELLS:
        return None

    client = _cell_text(cells, CLIENT_COLUMN).strip()
    description = _cell_text(cells, DESCRIPTION_COLUMN).strip()
    if not client and not description:
        return None

    order_number = _cell_text(cells, ORDER_NUMBER_COLUMN).strip()
    status = infer_status(_cell_text(cells, STATUS_COLUMN), order_number)
    requester = _cell_text(cells, REQUESTER_COLUMN).strip()

    return Budget(
        id="",
        item_number=_item_number(_cell_value(cells, ITEM_NUMBER_COLUMN)),
        date=parse_date(None, today=today),
        client_name=client or MISSING_TEXT,
        service_description=description or MISSING_TEXT,
        budget_amount=_amount(cells),
        discount=0.0,
        status=status,
        order_number=order_number,
        order_confirmation=status is BudgetStatus.APPROVED,
        invoice_sent=False,
        send_to_client=True,
        requester=requester or requester_tag,
        files=[],
    )


def parse_sheet_rows(
    rows: Sequence[Sequence[SheetCell]],
    *,
    today: Optional[date] = None,
    requester_tag: str = SHEET_REQUESTER_TAG,
) -> List[Budget]:
    budgets: List[Budget] = []
    for cells in rows:
        budget = parse_sheet_row(cells, today=today, requester_tag=requester_tag)
        if budget is not None:
            budgets.append(budget)
    return budgets


def _cell_value(cells: Sequence[SheetCell], index: int) -> Any:
    if index >= len(cells):
        return None
    cell = cells[index]
    if not isinstance(cell, dict):
        return None
    return cell.get("v")


def _cell_text(cells: Sequence[SheetCell], index: int) -> str:
    """Formatted string of a cell when present, else its raw value as text."""

    if index >= len(cells):
        return ""
    cell = cells[index]
    if not isinstance(cell, dict):
        return ""
    formatted = cell.get("f")
    if formatted:
        return str(formatted)
    value = cell.get("v")
    return "" if value is None else _stringify(value)


def _amount(cells: Sequence[SheetCell]) -> float:
    value = _cell_value(cells, AMOUNT_COLUMN)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return parse_currency(value)
    return parse_currency(_cell_text(cells, AMOUNT_COLUMN))


def _item_number(raw_value: Any) -> Optional[int]:
    if raw_value is None or raw_value == "":
        return None
    try:
        return int(float(str(raw_value).strip()))
    except (ValueError, OverflowError):
        return None


def _stringify(value: Any) -> str:
    # gviz sends whole numbers as floats (4512.0); keep order numbers readable.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
