"""Parsers that turn external text and rows into canonical ledger values."""

from budget_ledger.parsers.normalizers import (
    extract_pr_code,
    extract_revision_number,
    parse_currency,
    parse_date,
)
from budget_ledger.parsers.sheet_rows import (
    infer_status,
    parse_sheet_row,
    parse_sheet_rows,
    rows_from_gviz,
    unwrap_gviz_payload,
)

__all__ = [
    "extract_pr_code",
    "extract_revision_number",
    "parse_currency",
    "parse_date",
    "infer_status",
    "parse_sheet_row",
    "parse_sheet_rows",
    "rows_from_gviz",
    "unwrap_gviz_payload",
]
