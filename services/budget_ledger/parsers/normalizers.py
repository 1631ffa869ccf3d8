from __future__ import annotations

import math
import re
from datetime import date
from typing import Optional

CURRENCY_SYMBOLS = ("R$",)
PR_CODE_PATTERN = re.compile(r"pr\s?0?(\d{4,5})", re.IGNORECASE)
PR_CODE_WIDTH = 5
REVISION_PATTERNS = (
    re.compile(r"rev[\s._-]?(\d+)", re.IGNORECASE),
    re.compile(r"v(\d+)", re.IGNORECASE),
    re.compile(r"_r(\d+)", re.IGNORECASE),
)


def parse_currency(raw_value: object) -> float:
    """
    Parse a Brazilian-formatted amount ("R$ 1.234,56") into a float.

    `.` is the thousands separator and `,` the decimal separator. Numbers pass
    through unchanged. Empty or unparsable input yields 0.0; this never raises.
    """

    if raw_value is None or isinstance(raw_value, bool):
        return 0.0
    if isinstance(raw_value, (int, float)):
        return _finite_or_zero(float(raw_value))

    cleaned = str(raw_value)
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")
    cleaned = re.sub(r"\s", "", cleaned).replace(".", "").replace(",", ".", 1)
    if not cleaned:
        return 0.0

    try:
        return _finite_or_zero(float(cleaned))
    except ValueError:
        return 0.0


def parse_date(raw_value: object, *, today: Optional[date] = None) -> str:
    """
    Normalize a sheet date to ISO `YYYY-MM-DD`.

    Slash-separated values are read as DD/MM/YY or DD/MM/YYYY (two-digit years get a
    `20` prefix). Anything else is returned unchanged; missing values resolve to today.
    """

    if raw_value is None or raw_value == "":
        return (today or date.today()).isoformat()

    text = str(raw_value)
    if "/" in text:
        parts = text.split("/")
        if len(parts) == 3:
            day = parts[0].strip().zfill(2)
            month = parts[1].strip().zfill(2)
            year = parts[2].strip()
            if len(year) == 2:
                year = f"20{year}"
            return f"{year}-{month}-{day}"
    return text


def extract_pr_code(text: Optional[str]) -> Optional[str]:
    """
    Find a project reference ("PR 1724", "pr01724", ...) and normalize it to PR + 5 digits.
    """

    if not text:
        return None
    match = PR_CODE_PATTERN.search(text)
    if not match:
        return None
    return f"PR{match.group(1).zfill(PR_CODE_WIDTH)}"


def extract_revision_number(name: str) -> int:
    """Revision suffix of a file name ("rev01", "rev.02", "v3", "_r4"); 0 when absent."""

    for pattern in REVISION_PATTERNS:
        match = pattern.search(name or "")
        if match:
            return int(match.group(1))
    return 0


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0
