"""
Identity resolution for ledger records that lack a shared durable id.

A record's fingerprint is its normalized PR code when the description mentions one.
Otherwise it falls back to `date-client-amount`, lower-cased. Two unrelated quotes for
the same client, on the same day and for the same amount, without a PR code, collide
under the fallback; that is a known limitation and every caller relies on this exact key.
"""

from __future__ import annotations

from budget_ledger.models.budget import Budget
from budget_ledger.parsers.normalizers import extract_pr_code

FALLBACK_DELIMITER = "-"


def fingerprint(budget: Budget) -> str:
    pr_code = extract_pr_code(budget.service_description)
    if pr_code:
        return pr_code
    parts = (budget.date, budget.client_name, format_amount(budget.budget_amount))
    return FALLBACK_DELIMITER.join(parts).lower()


def format_amount(amount: float) -> str:
    """Render whole amounts without a trailing `.0` so 1500 and 1500.0 fingerprint alike."""
    value = float(amount)
    if value.is_integer():
        return str(int(value))
    return repr(value)
