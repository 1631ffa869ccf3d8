from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from budget_ledger.models.budget import Budget, BudgetStatus


@dataclass
class Stats:
    total_estimates: int = 0
    approved_count: int = 0
    pending_count: int = 0
    rejected_count: int = 0
    total_value_all: float = 0.0
    total_value_approved: float = 0.0
    total_value_pending: float = 0.0
    total_value_rejected: float = 0.0
    invoice_pending_count: int = 0


def compute_stats(budgets: Iterable[Budget]) -> Stats:
    """
    Roll the ledger up into dashboard totals.

    Args:
        budgets: Ledger records in any order; the iterable is consumed once.
    Returns:
        Stats with per-status counts and net values (budget_amount - discount), plus the
        number of approved budgets whose invoice has not been sent.
    Assumptions:
        Pure; discount larger than the amount simply yields a negative net contribution.
    """

    stats = Stats()
    for budget in budgets:
        net = float(budget.budget_amount) - float(budget.discount)
        stats.total_estimates += 1
        stats.total_value_all += net

        if budget.status is BudgetStatus.APPROVED:
            stats.approved_count += 1
            stats.total_value_approved += net
            if not budget.invoice_sent:
                stats.invoice_pending_count += 1
        elif budget.status is BudgetStatus.NOT_APPROVED:
            stats.rejected_count += 1
            stats.total_value_rejected += net
        else:
            stats.pending_count += 1
            stats.total_value_pending += net

    return stats


def compute_status_shares(stats: Stats) -> dict[str, float]:
    """
    Share of the ledger's record count held by each status, for the dashboard pie.

    Returns an empty dict for an empty ledger.
    """

    if stats.total_estimates == 0:
        return {}
    return {
        BudgetStatus.APPROVED.value: stats.approved_count / stats.total_estimates,
        BudgetStatus.PENDING.value: stats.pending_count / stats.total_estimates,
        BudgetStatus.NOT_APPROVED.value: stats.rejected_count / stats.total_estimates,
    }
