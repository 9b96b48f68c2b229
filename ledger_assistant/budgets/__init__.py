"""Budgets package."""

from ledger_assistant.budgets.monitor import BudgetMonitor, budget_label

__all__ = [
    "BudgetMonitor",
    "budget_label",
]
