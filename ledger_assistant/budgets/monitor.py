"""
Budget Monitor

Budgets are monthly limits per category, plus the aggregate "Total".
Spend is always measured over the current calendar month of the clock.

Thresholds:
- spent >= 100% of limit  -> "exceeded" alert
- spent >= warning percent (80% by default) -> "approaching limit" alert
- below that -> None (no alert, not an empty message)

Alert thresholds compare the exact ratio. The percentage shown to the
user is rounded half-up.
"""

import math
from datetime import datetime
from typing import Callable, Optional

import structlog

from ledger_assistant.config import get_settings
from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    BudgetStatus,
    Category,
    DateRange,
    format_amount,
    utc_now,
)
from ledger_assistant.services.storage.interface import LedgerStorageInterface
from ledger_assistant.validation.validator import ValidationError


logger = structlog.get_logger(__name__)


def round_percentage(spent: float, limit: float) -> int:
    return math.floor(spent / limit * 100 + 0.5)


def budget_label(category: BudgetCategory) -> str:
    return "Overall" if category == BudgetCategory.TOTAL else category.value


class BudgetMonitor:
    """
    Sets budgets and evaluates current-month spend against them.

    Args:
        store: Ledger store
        clock: Source of "now"; decides the current month
        warning_percent: Spend percentage for the "approaching" alert
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        clock: Callable[[], datetime] = utc_now,
        warning_percent: Optional[float] = None,
    ):
        self._store = store
        self._clock = clock
        self._warning_percent = (
            warning_percent
            if warning_percent is not None
            else get_settings().app.budget_warning_percent
        )

    async def set_budget(
        self,
        owner: str,
        category: BudgetCategory,
        amount: float,
    ) -> Budget:
        """Create or replace the monthly budget for (owner, category)."""
        if amount <= 0:
            raise ValidationError("amount", "The budget must be greater than zero")
        budget = await self._store.upsert_budget(
            Budget(owner=owner, category=category, amount=amount, updated_at=self._clock())
        )
        logger.info("Budget set", owner=owner, category=category.value, amount=amount)
        return budget

    async def _month_spend(self, owner: str) -> tuple[dict[Category, float], float]:
        by_category = await self._store.sum_expenses_by_category(
            owner,
            DateRange.month_of(self._clock()),
        )
        return by_category, sum(by_category.values())

    @staticmethod
    def _spent_for(
        category: BudgetCategory,
        by_category: dict[Category, float],
        total: float,
    ) -> float:
        if category == BudgetCategory.TOTAL:
            return total
        return by_category.get(Category(category.value), 0.0)

    async def get_budget_status(self, owner: str) -> list[BudgetStatus]:
        """Current-month status for every budget the owner has set."""
        budgets = await self._store.get_budgets(owner)
        if not budgets:
            return []

        by_category, total = await self._month_spend(owner)
        statuses = []
        for budget in budgets:
            spent = self._spent_for(budget.category, by_category, total)
            statuses.append(BudgetStatus(
                category=budget.category,
                limit=budget.amount,
                spent=spent,
                remaining=budget.amount - spent,
                percentage=round_percentage(spent, budget.amount),
                is_over_budget=spent > budget.amount,
            ))
        return statuses

    async def check_alert(self, owner: str, category: Category) -> Optional[str]:
        """
        Evaluate the category's budget and the overall budget.

        Call this after a record lands; spend includes it.

        Returns:
            Alert text (one line per budget), or None when nothing to say
        """
        own = BudgetCategory(category.value)
        budgets = await self._store.get_budgets(owner, [own, BudgetCategory.TOTAL])
        if not budgets:
            return None

        # Category budget first, then overall
        budgets.sort(key=lambda b: b.category == BudgetCategory.TOTAL)
        by_category, total = await self._month_spend(owner)

        alerts = []
        for budget in budgets:
            spent = self._spent_for(budget.category, by_category, total)
            ratio = spent / budget.amount * 100
            label = budget_label(budget.category)
            shown = round_percentage(spent, budget.amount)
            if ratio >= 100:
                alerts.append(
                    f"⚠️ {label} budget exceeded! "
                    f"${format_amount(spent)} of ${format_amount(budget.amount)} ({shown}%)"
                )
            elif ratio >= self._warning_percent:
                alerts.append(
                    f"⚠️ {label} budget approaching limit: {shown}% used "
                    f"(${format_amount(spent)} of ${format_amount(budget.amount)})"
                )

        if not alerts:
            return None
        logger.info("Budget alert raised", owner=owner, category=category.value, alerts=len(alerts))
        return "\n".join(alerts)
