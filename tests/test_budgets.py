"""Tests for budgets and threshold alerts."""

from datetime import datetime, timezone

import pytest

from ledger_assistant.budgets import BudgetMonitor, budget_label
from ledger_assistant.budgets.monitor import round_percentage
from ledger_assistant.models.ledger import BudgetCategory, Category, TransactionKind
from ledger_assistant.validation import ValidationError

from tests.conftest import OWNER, make_transaction


async def spend(store, amount, category=Category.FOOD, occurred_at=None):
    await store.save_transaction(make_transaction(
        item="spend",
        amount=amount,
        category=category,
        occurred_at=occurred_at or datetime(2024, 5, 10, tzinfo=timezone.utc),
    ))


@pytest.fixture
def monitor(store, clock):
    return BudgetMonitor(store, clock, warning_percent=80)


class TestRounding:

    def test_round_half_up(self):
        assert round_percentage(850, 1000) == 85
        assert round_percentage(1, 8) == 13
        assert round_percentage(0, 1000) == 0

    def test_labels(self):
        assert budget_label(BudgetCategory.TOTAL) == "Overall"
        assert budget_label(BudgetCategory.FOOD) == "Food"


class TestBudgetMonitor:
    """Tests for BudgetMonitor."""

    @pytest.mark.asyncio
    async def test_set_budget_replaces_existing(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 2000)
        budgets = await store.get_budgets(OWNER)
        assert len(budgets) == 1
        assert budgets[0].amount == 2000

    @pytest.mark.asyncio
    async def test_set_budget_rejects_non_positive(self, monitor):
        with pytest.raises(ValidationError):
            await monitor.set_budget(OWNER, BudgetCategory.FOOD, 0)

    @pytest.mark.asyncio
    async def test_no_budget_no_alert(self, monitor, store):
        await spend(store, 5000)
        assert await monitor.check_alert(OWNER, Category.FOOD) is None

    @pytest.mark.asyncio
    async def test_just_below_warning(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 799)
        assert await monitor.check_alert(OWNER, Category.FOOD) is None

    @pytest.mark.asyncio
    async def test_warning_at_exact_threshold(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 800)
        alert = await monitor.check_alert(OWNER, Category.FOOD)
        assert alert == "⚠️ Food budget approaching limit: 80% used ($800 of $1,000)"

    @pytest.mark.asyncio
    async def test_exceeded(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 1001)
        alert = await monitor.check_alert(OWNER, Category.FOOD)
        assert alert == "⚠️ Food budget exceeded! $1,001 of $1,000 (100%)"

    @pytest.mark.asyncio
    async def test_exceeded_when_exactly_at_limit(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 1000)
        assert "exceeded" in await monitor.check_alert(OWNER, Category.FOOD)

    @pytest.mark.asyncio
    async def test_display_rounds_but_threshold_does_not(self, monitor, store):
        """79.96% shows as 80% but is still below the warning threshold."""
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 10000)
        await spend(store, 7996)
        assert await monitor.check_alert(OWNER, Category.FOOD) is None

    @pytest.mark.asyncio
    async def test_category_alert_comes_before_overall(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.TOTAL, 1000)
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 500)
        await spend(store, 600)
        await spend(store, 300, category=Category.TRANSPORT)

        alert = await monitor.check_alert(OWNER, Category.FOOD)

        lines = alert.split("\n")
        assert lines[0].startswith("⚠️ Food budget exceeded!")
        assert lines[1] == "⚠️ Overall budget approaching limit: 90% used ($900 of $1,000)"

    @pytest.mark.asyncio
    async def test_only_current_month_counts(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 5000, occurred_at=datetime(2024, 4, 30, tzinfo=timezone.utc))
        assert await monitor.check_alert(OWNER, Category.FOOD) is None

    @pytest.mark.asyncio
    async def test_income_does_not_count(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.TOTAL, 1000)
        await store.save_transaction(make_transaction(
            item="salary",
            amount=50000,
            category=Category.SALARY,
            kind=TransactionKind.INCOME,
        ))
        assert await monitor.check_alert(OWNER, Category.SALARY) is None

    @pytest.mark.asyncio
    async def test_status(self, monitor, store):
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await monitor.set_budget(OWNER, BudgetCategory.TOTAL, 2000)
        await spend(store, 1200)

        statuses = {s.category: s for s in await monitor.get_budget_status(OWNER)}

        food = statuses[BudgetCategory.FOOD]
        assert food.is_over_budget
        assert food.remaining == -200
        assert food.percentage == 120
        total = statuses[BudgetCategory.TOTAL]
        assert not total.is_over_budget
        assert total.percentage == 60

    @pytest.mark.asyncio
    async def test_status_at_exact_limit_is_not_over(self, monitor, store):
        """Spending the whole budget alerts as exceeded but is not over budget."""
        await monitor.set_budget(OWNER, BudgetCategory.FOOD, 1000)
        await spend(store, 1000)

        [food] = await monitor.get_budget_status(OWNER)

        assert food.percentage == 100
        assert food.remaining == 0
        assert not food.is_over_budget
        alert = await monitor.check_alert(OWNER, Category.FOOD)
        assert alert == "⚠️ Food budget exceeded! $1,000 of $1,000 (100%)"

    @pytest.mark.asyncio
    async def test_status_without_budgets(self, monitor):
        assert await monitor.get_budget_status(OWNER) == []
