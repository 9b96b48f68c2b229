"""
Reply Rendering

Turns engine results into the plain text sent back to the user.
Nothing here touches storage; every function is a pure formatter.
"""

from datetime import datetime
from typing import Optional

from ledger_assistant.budgets.monitor import budget_label
from ledger_assistant.ledger.matcher import AmbiguousReferenceError, Selector
from ledger_assistant.models.ledger import (
    Budget,
    BudgetStatus,
    CreateResult,
    DateRange,
    MutationResult,
    StatsResult,
    TopExpenseResult,
    Transaction,
    TransactionKind,
    format_amount,
)


HELP_TEXT = (
    "Sorry, I'm not sure what you mean. You can try:\n"
    "- \"lunch 150\" or \"salary 50000 yesterday\" to record\n"
    "- \"how much did I spend last week?\" for totals\n"
    "- \"list this month's food\" for a listing\n"
    "- \"delete the last one\" or \"change lunch to 180\" to fix a record\n"
    "- \"set food budget 3000\" and \"check budget\" for budgets"
)

GENERIC_FAILURE = "Something went wrong on my side. Please try again in a moment."

UNREADABLE_IMAGE = "I couldn't find a receipt in that photo. Please try a clearer one."


def _period(date_range: DateRange) -> str:
    return f"{date_range.start:%Y-%m-%d} ~ {date_range.end:%Y-%m-%d}"


def _money(amount: float) -> str:
    return f"${format_amount(amount)}"


def render_create_result(result: CreateResult, alerts: Optional[list[str]] = None) -> str:
    lines = []
    if result.saved:
        lines.append("Recorded:")
        lines.extend(
            f"{tx.item} {_money(tx.amount)} ({tx.category.value})"
            for tx in result.saved
        )
    if result.duplicates:
        if lines:
            lines.append("")
        lines.append("Already recorded a moment ago, skipped:")
        lines.extend(result.duplicates)
    if result.rejected:
        if lines:
            lines.append("")
        lines.append("Couldn't record:")
        lines.extend(issue.message for issue in result.rejected)
    if not lines:
        lines.append("Sorry, I'm not sure what you want to record.")
    if alerts:
        lines.append("")
        lines.extend(alerts)
    return "\n".join(lines)


def render_stats(stats: StatsResult) -> str:
    if stats.count == 0:
        return f"No transactions found for {_period(stats.date_range)}."

    title = "📊 Summary"
    if stats.category:
        title += f" - {stats.category.value}"
    lines = [
        f"{title} ({_period(stats.date_range)})",
        f"Total expense: {_money(stats.total_expense)}",
        f"Total income: {_money(stats.total_income)}",
        f"Transactions: {stats.count}",
    ]
    if stats.breakdown:
        lines.append("")
        lines.append("Top spending:")
        lines.extend(f"- {c.category.value}: {_money(c.total)}" for c in stats.breakdown[:3])
    return "\n".join(lines)


def render_transaction_list(transactions: list[Transaction], date_range: DateRange) -> str:
    if not transactions:
        return f"No transactions found for {_period(date_range)}."
    lines = [f"📝 Transactions ({_period(date_range)})"]
    for tx in transactions:
        sign = "+" if tx.kind == TransactionKind.INCOME else "-"
        lines.append(
            f"{tx.occurred_at:%m/%d} {tx.item} {sign}{_money(tx.amount)} ({tx.category.value})"
        )
    return "\n".join(lines)


def render_top_expense(result: TopExpenseResult, date_range: DateRange) -> str:
    if result.top_category is None and result.top_item is None:
        return f"No expenses found for {_period(date_range)}."
    lines = [f"🔥 Biggest spending ({_period(date_range)})"]
    if result.top_category:
        lines.append(
            f"Top category: {result.top_category.category.value} "
            f"{_money(result.top_category.total)}"
        )
    if result.top_item:
        item = result.top_item
        lines.append(
            f"Largest expense: {item.item} {_money(item.amount)} on {item.occurred_at:%Y-%m-%d}"
        )
    return "\n".join(lines)


def render_mutation(result: MutationResult) -> str:
    return result.description


def render_ambiguity(error: AmbiguousReferenceError) -> str:
    by = "item" if error.selector == Selector.ITEM else "amount"
    lines = [f"I found several transactions matching that {by}:"]
    for position, tx in enumerate(error.candidates, start=1):
        lines.append(f"{position}. {tx.summary}")
    lines.append("")
    lines.append(
        "Please tell me which one, for example with its exact amount "
        "or \"the 2nd most recent one\"."
    )
    return "\n".join(lines)


def render_erase(deleted: int, start: datetime, end: datetime) -> str:
    period = f"{start:%Y-%m-%d} ~ {end:%Y-%m-%d}"
    if deleted == 0:
        return f"There were no transactions to delete in {period}."
    return f"Deleted {deleted} transaction(s) ({period})."


def render_budget_set(budget: Budget) -> str:
    return f"✅ {budget_label(budget.category)} monthly budget set to {_money(budget.amount)}."


def render_budget_status(statuses: list[BudgetStatus]) -> str:
    lines = ["💰 Budgets this month"]
    for status in statuses:
        marker = "🔴" if status.is_over_budget else ("🟡" if status.percentage >= 80 else "🟢")
        lines.append(
            f"{marker} {budget_label(status.category)}: {_money(status.spent)} / "
            f"{_money(status.limit)} ({status.percentage}%), "
            f"{_money(status.remaining)} left"
        )
    return "\n".join(lines)


def render_weekly_report(stats: StatsResult) -> str:
    lines = [
        "📅 Last week's summary",
        f"({_period(stats.date_range)})",
        "",
        f"💰 Total expense: {_money(stats.total_expense)}",
        f"💵 Total income: {_money(stats.total_income)}",
        f"📝 Transactions: {stats.count}",
    ]
    if stats.breakdown:
        lines.append("")
        lines.append("🔥 Top spending:")
        lines.extend(f"- {c.category.value}: {_money(c.total)}" for c in stats.breakdown[:3])
    return "\n".join(lines)
