"""Query execution package."""

from ledger_assistant.queries.stats import StatsAggregator, category_breakdown

__all__ = [
    "StatsAggregator",
    "category_breakdown",
]
