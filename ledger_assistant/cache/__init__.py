"""Inbound event cache package."""

from ledger_assistant.cache.event_cache import EventCache, TTLEventCache

__all__ = [
    "EventCache",
    "TTLEventCache",
]
