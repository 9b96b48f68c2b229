"""
Shared fixtures for the Ledger Assistant tests.

No test talks to Gemini or Google Sheets: the intent parser is a stub
and the ledger lives in memory. Time is controlled through FakeClock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from ledger_assistant.agents import IntentParserInterface
from ledger_assistant.audit import AuditLogger
from ledger_assistant.cache import TTLEventCache
from ledger_assistant.models.intent import Intent, UnknownIntent
from ledger_assistant.models.ledger import (
    Category,
    Transaction,
    TransactionKind,
)
from ledger_assistant.orchestrator import LedgerAssistant
from ledger_assistant.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


OWNER = "owner-1"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class MonotonicClock:
    """Float clock for the event cache."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubIntentParser(IntentParserInterface):
    """Returns queued intents in order; UNKNOWN once the queue is empty."""

    def __init__(self, *intents: Intent):
        self.queue = list(intents)
        self.texts: list[str] = []
        self.images: list[tuple[bytes, str]] = []
        self.error: Optional[Exception] = None

    def push(self, *intents: Intent) -> None:
        self.queue.extend(intents)

    def _next(self) -> Intent:
        if self.error is not None:
            raise self.error
        if self.queue:
            return self.queue.pop(0)
        return UnknownIntent()

    async def parse_text(self, text, now):
        self.texts.append(text)
        return self._next()

    async def parse_image(self, image_bytes, mime_type, now):
        self.images.append((image_bytes, mime_type))
        return self._next()


def make_transaction(
    item: str = "lunch",
    amount: float = 150.0,
    category: Category = Category.FOOD,
    kind: TransactionKind = TransactionKind.EXPENSE,
    occurred_at: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    owner: str = OWNER,
) -> Transaction:
    moment = occurred_at or datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
    return Transaction(
        owner=owner,
        item=item,
        amount=amount,
        category=category,
        kind=kind,
        occurred_at=moment,
        created_at=created_at or moment,
        updated_at=created_at or moment,
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return InMemoryLedgerStore(clock=clock)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def parser():
    return StubIntentParser()


@pytest.fixture
def assistant(store, parser, audit_storage, clock):
    return LedgerAssistant(
        store=store,
        parser=parser,
        audit_logger=AuditLogger(audit_storage),
        event_cache=TTLEventCache(ttl_seconds=300, capacity=100, clock=MonotonicClock()),
        clock=clock,
    )
