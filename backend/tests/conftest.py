"""Shared pytest fixtures for test suite."""

import os

# Settings are read at import time by mintchat.core.rate_limit; these must be
# in place before any mintchat module is imported.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import itertools  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Any, Optional  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi import Request  # noqa: E402

from mintchat.core.event_store import DuplicateRecordError, PersistenceFailure  # noqa: E402

WALLET_ALICE = "0xa11ce"
WALLET_BOB = "0xb0b"
WALLET_CAROL = "0xca201"


# =============================================================================
# In-Memory Event Store
# =============================================================================


class FakeEventStore:
    """
    In-memory stand-in for EventStore.

    Same method signatures and filter semantics; honours the unique
    constraints from the schema and can be told to fail specific operations.
    """

    UNIQUE = {
        "conversations": ("participant_low", "participant_high"),
        "reactions": ("actor", "target_type", "target_id"),
    }

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.fail_on: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    # --- write ---

    def insert(self, table: str, row: dict) -> dict:
        self._record(table, "insert")
        rows = self.tables.setdefault(table, [])
        columns = self.UNIQUE.get(table)
        if columns and any(all(r[c] == row.get(c) for c in columns) for r in rows):
            raise DuplicateRecordError(f"Duplicate {table} record", table, "insert")

        stored = {"id": str(next(self._ids)), **row}
        stored.setdefault("created_at", self._tick())
        rows.append(stored)
        return dict(stored)

    def update(self, table: str, values: dict, *, eq: dict, neq=None, in_=None) -> list[dict]:
        self._record(table, "update")
        if not eq:
            raise ValueError("update requires at least one equality filter")
        updated = []
        for row in self._matching(table, eq=eq, neq=neq, in_=in_):
            row.update(values)
            updated.append(dict(row))
        return updated

    def delete(self, table: str, *, eq: dict) -> list[dict]:
        self._record(table, "delete")
        doomed = self._matching(table, eq=eq)
        self.tables[table] = [r for r in self.tables.get(table, []) if r not in doomed]
        return [dict(r) for r in doomed]

    # --- read ---

    def find(
        self,
        table: str,
        *,
        eq=None,
        neq=None,
        in_=None,
        either=None,
        lt=None,
        before_key=None,
        order_by=None,
        desc: bool = False,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> list[dict]:
        self._record(table, "select")
        rows = self._matching(table, eq=eq, neq=neq, in_=in_, either=either, lt=lt)
        if before_key:
            bound = tuple(before_key.values())
            rows = [r for r in rows if tuple(r.get(c) for c in before_key) < bound]
        if order_by:
            ordering = [order_by] if isinstance(order_by, str) else list(order_by)
            rows = sorted(rows, key=lambda r: tuple(r[c] for c in ordering), reverse=desc)
        if limit is not None:
            rows = rows[:limit]
        return [dict(r) for r in rows]

    def find_one(self, table: str, **filters: Any) -> Optional[dict]:
        rows = self.find(table, limit=1, **filters)
        return rows[0] if rows else None

    def count(self, table: str, *, eq=None, neq=None, in_=None, either=None) -> int:
        self._record(table, "count")
        return len(self._matching(table, eq=eq, neq=neq, in_=in_, either=either))

    # --- helpers ---

    def rows(self, table: str) -> list[dict]:
        return [dict(r) for r in self.tables.get(table, [])]

    def _record(self, table: str, operation: str) -> None:
        self.calls.append((table, operation))
        if (table, operation) in self.fail_on:
            raise PersistenceFailure(f"Failed to {operation} {table}", table, operation)

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def _matching(self, table, *, eq=None, neq=None, in_=None, either=None, lt=None) -> list[dict]:
        result = []
        for row in self.tables.get(table, []):
            if any(row.get(c) != v for c, v in (eq or {}).items()):
                continue
            if any(row.get(c) == v for c, v in (neq or {}).items()):
                continue
            if any(row.get(c) not in vs for c, vs in (in_ or {}).items()):
                continue
            if any(not row.get(c) < v for c, v in (lt or {}).items()):
                continue
            if either and not any(row.get(c) == v for c, v in either.items()):
                continue
            result.append(row)
        return result


class RecordingPublisher:
    """Stand-in for RealtimePublisher that keeps what was published."""

    def __init__(self, accept: bool = True) -> None:
        self.published: list[tuple[str, dict]] = []
        self.accept = accept

    def publish(self, topic: str, payload: dict) -> bool:
        self.published.append((topic, payload))
        return self.accept

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.published]


class FakeSubscription:
    def __init__(self, bus: "FakeBus", topic: str, handler, decode) -> None:
        self.bus = bus
        self.topic = topic
        self.handler = handler
        self.decode = decode
        self.active = True

    async def unsubscribe(self) -> None:
        self.active = False


class FakeBus:
    """Stand-in for RealtimeBus; tests push payloads with deliver()."""

    def __init__(self) -> None:
        self.subscriptions: list[FakeSubscription] = []

    async def subscribe(self, topic: str, handler, decode=None) -> FakeSubscription:
        subscription = FakeSubscription(self, topic, handler, decode)
        self.subscriptions.append(subscription)
        return subscription

    async def deliver(self, topic: str, payload: dict) -> int:
        delivered = 0
        for subscription in list(self.subscriptions):
            if subscription.active and subscription.topic == topic:
                record = subscription.decode(payload) if subscription.decode else payload
                result = subscription.handler(record)
                if hasattr(result, "__await__"):
                    await result
                delivered += 1
        return delivered

    def active_topics(self) -> list[str]:
        return [s.topic for s in self.subscriptions if s.active]


# =============================================================================
# Store / Transport Fixtures
# =============================================================================


@pytest.fixture
def store():
    """Empty in-memory event store."""
    return FakeEventStore()


@pytest.fixture
def publisher():
    """Publisher that records every live push."""
    return RecordingPublisher()


@pytest.fixture
def bus():
    """Live bus driven by the test."""
    return FakeBus()


# =============================================================================
# Service Fixtures (wired against the in-memory store)
# =============================================================================


@pytest.fixture
def read_state(store):
    from mintchat.services.read_state import ReadStateTracker

    return ReadStateTracker(store)


@pytest.fixture
def unread(store):
    from mintchat.services.unread_aggregator import UnreadAggregator

    return UnreadAggregator(store)


@pytest.fixture
def conversations(store, unread):
    from mintchat.services.conversation_manager import ConversationManager

    return ConversationManager(store, unread)


@pytest.fixture
def fanout(store, publisher, bus, read_state):
    from mintchat.services.notification_fanout import NotificationFanout

    return NotificationFanout(store, publisher, bus, read_state)


@pytest.fixture
def channel(conversations, store, fanout, read_state, publisher, bus):
    from mintchat.services.message_channel import MessageChannel

    return MessageChannel(conversations, store, fanout, read_state, publisher, bus)


@pytest.fixture
def ledger(store, fanout):
    from mintchat.services.reaction_ledger import ReactionLedger

    return ReactionLedger(store, fanout)


# =============================================================================
# Mock Request Fixtures
# =============================================================================


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object."""
    request = MagicMock(spec=Request)
    request.state = MagicMock()
    request.headers = {}
    return request


@pytest.fixture
def mock_request_identified(mock_request):
    """Mock request with an identified wallet in state (post-middleware)."""
    from mintchat.core.identity import WalletOptionalUser

    mock_request.state.wallet = WalletOptionalUser(address=WALLET_ALICE, is_identified=True)
    mock_request.state.identity_error = None
    return mock_request


@pytest.fixture
def mock_request_anonymous(mock_request):
    """Mock request without a wallet address."""
    from mintchat.core.identity import WalletOptionalUser

    mock_request.state.wallet = WalletOptionalUser(is_identified=False)
    mock_request.state.identity_error = None
    return mock_request


@pytest.fixture
def mock_request_with_identity_error(mock_request):
    """Mock request whose wallet header was malformed."""
    from mintchat.core.identity import WalletOptionalUser

    mock_request.state.wallet = WalletOptionalUser(is_identified=False)
    mock_request.state.identity_error = "Malformed wallet address: 'not a wallet'"
    return mock_request


# =============================================================================
# Mock Supabase Client
# =============================================================================


@pytest.fixture
def mock_supabase():
    """Create a mock Supabase client for database operations."""
    mock = MagicMock()
    mock.table.return_value = mock
    mock.select.return_value = mock
    mock.eq.return_value = mock
    mock.neq.return_value = mock
    mock.in_.return_value = mock
    mock.lt.return_value = mock
    mock.or_.return_value = mock
    mock.order.return_value = mock
    mock.limit.return_value = mock
    mock.insert.return_value = mock
    mock.update.return_value = mock
    mock.delete.return_value = mock
    mock.execute.return_value = MagicMock(data=None, count=None)
    return mock


# =============================================================================
# Settings Reset Fixture
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Clear cached Settings so env patches in one test don't leak into another."""
    from mintchat.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
