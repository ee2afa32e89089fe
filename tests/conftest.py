"""Shared fixtures: an in-memory event store."""

from datetime import datetime
from typing import Any

import pytest

from dumbwatch.errors import UpstreamUnavailable
from dumbwatch.storage import EventStoreBase


class FakeEventStore(EventStoreBase):
    """Keeps rows in lists and records every call."""

    def __init__(self, rows=None, fail_fetch=False, fail_append=False):
        self.rows = list(rows or [])
        self.fail_fetch = fail_fetch
        self.fail_append = fail_append
        self.fetch_calls: list[dict[str, Any]] = []
        self.appended: list[list[dict[str, Any]]] = []
        self.events: list[dict[str, Any]] = []
        self.closed = False

    def fetch_recent_reports(self, since: datetime, limit: int = 1000, min_text_length: int = 10):
        self.fetch_calls.append({"since": since, "limit": limit, "min_text_length": min_text_length})
        if self.fail_fetch:
            raise UpstreamUnavailable("simulated network error")
        return list(self.rows[:limit])

    def append_clusters(self, rows):
        if self.fail_append:
            raise UpstreamUnavailable("simulated write failure")
        self.appended.append(rows)

    def recent_clusters(self, since: datetime, limit: int = 20):
        return [row for batch in self.appended for row in batch][:limit]

    def ingest_event(self, event):
        self.events.append(event)

    def close(self):
        self.closed = True


def make_row(session_id, text, embedding, timestamp="2026-10-19 08:00:00"):
    return {
        "session_id": session_id,
        "timestamp": timestamp,
        "model_name": "GPT-4",
        "quick_report_text": text,
        "embedding": embedding,
    }


@pytest.fixture
def fake_store():
    return FakeEventStore


@pytest.fixture
def row():
    return make_row
