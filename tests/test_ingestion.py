"""Tests for the thread store and the chunked ingestion orchestrator.

The fetch collaborator is a plain callable, so no HTTP is involved here.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest
import requests

from threadscope.errors import EmptyResultError, TransportError, ValidationError
from threadscope.ingestion import NO_THREADS_MESSAGE, ChunkedIngestionOrchestrator, ThreadStore
from threadscope.models import ChunkStatus, LoadingProgress, Thread, TimeRange


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _threads(prefix: str, n: int) -> list[Thread]:
    return [Thread(id=f"{prefix}-{i}", conversation_id="c", created_at="2024-01-01T00:00:00Z") for i in range(n)]


TWO_DAYS = TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 3))
FOUR_DAYS = TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 5))


class ScriptedFetcher:
    """Returns (or raises) the scripted outcome for each call, in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[datetime, datetime]] = []

    def __call__(self, start: datetime, end: datetime) -> list[Thread]:
        self.calls.append((start, end))
        outcome = self.outcomes[len(self.calls) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# ---------------------------------------------------------------------------
# Thread store
# ---------------------------------------------------------------------------


class TestThreadStore:
    def test_commit_replaces_and_bumps_generation(self):
        store = ThreadStore(_threads("old", 2))
        run = store.begin_run()
        assert store.commit(_threads("new", 3), run)
        assert len(store) == 3
        assert store.generation == 1
        assert store.source == "fetch"

    def test_stale_run_cannot_commit(self):
        store = ThreadStore()
        first = store.begin_run()
        second = store.begin_run()
        assert not store.commit(_threads("a", 1), first)
        assert store.commit(_threads("b", 2), second)
        assert [t.id for t in store.threads] == ["b-0", "b-1"]

    def test_upload_supersedes_inflight_run(self):
        store = ThreadStore()
        run = store.begin_run()
        store.replace(_threads("up", 1))
        assert store.source == "upload"
        assert not store.commit(_threads("late", 5), run)
        assert len(store) == 1

    def test_subscribers_notified_and_unsubscribe(self):
        store = ThreadStore()
        seen: list[int] = []
        unsubscribe = store.subscribe(lambda s: seen.append(len(s)))
        store.replace(_threads("a", 2))
        unsubscribe()
        store.replace(_threads("b", 4))
        assert seen == [2]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class TestOrchestrator:
    def test_partial_failure_keeps_going(self):
        fetch = ScriptedFetcher([TransportError("boom", status_code=502), _threads("ok", 5)])
        store = ThreadStore()
        result = ChunkedIngestionOrchestrator(fetch, store).run(TWO_DAYS)

        assert len(store) == 5
        assert [s.outcome for s in result.statuses] == [ChunkStatus.FAILURE, ChunkStatus.SUCCESS]
        assert [s.index for s in result.statuses] == [1, 2]
        assert result.statuses[0].status_code == 502
        assert result.statuses[0].error == "boom"
        assert result.statuses[1].status_code == 200
        assert result.statuses[1].threads_fetched == 5
        assert len(result.failed_chunks) == 1

    def test_every_chunk_attempted_after_failure(self):
        fetch = ScriptedFetcher(
            [
                _threads("a", 1),
                requests.ConnectionError("reset"),
                requests.Timeout("slow"),
                _threads("d", 2),
            ]
        )
        result = ChunkedIngestionOrchestrator(fetch, ThreadStore()).run(FOUR_DAYS)

        assert len(fetch.calls) == 4
        assert [s.index for s in result.statuses] == [1, 2, 3, 4]
        assert [s.ok for s in result.statuses] == [True, False, False, True]
        assert [s.status_code for s in result.statuses] == [200, 500, 504, 200]

    def test_fetches_in_ascending_order_with_chunk_bounds(self):
        fetch = ScriptedFetcher([[], []])
        ChunkedIngestionOrchestrator(fetch, ThreadStore()).run(TWO_DAYS)
        assert fetch.calls == [(_utc(2024, 1, 1), _utc(2024, 1, 2)), (_utc(2024, 1, 2), _utc(2024, 1, 3))]

    def test_validation_happens_before_any_fetch(self):
        fetch = ScriptedFetcher([])
        orch = ChunkedIngestionOrchestrator(fetch, ThreadStore())
        with pytest.raises(ValidationError):
            orch.run(TimeRange(start=_utc(2024, 1, 3), end=_utc(2024, 1, 1)))
        assert fetch.calls == []

    def test_unexpected_errors_propagate(self):
        fetch = ScriptedFetcher([KeyError("bug")])
        store = ThreadStore(_threads("keep", 1))
        with pytest.raises(KeyError):
            ChunkedIngestionOrchestrator(fetch, store).run(TimeRange(start=_utc(2024, 1, 1), end=_utc(2024, 1, 2)))
        assert [t.id for t in store.threads] == ["keep-0"]

    def test_empty_result_is_a_message_not_an_error(self):
        result = ChunkedIngestionOrchestrator(ScriptedFetcher([[], []]), ThreadStore()).run(TWO_DAYS)

        assert result.is_empty
        assert result.message == NO_THREADS_MESSAGE
        assert all(s.ok for s in result.statuses)
        with pytest.raises(EmptyResultError):
            result.raise_for_empty()

    def test_duplicate_threads_across_chunks_kept_once(self):
        fetch = ScriptedFetcher([_threads("x", 2), _threads("x", 3)])
        result = ChunkedIngestionOrchestrator(fetch, ThreadStore()).run(TWO_DAYS)
        assert [t.id for t in result.threads] == ["x-0", "x-1", "x-2"]
        assert result.statuses[1].threads_fetched == 3

    def test_progress_and_statuses_observable(self):
        progress: list[LoadingProgress] = []
        snapshots: list[int] = []
        store = ThreadStore()
        seen_store_sizes: list[int] = []

        def fetch(start, end):
            seen_store_sizes.append(len(store))
            return _threads(start.strftime("%d"), 1)

        orch = ChunkedIngestionOrchestrator(
            fetch,
            store,
            on_progress=progress.append,
            on_chunk_status=lambda statuses: snapshots.append(len(statuses)),
        )
        store.replace(_threads("prev", 7))
        orch.run(FOUR_DAYS)

        assert [p.current for p in progress] == [0, 1, 2, 3, 4]
        assert all(p.total == 4 for p in progress)
        assert progress[1].label == "2024-01-01 00:00-24:00"
        assert snapshots == [0, 1, 2, 3, 4]
        # Store is only replaced at the end of the run.
        assert seen_store_sizes == [7, 7, 7, 7]
        assert len(store) == 4
        assert len(orch.final_chunk_statuses) == 4

    def test_superseded_run_is_discarded(self):
        store = ThreadStore()
        holder: dict[str, ChunkedIngestionOrchestrator] = {}

        def fetch(start, end):
            if start.day == 1:
                # A newer run starts while this one is still fetching.
                holder["newer"].run(TimeRange(start=_utc(2024, 2, 1), end=_utc(2024, 2, 2)))
            return _threads(f"old{start.day}", 1)

        old = ChunkedIngestionOrchestrator(fetch, store)
        holder["newer"] = ChunkedIngestionOrchestrator(lambda s, e: _threads("new", 2), store)
        result = old.run(TWO_DAYS)

        assert not result.applied
        assert [t.id for t in store.threads] == ["new-0", "new-1"]
        assert old.final_chunk_statuses == ()


class TestBoundedConcurrency:
    def test_statuses_recorded_in_index_order(self):
        release = threading.Event()
        order: list[int] = []

        def fetch(start, end):
            # Chunk 1 waits until chunk 4 has been fetched.
            if start.day == 1:
                release.wait(timeout=5)
            order.append(start.day)
            if start.day == 4:
                release.set()
            if start.day == 2:
                raise TransportError("nope", status_code=503)
            return _threads(f"d{start.day}", 1)

        progress: list[int] = []
        orch = ChunkedIngestionOrchestrator(
            fetch, ThreadStore(), max_workers=4, on_progress=lambda p: progress.append(p.current)
        )
        result = orch.run(FOUR_DAYS)

        assert [s.index for s in result.statuses] == [1, 2, 3, 4]
        assert [s.ok for s in result.statuses] == [True, False, True, True]
        assert progress == [0, 1, 2, 3, 4]
        assert [t.id for t in result.threads] == ["d1-0", "d3-0", "d4-0"]
        assert sorted(order) == [1, 2, 3, 4]
