"""Thread store and chunked ingestion of a time range.

A run splits the requested window into chunks, fetches them one after another
(or with a small worker pool, still reporting in chunk order), and records one
ChunkStatus per chunk. A failed chunk is data, not an exception. The store is
replaced once, at the end, and only if no newer run or upload has started in
the meantime.
"""

from __future__ import annotations

import logging
import threading
import time as time_mod
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import requests

from threadscope.date_chunks import POLICY_DAY, partition_range, validate_time_range
from threadscope.errors import EmptyResultError, TransportError
from threadscope.models import Chunk, ChunkStatus, LoadingProgress, Thread, TimeRange
from threadscope.threads_api import ThreadsFetcher

logger = logging.getLogger("threadscope.ingestion")

NO_THREADS_MESSAGE = "No threads found in the selected date range"

StoreListener = Callable[["ThreadStore"], None]
ProgressListener = Callable[[LoadingProgress], None]
StatusListener = Callable[[tuple[ChunkStatus, ...]], None]

# Failures a single chunk may raise without aborting the run.
CHUNK_FAILURES: tuple[type[BaseException], ...] = (TransportError, requests.RequestException)


class ThreadStore:
    """In-memory thread collection with replace-on-write semantics.

    Every writer first claims a run id; ``commit`` only applies when that id is
    still the latest, so a superseded run can never overwrite newer data.
    """

    def __init__(self, threads: Iterable[Thread] = ()) -> None:
        self._threads: tuple[Thread, ...] = tuple(threads)
        self._generation = 0
        self._latest_run = 0
        self._source = "initial"
        self._listeners: list[StoreListener] = []
        self._lock = threading.Lock()

    @property
    def threads(self) -> tuple[Thread, ...]:
        return self._threads

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def source(self) -> str:
        return self._source

    def __len__(self) -> int:
        return len(self._threads)

    def begin_run(self) -> int:
        with self._lock:
            self._latest_run += 1
            return self._latest_run

    def is_current(self, run_id: int) -> bool:
        return run_id == self._latest_run

    def commit(self, threads: Iterable[Thread], run_id: int, source: str = "fetch") -> bool:
        """Replace the store with ``threads`` unless ``run_id`` has been superseded."""
        with self._lock:
            if run_id != self._latest_run:
                return False
            self._threads = tuple(threads)
            self._generation += 1
            self._source = source
        self._notify()
        return True

    def replace(self, threads: Iterable[Thread], source: str = "upload") -> None:
        """Direct replacement (e.g. upload); supersedes any run still in flight."""
        self.commit(threads, self.begin_run(), source=source)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


@dataclass(frozen=True)
class IngestionResult:
    threads: tuple[Thread, ...]
    statuses: tuple[ChunkStatus, ...]
    run_id: int
    applied: bool = True

    @property
    def failed_chunks(self) -> tuple[ChunkStatus, ...]:
        return tuple(s for s in self.statuses if not s.ok)

    @property
    def is_empty(self) -> bool:
        return not self.threads

    @property
    def message(self) -> str | None:
        return NO_THREADS_MESSAGE if self.is_empty else None

    def raise_for_empty(self) -> None:
        if self.is_empty:
            raise EmptyResultError(NO_THREADS_MESSAGE)


def _failure_code(exc: BaseException) -> int:
    code = getattr(exc, "status_code", None)
    if isinstance(code, int):
        return code
    if isinstance(exc, requests.Timeout):
        return 504
    return 500


class ChunkedIngestionOrchestrator:
    """Fetch a time range chunk by chunk into a ThreadStore."""

    def __init__(
        self,
        fetch: ThreadsFetcher,
        store: ThreadStore,
        *,
        policy: str = POLICY_DAY,
        max_workers: int = 1,
        on_progress: ProgressListener | None = None,
        on_chunk_status: StatusListener | None = None,
    ) -> None:
        self.fetch = fetch
        self.store = store
        self.policy = policy
        self.max_workers = max(1, int(max_workers))
        self.on_progress = on_progress
        self.on_chunk_status = on_chunk_status
        self.progress = LoadingProgress()
        self.chunk_statuses: tuple[ChunkStatus, ...] = ()
        self.final_chunk_statuses: tuple[ChunkStatus, ...] = ()

    def run(self, time_range: TimeRange) -> IngestionResult:
        """Fetch every chunk of ``time_range`` and commit the union to the store.

        Raises ValidationError (before any fetch) for an empty or inverted range.
        """
        time_range = validate_time_range(time_range)
        chunks = partition_range(time_range, self.policy)
        run_id = self.store.begin_run()
        t0 = time_mod.monotonic()

        self._set_progress(run_id, LoadingProgress(current=0, total=len(chunks)))
        self._set_statuses(run_id, ())

        collected: list[Thread] = []
        seen_ids: set[str] = set()
        statuses: list[ChunkStatus] = []

        for chunk, outcome in self._fetch_in_order(run_id, chunks):
            if isinstance(outcome, BaseException):
                logger.warning("Chunk %d (%s) failed: %s", chunk.index, chunk.label, outcome)
                status = ChunkStatus(
                    index=chunk.index,
                    label=chunk.label,
                    outcome=ChunkStatus.FAILURE,
                    status_code=_failure_code(outcome),
                    error=str(outcome),
                )
            else:
                for thread in outcome:
                    if thread.id and thread.id in seen_ids:
                        continue
                    seen_ids.add(thread.id)
                    collected.append(thread)
                status = ChunkStatus(
                    index=chunk.index,
                    label=chunk.label,
                    outcome=ChunkStatus.SUCCESS,
                    status_code=200,
                    threads_fetched=len(outcome),
                )
            statuses.append(status)
            self._set_statuses(run_id, tuple(statuses))

        result_statuses = tuple(statuses)
        applied = self.store.commit(collected, run_id, source="fetch")
        if applied:
            self.final_chunk_statuses = result_statuses
            logger.info(
                "Fetched %d threads from %d chunks (%d failed) in %.1fs",
                len(collected),
                len(chunks),
                sum(1 for s in statuses if not s.ok),
                time_mod.monotonic() - t0,
            )
        else:
            logger.info("Discarding results of superseded run %d", run_id)

        return IngestionResult(
            threads=tuple(collected),
            statuses=result_statuses,
            run_id=run_id,
            applied=applied,
        )

    def _fetch_one(self, chunk: Chunk) -> list[Thread] | BaseException:
        logger.debug("Fetching chunk %d: %s", chunk.index, chunk.label)
        try:
            return list(self.fetch(chunk.start, chunk.end))
        except CHUNK_FAILURES as exc:
            return exc

    def _fetch_in_order(
        self, run_id: int, chunks: list[Chunk]
    ) -> Iterator[tuple[Chunk, list[Thread] | BaseException]]:
        total = len(chunks)
        if self.max_workers == 1:
            for chunk in chunks:
                self._set_progress(run_id, LoadingProgress(current=chunk.index, total=total, label=chunk.label))
                yield chunk, self._fetch_one(chunk)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: list[Future] = [executor.submit(self._fetch_one, c) for c in chunks]
            try:
                for chunk, future in zip(chunks, futures):
                    self._set_progress(run_id, LoadingProgress(current=chunk.index, total=total, label=chunk.label))
                    yield chunk, future.result()
            finally:
                for future in futures:
                    future.cancel()

    def _set_progress(self, run_id: int, progress: LoadingProgress) -> None:
        if not self.store.is_current(run_id):
            return
        self.progress = progress
        if self.on_progress is not None:
            self.on_progress(progress)

    def _set_statuses(self, run_id: int, statuses: tuple[ChunkStatus, ...]) -> None:
        if not self.store.is_current(run_id):
            return
        self.chunk_statuses = statuses
        if self.on_chunk_status is not None:
            self.on_chunk_status(statuses)
