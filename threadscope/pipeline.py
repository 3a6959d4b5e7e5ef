"""Facade wiring the thread store, ingestion, facets and filters together.

The app holds one ThreadPipeline per session. Facets are recomputed whenever
the store changes; the filtered view is recomputed on demand from the current
store and criteria. ``snapshot()`` is what the presentation layer reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from threadscope.categorization import categorize_thread, extract_workflows_from_thread
from threadscope.date_chunks import POLICY_DAY, parse_time_range
from threadscope.errors import ThreadPipelineError, ValidationError
from threadscope.ingestion import ChunkedIngestionOrchestrator, IngestionResult, ThreadStore
from threadscope.models import ChunkStatus, LoadingProgress, Thread
from threadscope.preferences import DATE_RANGE_KEY, SEARCH_TERM_KEY, PreferenceStore
from threadscope.thread_analysis import ThreadFacets, TopicCategorizer, WorkflowExtractor, analyze_threads
from threadscope.thread_filters import ThreadFilterCriteria, filter_threads
from threadscope.threads_api import ThreadsFetcher
from threadscope.uploads import merge_uploads

logger = logging.getLogger("threadscope")


@dataclass(frozen=True)
class PipelineSnapshot:
    threads: list[Thread]
    total_threads: int
    progress: LoadingProgress
    chunk_statuses: tuple[ChunkStatus, ...]
    final_chunk_statuses: tuple[ChunkStatus, ...]
    facets: ThreadFacets
    criteria: ThreadFilterCriteria
    message: str | None = None
    generation: int = 0
    source: str = "initial"
    debug: dict[str, Any] = field(default_factory=dict, compare=False)


class ThreadPipeline:
    def __init__(
        self,
        fetch: ThreadsFetcher | None = None,
        *,
        store: ThreadStore | None = None,
        categorize: TopicCategorizer = categorize_thread,
        extract_workflows: WorkflowExtractor = extract_workflows_from_thread,
        preferences: PreferenceStore | None = None,
        policy: str = POLICY_DAY,
        max_workers: int = 1,
    ) -> None:
        self.store = store if store is not None else ThreadStore()
        self.categorize = categorize
        self.extract_workflows = extract_workflows
        self.preferences = preferences
        self.orchestrator = (
            ChunkedIngestionOrchestrator(fetch, self.store, policy=policy, max_workers=max_workers)
            if fetch is not None
            else None
        )
        self.message: str | None = None
        self.last_result: IngestionResult | None = None

        search_term = ""
        if preferences is not None:
            saved = preferences.get(SEARCH_TERM_KEY, "")
            search_term = saved if isinstance(saved, str) else ""
        self.criteria = ThreadFilterCriteria(search_term=search_term)

        self.facets = ThreadFacets()
        self._recompute_facets(self.store)
        self._unsubscribe = self.store.subscribe(self._recompute_facets)

    def _recompute_facets(self, store: ThreadStore) -> None:
        self.facets = analyze_threads(list(store.threads), self.categorize, self.extract_workflows)

    def close(self) -> None:
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def fetch_range(self, start: datetime | str, end: datetime | str) -> IngestionResult:
        """Validate the window, run chunked ingestion and record the user message.

        ValidationError is re-raised after being recorded as the message so the
        caller can show it without a fetch having been attempted.
        """
        if self.orchestrator is None:
            raise ThreadPipelineError("No threads fetcher configured")
        try:
            time_range = parse_time_range(start, end)
        except ValidationError as exc:
            self.message = str(exc)
            raise

        self.message = None
        result = self.orchestrator.run(time_range)
        if result.applied:
            self.last_result = result
            self.message = result.message
            if self.preferences is not None:
                self.preferences.set(
                    DATE_RANGE_KEY,
                    {"start": time_range.start.isoformat(), "end": time_range.end.isoformat()},
                )
        return result

    def load_upload(self, raw: bytes | str, source_name: str = "upload") -> int:
        """Replace the store with the threads in an uploaded file."""
        count, _ = self.load_uploads([(source_name, raw)])
        return count

    def load_uploads(self, files: list[tuple[str, bytes | str]]) -> tuple[int, dict[str, str]]:
        """Replace the store with the merged threads of several uploaded files.

        Files that fail to parse are reported per name and skipped. When every
        file fails the store is left untouched and ``ValidationError`` is raised.
        """
        threads, errors = merge_uploads(files)
        if files and len(errors) == len(files):
            self.message = "; ".join(errors.values())
            raise ValidationError(self.message)
        self.store.replace(threads, source="upload")
        self.message = None if threads else "No threads found in the uploaded file"
        logger.info("Loaded %d threads from %d files (%d failed)", len(threads), len(files), len(errors))
        return len(threads), errors

    def set_criteria(self, criteria: ThreadFilterCriteria) -> None:
        if self.preferences is not None and criteria.search_term != self.criteria.search_term:
            self.preferences.set(SEARCH_TERM_KEY, criteria.search_term)
        self.criteria = criteria

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def saved_date_range(self) -> dict[str, str] | None:
        if self.preferences is None:
            return None
        saved = self.preferences.get(DATE_RANGE_KEY)
        if isinstance(saved, dict) and saved.get("start") and saved.get("end"):
            return {"start": str(saved["start"]), "end": str(saved["end"])}
        return None

    def filtered_threads(self) -> list[Thread]:
        return filter_threads(list(self.store.threads), self.criteria, self.categorize)

    def snapshot(self) -> PipelineSnapshot:
        orch = self.orchestrator
        return PipelineSnapshot(
            threads=self.filtered_threads(),
            total_threads=len(self.store),
            progress=orch.progress if orch is not None else LoadingProgress(),
            chunk_statuses=orch.chunk_statuses if orch is not None else (),
            final_chunk_statuses=orch.final_chunk_statuses if orch is not None else (),
            facets=self.facets,
            criteria=self.criteria,
            message=self.message,
            generation=self.store.generation,
            source=self.store.source,
            debug={"criteria": self.criteria.to_dict(), "active_filters": self.criteria.active_filter_count},
        )
