"""Threadscope: chunked retrieval, filtering and analysis of chat agent threads."""

from threadscope.errors import (
    ThreadPipelineError,
    ValidationError,
    TransportError,
    EmptyResultError,
)
from threadscope.models import (
    ContentItem,
    Message,
    Thread,
    TimeRange,
    Chunk,
    ChunkStatus,
    LoadingProgress,
    ToolWithCount,
    WorkflowWithCount,
    threads_from_envelopes,
)
from threadscope.date_chunks import (
    parse_time_range,
    validate_time_range,
    partition_range,
)
from threadscope.threads_api import (
    get_api_headers,
    fetch_threads_in_range,
    make_threads_fetcher,
)
from threadscope.ingestion import (
    ThreadStore,
    IngestionResult,
    ChunkedIngestionOrchestrator,
)
from threadscope.thread_metrics import (
    ThreadMetrics,
    derive_metrics,
)
from threadscope.thread_analysis import (
    ThreadFacets,
    analyze_threads,
    extract_tools_from_thread,
    thread_has_errors,
    thread_has_timeouts,
)
from threadscope.categorization import (
    categorize_thread,
    extract_workflows_from_thread,
)
from threadscope.thread_filters import (
    ThreadFilterCriteria,
    filter_threads,
)
from threadscope.pipeline import (
    PipelineSnapshot,
    ThreadPipeline,
)

__all__ = [
    # Errors
    "ThreadPipelineError",
    "ValidationError",
    "TransportError",
    "EmptyResultError",
    # Models
    "ContentItem",
    "Message",
    "Thread",
    "TimeRange",
    "Chunk",
    "ChunkStatus",
    "LoadingProgress",
    "ToolWithCount",
    "WorkflowWithCount",
    "threads_from_envelopes",
    # Time ranges
    "parse_time_range",
    "validate_time_range",
    "partition_range",
    # Threads API
    "get_api_headers",
    "fetch_threads_in_range",
    "make_threads_fetcher",
    # Ingestion
    "ThreadStore",
    "IngestionResult",
    "ChunkedIngestionOrchestrator",
    # Metrics and analysis
    "ThreadMetrics",
    "derive_metrics",
    "ThreadFacets",
    "analyze_threads",
    "extract_tools_from_thread",
    "thread_has_errors",
    "thread_has_timeouts",
    # Categorization
    "categorize_thread",
    "extract_workflows_from_thread",
    # Filtering
    "ThreadFilterCriteria",
    "filter_threads",
    # Pipeline
    "PipelineSnapshot",
    "ThreadPipeline",
]
