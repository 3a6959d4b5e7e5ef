"""Pattern extraction over message text: tools, workflows, errors, timeouts, topics.

Tool and error signatures are kept as ordered data so a new phrasing only
needs a new entry in ``TOOL_PATTERNS`` or ``ERROR_PATTERNS``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from threadscope.categorization import OTHER_TOPIC, categorize_thread, extract_workflows_from_thread
from threadscope.models import ROLE_USER, SYSTEM_ROLES, Thread, ToolWithCount, WorkflowWithCount
from threadscope.thread_metrics import timestamped_messages

TopicCategorizer = Callable[[Thread], str | None]
WorkflowExtractor = Callable[[Thread], set[str]]

TIMEOUT_GAP_SECONDS = 30

# (pattern, capture group) pairs, applied in order to system/status text.
TOOL_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(r"\*\*Tool Name:\*\*\s*`([^`]+)`", re.IGNORECASE), 1),
    (re.compile(r"Tool\s*Call\s*Initiated[^`\w]*`([^`]+)`", re.IGNORECASE), 1),
    (re.compile(r"Tool\s*Call\s*Initiated[^A-Za-z0-9_-]*\(([^)]+)\)", re.IGNORECASE), 1),
    (re.compile(r"Tool\s*Call\s*(?:Initiated|Completed)[:\s]*([A-Za-z0-9_\-.]+)", re.IGNORECASE), 1),
    (re.compile(r"Calling\s+tool[:\s]*`([^`]+)`", re.IGNORECASE), 1),
    (re.compile(r"Using\s+tool[:\s]*`([^`]+)`", re.IGNORECASE), 1),
]

ERROR_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"Agent execution error",
        r"Error:",
        r"Failed:",
        r"Exception:",
        r"Timeout",
        r"Connection error",
        r"Invalid",
        r"Not found",
        r"Unauthorized",
        r"Forbidden",
    )
]

_QUOTE_CHARS = "'\"`"


def _clean_tool_name(candidate: str) -> str:
    return candidate.strip().strip(_QUOTE_CHARS)


def _system_texts(thread: Thread) -> Iterable[str]:
    for message in thread.messages:
        if message.role in SYSTEM_ROLES:
            for item in message.content:
                yield item.payload


def extract_tools_from_text(text: str) -> set[str]:
    tools: set[str] = set()
    for pattern, group in TOOL_PATTERNS:
        for match in pattern.finditer(text):
            name = _clean_tool_name(match.group(group) or "")
            if len(name) > 1:
                tools.add(name)
    return tools


def extract_tools_from_thread(thread: Thread) -> set[str]:
    """Distinct tool names mentioned in a thread's system/status messages."""
    tools: set[str] = set()
    for text in _system_texts(thread):
        if text:
            tools |= extract_tools_from_text(text)
    return tools


def thread_has_errors(thread: Thread) -> bool:
    return any(p.search(text) for text in _system_texts(thread) for p in ERROR_PATTERNS)


def thread_has_timeouts(thread: Thread, gap_seconds: float = TIMEOUT_GAP_SECONDS) -> bool:
    """True at the first gap of ``gap_seconds`` or more not followed by a user message."""
    ordered = timestamped_messages(thread)
    for (prev_ts, _), (cur_ts, cur) in zip(ordered, ordered[1:]):
        if (cur_ts - prev_ts).total_seconds() >= gap_seconds and cur.role != ROLE_USER:
            return True
    return False


def _count_by_threads(per_thread: Iterable[tuple[str, set[str]]]) -> list[tuple[str, int]]:
    owners: dict[str, set[str]] = {}
    for thread_key, names in per_thread:
        for name in names:
            owners.setdefault(name, set()).add(thread_key)
    return [(name, len(keys)) for name, keys in sorted(owners.items(), key=lambda kv: (kv[0].casefold(), kv[0]))]


def _thread_keys(threads: list[Thread]) -> list[str]:
    # Threads without an id still count once each.
    return [t.id or f"#{i}" for i, t in enumerate(threads)]


def count_tools(threads: list[Thread]) -> list[ToolWithCount]:
    pairs = zip(_thread_keys(threads), (extract_tools_from_thread(t) for t in threads))
    return [ToolWithCount(name=n, count=c) for n, c in _count_by_threads(pairs)]


def count_workflows(
    threads: list[Thread],
    extract_workflows: WorkflowExtractor = extract_workflows_from_thread,
) -> list[WorkflowWithCount]:
    pairs = zip(_thread_keys(threads), (set(extract_workflows(t) or ()) for t in threads))
    return [WorkflowWithCount(name=n, count=c) for n, c in _count_by_threads(pairs)]


def available_topics(threads: list[Thread], categorize: TopicCategorizer = categorize_thread) -> list[str]:
    topics: set[str] = set()
    for thread in threads:
        topic = categorize(thread)
        if topic and topic != OTHER_TOPIC:
            topics.add(topic)
    return sorted(topics)


@dataclass(frozen=True)
class ThreadFacets:
    tools: list[ToolWithCount] = field(default_factory=list)
    workflows: list[WorkflowWithCount] = field(default_factory=list)
    error_thread_count: int = 0
    timeout_thread_count: int = 0
    topics: list[str] = field(default_factory=list)


def analyze_threads(
    threads: list[Thread],
    categorize: TopicCategorizer = categorize_thread,
    extract_workflows: WorkflowExtractor = extract_workflows_from_thread,
) -> ThreadFacets:
    """Aggregate facets over the whole thread store."""
    threads = list(threads)
    return ThreadFacets(
        tools=count_tools(threads),
        workflows=count_workflows(threads, extract_workflows),
        error_thread_count=sum(1 for t in threads if thread_has_errors(t)),
        timeout_thread_count=sum(1 for t in threads if thread_has_timeouts(t)),
        topics=available_topics(threads, categorize),
    )
