"""Thread filter criteria and the filter engine behind the threads table."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

from threadscope.categorization import categorize_thread
from threadscope.models import CONVERSATIONAL_ROLES, KIND_UI, ROLE_ASSISTANT, ROLE_USER, Thread
from threadscope.thread_analysis import TopicCategorizer, thread_has_errors, thread_has_timeouts
from threadscope.thread_metrics import derive_metrics, first_user_message_text

_BOUND_FIELDS = (
    "min_messages",
    "max_messages",
    "min_duration",
    "max_duration",
    "min_response_time",
    "max_response_time",
)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _coerce_bound(value: Any) -> float | None:
    """``None`` and ``''`` mean no constraint; numeric strings are accepted."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ThreadFilterCriteria:
    search_term: str = ""
    has_ui: bool = False
    errors_only: bool = False
    timeouts_only: bool = False
    selected_topic: str = ""
    selected_tools: frozenset[str] = frozenset()
    selected_workflows: frozenset[str] = frozenset()
    message_search_enabled: bool = False
    message_search_term: str = ""
    message_roles: frozenset[str] = field(default_factory=lambda: frozenset({ROLE_USER, ROLE_ASSISTANT}))
    min_messages: float | None = None
    max_messages: float | None = None
    min_duration: float | None = None
    max_duration: float | None = None
    min_response_time: float | None = None
    max_response_time: float | None = None

    def __post_init__(self) -> None:
        for name in _BOUND_FIELDS:
            object.__setattr__(self, name, _coerce_bound(getattr(self, name)))
        for name in ("selected_tools", "selected_workflows", "message_roles"):
            object.__setattr__(self, name, frozenset(getattr(self, name) or ()))

    def toggle_tool(self, tool: str) -> "ThreadFilterCriteria":
        return replace(self, selected_tools=self.selected_tools ^ {tool})

    def toggle_workflow(self, workflow: str) -> "ThreadFilterCriteria":
        return replace(self, selected_workflows=self.selected_workflows ^ {workflow})

    def toggle_message_role(self, role: str) -> "ThreadFilterCriteria":
        if role not in CONVERSATIONAL_ROLES:
            return self
        return replace(self, message_roles=self.message_roles ^ {role})

    def updated(self, **changes: Any) -> "ThreadFilterCriteria":
        return replace(self, **changes)

    def cleared(self) -> "ThreadFilterCriteria":
        return ThreadFilterCriteria()

    @property
    def active_filter_count(self) -> int:
        count = 0
        count += bool(self.search_term)
        count += self.has_ui
        count += bool(self.selected_tools)
        count += bool(self.selected_workflows)
        count += self.errors_only
        count += self.timeouts_only
        count += bool(self.selected_topic)
        count += bool(self.message_search_enabled and self.message_search_term)
        count += sum(1 for name in _BOUND_FIELDS if getattr(self, name) is not None)
        return int(count)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = sorted(value) if isinstance(value, frozenset) else value
        return out


# ---------------------------------------------------------------------------
# Per-family predicates
# ---------------------------------------------------------------------------

def matches_search(thread: Thread, term: str) -> bool:
    # The whole first user message is searched, not the truncated display text.
    needle = term.lower()
    return (
        needle in thread.id.lower()
        or needle in thread.conversation_id.lower()
        or needle in first_user_message_text(thread).lower()
    )


def has_ui_content(thread: Thread) -> bool:
    return any(item.kind == KIND_UI for m in thread.messages for item in m.content)


def mentions_any(thread: Thread, names: frozenset[str]) -> bool:
    """Case-sensitive substring check of any name against all message text."""
    texts = [item.payload for m in thread.messages for item in m.content]
    return any(name in text for name in names for text in texts)


def matches_message_search(thread: Thread, term: str, roles: frozenset[str]) -> bool:
    needle = term.lower()
    searchable = roles & CONVERSATIONAL_ROLES
    for m in thread.messages:
        if m.role not in searchable:
            continue
        if any(needle in item.payload.lower() for item in m.content):
            return True
    return False


def _within(value: float, lo: float | None, hi: float | None) -> bool:
    if lo is not None and value < lo:
        return False
    if hi is not None and value > hi:
        return False
    return True


def thread_passes(
    thread: Thread,
    criteria: ThreadFilterCriteria,
    categorize: TopicCategorizer = categorize_thread,
) -> bool:
    """True when every active filter family accepts the thread."""
    metrics = derive_metrics(thread)

    if criteria.search_term and not matches_search(thread, criteria.search_term):
        return False
    if criteria.has_ui and not has_ui_content(thread):
        return False
    if criteria.selected_tools and not mentions_any(thread, criteria.selected_tools):
        return False
    if criteria.selected_workflows and not mentions_any(thread, criteria.selected_workflows):
        return False
    if criteria.errors_only and not thread_has_errors(thread):
        return False
    if criteria.timeouts_only and not thread_has_timeouts(thread):
        return False
    if criteria.selected_topic and categorize(thread) != criteria.selected_topic:
        return False
    if criteria.message_search_enabled and criteria.message_search_term:
        if not matches_message_search(thread, criteria.message_search_term, criteria.message_roles):
            return False

    return (
        _within(metrics.message_count, criteria.min_messages, criteria.max_messages)
        and _within(metrics.duration_seconds, criteria.min_duration, criteria.max_duration)
        and _within(metrics.response_time_seconds, criteria.min_response_time, criteria.max_response_time)
    )


def sort_newest_first(threads: list[Thread]) -> list[Thread]:
    # Unparsable creation times sort last.
    return sorted(threads, key=lambda t: t.created or _OLDEST, reverse=True)


def filter_threads(
    threads: list[Thread],
    criteria: ThreadFilterCriteria,
    categorize: TopicCategorizer = categorize_thread,
) -> list[Thread]:
    """Threads passing ``criteria``, most recently created first."""
    return sort_newest_first([t for t in threads if thread_passes(t, criteria, categorize)])
