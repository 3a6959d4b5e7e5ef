"""Tabular views of threads for the overview table, charts and CSV export."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any

import pandas as pd

from threadscope.categorization import categorize_thread
from threadscope.models import KIND_UI, ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, Thread
from threadscope.thread_analysis import TopicCategorizer, thread_has_errors, thread_has_timeouts
from threadscope.thread_metrics import derive_metrics

THREAD_TABLE_COLUMNS = [
    "thread_id",
    "namespace",
    "short_id",
    "conversation_id",
    "created_at",
    "message_count",
    "ui_count",
    "duration_seconds",
    "response_time_seconds",
    "first_user_text",
    "topic",
    "has_error",
    "has_timeout",
]


@dataclass(frozen=True)
class ParsedThreadId:
    namespace: str
    id: str
    full: str


def parse_thread_id(thread_id: str) -> ParsedThreadId:
    """Split ``namespace/rest`` ids; ids without a slash get namespace ``unknown``."""
    parts = thread_id.split("/")
    if len(parts) < 2:
        return ParsedThreadId(namespace="unknown", id=thread_id, full=thread_id)
    return ParsedThreadId(namespace=parts[0], id="/".join(parts[1:]), full=thread_id)


def ui_item_count(thread: Thread) -> int:
    return sum(1 for m in thread.messages for item in m.content if item.kind == KIND_UI)


def thread_row(thread: Thread, categorize: TopicCategorizer = categorize_thread) -> dict[str, Any]:
    parsed = parse_thread_id(thread.id)
    metrics = derive_metrics(thread)
    return {
        "thread_id": thread.id,
        "namespace": parsed.namespace,
        "short_id": parsed.id,
        "conversation_id": thread.conversation_id,
        "created_at": thread.created,
        "message_count": metrics.message_count,
        "ui_count": ui_item_count(thread),
        "duration_seconds": metrics.duration_seconds,
        "response_time_seconds": metrics.response_time_seconds,
        "first_user_text": metrics.first_user_text,
        "topic": categorize(thread) or "",
        "has_error": thread_has_errors(thread),
        "has_timeout": thread_has_timeouts(thread),
    }


def build_thread_table(threads: list[Thread], categorize: TopicCategorizer = categorize_thread) -> pd.DataFrame:
    """One row per thread, in the order given."""
    rows = [thread_row(t, categorize) for t in threads]
    return pd.DataFrame(rows, columns=THREAD_TABLE_COLUMNS)


def daily_thread_counts(threads: list[Thread]) -> pd.DataFrame:
    """Threads per UTC creation date; threads without a valid creation time are skipped."""
    dates = [t.created.date() for t in threads if t.created is not None]
    if not dates:
        return pd.DataFrame(columns=["date", "threads"])
    counts = pd.Series(dates).value_counts().sort_index()
    out = counts.rename_axis("date").reset_index(name="threads")
    out["date"] = pd.to_datetime(out["date"])
    return out


def summarize_threads(threads: list[Thread]) -> dict[str, Any]:
    """Headline numbers for the loaded threads (system messages excluded from message totals)."""
    total_messages = 0
    user_messages = 0
    assistant_messages = 0
    namespaces: Counter[str] = Counter()
    ui_kinds: Counter[str] = Counter()
    conversations: set[str] = set()

    for thread in threads:
        conversations.add(thread.conversation_id)
        namespaces[parse_thread_id(thread.id).namespace] += 1
        for message in thread.messages:
            if message.role != ROLE_SYSTEM:
                total_messages += 1
                if message.role == ROLE_ASSISTANT:
                    assistant_messages += 1
                elif message.role == ROLE_USER:
                    user_messages += 1
            for item in message.content:
                if item.kind == KIND_UI:
                    ui = item.extra.get("ui")
                    kind = ui.get("kind") if isinstance(ui, dict) else None
                    ui_kinds[str(kind or "unknown")] += 1

    n_threads = len(threads)
    return {
        "total_threads": n_threads,
        "total_conversations": len(conversations),
        "total_messages": total_messages,
        "avg_messages_per_thread": (total_messages / n_threads) if n_threads else 0.0,
        "assistant_message_percent": (assistant_messages / total_messages * 100) if total_messages else 0.0,
        "user_message_percent": (user_messages / total_messages * 100) if total_messages else 0.0,
        "namespace_breakdown": dict(namespaces),
        "ui_event_counts": dict(ui_kinds),
    }
