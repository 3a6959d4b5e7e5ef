"""Per-thread derived metrics: message count, duration, first-response latency."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from threadscope.models import (
    CONVERSATIONAL_ROLES,
    ROLE_ASSISTANT,
    ROLE_USER,
    Message,
    Thread,
)

FIRST_USER_TEXT_MAX_CHARS = 100


@dataclass(frozen=True)
class ThreadMetrics:
    message_count: int
    duration_seconds: int
    response_time_seconds: int
    first_user_text: str


def round_seconds(seconds: float) -> int:
    """Round half up to whole seconds."""
    return int(math.floor(seconds + 0.5))


def timestamped_messages(thread: Thread) -> list[tuple[datetime, Message]]:
    """Messages with a valid instant, sorted ascending. Ties keep original order."""
    pairs = [(m.timestamp, m) for m in thread.messages]
    valid = [(ts, m) for ts, m in pairs if ts is not None]
    return sorted(valid, key=lambda p: p[0])


def count_conversational_messages(thread: Thread) -> int:
    return sum(1 for m in thread.messages if m.role in CONVERSATIONAL_ROLES)


def duration_seconds(thread: Thread) -> int:
    stamps = [ts for ts, _ in timestamped_messages(thread)]
    if len(stamps) < 2:
        return 0
    return round_seconds((stamps[-1] - stamps[0]).total_seconds())


def _earliest(thread: Thread, role: str) -> datetime | None:
    stamps = [m.timestamp for m in thread.messages if m.role == role]
    valid = [ts for ts in stamps if ts is not None]
    return min(valid) if valid else None


def response_time_seconds(thread: Thread) -> int:
    """Seconds from the earliest user message to the earliest assistant message.

    Zero when either is missing or the assistant did not answer strictly later.
    """
    first_user = _earliest(thread, ROLE_USER)
    first_assistant = _earliest(thread, ROLE_ASSISTANT)
    if first_user is None or first_assistant is None or first_assistant <= first_user:
        return 0
    return round_seconds((first_assistant - first_user).total_seconds())


def first_user_message_text(thread: Thread) -> str:
    """Full text of the first user message, payloads joined in order."""
    for m in thread.messages:
        if m.role == ROLE_USER:
            return m.text
    return ""


def first_user_text(thread: Thread, max_chars: int = FIRST_USER_TEXT_MAX_CHARS) -> str:
    return first_user_message_text(thread).strip()[:max_chars]


def derive_metrics(thread: Thread) -> ThreadMetrics:
    return ThreadMetrics(
        message_count=count_conversational_messages(thread),
        duration_seconds=duration_seconds(thread),
        response_time_seconds=response_time_seconds(thread),
        first_user_text=first_user_text(thread),
    )
