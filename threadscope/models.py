"""Core record types for threads, chunks and facets.

Threads arrive from the API (or an uploaded file) as nested JSON. They are
converted once into frozen dataclasses so every downstream computation works
on the same immutable snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from threadscope.data_helpers import first_valid_timestamp, parse_timestamp

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
ROLE_STATUS = "status"

CONVERSATIONAL_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})
SYSTEM_ROLES = frozenset({ROLE_SYSTEM, ROLE_STATUS})

KIND_UI = "ui"

# Message timestamp fields, in resolution order.
MESSAGE_TIMESTAMP_FIELDS = ("created_at", "createdAt", "sentAt")


@dataclass(frozen=True)
class ContentItem:
    kind: str = ""
    text: str | None = None
    content: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def payload(self) -> str:
        """Text payload: ``text`` first, then ``content``, else empty."""
        return self.text or self.content or ""

    @classmethod
    def from_dict(cls, raw: Any) -> "ContentItem":
        if isinstance(raw, str):
            return cls(kind="text", text=raw)
        if not isinstance(raw, dict):
            return cls()
        text = raw.get("text")
        content = raw.get("content")
        extra = {k: v for k, v in raw.items() if k not in ("kind", "text", "content")}
        return cls(
            kind=str(raw.get("kind") or ""),
            text=text if isinstance(text, str) else None,
            content=content if isinstance(content, str) else None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out["kind"] = self.kind
        if self.text is not None:
            out["text"] = self.text
        if self.content is not None:
            out["content"] = self.content
        return out


@dataclass(frozen=True)
class Message:
    id: str
    role: str
    content: tuple[ContentItem, ...] = ()
    timestamps: tuple[Any, ...] = ()

    @property
    def timestamp(self) -> datetime | None:
        """First timestamp field that parses; ``None`` when missing or unparsable."""
        return first_valid_timestamp(self.timestamps)

    @property
    def text(self) -> str:
        return " ".join(c.payload for c in self.content)

    @classmethod
    def from_dict(cls, raw: Any) -> "Message":
        if not isinstance(raw, dict):
            return cls(id="", role="")
        content_raw = raw.get("content")
        if isinstance(content_raw, list):
            content = tuple(ContentItem.from_dict(c) for c in content_raw)
        elif isinstance(content_raw, str):
            content = (ContentItem(kind="text", text=content_raw),)
        else:
            content = ()
        return cls(
            id=str(raw.get("id") or ""),
            role=str(raw.get("role") or ""),
            content=content,
            timestamps=tuple(raw.get(f) for f in MESSAGE_TIMESTAMP_FIELDS),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": [c.to_dict() for c in self.content],
        }
        for name, value in zip(MESSAGE_TIMESTAMP_FIELDS, self.timestamps):
            if value is not None:
                out[name] = value
        return out


@dataclass(frozen=True)
class Thread:
    id: str
    conversation_id: str
    created_at: str
    messages: tuple[Message, ...] = ()

    @property
    def created(self) -> datetime | None:
        return parse_timestamp(self.created_at)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Thread":
        msgs = raw.get("messages")
        return cls(
            id=str(raw.get("id") or ""),
            conversation_id=str(raw.get("conversationId") or raw.get("conversation_id") or ""),
            created_at=str(raw.get("createdAt") or raw.get("created_at") or ""),
            messages=tuple(Message.from_dict(m) for m in msgs) if isinstance(msgs, list) else (),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "createdAt": self.created_at,
            "messages": [m.to_dict() for m in self.messages],
        }


def threads_from_envelopes(envelopes: Any) -> list[Thread]:
    """Unwrap ``[{"thread": {...}}, ...]`` envelopes (bare thread dicts also accepted)."""
    out: list[Thread] = []
    for env in envelopes or []:
        if not isinstance(env, dict):
            continue
        inner = env.get("thread") if isinstance(env.get("thread"), dict) else env
        if not inner.get("id"):
            continue
        out.append(Thread.from_dict(inner))
    return out


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class Chunk:
    """Half-open sub-range ``[start, end)`` of a requested window."""

    index: int
    start: datetime
    end: datetime
    label: str


@dataclass(frozen=True)
class ChunkStatus:
    index: int
    label: str
    outcome: str
    status_code: int | None = None
    error: str | None = None
    threads_fetched: int = 0

    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def ok(self) -> bool:
        return self.outcome == ChunkStatus.SUCCESS


@dataclass(frozen=True)
class LoadingProgress:
    current: int = 0
    total: int = 0
    label: str = ""


@dataclass(frozen=True)
class ToolWithCount:
    name: str
    count: int


@dataclass(frozen=True)
class WorkflowWithCount:
    name: str
    count: int
