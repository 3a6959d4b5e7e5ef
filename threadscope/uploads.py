"""Parsing of uploaded JSON files into threads."""

from __future__ import annotations

import json
from typing import Any

from threadscope.errors import ValidationError
from threadscope.models import Thread, threads_from_envelopes


def detect_upload_type(data: Any) -> str | None:
    """Classify an uploaded JSON document: ``threads``, ``thread`` or ``None``."""
    if isinstance(data, dict):
        if isinstance(data.get("threads"), list):
            return "threads"
        if isinstance(data.get("thread"), dict) or (
            "id" in data and isinstance(data.get("messages"), list) and "conversationId" in data
        ):
            return "thread"
        return None
    if isinstance(data, list) and all(isinstance(it, dict) for it in data):
        return "threads"
    return None


def parse_uploaded_threads(raw: bytes | str, source_name: str = "upload") -> list[Thread]:
    """Decode an uploaded file into threads.

    Accepts a threads API response (``{"threads": [{"thread": {...}}]}``), a bare
    list of threads or envelopes, or a single thread. Raises ValidationError for
    anything else.
    """
    text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else str(raw)
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ValidationError(f"{source_name}: JSON parsing error: {exc}") from exc

    kind = detect_upload_type(data)
    if kind is None:
        raise ValidationError(
            f"{source_name}: Unknown JSON structure - does not match any expected API response format"
        )

    if kind == "thread":
        envelopes = [data]
    else:
        envelopes = data["threads"] if isinstance(data, dict) else data

    threads = threads_from_envelopes(envelopes)
    if envelopes and not threads:
        raise ValidationError(f"{source_name}: no thread in the file has an 'id'")
    return threads


def merge_uploads(files: list[tuple[str, bytes | str]]) -> tuple[list[Thread], dict[str, str]]:
    """Parse several uploads; returns merged threads and per-file errors."""
    threads: list[Thread] = []
    seen: set[str] = set()
    errors: dict[str, str] = {}
    for name, raw in files:
        try:
            parsed = parse_uploaded_threads(raw, source_name=name)
        except ValidationError as exc:
            errors[name] = str(exc)
            continue
        for t in parsed:
            if t.id in seen:
                continue
            seen.add(t.id)
            threads.append(t)
    return threads, errors
