"""Default categorization collaborator: workflow detection and topic labels.

The pipeline treats both functions as black boxes; anything with the same
signatures can be passed to ``ThreadPipeline`` instead. Topic keywords live in
``fixtures/topic_keywords.json`` so they can be tuned without code changes.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from threadscope.data_helpers import parse_timestamp
from threadscope.models import ROLE_USER, SYSTEM_ROLES, Message, Thread

logger = logging.getLogger("threadscope")

OTHER_TOPIC = "Other"

_WORKFLOW_LIST_MARKER = "Workflows ausgewählt"
_WORKFLOW_LIST_PATTERN = re.compile(r"\*\s*\*\*Workflows:\*\*\s*`([^`]+)`", re.IGNORECASE)
_STANDALONE_WORKFLOW_PATTERN = re.compile(r"workflow-[\w-]+", re.IGNORECASE)

_TOPIC_CONFIG: dict[str, Any] | None = None


def _load_topic_config() -> dict[str, Any]:
    global _TOPIC_CONFIG
    if _TOPIC_CONFIG is not None:
        return _TOPIC_CONFIG

    config: dict[str, Any] = {"topics": {}, "inspiration_exact": [], "inspiration_patterns": [], "workflow_topics": {}}
    p = Path(__file__).parent / "fixtures" / "topic_keywords.json"
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not load topic keywords from %s: %s", p, exc)
        raw = {}

    if isinstance(raw, dict):
        topics = raw.get("topics")
        if isinstance(topics, dict):
            config["topics"] = {
                str(name): [str(k).lower() for k in kws if isinstance(k, str) and k.strip()]
                for name, kws in topics.items()
                if isinstance(kws, list)
            }
        exact = raw.get("inspiration_exact")
        if isinstance(exact, list):
            config["inspiration_exact"] = [str(e).lower() for e in exact if isinstance(e, str)]
        patterns = raw.get("inspiration_patterns")
        if isinstance(patterns, list):
            config["inspiration_patterns"] = [re.compile(p, re.IGNORECASE) for p in patterns if isinstance(p, str)]
        wf_topics = raw.get("workflow_topics")
        if isinstance(wf_topics, dict):
            config["workflow_topics"] = {str(k): str(v) for k, v in wf_topics.items()}

    _TOPIC_CONFIG = config
    return _TOPIC_CONFIG


def extract_workflows_from_messages(messages: tuple[Message, ...] | list[Message]) -> set[str]:
    """Workflow names announced in system/status messages."""
    workflows: set[str] = set()
    for message in messages:
        if message.role not in SYSTEM_ROLES:
            continue
        for item in message.content:
            text = item.payload
            if not text:
                continue
            if _WORKFLOW_LIST_MARKER in text:
                for match in _WORKFLOW_LIST_PATTERN.finditer(text):
                    for name in match.group(1).split(","):
                        name = name.strip()
                        if len(name) > 1:
                            workflows.add(name)
            for match in _STANDALONE_WORKFLOW_PATTERN.finditer(text):
                workflows.add(match.group(0))
    return workflows


def extract_workflows_from_thread(thread: Thread) -> set[str]:
    return extract_workflows_from_messages(thread.messages)


def _first_user_message(messages: tuple[Message, ...]) -> Message | None:
    users = [m for m in messages if m.role == ROLE_USER]
    if not users:
        return None
    epoch = parse_timestamp(0)
    return sorted(users, key=lambda m: m.timestamp or epoch)[0]


def _is_inspiration_message(text: str) -> bool:
    config = _load_topic_config()
    if text.lower() in config["inspiration_exact"]:
        return True
    return any(p.search(text) for p in config["inspiration_patterns"])


def _categorize_by_keywords(text: str) -> str | None:
    lowered = text.lower()
    for topic, keywords in _load_topic_config()["topics"].items():
        if any(k in lowered for k in keywords):
            return topic
    return None


def categorize_thread(thread: Thread) -> str | None:
    """Topic label for a thread, or ``None`` when nothing matches."""
    if not thread.messages:
        return None

    config = _load_topic_config()
    workflows = extract_workflows_from_thread(thread)
    for workflow, topic in config["workflow_topics"].items():
        if workflow in workflows:
            return topic

    first_user = _first_user_message(thread.messages)
    if first_user is None:
        return None
    text = first_user.text.strip()
    if not text:
        return None
    if _is_inspiration_message(text):
        return "Inspiration/Reiseberatung"
    return _categorize_by_keywords(text)
