"""Environment-scoped preference storage (search term, last date range).

Preferences are a convenience: every read and write is best effort and never
raises into the caller.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("threadscope")

SEARCH_TERM_KEY = "threads-search-term"
DATE_RANGE_KEY = "threads-date-range"

DEFAULT_PREFERENCES_PATH = Path.home() / ".threadscope" / "preferences.json"


def environment_key(key: str, environment: str) -> str:
    return f"{key}-{environment}"


class PreferenceStore:
    """Small JSON-file key/value store scoped by operating environment."""

    def __init__(self, path: str | Path = DEFAULT_PREFERENCES_PATH, environment: str = "staging") -> None:
        self.path = Path(path).expanduser()
        self.environment = environment

    def _read_all(self) -> dict[str, Any]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("Could not write preferences file %s: %s", self.path, exc)
            return False
        return True

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(environment_key(key, self.environment), default)

    def set(self, key: str, value: Any) -> bool:
        data = self._read_all()
        data[environment_key(key, self.environment)] = value
        return self._write_all(data)

    def remove(self, key: str) -> bool:
        data = self._read_all()
        if data.pop(environment_key(key, self.environment), None) is None:
            return True
        return self._write_all(data)
