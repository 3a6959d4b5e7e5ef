"""Configuration helpers for resolving threads API settings across sources."""

from collections.abc import Mapping
from typing import Any

ENVIRONMENTS = ("staging", "production")
DEFAULT_ENVIRONMENT = "staging"

_API_PREFIXES = {
    "production": "/api",
    "staging": "/api-test",
}


def normalize_api_base_url(raw: str | None) -> str:
    """Normalize user-provided threads API base URL values."""
    if raw is None:
        return ""

    cleaned = str(raw).strip()
    if not cleaned:
        return ""

    cleaned = cleaned.rstrip("/")
    suffix = "/thread"
    if cleaned.lower().endswith(suffix):
        cleaned = cleaned[: -len(suffix)]

    return cleaned.rstrip("/")


def normalize_environment(raw: Any) -> str:
    value = str(raw or "").strip().lower()
    return value if value in ENVIRONMENTS else DEFAULT_ENVIRONMENT


def api_prefix_for_environment(environment: str) -> str:
    return _API_PREFIXES[normalize_environment(environment)]


def get_nested(mapping: Mapping[str, Any] | None, path: tuple[str, ...]) -> Any:
    """Safely fetch a nested mapping value for a tuple path."""
    current: Any = mapping
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _clean_candidate(value: Any) -> str:
    if value is None:
        return ""
    out = str(value).strip()
    return out


def _resolve_value(candidates: list[tuple[str, Any]]) -> tuple[str, str]:
    for source, raw in candidates:
        value = _clean_candidate(raw)
        if value:
            return value, source
    return "", "missing"


def resolve_api_config(
    session: Mapping[str, Any] | None,
    secrets: Mapping[str, Any] | None,
    env: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Resolve threads API settings from session, secrets, and environment sources."""
    session_map = session if isinstance(session, Mapping) else {}
    secrets_map = secrets if isinstance(secrets, Mapping) else {}
    env_map = env if isinstance(env, Mapping) else {}

    base_url_raw, base_source = _resolve_value(
        [
            ("session", session_map.get("threads_api_base_url")),
            ("secrets", secrets_map.get("THREADS_API_BASE_URL")),
            ("secrets", get_nested(secrets_map, ("threads_api", "base_url"))),
            ("env", env_map.get("THREADS_API_BASE_URL")),
        ]
    )
    api_key, key_source = _resolve_value(
        [
            ("session", session_map.get("threads_api_key")),
            ("secrets", secrets_map.get("THREADS_API_KEY")),
            ("secrets", get_nested(secrets_map, ("threads_api", "api_key"))),
            ("env", env_map.get("THREADS_API_KEY")),
        ]
    )
    environment_raw, environment_source = _resolve_value(
        [
            ("session", session_map.get("threads_environment")),
            ("secrets", secrets_map.get("THREADS_ENVIRONMENT")),
            ("secrets", get_nested(secrets_map, ("threads_api", "environment"))),
            ("env", env_map.get("THREADS_ENVIRONMENT")),
        ]
    )

    return {
        "base_url": normalize_api_base_url(base_url_raw),
        "api_key": api_key,
        "environment": normalize_environment(environment_raw),
        "sources": {
            "base_url": base_source,
            "api_key": key_source,
            "environment": environment_source if environment_raw else "default",
        },
    }


def _env_number(env_map: Mapping[str, Any], key: str, default: float, cast: type) -> Any:
    raw = _clean_candidate(env_map.get(key))
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def resolve_fetch_settings(env: Mapping[str, Any] | None) -> dict[str, Any]:
    """Resolve HTTP and chunking knobs for the ingestion run."""
    env_map = env if isinstance(env, Mapping) else {}
    policy = _clean_candidate(env_map.get("THREADS_CHUNK_POLICY")).lower() or "day"
    if policy not in ("day", "daypart"):
        policy = "day"
    return {
        "http_timeout_s": max(1.0, _env_number(env_map, "THREADS_HTTP_TIMEOUT_S", 30.0, float)),
        "retry": max(0, _env_number(env_map, "THREADS_FETCH_RETRY", 2, int)),
        "backoff": max(0.0, _env_number(env_map, "THREADS_FETCH_BACKOFF_S", 0.5, float)),
        "chunk_policy": policy,
        "max_workers": max(1, _env_number(env_map, "THREADS_FETCH_WORKERS", 1, int)),
    }
