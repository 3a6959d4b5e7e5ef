"""Threads API utilities: the fetch collaborator used by the ingestion run."""

import logging
import time as time_mod
from collections.abc import Callable
from datetime import datetime
from typing import Any

import requests

from threadscope.config_utils import api_prefix_for_environment, normalize_api_base_url
from threadscope.data_helpers import iso_utc
from threadscope.errors import TransportError
from threadscope.models import Thread, threads_from_envelopes

logger = logging.getLogger("threadscope.api")

ThreadsFetcher = Callable[[datetime, datetime], list[Thread]]


def get_api_headers(api_key: str | None) -> dict[str, str]:
    """Build request headers for the threads API."""
    headers = {"Content-Type": "application/json"}
    key = (api_key or "").strip()
    if key:
        headers["Authorization"] = f"Bearer {key}"
    return headers


def threads_endpoint(base_url: str, environment: str) -> str:
    return f"{normalize_api_base_url(base_url)}{api_prefix_for_environment(environment)}/thread"


def fetch_threads_in_range(
    *,
    base_url: str,
    headers: dict[str, str],
    from_iso: str,
    to_iso: str,
    environment: str = "staging",
    retry: int = 2,
    backoff: float = 0.5,
    http_timeout_s: float = 30.0,
    session: requests.Session | None = None,
    debug_out: dict[str, Any] | None = None,
) -> list[Thread]:
    """Fetch all threads created within ``[from_iso, to_iso)``.

    5xx responses and network errors are retried ``retry`` times with a linear
    backoff. Anything that still fails, any 4xx, and any malformed body raises
    TransportError.
    """
    url = threads_endpoint(base_url, environment)
    body = {"startTimestamp": from_iso, "endTimestamp": to_iso}
    http = session if session is not None else requests.Session()

    if isinstance(debug_out, dict):
        debug_out.clear()
        debug_out.update(
            {
                "url": url,
                "from_iso": from_iso,
                "to_iso": to_iso,
                "attempts": [],
                "stopped_early_reason": None,
            }
        )

    attempts = 0
    while True:
        t0 = time_mod.time()
        try:
            r = http.post(url, headers=headers, json=body, timeout=http_timeout_s)
        except requests.RequestException as exc:
            elapsed_s = time_mod.time() - t0
            is_timeout = isinstance(exc, requests.Timeout)
            if isinstance(debug_out, dict):
                debug_out["attempts"].append({"error": str(exc), "elapsed_s": float(elapsed_s)})
            if attempts < retry:
                attempts += 1
                logger.debug("Network error on %s, retry %d/%d: %s", url, attempts, retry, exc)
                time_mod.sleep(backoff * attempts)
                continue
            reason = f"Network error: {exc}"
            if isinstance(debug_out, dict):
                debug_out["stopped_early_reason"] = reason
            raise TransportError(reason, status_code=504 if is_timeout else None, endpoint=url) from exc

        elapsed_s = time_mod.time() - t0
        if isinstance(debug_out, dict):
            debug_out["attempts"].append(
                {"status_code": int(getattr(r, "status_code", 0) or 0), "elapsed_s": float(elapsed_s)}
            )
        if r.status_code < 400:
            break

        text_preview = str(getattr(r, "text", "") or "")
        if 500 <= r.status_code < 600 and attempts < retry:
            attempts += 1
            logger.debug("Threads API 5xx (status %s), retry %d/%d", r.status_code, attempts, retry)
            time_mod.sleep(backoff * attempts)
            continue

        resp_headers = getattr(r, "headers", None) or {}
        request_id = resp_headers.get("x-request-id") if hasattr(resp_headers, "get") else None
        reason = f"HTTP {r.status_code}: {text_preview[:500]}"
        if isinstance(debug_out, dict):
            debug_out["stopped_early_reason"] = reason
        raise TransportError(reason, status_code=int(r.status_code), endpoint=url, request_id=request_id)

    try:
        data = r.json()
    except ValueError as exc:
        raise TransportError("Threads API returned a non-JSON body", status_code=r.status_code, endpoint=url) from exc

    envelopes = data.get("threads") if isinstance(data, dict) else data
    if not isinstance(envelopes, list):
        raise TransportError("Threads API response has no 'threads' list", status_code=r.status_code, endpoint=url)

    threads = threads_from_envelopes(envelopes)
    if isinstance(debug_out, dict):
        debug_out["threads_returned"] = len(threads)
    return threads


def make_threads_fetcher(
    *,
    base_url: str,
    api_key: str,
    environment: str,
    retry: int = 2,
    backoff: float = 0.5,
    http_timeout_s: float = 30.0,
    debug_log: list[dict[str, Any]] | None = None,
) -> ThreadsFetcher:
    """Bind credentials and HTTP settings into a ``(start, end) -> threads`` callable."""
    headers = get_api_headers(api_key)
    session = requests.Session()

    def fetch(start: datetime, end: datetime) -> list[Thread]:
        chunk_debug: dict[str, Any] = {}
        try:
            return fetch_threads_in_range(
                base_url=base_url,
                headers=headers,
                from_iso=iso_utc(start),
                to_iso=iso_utc(end),
                environment=environment,
                retry=retry,
                backoff=backoff,
                http_timeout_s=http_timeout_s,
                session=session,
                debug_out=chunk_debug,
            )
        finally:
            if debug_log is not None:
                debug_log.append(chunk_debug)

    return fetch
