import logging
import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import streamlit as st

from threadscope import ThreadPipeline, ValidationError, make_threads_fetcher
from threadscope.config_utils import ENVIRONMENTS, resolve_api_config, resolve_fetch_settings
from threadscope.data_helpers import init_session_state, maybe_load_dotenv
from threadscope.preferences import DEFAULT_PREFERENCES_PATH, PreferenceStore
from tabs import render_threads_overview, render_tool_workflow_summary

logger = logging.getLogger("threadscope")


def _read_secrets() -> dict[str, Any]:
    try:
        return dict(st.secrets)
    except Exception:
        # No secrets.toml configured.
        return {}


def _pipeline_for(environment: str, api_cfg: dict[str, Any], settings: dict[str, Any]) -> ThreadPipeline:
    """Reuse the session's pipeline unless the environment or credentials changed."""
    fingerprint = (environment, api_cfg["base_url"], api_cfg["api_key"], settings["chunk_policy"])
    existing = st.session_state.get("threads_pipeline")
    if isinstance(existing, ThreadPipeline) and st.session_state.get("threads_pipeline_key") == fingerprint:
        return existing

    fetcher = None
    if api_cfg["base_url"]:
        fetcher = make_threads_fetcher(
            base_url=api_cfg["base_url"],
            api_key=api_cfg["api_key"],
            environment=environment,
            retry=settings["retry"],
            backoff=settings["backoff"],
            http_timeout_s=settings["http_timeout_s"],
            debug_log=st.session_state.setdefault("fetch_debug_log", []),
        )
    store = existing.store if isinstance(existing, ThreadPipeline) and existing.store.source == "upload" else None
    if isinstance(existing, ThreadPipeline):
        existing.close()
    pipeline = ThreadPipeline(
        fetcher,
        store=store,
        preferences=PreferenceStore(
            os.getenv("THREADS_PREFERENCES_PATH") or DEFAULT_PREFERENCES_PATH,
            environment=environment,
        ),
        policy=settings["chunk_policy"],
        max_workers=settings["max_workers"],
    )
    st.session_state["threads_pipeline"] = pipeline
    st.session_state["threads_pipeline_key"] = fingerprint
    return pipeline


def _default_dates(pipeline: ThreadPipeline) -> tuple[date, date]:
    saved = pipeline.saved_date_range()
    if saved:
        try:
            start = datetime.fromisoformat(saved["start"]).date()
            end = datetime.fromisoformat(saved["end"]).date()
            # Saved ends are exclusive midnights.
            return start, max(start, end - timedelta(days=1))
        except ValueError:
            logger.debug("Ignoring saved date range %r", saved)
    today = date.today()
    return today - timedelta(days=7), today


def main() -> None:
    st.set_page_config(page_title="Threadscope", layout="wide")

    maybe_load_dotenv()
    init_session_state({"fetch_debug_log": [], "fetch_debug": {}})

    with st.sidebar:
        st.title("🧵🔎 Threadscope")
        st.caption("Fetch, filter and analyze chat agent threads.")

        with st.expander("🔐 Credentials", expanded=False):
            base_url_in = st.text_input("THREADS_API_BASE_URL", value=os.getenv("THREADS_API_BASE_URL", ""))
            api_key_in = st.text_input(
                "THREADS_API_KEY",
                value=os.getenv("THREADS_API_KEY", ""),
                type="password",
            )

        st.markdown("**🌍 Environment**")
        resolved_env = resolve_api_config(None, _read_secrets(), os.environ)["environment"]
        environment = st.selectbox(
            "",
            options=list(ENVIRONMENTS),
            index=list(ENVIRONMENTS).index(resolved_env),
            label_visibility="collapsed",
        )

        api_cfg = resolve_api_config(
            {
                "threads_api_base_url": base_url_in,
                "threads_api_key": api_key_in,
                "threads_environment": environment,
            },
            _read_secrets(),
            os.environ,
        )
        settings = resolve_fetch_settings(os.environ)
        pipeline = _pipeline_for(environment, api_cfg, settings)

        st.markdown("**📅 Date range**")
        default_start, default_end = _default_dates(pipeline)
        start_date = st.date_input("Start date", value=default_start)
        end_date = st.date_input("End date", value=default_end)

        fetch_clicked = st.button("🚀 Fetch threads", type="primary", use_container_width=True)
        fetch_status = st.empty()

        st.markdown("---")
        uploaded = st.file_uploader("📤 Upload threads JSON", type=["json"], accept_multiple_files=True)
        upload_names = sorted(f.name for f in uploaded or [])
        if upload_names and st.session_state.get("threads_upload_names") != upload_names:
            try:
                count, upload_errors = pipeline.load_uploads([(f.name, f.getvalue()) for f in uploaded])
            except ValidationError as exc:
                st.error(str(exc))
            else:
                st.session_state["threads_upload_names"] = upload_names
                for err in upload_errors.values():
                    st.warning(err)
                st.success(f"Loaded {count} threads from {len(upload_names) - len(upload_errors)} file(s)")

        with st.expander("🔎 Fetch debug (threads API)", expanded=False):
            dbg = st.session_state.get("fetch_debug")
            if isinstance(dbg, dict) and dbg:
                st.json(dbg)
            else:
                st.caption("Fetch threads to populate request/response metadata.")

        if fetch_clicked:
            if not api_cfg["base_url"]:
                st.error("Missing THREADS_API_BASE_URL")
            else:
                # Inclusive end date: fetch up to the following midnight.
                start_dt = datetime.combine(start_date, time.min).replace(tzinfo=timezone.utc)
                end_dt = datetime.combine(end_date + timedelta(days=1), time.min).replace(tzinfo=timezone.utc)
                debug_log: list[dict[str, Any]] = st.session_state["fetch_debug_log"]
                debug_log.clear()
                progress_bar = fetch_status.progress(0.0, text="Fetching threads...")

                def on_progress(progress: Any) -> None:
                    if progress.total:
                        progress_bar.progress(
                            min(1.0, progress.current / progress.total),
                            text=f"Chunk {progress.current}/{progress.total}: {progress.label}",
                        )

                if pipeline.orchestrator is not None:
                    pipeline.orchestrator.on_progress = on_progress
                try:
                    result = pipeline.fetch_range(start_dt, end_dt)
                except ValidationError as exc:
                    fetch_status.error(str(exc))
                else:
                    st.session_state["fetch_debug"] = {
                        "sources": api_cfg["sources"],
                        "settings": settings,
                        "chunks": list(debug_log),
                        "threads": len(result.threads),
                        "failed_chunks": len(result.failed_chunks),
                    }
                    st.rerun()
                finally:
                    if pipeline.orchestrator is not None:
                        pipeline.orchestrator.on_progress = None

        snapshot = pipeline.snapshot()
        if snapshot.message:
            st.info(snapshot.message)
        if snapshot.total_threads:
            st.caption(f"{snapshot.total_threads:,} threads loaded ({snapshot.source})")

    tabs = st.tabs([
        "🧵 Threads",
        "🧰 Tools & workflows",
    ])

    with tabs[0]:
        render_threads_overview(pipeline)

    with tabs[1]:
        render_tool_workflow_summary(pipeline)


if __name__ == "__main__":
    main()
