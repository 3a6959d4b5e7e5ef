"""Threads overview tab: filter controls, the filtered table and CSV export."""

from __future__ import annotations

import math

import streamlit as st

from threadscope.charts import daily_threads_chart
from threadscope.data_helpers import csv_bytes_any, init_session_state
from threadscope.models import ROLE_ASSISTANT, ROLE_USER
from threadscope.pipeline import PipelineSnapshot, ThreadPipeline
from threadscope.thread_filters import ThreadFilterCriteria
from threadscope.thread_table import build_thread_table, daily_thread_counts

PAGE_SIZE = 50


def _bound_input(label: str, value: float | None, key: str) -> str:
    return st.text_input(label, value="" if value is None else f"{value:g}", key=key, placeholder="any")


def _render_filters(snapshot: PipelineSnapshot) -> ThreadFilterCriteria:
    criteria = snapshot.criteria
    facets = snapshot.facets

    search_term = st.text_input(
        "Search threads",
        value=criteria.search_term,
        placeholder="Thread id, conversation id or first user message",
        key="threads_search_term",
    )

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        has_ui = st.checkbox("Has UI content", value=criteria.has_ui, key="threads_has_ui")
    with c2:
        errors_only = st.checkbox(
            f"Errors only ({facets.error_thread_count})", value=criteria.errors_only, key="threads_errors_only"
        )
    with c3:
        timeouts_only = st.checkbox(
            f"Timeouts only ({facets.timeout_thread_count})",
            value=criteria.timeouts_only,
            key="threads_timeouts_only",
        )
    with c4:
        topic_options = [""] + facets.topics
        selected_topic = st.selectbox(
            "Topic",
            options=topic_options,
            index=topic_options.index(criteria.selected_topic) if criteria.selected_topic in topic_options else 0,
            format_func=lambda t: t or "All topics",
            key="threads_topic",
        )

    tool_labels = {f"{t.name} ({t.count})": t.name for t in facets.tools}
    workflow_labels = {f"{w.name} ({w.count})": w.name for w in facets.workflows}
    t_col, w_col = st.columns(2)
    with t_col:
        picked_tools = st.multiselect(
            "Tools",
            options=list(tool_labels),
            default=[k for k, v in tool_labels.items() if v in criteria.selected_tools],
            key="threads_tools",
        )
    with w_col:
        picked_workflows = st.multiselect(
            "Workflows",
            options=list(workflow_labels),
            default=[k for k, v in workflow_labels.items() if v in criteria.selected_workflows],
            key="threads_workflows",
        )

    with st.expander("Message search and numeric ranges", expanded=False):
        m1, m2 = st.columns([1, 2])
        with m1:
            message_search_enabled = st.checkbox(
                "Search inside messages", value=criteria.message_search_enabled, key="threads_msg_search_on"
            )
            roles = st.multiselect(
                "Roles",
                options=[ROLE_USER, ROLE_ASSISTANT],
                default=sorted(criteria.message_roles),
                key="threads_msg_roles",
            )
        with m2:
            message_search_term = st.text_input(
                "Message text", value=criteria.message_search_term, key="threads_msg_search_term"
            )

        r1, r2, r3 = st.columns(3)
        with r1:
            min_messages = _bound_input("Min messages", criteria.min_messages, "threads_min_messages")
            max_messages = _bound_input("Max messages", criteria.max_messages, "threads_max_messages")
        with r2:
            min_duration = _bound_input("Min duration (s)", criteria.min_duration, "threads_min_duration")
            max_duration = _bound_input("Max duration (s)", criteria.max_duration, "threads_max_duration")
        with r3:
            min_response = _bound_input("Min response time (s)", criteria.min_response_time, "threads_min_rt")
            max_response = _bound_input("Max response time (s)", criteria.max_response_time, "threads_max_rt")

    return ThreadFilterCriteria(
        search_term=search_term.strip(),
        has_ui=has_ui,
        errors_only=errors_only,
        timeouts_only=timeouts_only,
        selected_topic=selected_topic,
        selected_tools=frozenset(tool_labels[k] for k in picked_tools),
        selected_workflows=frozenset(workflow_labels[k] for k in picked_workflows),
        message_search_enabled=message_search_enabled,
        message_search_term=message_search_term,
        message_roles=frozenset(roles),
        min_messages=min_messages,
        max_messages=max_messages,
        min_duration=min_duration,
        max_duration=max_duration,
        min_response_time=min_response,
        max_response_time=max_response,
    )


def render(pipeline: ThreadPipeline) -> None:
    init_session_state({"threads_page": 1})

    snapshot = pipeline.snapshot()
    if not snapshot.total_threads:
        if snapshot.message:
            st.info(snapshot.message)
        else:
            st.info("Fetch threads or upload a JSON file in the sidebar first")
        return

    st.subheader("🧵 Threads")

    criteria = _render_filters(snapshot)
    if criteria != snapshot.criteria:
        pipeline.set_criteria(criteria)
        st.session_state["threads_page"] = 1
        snapshot = pipeline.snapshot()

    threads = snapshot.threads
    active = snapshot.criteria.active_filter_count
    st.caption(
        f"Showing {len(threads):,} of {snapshot.total_threads:,} threads"
        + (f" · {active} active filter{'s' if active != 1 else ''}" if active else "")
    )

    if not threads:
        st.warning("No threads match the current filters.")
        return

    table = build_thread_table(threads, pipeline.categorize)

    chart = daily_thread_counts(threads)
    daily = daily_threads_chart(chart)
    if daily is not None:
        st.altair_chart(daily, use_container_width=True)

    pages = max(1, math.ceil(len(table) / PAGE_SIZE))
    page = int(st.session_state.get("threads_page") or 1)
    page = min(max(page, 1), pages)
    st.session_state["threads_page"] = page
    if pages > 1:
        page = int(st.number_input("Page", min_value=1, max_value=pages, step=1, key="threads_page"))
        st.caption(f"Page {page} of {pages}")

    offset = (page - 1) * PAGE_SIZE
    st.dataframe(
        table.iloc[offset : offset + PAGE_SIZE],
        use_container_width=True,
        hide_index=True,
    )

    st.download_button(
        label="⬇️ Download filtered threads (csv)",
        data=csv_bytes_any(table.to_dict("records")),
        file_name="threads_filtered.csv",
        mime="text/csv",
        key="threads_csv_download",
    )
