"""Summary tab: facet counts, headline analytics and the chunk status report."""

from __future__ import annotations

import pandas as pd
import streamlit as st

from threadscope.charts import chunk_status_chart, facet_bar_chart, response_time_histogram
from threadscope.pipeline import ThreadPipeline
from threadscope.thread_table import build_thread_table, summarize_threads


def _render_chunk_statuses(pipeline: ThreadPipeline) -> None:
    statuses = pipeline.snapshot().final_chunk_statuses
    if not statuses:
        return
    failed = [s for s in statuses if not s.ok]
    st.markdown("**Chunk status**")
    if failed:
        st.warning(f"{len(failed)} of {len(statuses)} chunks failed; results may be incomplete.")
    else:
        st.success(f"All {len(statuses)} chunks fetched successfully.")

    chart = chunk_status_chart(statuses)
    if chart is not None:
        st.altair_chart(chart, use_container_width=True)

    st.dataframe(
        pd.DataFrame(
            [
                {
                    "chunk": s.index,
                    "range": s.label,
                    "outcome": s.outcome,
                    "status": s.status_code,
                    "threads": s.threads_fetched,
                    "error": s.error or "",
                }
                for s in statuses
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )


def render(pipeline: ThreadPipeline) -> None:
    snapshot = pipeline.snapshot()
    threads = list(pipeline.store.threads)

    _render_chunk_statuses(pipeline)

    if not threads:
        st.info("Fetch threads or upload a JSON file in the sidebar first")
        return

    st.subheader("🧰 Tools & workflows")

    summary = summarize_threads(threads)
    m1, m2, m3, m4, m5 = st.columns(5)
    m1.metric("Threads", f"{summary['total_threads']:,}")
    m2.metric("Messages", f"{summary['total_messages']:,}")
    m3.metric("Avg messages/thread", f"{summary['avg_messages_per_thread']:.1f}")
    m4.metric("Error threads", f"{snapshot.facets.error_thread_count:,}")
    m5.metric("Timeout threads", f"{snapshot.facets.timeout_thread_count:,}")

    st.caption(
        f"User messages: {summary['user_message_percent']:.1f}% · "
        f"Assistant messages: {summary['assistant_message_percent']:.1f}%"
    )

    c1, c2 = st.columns(2)
    with c1:
        chart = facet_bar_chart(snapshot.facets.tools, label="tool")
        if chart is not None:
            st.altair_chart(chart, use_container_width=True)
        else:
            st.caption("No tool calls detected.")
    with c2:
        chart = facet_bar_chart(snapshot.facets.workflows, label="workflow")
        if chart is not None:
            st.altair_chart(chart, use_container_width=True)
        else:
            st.caption("No workflows detected.")

    table = build_thread_table(threads, pipeline.categorize)
    hist = response_time_histogram(table["response_time_seconds"])
    if hist is not None:
        st.altair_chart(hist, use_container_width=True)

    n1, n2 = st.columns(2)
    with n1:
        st.markdown("**Namespaces**")
        st.dataframe(
            pd.DataFrame(sorted(summary["namespace_breakdown"].items()), columns=["namespace", "threads"]),
            use_container_width=True,
            hide_index=True,
        )
    with n2:
        st.markdown("**UI events**")
        st.dataframe(
            pd.DataFrame(sorted(summary["ui_event_counts"].items()), columns=["kind", "count"]),
            use_container_width=True,
            hide_index=True,
        )

    if snapshot.facets.topics:
        topic_counts = table["topic"].replace({"": None}).dropna().value_counts()
        st.markdown("**Topics**")
        st.dataframe(
            topic_counts.rename_axis("topic").reset_index(name="threads"),
            use_container_width=True,
            hide_index=True,
        )
