"""Chart utilities for the Streamlit app."""

from __future__ import annotations

import altair as alt
import pandas as pd

from threadscope.models import ChunkStatus, ToolWithCount, WorkflowWithCount


def daily_threads_chart(daily_counts: pd.DataFrame) -> alt.Chart | None:
    """Create daily thread volume chart."""
    if daily_counts is None or not len(daily_counts):
        return None
    return (
        alt.Chart(daily_counts)
        .mark_line(point=True)
        .encode(
            x=alt.X("date:T", title="Date"),
            y=alt.Y("threads:Q", title="Threads"),
            tooltip=[
                alt.Tooltip("date:T", title="Date"),
                alt.Tooltip("threads:Q", title="Threads", format=","),
            ],
        )
        .properties(title="Threads per day")
    )


def _named_counts_frame(items: list[ToolWithCount] | list[WorkflowWithCount], label: str) -> pd.DataFrame:
    df = pd.DataFrame([{label: it.name, "threads": it.count} for it in items], columns=[label, "threads"])
    total = df["threads"].sum() if len(df) else 0
    df["percent"] = (df["threads"] / total * 100).round(1) if total else 0.0
    return df


def facet_bar_chart(
    items: list[ToolWithCount] | list[WorkflowWithCount],
    label: str = "tool",
    top_n: int = 20,
) -> alt.Chart | None:
    """Create a bar chart of threads per tool or workflow."""
    if not items:
        return None
    df = _named_counts_frame(items, label).sort_values("threads", ascending=False).head(top_n)
    title = label.capitalize()
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("threads:Q", title="Threads"),
            y=alt.Y(f"{label}:N", sort="-x", title=title),
            tooltip=[
                alt.Tooltip(f"{label}:N", title=title),
                alt.Tooltip("threads:Q", title="Threads"),
                alt.Tooltip("percent:Q", title="%", format=".1f"),
            ],
        )
        .properties(title=f"Threads per {label}")
    )


def chunk_status_chart(statuses: tuple[ChunkStatus, ...] | list[ChunkStatus]) -> alt.Chart | None:
    """Create a per-chunk bar chart colored by outcome."""
    if not statuses:
        return None
    df = pd.DataFrame(
        [
            {
                "index": s.index,
                "label": s.label,
                "outcome": s.outcome,
                "threads": s.threads_fetched,
                "status_code": s.status_code,
            }
            for s in statuses
        ]
    )
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("label:N", sort=alt.SortField("index"), title="Chunk"),
            y=alt.Y("threads:Q", title="Threads fetched"),
            color=alt.Color(
                "outcome:N",
                title="Outcome",
                scale=alt.Scale(domain=[ChunkStatus.SUCCESS, ChunkStatus.FAILURE], range=["#4c9a2a", "#d62728"]),
            ),
            tooltip=[
                alt.Tooltip("label:N", title="Chunk"),
                alt.Tooltip("outcome:N", title="Outcome"),
                alt.Tooltip("status_code:Q", title="Status"),
                alt.Tooltip("threads:Q", title="Threads"),
            ],
        )
        .properties(title="Chunk outcomes")
    )


def response_time_histogram(response_times: pd.Series) -> alt.Chart | None:
    """Create first-response time distribution histogram (zero means no response)."""
    values = response_times[response_times > 0] if len(response_times) else response_times
    if not len(values):
        return None
    df = pd.DataFrame({"response_time_seconds": values})
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("response_time_seconds:Q", bin=alt.Bin(maxbins=30), title="Response time (s)"),
            y=alt.Y("count():Q", title="Threads"),
            tooltip=[
                alt.Tooltip("response_time_seconds:Q", title="Response time (s)", bin=True),
                alt.Tooltip("count():Q", title="Threads"),
            ],
        )
        .properties(title="First response time distribution")
    )
