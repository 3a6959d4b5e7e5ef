"""Tests for the pandas thread tables, summary analytics and charts."""

from __future__ import annotations

import unittest

import altair as alt
import pandas as pd

from threadscope.charts import chunk_status_chart, daily_threads_chart, facet_bar_chart, response_time_histogram
from threadscope.data_helpers import csv_bytes_any
from threadscope.models import ChunkStatus, Thread, ToolWithCount
from threadscope.thread_table import (
    THREAD_TABLE_COLUMNS,
    build_thread_table,
    daily_thread_counts,
    parse_thread_id,
    summarize_threads,
)


def _threads() -> list[Thread]:
    return [
        Thread.from_dict(
            {
                "id": "hotel/abc",
                "conversationId": "c1",
                "createdAt": "2024-01-01T08:00:00Z",
                "messages": [
                    {"id": "1", "role": "user", "createdAt": "2024-01-01T08:00:00Z", "content": "Parkplatz?"},
                    {"id": "2", "role": "system", "content": [{"kind": "text", "text": "Using tool `maps`"}]},
                    {
                        "id": "3",
                        "role": "assistant",
                        "createdAt": "2024-01-01T08:00:04Z",
                        "content": [{"kind": "ui", "ui": {"kind": "map"}}, {"kind": "text", "text": "Hier"}],
                    },
                ],
            }
        ),
        Thread.from_dict(
            {
                "id": "plain-id",
                "conversationId": "c2",
                "createdAt": "2024-01-01T20:00:00Z",
                "messages": [{"id": "1", "role": "user", "content": "hallo"}],
            }
        ),
        Thread.from_dict({"id": "hotel/x/y", "conversationId": "c2", "createdAt": "2024-01-03T00:00:00Z"}),
    ]


class TestParseThreadId(unittest.TestCase):
    def test_namespaced(self):
        parsed = parse_thread_id("hotel/x/y")
        self.assertEqual((parsed.namespace, parsed.id, parsed.full), ("hotel", "x/y", "hotel/x/y"))

    def test_without_namespace(self):
        self.assertEqual(parse_thread_id("plain").namespace, "unknown")


class TestThreadTable(unittest.TestCase):
    def test_rows(self):
        df = build_thread_table(_threads(), categorize=lambda t: "Parkplätze/Parking" if t.id == "hotel/abc" else None)

        self.assertEqual(list(df.columns), THREAD_TABLE_COLUMNS)
        self.assertEqual(len(df), 3)
        row = df.iloc[0]
        self.assertEqual(row["namespace"], "hotel")
        self.assertEqual(row["short_id"], "abc")
        self.assertEqual(row["message_count"], 2)
        self.assertEqual(row["ui_count"], 1)
        self.assertEqual(row["response_time_seconds"], 4)
        self.assertEqual(row["first_user_text"], "Parkplatz?")
        self.assertEqual(row["topic"], "Parkplätze/Parking")
        self.assertEqual(df.iloc[1]["topic"], "")

    def test_empty(self):
        df = build_thread_table([], categorize=lambda t: None)
        self.assertTrue(df.empty)
        self.assertEqual(list(df.columns), THREAD_TABLE_COLUMNS)

    def test_csv_export(self):
        df = build_thread_table(_threads(), categorize=lambda t: None)
        data = csv_bytes_any(df.to_dict("records"))
        header = data.decode("utf-8").splitlines()[0]
        self.assertIn("thread_id", header)
        self.assertIn("first_user_text", header)


class TestDailyCounts(unittest.TestCase):
    def test_counts_per_day(self):
        df = daily_thread_counts(_threads())
        self.assertEqual(df["threads"].tolist(), [2, 1])
        self.assertEqual(df["date"].iloc[0], pd.Timestamp("2024-01-01"))

    def test_empty(self):
        self.assertTrue(daily_thread_counts([]).empty)


class TestSummary(unittest.TestCase):
    def test_summary(self):
        s = summarize_threads(_threads())
        self.assertEqual(s["total_threads"], 3)
        self.assertEqual(s["total_conversations"], 2)
        self.assertEqual(s["total_messages"], 3)
        self.assertAlmostEqual(s["avg_messages_per_thread"], 1.0)
        self.assertAlmostEqual(s["user_message_percent"], 200 / 3)
        self.assertEqual(s["namespace_breakdown"], {"hotel": 2, "unknown": 1})
        self.assertEqual(s["ui_event_counts"], {"map": 1})

    def test_empty_summary(self):
        s = summarize_threads([])
        self.assertEqual(s["total_threads"], 0)
        self.assertEqual(s["avg_messages_per_thread"], 0.0)


class TestCharts(unittest.TestCase):
    def test_charts_build(self):
        self.assertIsInstance(daily_threads_chart(daily_thread_counts(_threads())), alt.Chart)
        self.assertIsInstance(facet_bar_chart([ToolWithCount("maps", 2)], label="tool"), alt.Chart)
        statuses = (
            ChunkStatus(index=1, label="2024-01-01 00:00-24:00", outcome=ChunkStatus.FAILURE, status_code=500),
            ChunkStatus(index=2, label="2024-01-02 00:00-24:00", outcome=ChunkStatus.SUCCESS, threads_fetched=3),
        )
        self.assertIsInstance(chunk_status_chart(statuses), alt.Chart)
        self.assertIsInstance(response_time_histogram(pd.Series([0, 3, 5])), alt.Chart)

    def test_charts_empty(self):
        self.assertIsNone(daily_threads_chart(pd.DataFrame(columns=["date", "threads"])))
        self.assertIsNone(facet_bar_chart([]))
        self.assertIsNone(chunk_status_chart(()))
        self.assertIsNone(response_time_histogram(pd.Series([0, 0])))


if __name__ == "__main__":
    unittest.main()
