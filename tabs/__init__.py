"""Tab modules for the Streamlit app."""

from tabs.threads_overview import render as render_threads_overview
from tabs.tool_workflow_summary import render as render_tool_workflow_summary

__all__ = [
    "render_threads_overview",
    "render_tool_workflow_summary",
]
