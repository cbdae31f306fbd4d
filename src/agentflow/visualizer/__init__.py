"""Visualizer package - Rich terminal views for context, cost and sessions."""

from .context_view import context_status_text, render_context
from .costs_view import render_costs
from .session_list import render_session_list
from .utils import UsageLevel, format_number, usage_level

__all__ = [
	"UsageLevel",
	"usage_level",
	"format_number",
	"render_context",
	"context_status_text",
	"render_costs",
	"render_session_list",
]
