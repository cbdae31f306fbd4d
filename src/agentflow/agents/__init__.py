"""Agents module - Conversation context and the turn loop."""

from .context import (
	AgentContext,
	add_message,
	create_agent_context,
	get_conversation_history,
	update_progress,
)
from .runner import AgentRunner, CircuitBreaker, RunResult, chat, run_agent

__all__ = [
	"AgentContext",
	"create_agent_context",
	"add_message",
	"update_progress",
	"get_conversation_history",
	"AgentRunner",
	"CircuitBreaker",
	"RunResult",
	"run_agent",
	"chat",
]
