"""Subagents module - Bounded pool of isolated delegated agents."""

from .pool import SubagentPool, SubagentTask, TaskStatus, config_provider_factory

__all__ = [
	"SubagentPool",
	"SubagentTask",
	"TaskStatus",
	"config_provider_factory",
]
