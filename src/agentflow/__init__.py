"""agentflow - Agentic workflow framework for free and local LLMs.

Turn loop with skill routing, isolated subagents with bounded concurrency,
token and cost estimation, and conversation compaction.
"""

from .agents import AgentContext, AgentRunner, CircuitBreaker, RunResult, create_agent_context, run_agent
from .config import Config, ProviderConfig, load_config
from .errors import AgentFlowError, ProviderError
from .types import ChatOptions, ContinueDecision, Message, Provider, Role

__all__ = [
	"AgentContext",
	"AgentRunner",
	"CircuitBreaker",
	"RunResult",
	"create_agent_context",
	"run_agent",
	"Config",
	"ProviderConfig",
	"load_config",
	"AgentFlowError",
	"ProviderError",
	"ChatOptions",
	"ContinueDecision",
	"Message",
	"Provider",
	"Role",
]
