"""
Agent Context - Immutable conversation state threaded through the turn loop.

Every update returns a new AgentContext; callers keep the returned value.
The messages tuple is the full, permanent log. get_conversation_history()
returns a bounded view of it for a single provider call.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from ..config import Config
from ..context.tokens import TokenEstimator
from ..skills.loader import Skill
from ..types import Message, Role

HISTORY_CHARS_PER_TOKEN = 4
DEFAULT_HISTORY_TOKENS = 8000


@dataclass(frozen=True)
class AgentContext:
	"""Conversation state for one agent or subagent."""
	config: Config
	messages: tuple[Message, ...] = ()
	task_progress: float = 0
	last_message: Optional[str] = None
	skills: tuple[Skill, ...] = field(default_factory=tuple)


def create_agent_context(config: Config, skills: Iterable[Skill] = ()) -> AgentContext:
	"""Create an empty context for a new conversation or subagent task."""
	return AgentContext(config=config, skills=tuple(skills))


def add_message(context: AgentContext, message: Message) -> AgentContext:
	"""Return a new context with the message appended."""
	return replace(
		context,
		messages=context.messages + (message,),
		last_message=message.content,
	)


def update_progress(context: AgentContext, progress: float) -> AgentContext:
	"""Return a new context with progress clamped to [0, 100]."""
	return replace(context, task_progress=min(100, max(0, progress)))


# Plain ceil(len / 4), no per-family ratio or overhead
HISTORY_ESTIMATOR = TokenEstimator(chars_per_token={}, default_ratio=HISTORY_CHARS_PER_TOKEN, overhead=0)


def get_conversation_history(
	context: AgentContext,
	max_tokens: int = DEFAULT_HISTORY_TOKENS,
	estimator: Optional[TokenEstimator] = None,
	model: str = "default",
) -> list[Message]:
	"""
	Window the conversation for a provider call.

	The first system message is always included and always placed first,
	whatever the budget. Non-system messages are then taken newest-first
	until the next one would exceed max_tokens, and returned in conversation
	order.

	Sizes come from estimator (HISTORY_ESTIMATOR by default) for model.
	"""
	estimator = estimator or HISTORY_ESTIMATOR

	def size(message: Message) -> int:
		return estimator.estimate_tokens(message.content, model)

	system_message = next((m for m in context.messages if m.role == Role.SYSTEM), None)
	total = size(system_message) if system_message else 0

	included: list[Message] = []
	for message in reversed(context.messages):
		if message.role == Role.SYSTEM:
			continue
		tokens = size(message)
		if total + tokens > max_tokens:
			break
		included.append(message)
		total += tokens

	included.reverse()
	if system_message:
		return [system_message, *included]
	return included
