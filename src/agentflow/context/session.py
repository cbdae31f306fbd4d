"""
Session Tracker - Token and cost accounting for one interactive session.

Combines a TokenTracker and a CostTracker with the message list they
describe, so the REPL can show usage, warn on budget and compact in place.
"""

import time
from dataclasses import dataclass
from typing import Iterable, Optional

from ..types import Message, Provider
from .compaction import CompactionResult, llm_compact, simple_compact
from .costs import CostTracker
from .tokens import TokenTracker


@dataclass
class SessionStats:
	"""Snapshot of a session's usage."""
	input_tokens: int
	output_tokens: int
	total_tokens: int
	context_used: int
	context_limit: int
	context_percentage: int
	current_cost: float
	is_local: bool
	budget_remaining: Optional[float]
	budget_warning: Optional[str]
	message_count: int
	duration: float


class SessionTracker:
	"""Tracks messages, tokens and spend for a chat session."""

	def __init__(
		self,
		model: str = "default",
		provider: str = "ollama",
		max_budget: Optional[float] = None,
	):
		self.model = model
		self.provider = provider
		self.max_budget = max_budget
		self.tokens = TokenTracker(model)
		self.costs = CostTracker(model, provider, max_budget)
		self.messages: list[Message] = []
		self._started = time.monotonic()

	def track_input(self, message: Message) -> int:
		self.messages.append(message)
		return self.tokens.track_input(message)

	def track_output(self, message: Message, input_tokens: Optional[int] = None) -> int:
		"""
		Track a finished assistant reply and charge the turn.

		The input charge is the prompt that produced the reply: input_tokens
		when given, else the estimate of every tracked message before it,
		since the history is resent on each turn.
		"""
		if input_tokens is None:
			input_tokens = self.tokens.estimator.estimate_conversation_tokens(self.messages, self.model)
		tokens = self.tokens.track_output(message)
		self.messages.append(message)
		self.costs.track(input_tokens, tokens)
		return tokens

	def track_streaming_chunk(self, chunk: str) -> int:
		return self.tokens.track_streaming_output(chunk)

	def finalize_turn(self, input_tokens: int, output_tokens: int) -> None:
		"""Charge a completed turn when the counts come from elsewhere."""
		self.costs.track(input_tokens, output_tokens)

	def get_stats(self) -> SessionStats:
		token_stats = self.tokens.get_stats()
		usage = self.tokens.get_context_usage(self.messages)
		cost_stats = self.costs.get_stats()
		return SessionStats(
			input_tokens=token_stats.total_input,
			output_tokens=token_stats.total_output,
			total_tokens=token_stats.total,
			context_used=usage.used,
			context_limit=usage.limit,
			context_percentage=usage.percentage,
			current_cost=cost_stats.current_cost,
			is_local=self.provider == "ollama",
			budget_remaining=cost_stats.budget_remaining,
			budget_warning=cost_stats.budget_warning,
			message_count=len(self.messages),
			duration=time.monotonic() - self._started,
		)

	def is_budget_exceeded(self) -> bool:
		return self.costs.is_budget_exceeded()

	def get_budget_warning(self) -> Optional[str]:
		return self.costs.get_budget_warning()

	def needs_compaction(self, threshold: float = 80) -> bool:
		return self.tokens.get_context_usage(self.messages).percentage >= threshold

	async def compact(
		self,
		focus: Optional[str] = None,
		provider: Optional[Provider] = None,
	) -> CompactionResult:
		"""Compact the tracked messages in place and return the result."""
		if provider is not None:
			result = await llm_compact(self.messages, provider, self.model, focus=focus)
		else:
			result = simple_compact(self.messages, focus=focus, model=self.model)
		self.messages = list(result.messages)
		return result

	def set_messages(self, messages: Iterable[Message]) -> None:
		self.messages = list(messages)

	def set_model(self, model: str, provider: Optional[str] = None) -> None:
		self.model = model
		if provider:
			self.provider = provider
		self.tokens.set_model(model)
		self.costs.set_model(model, provider)

	def set_budget(self, max_budget: Optional[float]) -> None:
		self.max_budget = max_budget
		self.costs.set_budget(max_budget)

	def reset(self) -> None:
		self.tokens.reset()
		self.costs.reset()
		self.messages = []
		self._started = time.monotonic()
