"""
Token Estimation - Approximate token counts for context tracking.

These counts are a character-based heuristic, not a tokenizer: text length is
divided by a per-model-family chars-per-token ratio (4 for every family we
know), rounded up, plus a flat 10% overhead for special tokens and formatting.
Real counts for a given model will differ; use the numbers for budgeting and
compaction decisions, never for billing reconciliation.

The ratio and context-window tables live on TokenEstimator so a different
strategy can be swapped in without touching callers.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..types import Message

MESSAGE_ROLE_OVERHEAD = 4
CONVERSATION_OVERHEAD = 3
DEFAULT_CONTEXT_LIMIT = 8192
DEFAULT_CHARS_PER_TOKEN = 4.0

CHARS_PER_TOKEN: dict[str, float] = {
	"gpt-4": 4,
	"gpt-3.5": 4,
	"claude": 4,
	"anthropic": 4,
	"llama": 4,
	"mistral": 4,
	"mixtral": 4,
}

MODEL_CONTEXT_LIMITS: dict[str, int] = {
	# GPT models
	"gpt-4": 8192,
	"gpt-4-32k": 32768,
	"gpt-4-turbo": 128000,
	"gpt-4o": 128000,
	"gpt-3.5-turbo": 16385,
	# Claude models
	"claude-3-opus": 200000,
	"claude-3-sonnet": 200000,
	"claude-3-haiku": 200000,
	"claude-3.5-sonnet": 200000,
	"claude-sonnet-4": 200000,
	"claude-opus-4": 200000,
	# Llama models
	"llama3.3:70b": 131072,
	"llama3.3": 131072,
	"llama3.2": 128000,
	"llama3.1": 128000,
	"llama3": 8192,
	"llama2": 4096,
	"codellama": 16384,
	# Mistral models
	"mistral": 32768,
	"mixtral": 32768,
	"mistral-large": 128000,
	# Groq models
	"llama-3.3-70b-versatile": 131072,
	"llama-3.1-70b-versatile": 131072,
	"mixtral-8x7b-32768": 32768,
}


def best_key_match(name: str, table: Iterable[str]) -> str | None:
	"""
	Pick the table key that best matches a model name.

	An exact key wins; otherwise the longest key contained in the name;
	otherwise the shortest key that contains the name. Lowercased throughout.
	"""
	name = name.lower()
	keys = list(table)
	if name in keys:
		return name

	contained = [k for k in keys if k in name]
	if contained:
		return max(contained, key=len)

	containing = [k for k in keys if name and name in k]
	if containing:
		return min(containing, key=len)

	return None


class TokenEstimator:
	"""Heuristic token counter parameterised by ratio and context tables."""

	def __init__(
		self,
		chars_per_token: dict[str, float] | None = None,
		context_limits: dict[str, int] | None = None,
		default_ratio: float = DEFAULT_CHARS_PER_TOKEN,
		default_limit: int = DEFAULT_CONTEXT_LIMIT,
		overhead: float = 0.1,
	):
		self.chars_per_token = chars_per_token if chars_per_token is not None else dict(CHARS_PER_TOKEN)
		self.context_limits = context_limits if context_limits is not None else dict(MODEL_CONTEXT_LIMITS)
		self.default_ratio = default_ratio
		self.default_limit = default_limit
		self.overhead = overhead

	def ratio_for(self, model: str) -> float:
		model_lower = model.lower()
		for family, ratio in self.chars_per_token.items():
			if family in model_lower:
				return ratio
		return self.default_ratio

	def estimate_tokens(self, text: str, model: str = "default") -> int:
		if not text:
			return 0
		base = math.ceil(len(text) / self.ratio_for(model))
		return base + math.ceil(base * self.overhead)

	def estimate_message_tokens(self, message: Message, model: str = "default") -> int:
		return self.estimate_tokens(message.content, model) + MESSAGE_ROLE_OVERHEAD

	def estimate_conversation_tokens(self, messages: Iterable[Message], model: str = "default") -> int:
		total = sum(self.estimate_message_tokens(m, model) for m in messages)
		return total + CONVERSATION_OVERHEAD

	def context_limit(self, model: str) -> int:
		key = best_key_match(model, self.context_limits)
		if key is None:
			return self.default_limit
		return self.context_limits[key]


default_estimator = TokenEstimator()


def estimate_tokens(text: str, model: str = "default") -> int:
	"""Estimate tokens for a string (heuristic, see module docstring)."""
	return default_estimator.estimate_tokens(text, model)


def estimate_message_tokens(message: Message, model: str = "default") -> int:
	"""Estimate tokens for a message, including a fixed role overhead."""
	return default_estimator.estimate_message_tokens(message, model)


def estimate_conversation_tokens(messages: Iterable[Message], model: str = "default") -> int:
	"""Estimate tokens for a whole conversation, including start/end overhead."""
	return default_estimator.estimate_conversation_tokens(messages, model)


def get_context_limit(model: str) -> int:
	"""Context window for a model by best key match, else 8192."""
	return default_estimator.context_limit(model)


@dataclass
class MessageTokens:
	"""One tracked message (content truncated for debugging)."""
	role: str
	content: str
	tokens: int
	timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SessionTokens:
	"""Token totals for a session."""
	total_input: int
	total_output: int
	total: int
	message_breakdown: list[MessageTokens] = field(default_factory=list)


@dataclass
class ContextUsage:
	"""How much of a model's context window a conversation occupies."""
	used: int
	limit: int
	percentage: int


class TokenTracker:
	"""Accumulates input/output token estimates for a session."""

	def __init__(self, model: str = "default", estimator: TokenEstimator | None = None):
		self.model = model
		self.estimator = estimator or default_estimator
		self._messages: list[MessageTokens] = []
		self._total_input = 0
		self._total_output = 0

	def _record(self, message: Message) -> int:
		tokens = self.estimator.estimate_message_tokens(message, self.model)
		self._messages.append(MessageTokens(
			role=message.role.value,
			content=message.content[:100],
			tokens=tokens,
		))
		return tokens

	def track_input(self, message: Message) -> int:
		"""Track a user or system message."""
		tokens = self._record(message)
		self._total_input += tokens
		return tokens

	def track_output(self, message: Message) -> int:
		"""Track an assistant message."""
		tokens = self._record(message)
		self._total_output += tokens
		return tokens

	def track_streaming_output(self, chunk: str) -> int:
		tokens = self.estimator.estimate_tokens(chunk, self.model)
		self._total_output += tokens
		return tokens

	def get_stats(self) -> SessionTokens:
		return SessionTokens(
			total_input=self._total_input,
			total_output=self._total_output,
			total=self._total_input + self._total_output,
			message_breakdown=list(self._messages),
		)

	def get_context_usage(self, messages: Iterable[Message]) -> ContextUsage:
		used = self.estimator.estimate_conversation_tokens(messages, self.model)
		limit = self.estimator.context_limit(self.model)
		return ContextUsage(used=used, limit=limit, percentage=round(used / limit * 100))

	def set_model(self, model: str) -> None:
		self.model = model

	def reset(self) -> None:
		"""Clear all tracked messages and totals."""
		self._messages = []
		self._total_input = 0
		self._total_output = 0
