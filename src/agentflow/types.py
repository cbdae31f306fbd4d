"""
Core types shared across agentflow.

Defines the conversation message, chat options, the continuation decision
returned by caller policies, and the Provider protocol every backend
implements.
"""

import sys
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol, runtime_checkable


class Role(str, Enum):
	"""Author of a message."""
	SYSTEM = "system"
	USER = "user"
	ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
	"""A single immutable conversation message."""
	role: Role
	content: str

	@classmethod
	def system(cls, content: str) -> "Message":
		return cls(Role.SYSTEM, content)

	@classmethod
	def user(cls, content: str) -> "Message":
		return cls(Role.USER, content)

	@classmethod
	def assistant(cls, content: str) -> "Message":
		return cls(Role.ASSISTANT, content)

	def to_dict(self) -> dict[str, str]:
		"""Wire representation used by provider request bodies."""
		return {"role": self.role.value, "content": self.content}


@dataclass
class ChatOptions:
	"""Per-call options passed to Provider.chat."""
	model: Optional[str] = None
	temperature: Optional[float] = None
	max_tokens: Optional[int] = None
	stop: Optional[list[str]] = None


@dataclass(frozen=True)
class ContinueDecision:
	"""Answer from a continuation policy after each turn."""
	should_continue: bool
	reason: str = ""


@runtime_checkable
class Provider(Protocol):
	"""
	An LLM backend.

	chat() yields text fragments that concatenate into the final reply. The
	stream is finite and not restartable; transport failures raise
	ProviderError. Providers own any retry policy.
	"""

	name: str

	def chat(
		self,
		messages: list[Message],
		options: Optional[ChatOptions] = None,
	) -> AsyncIterator[str]:
		...

	async def list_models(self) -> list[str]:
		...


OnChunk = Callable[[str], None]


def print_chunk(chunk: str) -> None:
	"""Default streaming sink: write straight to stdout."""
	sys.stdout.write(chunk)
	sys.stdout.flush()


def silent_chunk(chunk: str) -> None:
	"""Streaming sink that discards output (used by subagents)."""
	return None
