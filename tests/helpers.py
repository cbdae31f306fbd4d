"""Shared test fixtures and helpers for agentflow tests."""

import asyncio
from pathlib import Path
from typing import Optional

from agentflow.config import Config, ProviderConfig
from agentflow.skills.loader import Skill
from agentflow.types import ChatOptions, Message


class FakeProvider:
	"""Scripted provider.

	Replies are returned in order (the last one repeats). Each reply is
	streamed in small chunks. If `error` is set, chat() raises it. If `gate`
	is set, chat() blocks until the event is set, which lets tests hold
	subagents in the running state.
	"""

	def __init__(
		self,
		replies: Optional[list[str]] = None,
		error: Optional[Exception] = None,
		gate: Optional[asyncio.Event] = None,
		name: str = "fake",
		chunk_size: int = 3,
	):
		self.name = name
		self.replies = list(replies or ["ok"])
		self.error = error
		self.gate = gate
		self.chunk_size = chunk_size
		self.calls: list[tuple[list[Message], Optional[ChatOptions]]] = []

	async def chat(self, messages, options=None):
		self.calls.append((list(messages), options))
		index = min(len(self.calls), len(self.replies)) - 1
		if self.gate is not None:
			await self.gate.wait()
		if self.error is not None:
			raise self.error
		reply = self.replies[index]
		for i in range(0, len(reply), self.chunk_size):
			yield reply[i:i + self.chunk_size]

	async def list_models(self) -> list[str]:
		return ["fake-model"]


class ChunkRecorder:
	"""Streaming sink that records every chunk."""

	def __init__(self):
		self.chunks: list[str] = []

	def __call__(self, chunk: str) -> None:
		self.chunks.append(chunk)

	@property
	def text(self) -> str:
		return "".join(self.chunks)


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temp directory with an ollama provider."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		providers={"ollama": ProviderConfig(base_url="http://localhost:11434", models=["llama3.3:70b"])},
	)
	for key, value in overrides.items():
		setattr(config, key, value)
	return config


def make_skill(
	name: str = "review",
	description: str = "Review code for bugs",
	template: str = "Review this:\n{{input}}",
	trigger: Optional[str] = None,
) -> Skill:
	return Skill(name=name, description=description, template=template, trigger=trigger)


def conversation(*pairs: tuple[str, str]) -> list[Message]:
	"""Build messages from (role, content) pairs."""
	builders = {"system": Message.system, "user": Message.user, "assistant": Message.assistant}
	return [builders[role](content) for role, content in pairs]
