"""Ollama provider - Local models over the /api/chat NDJSON stream."""

import logging
from typing import AsyncIterator, Optional

from ..config import ProviderConfig
from ..errors import ProviderError
from ..types import ChatOptions, Message
from .streaming import SessionFactory, default_session_factory, fetch_json, ollama_delta, stream_chat

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaProvider:
	"""Streams chat completions from a local Ollama server."""

	name = "ollama"

	def __init__(
		self,
		config: ProviderConfig,
		session_factory: SessionFactory = default_session_factory,
	):
		self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
		self.models = list(config.models)
		self._session_factory = session_factory

	def build_body(self, messages: list[Message], options: ChatOptions) -> dict:
		model = options.model or (self.models[0] if self.models else None)
		if not model:
			raise ProviderError(self.name, "No model specified")

		return {
			"model": model,
			"messages": [m.to_dict() for m in messages],
			"stream": True,
			"options": {
				"temperature": options.temperature if options.temperature is not None else 0.7,
				"num_predict": options.max_tokens if options.max_tokens is not None else 4096,
				"stop": options.stop,
			},
		}

	async def chat(
		self,
		messages: list[Message],
		options: Optional[ChatOptions] = None,
	) -> AsyncIterator[str]:
		body = self.build_body(messages, options or ChatOptions())
		logger.debug(f"Ollama chat: model={body['model']} messages={len(messages)}")
		async for chunk in stream_chat(
			self._session_factory,
			f"{self.base_url}/api/chat",
			{"Content-Type": "application/json"},
			body,
			ollama_delta,
			self.name,
			sse=False,
		):
			yield chunk

	async def list_models(self) -> list[str]:
		"""Configured models, else whatever the server reports as pulled."""
		if self.models:
			return list(self.models)
		data = await fetch_json(self._session_factory, f"{self.base_url}/api/tags")
		if not isinstance(data, dict):
			return []
		return [m["name"] for m in data.get("models") or [] if "name" in m]
