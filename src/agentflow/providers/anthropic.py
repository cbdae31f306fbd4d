"""Anthropic provider - Messages API with server-sent events."""

import logging
import os
from typing import AsyncIterator, Optional

from ..config import ProviderConfig
from ..errors import ProviderError
from ..types import ChatOptions, Message, Role
from .streaming import SessionFactory, anthropic_delta, default_session_factory, stream_chat

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MODELS = ["claude-sonnet-4-20250514"]
API_VERSION = "2023-06-01"


class AnthropicProvider:
	"""
	Streams from the Anthropic Messages API.

	The first system message is sent in the top-level "system" field; the
	API does not accept system turns in the message list.
	"""

	name = "anthropic"

	def __init__(
		self,
		config: ProviderConfig,
		session_factory: SessionFactory = default_session_factory,
	):
		self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
		self.api_key = config.api_key or os.environ.get("ANTHROPIC_API_KEY")
		self.models = list(config.models) or list(DEFAULT_MODELS)
		self._session_factory = session_factory

	def build_body(self, messages: list[Message], options: ChatOptions) -> dict:
		model = options.model or self.models[0]
		system = next((m for m in messages if m.role == Role.SYSTEM), None)

		body = {
			"model": model,
			"max_tokens": options.max_tokens if options.max_tokens is not None else 4096,
			"stream": True,
			"messages": [m.to_dict() for m in messages if m.role != Role.SYSTEM],
		}
		if system:
			body["system"] = system.content
		if options.temperature is not None:
			body["temperature"] = options.temperature
		if options.stop:
			body["stop_sequences"] = options.stop
		return body

	def headers(self) -> dict[str, str]:
		if not self.api_key:
			raise ProviderError(self.name, "API key required (set ANTHROPIC_API_KEY)")
		return {
			"Content-Type": "application/json",
			"x-api-key": self.api_key,
			"anthropic-version": API_VERSION,
		}

	async def chat(
		self,
		messages: list[Message],
		options: Optional[ChatOptions] = None,
	) -> AsyncIterator[str]:
		headers = self.headers()
		body = self.build_body(messages, options or ChatOptions())
		logger.debug(f"Anthropic chat: model={body['model']} messages={len(body['messages'])}")
		async for chunk in stream_chat(
			self._session_factory,
			f"{self.base_url}/v1/messages",
			headers,
			body,
			anthropic_delta,
			self.name,
		):
			yield chunk

	async def list_models(self) -> list[str]:
		return list(self.models)
