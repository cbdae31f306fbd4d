"""
OpenAI-compatible providers - OpenAI, Groq and Together AI.

All three speak the same /chat/completions SSE protocol and differ only in
base URL and API key variable. The request plumbing is shared through the
module functions below; each backend is its own small class.
"""

import logging
import os
from typing import AsyncIterator, Optional

from ..config import ProviderConfig
from ..errors import ProviderError
from ..types import ChatOptions, Message
from .streaming import SessionFactory, default_session_factory, fetch_json, openai_delta, stream_chat

logger = logging.getLogger(__name__)


def build_chat_body(name: str, models: list[str], messages: list[Message], options: ChatOptions) -> dict:
	model = options.model or (models[0] if models else None)
	if not model:
		raise ProviderError(name, "No model specified")

	body = {
		"model": model,
		"messages": [m.to_dict() for m in messages],
		"temperature": options.temperature if options.temperature is not None else 0.7,
		"max_tokens": options.max_tokens if options.max_tokens is not None else 4096,
		"stream": True,
	}
	if options.stop:
		body["stop"] = options.stop
	return body


def auth_headers(api_key: Optional[str]) -> dict[str, str]:
	headers = {"Content-Type": "application/json"}
	if api_key:
		headers["Authorization"] = f"Bearer {api_key}"
	return headers


async def stream_completions(
	name: str,
	base_url: str,
	api_key: Optional[str],
	models: list[str],
	messages: list[Message],
	options: Optional[ChatOptions],
	session_factory: SessionFactory,
) -> AsyncIterator[str]:
	body = build_chat_body(name, models, messages, options or ChatOptions())
	logger.debug(f"{name} chat: model={body['model']} messages={len(messages)}")
	async for chunk in stream_chat(
		session_factory,
		f"{base_url}/chat/completions",
		auth_headers(api_key),
		body,
		openai_delta,
		name,
	):
		yield chunk


async def list_remote_models(
	base_url: str,
	api_key: Optional[str],
	models: list[str],
	session_factory: SessionFactory,
) -> list[str]:
	if models:
		return list(models)
	data = await fetch_json(session_factory, f"{base_url}/models", auth_headers(api_key))
	if not isinstance(data, dict):
		return []
	return [m["id"] for m in data.get("data") or [] if "id" in m]


class OpenAIProvider:
	"""OpenAI Chat Completions."""

	name = "openai"
	default_base_url = "https://api.openai.com/v1"
	api_key_env = "OPENAI_API_KEY"

	def __init__(
		self,
		config: ProviderConfig,
		session_factory: SessionFactory = default_session_factory,
	):
		self.base_url = (config.base_url or self.default_base_url).rstrip("/")
		self.api_key = config.api_key or os.environ.get(self.api_key_env)
		self.models = list(config.models)
		self._session_factory = session_factory

	def chat(self, messages: list[Message], options: Optional[ChatOptions] = None) -> AsyncIterator[str]:
		return stream_completions(
			self.name, self.base_url, self.api_key, self.models,
			messages, options, self._session_factory,
		)

	async def list_models(self) -> list[str]:
		return await list_remote_models(self.base_url, self.api_key, self.models, self._session_factory)


class GroqProvider:
	"""Groq's OpenAI-compatible endpoint."""

	name = "groq"
	default_base_url = "https://api.groq.com/openai/v1"
	api_key_env = "GROQ_API_KEY"

	def __init__(
		self,
		config: ProviderConfig,
		session_factory: SessionFactory = default_session_factory,
	):
		self.base_url = (config.base_url or self.default_base_url).rstrip("/")
		self.api_key = config.api_key or os.environ.get(self.api_key_env)
		self.models = list(config.models)
		self._session_factory = session_factory

	def chat(self, messages: list[Message], options: Optional[ChatOptions] = None) -> AsyncIterator[str]:
		return stream_completions(
			self.name, self.base_url, self.api_key, self.models,
			messages, options, self._session_factory,
		)

	async def list_models(self) -> list[str]:
		return await list_remote_models(self.base_url, self.api_key, self.models, self._session_factory)


class TogetherProvider:
	"""Together AI's OpenAI-compatible endpoint."""

	name = "together"
	default_base_url = "https://api.together.xyz/v1"
	api_key_env = "TOGETHER_API_KEY"

	def __init__(
		self,
		config: ProviderConfig,
		session_factory: SessionFactory = default_session_factory,
	):
		self.base_url = (config.base_url or self.default_base_url).rstrip("/")
		self.api_key = config.api_key or os.environ.get(self.api_key_env)
		self.models = list(config.models)
		self._session_factory = session_factory

	def chat(self, messages: list[Message], options: Optional[ChatOptions] = None) -> AsyncIterator[str]:
		return stream_completions(
			self.name, self.base_url, self.api_key, self.models,
			messages, options, self._session_factory,
		)

	async def list_models(self) -> list[str]:
		return await list_remote_models(self.base_url, self.api_key, self.models, self._session_factory)
