"""Tests for the provider registry, request bodies and stream parsing."""

import json
import os
from unittest.mock import patch

import aiohttp
import pytest

from agentflow.config import ProviderConfig
from agentflow.errors import InvalidModelStringError, ProviderError, UnknownProviderError
from agentflow.providers import (
	AnthropicProvider,
	GroqProvider,
	OllamaProvider,
	OpenAIProvider,
	TogetherProvider,
	create_provider,
	create_providers,
	parse_model_string,
)
from agentflow.providers.openai_compat import auth_headers, build_chat_body
from agentflow.providers.streaming import (
	anthropic_delta,
	iter_lines,
	ollama_delta,
	openai_delta,
	parse_json_line,
	parse_sse_data,
)
from agentflow.types import ChatOptions, Message

from .helpers import conversation


async def _chunks(*parts: bytes):
	for part in parts:
		yield part


class FakeContent:
	def __init__(self, parts: list[bytes]):
		self.parts = parts

	def iter_any(self):
		return _chunks(*self.parts)


class FakeResponse:
	def __init__(self, status: int, parts: list[bytes]):
		self.status = status
		self.content = FakeContent(parts)

	async def text(self) -> str:
		return b"".join(self.content.parts).decode()

	async def json(self, content_type=None):
		return json.loads(await self.text())

	async def __aenter__(self):
		return self

	async def __aexit__(self, *exc):
		return False


class FakeSession:
	"""Stands in for aiohttp.ClientSession; records requests."""

	def __init__(self, status: int = 200, parts: list[bytes] | None = None, error: Exception | None = None):
		self.status = status
		self.parts = parts or []
		self.error = error
		self.requests: list[tuple[str, str, dict]] = []

	def _respond(self, method: str, url: str, **kwargs):
		self.requests.append((method, url, kwargs))
		if self.error is not None:
			raise self.error
		return FakeResponse(self.status, self.parts)

	def post(self, url, **kwargs):
		return self._respond("POST", url, **kwargs)

	def get(self, url, **kwargs):
		return self._respond("GET", url, **kwargs)

	async def __aenter__(self):
		return self

	async def __aexit__(self, *exc):
		return False


async def collect(stream) -> list[str]:
	return [chunk async for chunk in stream]


class TestModelStrings:
	"""parse_model_string splitting rules."""

	def test_simple(self):
		assert parse_model_string("ollama/llama3.3:70b") == ("ollama", "llama3.3:70b")

	def test_model_keeps_extra_slashes(self):
		assert parse_model_string("together/meta-llama/Llama-3-70b") == ("together", "meta-llama/Llama-3-70b")

	@pytest.mark.parametrize("value", ["llama3", "/llama3", "ollama/", ""])
	def test_invalid(self, value):
		with pytest.raises(InvalidModelStringError):
			parse_model_string(value)


class TestRegistry:
	"""create_provider and create_providers."""

	@pytest.mark.parametrize("name,cls", [
		("ollama", OllamaProvider),
		("openai", OpenAIProvider),
		("groq", GroqProvider),
		("together", TogetherProvider),
		("anthropic", AnthropicProvider),
	])
	def test_known_names(self, name, cls):
		provider = create_provider(name, ProviderConfig())
		assert isinstance(provider, cls)
		assert provider.name == name

	def test_unknown_name(self):
		with pytest.raises(UnknownProviderError):
			create_provider("bedrock", ProviderConfig())

	def test_create_providers_skips_missing_and_unknown(self):
		providers = create_providers({
			"ollama": ProviderConfig(models=["llama3"]),
			"groq": None,
			"bedrock": ProviderConfig(),
		})
		assert list(providers) == ["ollama"]

	def test_default_base_urls(self):
		assert GroqProvider(ProviderConfig()).base_url == "https://api.groq.com/openai/v1"
		assert TogetherProvider(ProviderConfig()).base_url == "https://api.together.xyz/v1"
		assert OllamaProvider(ProviderConfig()).base_url == "http://localhost:11434"

	def test_trailing_slash_stripped(self):
		provider = OpenAIProvider(ProviderConfig(base_url="http://proxy/v1/"))
		assert provider.base_url == "http://proxy/v1"


class TestLineParsing:
	"""Line reassembly and payload parsing."""

	@pytest.mark.asyncio
	async def test_lines_split_across_chunks(self):
		lines = await collect(iter_lines(_chunks(b"first\nsec", b"ond\r\nthi", b"rd")))
		assert lines == ["first", "second", "third"]

	@pytest.mark.asyncio
	async def test_multibyte_split_across_chunks(self):
		data = "café ☃\n".encode()
		lines = await collect(iter_lines(_chunks(data[:4], data[4:8], data[8:])))
		assert lines == ["café ☃"]

	def test_sse_data(self):
		assert parse_sse_data('data: {"a": 1}') == {"a": 1}
		assert parse_sse_data("data: [DONE]") is None
		assert parse_sse_data("event: ping") is None
		assert parse_sse_data("data: {not json") is None
		assert parse_sse_data("") is None

	def test_json_line(self):
		assert parse_json_line('{"done": true}') == {"done": True}
		assert parse_json_line("   ") is None
		assert parse_json_line("garbage") is None
		assert parse_json_line("[1, 2]") is None


class TestDeltas:
	"""Backend-specific delta extraction."""

	def test_openai(self):
		assert openai_delta({"choices": [{"delta": {"content": "hi"}}]}) == "hi"
		assert openai_delta({"choices": [{"delta": {}}]}) is None
		assert openai_delta({"choices": []}) is None

	def test_anthropic(self):
		assert anthropic_delta({"type": "content_block_delta", "delta": {"text": "hi"}}) == "hi"
		assert anthropic_delta({"type": "message_start", "message": {}}) is None

	def test_ollama(self):
		assert ollama_delta({"message": {"content": "hi"}, "done": False}) == "hi"
		assert ollama_delta({"done": True}) is None


class TestRequestBodies:
	"""Request bodies and headers."""

	def test_openai_body_defaults(self):
		body = build_chat_body("openai", ["gpt-4o"], [Message.user("hi")], ChatOptions())
		assert body == {
			"model": "gpt-4o",
			"messages": [{"role": "user", "content": "hi"}],
			"temperature": 0.7,
			"max_tokens": 4096,
			"stream": True,
		}

	def test_openai_body_options(self):
		options = ChatOptions(model="gpt-4", temperature=0.0, max_tokens=10, stop=["END"])
		body = build_chat_body("openai", [], [Message.user("hi")], options)
		assert body["model"] == "gpt-4"
		assert body["temperature"] == 0.0
		assert body["max_tokens"] == 10
		assert body["stop"] == ["END"]

	def test_openai_body_without_model(self):
		with pytest.raises(ProviderError):
			build_chat_body("groq", [], [Message.user("hi")], ChatOptions())

	def test_auth_headers(self):
		assert auth_headers(None) == {"Content-Type": "application/json"}
		assert auth_headers("k")["Authorization"] == "Bearer k"

	def test_anthropic_lifts_system_message(self):
		provider = AnthropicProvider(ProviderConfig(api_key="k"))
		messages = conversation(("system", "be brief"), ("user", "hi"), ("assistant", "hello"))
		body = provider.build_body(messages, ChatOptions(temperature=0.2))

		assert body["model"] == "claude-sonnet-4-20250514"
		assert body["system"] == "be brief"
		assert body["messages"] == [
			{"role": "user", "content": "hi"},
			{"role": "assistant", "content": "hello"},
		]
		assert body["temperature"] == 0.2
		assert body["max_tokens"] == 4096

	def test_anthropic_requires_key(self):
		with patch.dict(os.environ, {}, clear=True):
			provider = AnthropicProvider(ProviderConfig())
		with pytest.raises(ProviderError, match="API key required"):
			provider.headers()

	def test_anthropic_key_from_env(self):
		with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "env-key"}):
			provider = AnthropicProvider(ProviderConfig())
		assert provider.headers()["x-api-key"] == "env-key"

	def test_ollama_options(self):
		provider = OllamaProvider(ProviderConfig(models=["llama3"]))
		body = provider.build_body([Message.user("hi")], ChatOptions(max_tokens=50))
		assert body["model"] == "llama3"
		assert body["options"] == {"temperature": 0.7, "num_predict": 50, "stop": None}

	def test_ollama_without_model(self):
		with pytest.raises(ProviderError):
			OllamaProvider(ProviderConfig()).build_body([Message.user("hi")], ChatOptions())


class TestStreaming:
	"""End-to-end streaming against a fake HTTP session."""

	@pytest.mark.asyncio
	async def test_openai_sse_stream(self):
		session = FakeSession(parts=[
			b'data: {"choices": [{"delta": {"content": "Hel"}}]}\n\ndata: {"choi',
			b'ces": [{"delta": {"content": "lo"}}]}\n\n',
			b"data: [DONE]\n\n",
		])
		provider = OpenAIProvider(ProviderConfig(api_key="k", models=["gpt-4o"]), session_factory=lambda: session)

		chunks = await collect(provider.chat([Message.user("hi")]))

		assert chunks == ["Hel", "lo"]
		method, url, kwargs = session.requests[0]
		assert (method, url) == ("POST", "https://api.openai.com/v1/chat/completions")
		assert kwargs["headers"]["Authorization"] == "Bearer k"
		assert kwargs["json"]["model"] == "gpt-4o"

	@pytest.mark.asyncio
	async def test_ollama_ndjson_stops_on_done(self):
		session = FakeSession(parts=[
			b'{"message": {"content": "a"}, "done": false}\n',
			b'not json\n{"message": {"content": "b"}, "done": true}\n',
			b'{"message": {"content": "ignored"}}\n',
		])
		provider = OllamaProvider(ProviderConfig(models=["llama3"]), session_factory=lambda: session)

		assert await collect(provider.chat([Message.user("hi")])) == ["a", "b"]
		assert session.requests[0][1] == "http://localhost:11434/api/chat"

	@pytest.mark.asyncio
	async def test_anthropic_stream(self):
		events = [
			{"type": "message_start", "message": {}},
			{"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}},
			{"type": "message_stop"},
		]
		body = "".join(f"event: x\ndata: {json.dumps(e)}\n\n" for e in events).encode()
		session = FakeSession(parts=[body])
		provider = AnthropicProvider(ProviderConfig(api_key="k"), session_factory=lambda: session)

		assert await collect(provider.chat([Message.user("hi")])) == ["Hi"]
		assert session.requests[0][1] == "https://api.anthropic.com/v1/messages"

	@pytest.mark.asyncio
	async def test_http_error_status(self):
		session = FakeSession(status=401, parts=[b"invalid key"])
		provider = GroqProvider(ProviderConfig(models=["m"]), session_factory=lambda: session)

		with pytest.raises(ProviderError) as exc_info:
			await collect(provider.chat([Message.user("hi")]))
		assert exc_info.value.status == 401
		assert "groq API error: 401 - invalid key" in str(exc_info.value)

	@pytest.mark.asyncio
	async def test_transport_error(self):
		session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
		provider = OllamaProvider(ProviderConfig(models=["llama3"]), session_factory=lambda: session)

		with pytest.raises(ProviderError, match="refused"):
			await collect(provider.chat([Message.user("hi")]))

	@pytest.mark.asyncio
	async def test_list_models_configured(self):
		provider = GroqProvider(ProviderConfig(models=["a", "b"]))
		assert await provider.list_models() == ["a", "b"]

	@pytest.mark.asyncio
	async def test_list_models_remote(self):
		session = FakeSession(parts=[b'{"models": [{"name": "llama3"}, {"name": "mistral"}]}'])
		provider = OllamaProvider(ProviderConfig(), session_factory=lambda: session)
		assert await provider.list_models() == ["llama3", "mistral"]
		assert session.requests[0][:2] == ("GET", "http://localhost:11434/api/tags")

	@pytest.mark.asyncio
	async def test_list_models_remote_failure(self):
		session = FakeSession(status=500, parts=[b"boom"])
		provider = OpenAIProvider(ProviderConfig(), session_factory=lambda: session)
		assert await provider.list_models() == []
