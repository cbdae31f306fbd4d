"""
Streaming helpers shared by the HTTP providers.

Backends stream either server-sent events ("data: {...}" lines) or
newline-delimited JSON. Both are read as lines; each line is parsed into a
payload and a backend-specific extractor pulls the text delta out of it.
Lines that are not valid JSON are skipped.
"""

import asyncio
import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, Optional

import aiohttp

from ..errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=600, sock_connect=30)
SSE_PREFIX = "data: "
SSE_DONE = "[DONE]"

SessionFactory = Callable[[], aiohttp.ClientSession]
DeltaExtractor = Callable[[dict[str, Any]], Optional[str]]


def default_session_factory() -> aiohttp.ClientSession:
	return aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT)


async def iter_lines(byte_chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
	"""
	Reassemble arbitrary byte chunks into text lines.

	Multi-byte characters split across chunks are decoded correctly. A final
	line without a trailing newline is still yielded.
	"""
	decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
	buffer = ""
	async for chunk in byte_chunks:
		buffer += decoder.decode(chunk)
		*lines, buffer = buffer.split("\n")
		for line in lines:
			yield line.rstrip("\r")
	buffer += decoder.decode(b"", final=True)
	if buffer.strip():
		yield buffer.rstrip("\r")


def _load_object(text: str) -> Optional[dict[str, Any]]:
	try:
		payload = json.loads(text)
	except json.JSONDecodeError:
		logger.debug(f"Skipping malformed stream line: {text[:80]}")
		return None
	return payload if isinstance(payload, dict) else None


def parse_sse_data(line: str) -> Optional[dict[str, Any]]:
	"""Payload of an SSE data line, or None for other lines and [DONE]."""
	line = line.strip()
	if not line.startswith(SSE_PREFIX):
		return None
	data = line[len(SSE_PREFIX):].strip()
	if not data or data == SSE_DONE:
		return None
	return _load_object(data)


def parse_json_line(line: str) -> Optional[dict[str, Any]]:
	"""Payload of an NDJSON line, or None for blank or malformed lines."""
	line = line.strip()
	if not line:
		return None
	return _load_object(line)


def openai_delta(payload: dict[str, Any]) -> Optional[str]:
	choices = payload.get("choices") or []
	if not choices:
		return None
	delta = choices[0].get("delta") or {}
	return delta.get("content") or None


def anthropic_delta(payload: dict[str, Any]) -> Optional[str]:
	if payload.get("type") != "content_block_delta":
		return None
	delta = payload.get("delta") or {}
	return delta.get("text") or None


def ollama_delta(payload: dict[str, Any]) -> Optional[str]:
	message = payload.get("message") or {}
	return message.get("content") or None


async def stream_chat(
	session_factory: SessionFactory,
	url: str,
	headers: dict[str, str],
	body: dict[str, Any],
	extract: DeltaExtractor,
	name: str,
	sse: bool = True,
) -> AsyncIterator[str]:
	"""
	POST a streaming chat request and yield text deltas.

	Args:
		session_factory: Returns a new aiohttp.ClientSession
		url: Endpoint URL
		headers: Request headers
		body: JSON request body
		extract: Pulls the text delta from one parsed payload
		name: Provider name used in error messages
		sse: True for server-sent events, False for NDJSON

	Raises:
		ProviderError: On non-2xx responses or transport failures
	"""
	parse = parse_sse_data if sse else parse_json_line
	try:
		async with session_factory() as session:
			async with session.post(url, json=body, headers=headers) as response:
				if response.status >= 300:
					detail = await response.text()
					raise ProviderError(name, detail, status=response.status)

				async for line in iter_lines(response.content.iter_any()):
					payload = parse(line)
					if payload is None:
						continue
					text = extract(payload)
					if text:
						yield text
					if not sse and payload.get("done"):
						return
	except (aiohttp.ClientError, asyncio.TimeoutError) as e:
		raise ProviderError(name, str(e) or type(e).__name__) from e


async def fetch_json(
	session_factory: SessionFactory,
	url: str,
	headers: Optional[dict[str, str]] = None,
) -> Optional[Any]:
	"""GET a JSON document, or None on any HTTP or transport failure."""
	try:
		async with session_factory() as session:
			async with session.get(url, headers=headers) as response:
				if response.status >= 300:
					logger.debug(f"GET {url} returned {response.status}")
					return None
				return await response.json(content_type=None)
	except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
		logger.debug(f"GET {url} failed: {e}")
		return None
