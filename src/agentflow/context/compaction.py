"""
Context Compaction - Shrinks a conversation while keeping it usable.

Two strategies:
- simple_compact(): local, no network. Old messages are replaced by a short
  extractive summary.
- llm_compact(): asks a provider for the summary and falls back to the
  local summary when the provider fails.

Both keep the first system message and the most recent non-system messages
verbatim. Any other system message, such as an earlier summary, is folded
into the new summary. Both leave the conversation untouched when it is already at or
under the target size.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..types import ChatOptions, Message, Provider, Role
from .tokens import estimate_conversation_tokens, get_context_limit

logger = logging.getLogger(__name__)

DEFAULT_KEEP_RECENT = 4
DEFAULT_TARGET_RATIO = 0.5
DEFAULT_AUTO_THRESHOLD = 80

LOCAL_SUMMARY_PREFIX = "[Previous conversation summary]:\n"
LLM_SUMMARY_PREFIX = "[Conversation Summary]:\n"
FALLBACK_SUMMARY = "Previous conversation context."

SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 500

MAX_SUMMARY_ITEMS = 5
MAX_QUESTION_LENGTH = 100
MAX_POINT_LENGTH = 80

_SENTENCE_END = re.compile(r"[.!?]")
_POINT_START = re.compile(r"^[-*\d]")


@dataclass
class CompactionResult:
	"""A compacted conversation and how much it saved."""
	messages: list[Message]
	original_tokens: int
	compacted_tokens: int
	saved_tokens: int
	saved_percentage: int
	summary: Optional[str] = None


def _split(messages: Sequence[Message], keep_recent: int) -> tuple[Optional[Message], list[Message], list[Message]]:
	"""
	Return (first system message, old, recent non-system).

	Old holds everything else in conversation order, including later system
	messages such as the summary left by an earlier compaction.
	"""
	pinned = next((i for i, m in enumerate(messages) if m.role == Role.SYSTEM), None)
	others = [i for i, m in enumerate(messages) if m.role != Role.SYSTEM]
	recent_indexes = set(others[-keep_recent:]) if keep_recent > 0 else set()

	old = [m for i, m in enumerate(messages) if i != pinned and i not in recent_indexes]
	recent = [messages[i] for i in sorted(recent_indexes)]
	system_message = messages[pinned] if pinned is not None else None
	return system_message, old, recent


def _strip_summary_prefix(content: str) -> str:
	for prefix in (LOCAL_SUMMARY_PREFIX, LLM_SUMMARY_PREFIX):
		if content.startswith(prefix):
			return content[len(prefix):]
	return content


def _unchanged(messages: Sequence[Message], tokens: int) -> CompactionResult:
	return CompactionResult(
		messages=list(messages),
		original_tokens=tokens,
		compacted_tokens=tokens,
		saved_tokens=0,
		saved_percentage=0,
	)


def _build_result(
	system_message: Optional[Message],
	summary_message: Optional[Message],
	recent: list[Message],
	original_tokens: int,
	model: str,
	summary: str,
) -> CompactionResult:
	compacted = [m for m in (system_message, summary_message) if m is not None] + recent
	compacted_tokens = estimate_conversation_tokens(compacted, model)
	saved = original_tokens - compacted_tokens
	return CompactionResult(
		messages=compacted,
		original_tokens=original_tokens,
		compacted_tokens=compacted_tokens,
		saved_tokens=saved,
		saved_percentage=round(saved / original_tokens * 100) if original_tokens else 0,
		summary=summary,
	)


def _dedupe(items: list[str], limit: int) -> list[str]:
	return list(dict.fromkeys(items))[:limit]


def create_local_summary(messages: Sequence[Message], focus: Optional[str] = None) -> str:
	"""
	Build an extractive summary without calling a model.

	Takes the opening clause of each user request and list-like or
	"key: value" lines from the start of each assistant reply. Lines of
	earlier summaries (system messages) are carried over first.
	"""
	earlier: list[str] = []
	questions: list[str] = []
	points: list[str] = []

	for message in messages:
		content = message.content.strip()
		if message.role == Role.SYSTEM:
			for line in _strip_summary_prefix(content).strip().split("\n"):
				line = line.strip()
				if line and line != FALLBACK_SUMMARY and not line.startswith("Current focus:"):
					earlier.append(line)
		elif message.role == Role.USER:
			first = _SENTENCE_END.split(content, maxsplit=1)[0]
			if len(first) > 10:
				questions.append(first[:MAX_QUESTION_LENGTH])
		elif message.role == Role.ASSISTANT:
			for line in content.split("\n")[:3]:
				if _POINT_START.match(line) or ":" in line:
					points.append(line[:MAX_POINT_LENGTH])

	parts = list(dict.fromkeys(earlier))
	questions = _dedupe(questions, MAX_SUMMARY_ITEMS)
	points = _dedupe(points, MAX_SUMMARY_ITEMS)
	if questions:
		parts.append(f"Topics discussed: {'; '.join(questions)}")
	if points:
		parts.append(f"Key points: {'; '.join(points)}")
	if focus:
		parts.append(f"Current focus: {focus}")

	return "\n".join(parts) or FALLBACK_SUMMARY


def simple_compact(
	messages: Sequence[Message],
	focus: Optional[str] = None,
	target_tokens: Optional[int] = None,
	keep_recent: int = DEFAULT_KEEP_RECENT,
	model: str = "default",
) -> CompactionResult:
	"""
	Compact locally.

	The target defaults to half the model's context limit. At or under the
	target the input comes back unchanged with saved_tokens == 0.
	"""
	original_tokens = estimate_conversation_tokens(messages, model)
	target = target_tokens or int(get_context_limit(model) * DEFAULT_TARGET_RATIO)

	if original_tokens <= target:
		return _unchanged(messages, original_tokens)

	system_message, old, recent = _split(messages, keep_recent)
	summary = create_local_summary(old, focus) if old else ""
	summary_message = Message.system(LOCAL_SUMMARY_PREFIX + summary) if summary else None

	result = _build_result(system_message, summary_message, recent, original_tokens, model, summary)
	logger.info(
		f"Compacted {result.original_tokens} -> {result.compacted_tokens} tokens "
		f"({result.saved_percentage}% saved)"
	)
	return result


def build_summary_prompt(old_messages: Sequence[Message], focus: Optional[str] = None) -> str:
	conversation = "\n\n".join(f"{m.role.value.upper()}: {m.content}" for m in old_messages)
	prompt = (
		"Summarize this conversation concisely, preserving key information, "
		"decisions, and context needed for continuation:\n\n"
		f"{conversation}\n\n"
		"Create a brief summary (max 200 words) that captures:\n"
		"- Main topics discussed\n"
		"- Key decisions or conclusions\n"
		"- Important context for future messages"
	)
	if focus:
		prompt += f"\n\nFocus particularly on information related to: {focus}"
	return prompt


async def llm_compact(
	messages: Sequence[Message],
	provider: Provider,
	model: str,
	focus: Optional[str] = None,
	target_tokens: Optional[int] = None,
	keep_recent: int = DEFAULT_KEEP_RECENT,
) -> CompactionResult:
	"""
	Compact using the provider to write the summary.

	Nothing old enough to summarize, or a conversation already under target,
	is handled by simple_compact(). Provider failures fall back to the local
	summary.
	"""
	original_tokens = estimate_conversation_tokens(messages, model)
	target = target_tokens or int(get_context_limit(model) * DEFAULT_TARGET_RATIO)
	if original_tokens <= target:
		return _unchanged(messages, original_tokens)

	system_message, old, recent = _split(messages, keep_recent)
	if not old:
		return simple_compact(messages, focus, target_tokens, keep_recent, model)

	prompt = build_summary_prompt(old, focus)
	options = ChatOptions(model=model, temperature=SUMMARY_TEMPERATURE, max_tokens=SUMMARY_MAX_TOKENS)

	try:
		parts = [chunk async for chunk in provider.chat([Message.user(prompt)], options)]
		summary = "".join(parts)
	except Exception as e:
		logger.warning(f"LLM summary failed, using local summary: {e}")
		summary = create_local_summary(old, focus)

	summary_message = Message.system(LLM_SUMMARY_PREFIX + summary)
	result = _build_result(system_message, summary_message, recent, original_tokens, model, summary)
	logger.info(
		f"LLM-compacted {result.original_tokens} -> {result.compacted_tokens} tokens "
		f"({result.saved_percentage}% saved)"
	)
	return result


async def auto_compact_if_needed(
	messages: Sequence[Message],
	model: str = "default",
	threshold: float = DEFAULT_AUTO_THRESHOLD,
	provider: Optional[Provider] = None,
	focus: Optional[str] = None,
	target_tokens: Optional[int] = None,
	keep_recent: int = DEFAULT_KEEP_RECENT,
) -> Optional[CompactionResult]:
	"""
	Compact only when usage reaches threshold percent of the context limit.

	Returns None when no compaction was needed.
	"""
	used = estimate_conversation_tokens(messages, model)
	percentage = used / get_context_limit(model) * 100
	if percentage < threshold:
		return None

	logger.debug(f"Context at {percentage:.0f}% (threshold {threshold}%), compacting")
	if provider is not None:
		return await llm_compact(messages, provider, model, focus, target_tokens, keep_recent)
	return simple_compact(messages, focus, target_tokens, keep_recent, model)
