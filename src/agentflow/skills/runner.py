"""
Skill Runner - Renders a skill template and sends it to a provider.

Responsibilities:
- Look up skills by name
- Substitute {{var}} placeholders in the template
- Stream the provider's reply to a sink and collect it
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import SkillNotFoundError
from ..types import ChatOptions, Message, OnChunk, Provider, print_chunk, silent_chunk
from .loader import Skill

logger = logging.getLogger(__name__)

_PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@dataclass
class SkillRunResult:
	"""Output of a single skill execution."""
	skill_name: str
	output: str
	duration: float


def get_skill(skills: Iterable[Skill], name: str) -> Skill:
	"""
	Find a skill by exact name.

	Raises:
		SkillNotFoundError: If no skill has that name
	"""
	skills = list(skills)
	for skill in skills:
		if skill.name == name:
			return skill
	raise SkillNotFoundError(name, [s.name for s in skills])


def interpolate_template(template: str, variables: dict[str, str]) -> str:
	"""Replace {{name}} placeholders; unknown or empty ones are left as-is."""
	def substitute(match: re.Match) -> str:
		value = variables.get(match.group(1))
		return value if value else match.group(0)

	return _PLACEHOLDER_PATTERN.sub(substitute, template)


def build_skill_messages(skill: Skill, prompt: str) -> list[Message]:
	return [
		Message.system(
			f'You are executing the "{skill.name}" skill. Follow the instructions precisely.'
		),
		Message.user(prompt),
	]


async def run_skill(
	skill: Skill,
	input_text: str,
	provider: Provider,
	model: str,
	variables: Optional[dict[str, str]] = None,
	on_chunk: OnChunk = print_chunk,
) -> SkillRunResult:
	"""
	Execute a skill as a single system+user exchange.

	Args:
		skill: Skill to run
		input_text: Text substituted for {{input}}
		provider: Backend to stream from
		model: Model name understood by the provider
		variables: Extra template variables
		on_chunk: Streaming sink

	Returns:
		SkillRunResult with the full response

	Raises:
		ProviderError: Propagated from the provider unchanged
	"""
	start = time.monotonic()
	prompt = interpolate_template(skill.template, {"input": input_text, **(variables or {})})
	messages = build_skill_messages(skill, prompt)

	logger.info(f"Running skill '{skill.name}' with {provider.name}/{model}")

	parts: list[str] = []
	async for chunk in provider.chat(messages, ChatOptions(model=model)):
		parts.append(chunk)
		on_chunk(chunk)
	on_chunk("\n")

	duration = time.monotonic() - start
	logger.debug(f"Skill '{skill.name}' finished in {duration:.2f}s")

	return SkillRunResult(skill_name=skill.name, output="".join(parts), duration=duration)


async def run_skill_silent(
	skill: Skill,
	input_text: str,
	provider: Provider,
	model: str,
	variables: Optional[dict[str, str]] = None,
) -> SkillRunResult:
	"""Run a skill without streaming output anywhere."""
	return await run_skill(skill, input_text, provider, model, variables, on_chunk=silent_chunk)
