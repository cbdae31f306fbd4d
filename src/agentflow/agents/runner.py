"""
Agent Runner - Drives one conversation turn by turn.

Each turn either executes an auto-invoked skill (best routing score >= 80) or
streams a free chat completion over the windowed history. After each turn the
caller's continuation policy decides whether to go on; repeated stop
decisions inside a rolling window trip a circuit breaker.

Provider errors propagate to the caller; nothing here retries.
"""

import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from ..context.tokens import TokenEstimator
from ..skills.matcher import AUTO_INVOKE_SCORE, match_skills
from ..skills.runner import run_skill
from ..types import ChatOptions, ContinueDecision, Message, OnChunk, Provider, print_chunk
from .context import (
	DEFAULT_HISTORY_TOKENS,
	AgentContext,
	add_message,
	get_conversation_history,
	update_progress,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10
STOP_WINDOW_SECONDS = 5 * 60
STOP_THRESHOLD = 3

ContinuePolicy = Callable[
	[AgentContext],
	Union[ContinueDecision, Awaitable[ContinueDecision]],
]


class CircuitBreaker:
	"""
	Counts stop decisions in a rolling time window.

	Kept across runs so an agent that keeps being restarted and stopped is
	caught even though every single run stops after one decision.
	"""

	def __init__(
		self,
		window_seconds: float = STOP_WINDOW_SECONDS,
		threshold: int = STOP_THRESHOLD,
		clock: Callable[[], float] = time.monotonic,
	):
		self.window_seconds = window_seconds
		self.threshold = threshold
		self._clock = clock
		self._stops: deque[float] = deque()

	def _prune(self, now: float) -> None:
		cutoff = now - self.window_seconds
		while self._stops and self._stops[0] < cutoff:
			self._stops.popleft()

	def record_stop(self) -> bool:
		"""Record a stop decision. Returns True when the breaker trips."""
		now = self._clock()
		self._stops.append(now)
		self._prune(now)
		return len(self._stops) >= self.threshold

	@property
	def recent_stops(self) -> int:
		self._prune(self._clock())
		return len(self._stops)

	def reset(self) -> None:
		self._stops.clear()


@dataclass
class RunResult:
	"""Outcome of AgentRunner.run()."""
	context: AgentContext
	turns: int
	stop_reason: str
	circuit_breaker_tripped: bool = False


class AgentRunner:
	"""
	Runs the turn loop for one conversation.

	Turns for a given context are strictly sequential; do not run the same
	context through two runners concurrently.
	"""

	def __init__(
		self,
		provider: Provider,
		model: str,
		system_prompt: Optional[str] = None,
		max_turns: int = DEFAULT_MAX_TURNS,
		on_chunk: OnChunk = print_chunk,
		should_continue: Optional[ContinuePolicy] = None,
		circuit_breaker: Optional[CircuitBreaker] = None,
		history_max_tokens: int = DEFAULT_HISTORY_TOKENS,
		history_estimator: Optional[TokenEstimator] = None,
	):
		self.provider = provider
		self.model = model
		self.system_prompt = system_prompt
		self.max_turns = max_turns
		self.on_chunk = on_chunk
		self.should_continue = should_continue
		self.circuit_breaker = circuit_breaker or CircuitBreaker()
		self.history_max_tokens = history_max_tokens
		self.history_estimator = history_estimator

	async def _skill_turn(self, context: AgentContext, text: str) -> Optional[AgentContext]:
		matches = match_skills(text, context.skills)
		if not matches or matches[0].score < AUTO_INVOKE_SCORE:
			return None

		skill = matches[0].skill
		logger.info(f"Executing skill: {skill.name} ({matches[0].reason})")
		result = await run_skill(skill, text, self.provider, self.model, on_chunk=self.on_chunk)
		return add_message(context, Message.assistant(result.output))

	async def _chat_turn(self, context: AgentContext) -> AgentContext:
		history = get_conversation_history(
			context, self.history_max_tokens, self.history_estimator, self.model
		)
		parts: list[str] = []
		async for chunk in self.provider.chat(history, ChatOptions(model=self.model)):
			parts.append(chunk)
			self.on_chunk(chunk)
		self.on_chunk("\n")
		return add_message(context, Message.assistant("".join(parts)))

	async def _decide(self, context: AgentContext) -> ContinueDecision:
		decision = self.should_continue(context)
		if inspect.isawaitable(decision):
			decision = await decision
		return decision

	async def run(self, initial_prompt: str, context: AgentContext) -> RunResult:
		"""
		Run the conversation until the policy stops it or max_turns is hit.

		Args:
			initial_prompt: First user message
			context: Starting context (usually fresh)

		Returns:
			RunResult with the final context and why the loop ended
		"""
		if self.system_prompt:
			context = add_message(context, Message.system(self.system_prompt))
		context = add_message(context, Message.user(initial_prompt))

		turns = 0
		stop_reason = "max turns reached"
		tripped = False

		while turns < self.max_turns:
			turns += 1
			text = context.last_message or initial_prompt

			skill_context = await self._skill_turn(context, text)
			if skill_context is not None:
				context = skill_context
			else:
				context = await self._chat_turn(context)

			context = update_progress(context, turns / self.max_turns * 100)

			if self.should_continue is None:
				stop_reason = "single turn"
				break

			decision = await self._decide(context)
			if decision.should_continue:
				continue

			if self.circuit_breaker.record_stop():
				tripped = True
				stop_reason = (
					f"circuit breaker: {self.circuit_breaker.recent_stops} stops "
					f"within {self.circuit_breaker.window_seconds:g}s"
				)
				logger.warning(f"Circuit breaker tripped after turn {turns}")
			else:
				stop_reason = decision.reason
				logger.info(f"Stopping: {decision.reason}")
			break

		logger.debug(f"Run finished after {turns} turn(s): {stop_reason}")
		return RunResult(
			context=context,
			turns=turns,
			stop_reason=stop_reason,
			circuit_breaker_tripped=tripped,
		)


async def run_agent(
	initial_prompt: str,
	context: AgentContext,
	provider: Provider,
	model: str,
	**options,
) -> RunResult:
	"""Convenience wrapper: build an AgentRunner and run it once."""
	runner = AgentRunner(provider, model, **options)
	return await runner.run(initial_prompt, context)


async def chat(
	message: str,
	context: AgentContext,
	provider: Provider,
	model: str,
	on_chunk: OnChunk = print_chunk,
	history_max_tokens: int = DEFAULT_HISTORY_TOKENS,
) -> tuple[str, AgentContext]:
	"""
	Single free-chat exchange (no skill routing, no continuation policy).

	Returns:
		Tuple of (response, updated context)
	"""
	context = add_message(context, Message.user(message))
	history = get_conversation_history(context, history_max_tokens)

	parts: list[str] = []
	async for chunk in provider.chat(history, ChatOptions(model=model)):
		parts.append(chunk)
		on_chunk(chunk)
	on_chunk("\n")

	response = "".join(parts)
	return response, add_message(context, Message.assistant(response))
