"""
Subagent Pool - Runs isolated one-shot agents with bounded concurrency.

Each spawned task gets a fresh AgentContext, so subagents never see each
other's conversation. At most max_concurrent tasks run at once; the rest wait
in spawn order and are promoted as running tasks finish.

All bookkeeping (task map, running set, wait queue) is changed only from
synchronous methods on the event loop, so no lock is needed. A failing task
is recorded on the task and never raised to whoever spawned it.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from ..agents.context import create_agent_context
from ..agents.runner import AgentRunner
from ..config import DEFAULT_MODEL, Config
from ..errors import ProviderNotConfiguredError, TaskNotFoundError, TaskTimeoutError
from ..providers import create_provider, parse_model_string
from ..skills.loader import Skill
from ..types import Provider, silent_chunk

logger = logging.getLogger(__name__)

SUBAGENT_SYSTEM_PROMPT = (
	"You are a focused subagent. Complete the assigned task efficiently and concisely."
)
SUBAGENT_MAX_TURNS = 5
DEFAULT_MAX_CONCURRENT = 3
DEFAULT_WAIT_TIMEOUT = 60.0
CANCELLED = "cancelled"

ProviderFactory = Callable[[str], tuple[Provider, str]]


class TaskStatus(str, Enum):
	"""Lifecycle of a subagent task. Completed and failed are terminal."""
	PENDING = "pending"
	RUNNING = "running"
	COMPLETED = "completed"
	FAILED = "failed"


@dataclass
class SubagentTask:
	"""A unit of delegated work."""
	id: str
	prompt: str
	model: str
	status: TaskStatus = TaskStatus.PENDING
	result: Optional[str] = None
	error: Optional[str] = None
	created_at: datetime = field(default_factory=datetime.now)
	started_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None

	@property
	def is_done(self) -> bool:
		return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


def config_provider_factory(config: Config) -> ProviderFactory:
	"""Resolve "provider/model" strings against the configured backends."""

	def factory(model_string: str) -> tuple[Provider, str]:
		name, model = parse_model_string(model_string)
		provider_config = config.providers.get(name)
		if provider_config is None:
			raise ProviderNotConfiguredError(name)
		return create_provider(name, provider_config), model

	return factory


class SubagentPool:
	"""
	Bounded pool of subagent tasks.

	Usage:
		pool = SubagentPool(config, max_concurrent=3)
		task_id = await pool.spawn("Summarize the README")
		task = await pool.wait_for(task_id, timeout=120)
	"""

	def __init__(
		self,
		config: Config,
		max_concurrent: int = DEFAULT_MAX_CONCURRENT,
		default_model: Optional[str] = None,
		provider_factory: Optional[ProviderFactory] = None,
		skills: Optional[Iterable[Skill]] = None,
		poll_interval: float = 0.1,
	):
		self.config = config
		self.max_concurrent = max(1, max_concurrent)
		self.default_model = default_model or config.defaults.subagent or DEFAULT_MODEL
		self.provider_factory = provider_factory or config_provider_factory(config)
		self.skills = tuple(skills or ())
		self.poll_interval = poll_interval

		self._tasks: dict[str, SubagentTask] = {}
		self._running: set[str] = set()
		self._queue: deque[str] = deque()
		self._handles: dict[str, asyncio.Task] = {}

	# -------------------------------------------------------------------------
	# State transitions (synchronous, event loop only)
	# -------------------------------------------------------------------------

	def _start(self, task: SubagentTask) -> None:
		task.status = TaskStatus.RUNNING
		task.started_at = datetime.now()
		self._running.add(task.id)
		self._handles[task.id] = asyncio.create_task(
			self._execute(task), name=f"subagent-{task.id[:8]}"
		)
		logger.debug(f"Subagent {task.id[:8]} started ({len(self._running)} running)")

	def _finish(self, task: SubagentTask, result: Optional[str] = None, error: Optional[str] = None) -> None:
		if error is None:
			task.status = TaskStatus.COMPLETED
			task.result = result
		else:
			task.status = TaskStatus.FAILED
			task.error = error
		task.completed_at = datetime.now()
		self._running.discard(task.id)
		self._handles.pop(task.id, None)
		self._drain()

	def _drain(self) -> None:
		"""Promote waiting tasks in spawn order while there is capacity."""
		while self._queue and len(self._running) < self.max_concurrent:
			self._start(self._tasks[self._queue.popleft()])

	# -------------------------------------------------------------------------
	# Execution
	# -------------------------------------------------------------------------

	async def _execute(self, task: SubagentTask) -> None:
		try:
			provider, model = self.provider_factory(task.model)
			context = create_agent_context(self.config, self.skills)
			runner = AgentRunner(
				provider,
				model,
				system_prompt=SUBAGENT_SYSTEM_PROMPT,
				max_turns=SUBAGENT_MAX_TURNS,
				on_chunk=silent_chunk,
			)
			run = await runner.run(task.prompt, context)
		except asyncio.CancelledError:
			logger.info(f"Subagent {task.id[:8]} cancelled")
			self._finish(task, error=CANCELLED)
			raise
		except Exception as e:
			logger.warning(f"Subagent {task.id[:8]} failed: {e}")
			self._finish(task, error=str(e))
			return

		logger.info(f"Subagent {task.id[:8]} completed after {run.turns} turn(s)")
		self._finish(task, result=run.context.last_message)

	# -------------------------------------------------------------------------
	# Public API
	# -------------------------------------------------------------------------

	async def spawn(self, prompt: str, model: Optional[str] = None) -> str:
		"""
		Queue a subagent task and start it if there is capacity.

		Returns:
			The new task id
		"""
		task = SubagentTask(id=uuid.uuid4().hex, prompt=prompt, model=model or self.default_model)
		self._tasks[task.id] = task
		self._queue.append(task.id)
		logger.info(f"Spawned subagent {task.id[:8]} with {task.model}")
		self._drain()
		return task.id

	def _get(self, task_id: str) -> SubagentTask:
		task = self._tasks.get(task_id)
		if task is None:
			raise TaskNotFoundError(task_id)
		return task

	def get_task(self, task_id: str) -> SubagentTask:
		"""Return a snapshot of a task; later changes are not reflected in it."""
		return replace(self._get(task_id))

	def get_all_tasks(self) -> list[SubagentTask]:
		return [replace(t) for t in self._tasks.values()]

	def get_running_count(self) -> int:
		return len(self._running)

	def get_pending_count(self) -> int:
		return len(self._queue)

	async def wait_for(self, task_id: str, timeout: float = DEFAULT_WAIT_TIMEOUT) -> SubagentTask:
		"""
		Wait for a task to reach a terminal state.

		Raises:
			TaskNotFoundError: If the id is unknown
			TaskTimeoutError: If the task is still running after timeout
				seconds (the task itself keeps going)
		"""
		loop = asyncio.get_running_loop()
		deadline = loop.time() + timeout
		while True:
			task = self._get(task_id)
			if task.is_done:
				return replace(task)
			if loop.time() >= deadline:
				raise TaskTimeoutError(task_id, timeout)
			await asyncio.sleep(self.poll_interval)

	async def cancel(self, task_id: str) -> bool:
		"""
		Cancel a pending or running task.

		Returns:
			True if the task was cancelled, False if it had already finished
		"""
		task = self._get(task_id)
		if task.is_done:
			return False

		if task.status == TaskStatus.PENDING:
			self._queue.remove(task_id)
			task.status = TaskStatus.FAILED
			task.error = CANCELLED
			task.completed_at = datetime.now()
			return True

		handle = self._handles.get(task_id)
		if handle is not None:
			handle.cancel()
			await asyncio.wait([handle])
		# A task cancelled before its first step never reaches _execute's handler
		if not task.is_done:
			self._finish(task, error=CANCELLED)
		return True

	async def shutdown(self) -> None:
		"""Cancel every task that has not finished."""
		for task_id in list(self._queue):
			await self.cancel(task_id)
		for task_id in list(self._running):
			await self.cancel(task_id)
