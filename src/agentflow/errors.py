"""Exception types raised by the agentflow core."""


class AgentFlowError(Exception):
	"""Base class for all agentflow errors."""
	pass


class ConfigError(AgentFlowError):
	"""Raised when a configuration file cannot be parsed."""
	pass


class ProviderError(AgentFlowError):
	"""Transport, HTTP or parse failure from a backend call."""

	def __init__(self, provider: str, message: str, status: int | None = None):
		self.provider = provider
		self.status = status
		prefix = f"{provider} API error"
		if status is not None:
			prefix = f"{prefix}: {status}"
		super().__init__(f"{prefix} - {message}")


class UnknownProviderError(AgentFlowError):
	"""Raised when a backend name has no registered implementation."""

	def __init__(self, name: str):
		self.name = name
		super().__init__(f"Unknown provider: {name}")


class ProviderNotConfiguredError(AgentFlowError):
	"""Raised when a model string names a provider missing from the config."""

	def __init__(self, name: str):
		self.name = name
		super().__init__(f"Provider {name} not configured")


class InvalidModelStringError(AgentFlowError, ValueError):
	"""Raised when a model string is not in provider/model form."""

	def __init__(self, model_string: str):
		self.model_string = model_string
		super().__init__(
			f"Invalid model string: {model_string}. Expected format: provider/model"
		)


class SkillNotFoundError(AgentFlowError):
	"""Raised when a requested skill name has no match."""

	def __init__(self, name: str, available: list[str] | None = None):
		self.name = name
		self.available = available or []
		super().__init__(f"Skill not found: {name}")


class TaskNotFoundError(AgentFlowError):
	"""Raised when a subagent task id is unknown to the pool."""

	def __init__(self, task_id: str):
		self.task_id = task_id
		super().__init__(f"Task {task_id} not found")


class TaskTimeoutError(AgentFlowError):
	"""Raised when waiting on a subagent task exceeds its deadline.

	The underlying task is not affected and still reaches a terminal state.
	"""

	def __init__(self, task_id: str, timeout: float):
		self.task_id = task_id
		self.timeout = timeout
		super().__init__(f"Task {task_id} timed out after {timeout:g}s")
