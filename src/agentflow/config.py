"""Configuration system using platformdirs for cross-platform paths."""

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import platformdirs

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "agentflow"
APP_AUTHOR = "agentflow"

DEFAULT_MODEL = "ollama/llama3.3:70b"

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


@dataclass
class ProviderConfig:
	"""Connection settings for one backend."""
	base_url: str | None = None
	api_key: str | None = None
	models: list[str] = field(default_factory=list)


@dataclass
class DefaultsConfig:
	"""Default model strings (provider/model) per role."""
	main: str = DEFAULT_MODEL
	subagent: str = DEFAULT_MODEL
	reviewer: str = DEFAULT_MODEL


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	sessions_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# User-configurable
	providers: dict[str, ProviderConfig] = field(default_factory=dict)
	defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
	skills: list[str] = field(default_factory=list)
	max_budget: float | None = None
	compact_threshold: float = 80.0
	max_concurrent_subagents: int = 3

	def __post_init__(self) -> None:
		self.sessions_db_path = self.data_dir / "sessions.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


def expand_env_vars(value: Any) -> Any:
	"""Replace ${VAR} references in strings (recursively) from the environment."""
	if isinstance(value, str):
		return _ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), ""), value)
	if isinstance(value, list):
		return [expand_env_vars(v) for v in value]
	if isinstance(value, dict):
		return {k: expand_env_vars(v) for k, v in value.items()}
	return value


def _apply_env_overrides(config: Config) -> Config:
	"""Apply AGENTFLOW_* environment variable overrides."""
	env_map = {
		"AGENTFLOW_CONFIG_DIR": "config_dir",
		"AGENTFLOW_DATA_DIR": "data_dir",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	budget = os.getenv("AGENTFLOW_MAX_BUDGET")
	if budget:
		try:
			config.max_budget = float(budget)
		except ValueError:
			logger.warning(f"Invalid AGENTFLOW_MAX_BUDGET value: {budget}, ignoring")

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_data(config: Config, data: dict[str, Any]) -> Config:
	"""Merge a parsed TOML document into the config."""
	data = expand_env_vars(data)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if key == "providers":
			for name, provider_data in (val or {}).items():
				if not isinstance(provider_data, dict):
					logger.warning(f"Ignoring provider '{name}': expected a table")
					continue
				config.providers[name] = ProviderConfig(
					base_url=provider_data.get("base_url"),
					api_key=provider_data.get("api_key") or None,
					models=list(provider_data.get("models", [])),
				)
		elif key == "defaults":
			for role, model in (val or {}).items():
				if hasattr(config.defaults, role):
					setattr(config.defaults, role, model)
		elif key in path_fields:
			setattr(config, key, Path(os.path.expanduser(val)))
		elif hasattr(config, key):
			setattr(config, key, val)
		else:
			logger.debug(f"Ignoring unknown config key: {key}")

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def _candidate_paths(config: Config, cwd: Path) -> list[Path]:
	return [
		cwd / ".agentflow" / "config.toml",
		cwd / "agentflow.toml",
		config.config_dir / "config.toml",
	]


def _read_toml(path: Path) -> dict[str, Any]:
	try:
		with open(path, "rb") as f:
			return tomllib.load(f)
	except tomllib.TOMLDecodeError as e:
		raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def load_config(path: str | Path | None = None, cwd: Path | None = None) -> Config:
	"""
	Load config with precedence: env vars > config.toml > defaults.

	Args:
		path: Explicit config file. A missing explicit file yields defaults.
		cwd: Directory searched for project config (defaults to Path.cwd())

	Returns:
		Loaded Config
	"""
	config = Config()

	if path is not None:
		candidates = [Path(path)]
	else:
		candidates = _candidate_paths(config, cwd or Path.cwd())

	for candidate in candidates:
		if candidate.is_file():
			logger.debug(f"Loading config from {candidate}")
			config = _apply_data(config, _read_toml(candidate))
			break

	return _apply_env_overrides(config)


def _toml_value(value: Any) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, (int, float)):
		return repr(value)
	if isinstance(value, (list, tuple)):
		return "[" + ", ".join(_toml_value(v) for v in value) + "]"
	escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
	return f'"{escaped}"'


def config_to_toml(config: Config) -> str:
	"""Render the user-configurable part of a config as TOML."""
	lines = [
		"# agentflow configuration",
		"",
		f"compact_threshold = {_toml_value(config.compact_threshold)}",
		f"max_concurrent_subagents = {_toml_value(config.max_concurrent_subagents)}",
	]
	if config.max_budget is not None:
		lines.append(f"max_budget = {_toml_value(config.max_budget)}")
	lines.append(f"skills = {_toml_value(config.skills)}")

	lines.extend([
		"",
		"[defaults]",
		f"main = {_toml_value(config.defaults.main)}",
		f"subagent = {_toml_value(config.defaults.subagent)}",
		f"reviewer = {_toml_value(config.defaults.reviewer)}",
	])

	for name, provider in config.providers.items():
		lines.extend(["", f"[providers.{name}]"])
		if provider.base_url:
			lines.append(f"base_url = {_toml_value(provider.base_url)}")
		if provider.api_key:
			lines.append(f"api_key = {_toml_value(provider.api_key)}")
		lines.append(f"models = {_toml_value(provider.models)}")

	return "\n".join(lines) + "\n"
