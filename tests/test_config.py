"""Tests for the configuration system."""

import os
import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest

from agentflow.config import (
	DEFAULT_MODEL,
	Config,
	ProviderConfig,
	_apply_env_overrides,
	config_to_toml,
	expand_env_vars,
	load_config,
)
from agentflow.errors import ConfigError


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.sessions_db_path == config.data_dir / "sessions.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.defaults.main == DEFAULT_MODEL
	assert config.compact_threshold == 80.0
	assert config.max_concurrent_subagents == 3
	assert config.max_budget is None


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"AGENTFLOW_DATA_DIR": "/tmp/test-data",
		"AGENTFLOW_CONFIG_DIR": "/tmp/test-config",
		"AGENTFLOW_MAX_BUDGET": "2.5",
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		assert config.config_dir == Path("/tmp/test-config")
		assert config.max_budget == 2.5
		# Derived paths should be recomputed
		assert config.sessions_db_path == Path("/tmp/test-data/sessions.db")


def test_invalid_budget_env_is_ignored():
	with patch.dict(os.environ, {"AGENTFLOW_MAX_BUDGET": "lots"}):
		config = _apply_env_overrides(Config())
	assert config.max_budget is None


def test_config_ensure_dirs(tmp_path: Path):
	"""ensure_dirs should create all required directories."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
	)
	assert not config.config_dir.exists()

	config.ensure_dirs()

	assert config.config_dir.exists()
	assert config.data_dir.exists()
	assert config.log_dir.exists()


def test_expand_env_vars():
	with patch.dict(os.environ, {"GROQ_API_KEY": "gsk-123"}, clear=False):
		data = {"providers": {"groq": {"api_key": "${GROQ_API_KEY}", "models": ["${GROQ_API_KEY}"]}}}
		expanded = expand_env_vars(data)
	assert expanded["providers"]["groq"]["api_key"] == "gsk-123"
	assert expanded["providers"]["groq"]["models"] == ["gsk-123"]


def test_expand_missing_env_var_is_empty():
	with patch.dict(os.environ, {}, clear=True):
		assert expand_env_vars("key-${NOT_SET_ANYWHERE}") == "key-"


class TestLoadConfig:
	"""load_config file discovery and parsing."""

	def test_explicit_path(self, tmp_path: Path):
		path = tmp_path / "agentflow.toml"
		path.write_text(
			'max_budget = 1.5\n'
			'skills = ["extra/skills"]\n'
			'\n'
			'[defaults]\n'
			'main = "groq/llama-3.3-70b-versatile"\n'
			'\n'
			'[providers.groq]\n'
			'api_key = "abc"\n'
			'models = ["llama-3.3-70b-versatile"]\n'
		)
		config = load_config(path)

		assert config.max_budget == 1.5
		assert config.skills == ["extra/skills"]
		assert config.defaults.main == "groq/llama-3.3-70b-versatile"
		assert config.defaults.subagent == DEFAULT_MODEL
		assert config.providers["groq"].api_key == "abc"
		assert config.providers["groq"].models == ["llama-3.3-70b-versatile"]

	def test_missing_explicit_path_gives_defaults(self, tmp_path: Path):
		config = load_config(tmp_path / "nope.toml")
		assert config.providers == {}
		assert config.defaults.main == DEFAULT_MODEL

	def test_project_config_is_discovered(self, tmp_path: Path):
		project = tmp_path / ".agentflow"
		project.mkdir()
		(project / "config.toml").write_text('[providers.ollama]\nmodels = ["llama3"]\n')
		(tmp_path / "agentflow.toml").write_text('[providers.openai]\nmodels = ["gpt-4o"]\n')

		config = load_config(cwd=tmp_path)

		assert "ollama" in config.providers
		assert "openai" not in config.providers

	def test_invalid_toml_raises(self, tmp_path: Path):
		path = tmp_path / "bad.toml"
		path.write_text("this is = = not toml")
		with pytest.raises(ConfigError):
			load_config(path)

	def test_non_table_provider_is_skipped(self, tmp_path: Path):
		path = tmp_path / "agentflow.toml"
		path.write_text('[providers]\nollama = "yes"\n')
		config = load_config(path)
		assert config.providers == {}

	def test_env_beats_file(self, tmp_path: Path):
		path = tmp_path / "agentflow.toml"
		path.write_text("max_budget = 1.0\n")
		with patch.dict(os.environ, {"AGENTFLOW_MAX_BUDGET": "3"}):
			config = load_config(path)
		assert config.max_budget == 3.0


def test_config_to_toml_round_trips(tmp_path: Path):
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		providers={"ollama": ProviderConfig(base_url="http://localhost:11434", models=["llama3"])},
		max_budget=5.0,
	)
	path = tmp_path / "out.toml"
	path.write_text(config_to_toml(config))

	data = tomllib.loads(path.read_text())
	assert data["max_budget"] == 5.0
	assert data["providers"]["ollama"]["base_url"] == "http://localhost:11434"

	loaded = load_config(path)
	assert loaded.providers["ollama"].models == ["llama3"]
	assert loaded.defaults.main == config.defaults.main
