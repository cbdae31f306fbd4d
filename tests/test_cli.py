"""Tests for the CLI module."""

from pathlib import Path
from unittest.mock import patch

import pytest

from agentflow.cli import build_parser, main, resolve_provider
from agentflow.config import ProviderConfig
from agentflow.errors import InvalidModelStringError, ProviderError, ProviderNotConfiguredError
from agentflow.providers import OllamaProvider

from .helpers import FakeProvider, make_config

SKILL_TEXT = """---
name: review
description: Review code for bugs
trigger: (review|audit)
---
Review this:
{{input}}
"""


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch):
	"""Isolated cwd and data dir; returns an explicit (missing) config path."""
	monkeypatch.chdir(tmp_path)
	monkeypatch.setenv("AGENTFLOW_DATA_DIR", str(tmp_path / "data"))
	monkeypatch.setenv("AGENTFLOW_CONFIG_DIR", str(tmp_path / "config"))
	monkeypatch.delenv("AGENTFLOW_MAX_BUDGET", raising=False)
	return tmp_path / "agentflow.toml"


def test_parser_commands():
	parser = build_parser()
	args = parser.parse_args(["chat", "--resume"])
	assert args.command == "chat"
	assert args.resume == ""

	args = parser.parse_args(["subagent", "do it", "--no-wait", "--timeout", "5"])
	assert args.no_wait is True
	assert args.timeout == 5.0


def test_no_command_prints_help(capsys):
	with pytest.raises(SystemExit) as exc_info:
		main([])
	assert exc_info.value.code == 1
	assert "usage: agentflow" in capsys.readouterr().out


class TestResolveProvider:
	"""resolve_provider against a config."""

	def test_configured(self, tmp_path: Path):
		provider, model = resolve_provider(make_config(tmp_path), "ollama/llama3.3:70b")
		assert isinstance(provider, OllamaProvider)
		assert model == "llama3.3:70b"

	def test_not_configured(self, tmp_path: Path):
		with pytest.raises(ProviderNotConfiguredError):
			resolve_provider(make_config(tmp_path), "groq/llama")

	def test_invalid_string(self, tmp_path: Path):
		with pytest.raises(InvalidModelStringError):
			resolve_provider(make_config(tmp_path, providers={"groq": ProviderConfig()}), "groq")


class TestInitAndConfig:
	"""init and config commands."""

	def test_init_creates_files(self, workspace: Path, capsys):
		main(["init"])

		base = workspace.parent / ".agentflow"
		assert (base / "config.toml").is_file()
		assert (base / "skills" / "SKILL-brainstorming.md").is_file()
		assert "Created" in capsys.readouterr().out

		main(["init"])
		out = capsys.readouterr().out
		assert "Config exists" in out
		assert "Skill exists" in out

	def test_config_shows_providers(self, workspace: Path, capsys):
		workspace.write_text('[providers.ollama]\nmodels = ["llama3"]\n')
		main(["-c", str(workspace), "config"])
		out = capsys.readouterr().out
		assert "[providers.ollama]" in out
		assert 'models = ["llama3"]' in out


class TestSkillCommand:
	"""skill listing and errors."""

	def test_list_empty(self, workspace: Path, capsys):
		main(["-c", str(workspace), "skill", "--list"])
		assert "No skills found" in capsys.readouterr().out

	def test_list(self, workspace: Path, capsys):
		skills_dir = workspace.parent / ".agentflow" / "skills"
		skills_dir.mkdir(parents=True)
		(skills_dir / "SKILL-review.md").write_text(SKILL_TEXT)

		main(["-c", str(workspace), "skill"])

		out = capsys.readouterr().out
		assert "review" in out
		assert "Review code for bugs" in out
		assert "Trigger: /(review|audit)/" in out

	def test_unknown_skill_exits(self, workspace: Path, capsys):
		with pytest.raises(SystemExit) as exc_info:
			main(["-c", str(workspace), "skill", "nosuch"])
		assert exc_info.value.code == 1
		assert "Error: Skill not found: nosuch" in capsys.readouterr().err


class TestRunCommand:
	"""run command."""

	def test_unconfigured_provider_exits(self, workspace: Path, capsys):
		with pytest.raises(SystemExit) as exc_info:
			main(["-c", str(workspace), "run", "hi", "-m", "groq/llama"])
		assert exc_info.value.code == 1
		assert "Error: Provider groq not configured" in capsys.readouterr().err

	def test_run_streams_reply(self, workspace: Path, capsys):
		provider = FakeProvider(["the answer"])
		with patch("agentflow.cli.resolve_provider", return_value=(provider, "m")):
			main(["-c", str(workspace), "run", "question", "-m", "ollama/m"])

		captured = capsys.readouterr()
		assert "the answer" in captured.out
		assert "[1 turn(s): single turn]" in captured.err


class TestSubagentCommand:
	"""subagent command."""

	def test_prints_result(self, workspace: Path, capsys):
		provider = FakeProvider(["sub result"])
		with patch("agentflow.subagents.pool.config_provider_factory", return_value=lambda s: (provider, "m")):
			main(["-c", str(workspace), "subagent", "summarize"])

		out = capsys.readouterr().out
		assert "Result:\nsub result" in out
		assert provider.calls[0][0][-1].content == "summarize"

	def test_failure_exits_nonzero(self, workspace: Path, capsys):
		provider = FakeProvider(error=ProviderError("fake", "down"))
		with patch("agentflow.subagents.pool.config_provider_factory", return_value=lambda s: (provider, "m")):
			with pytest.raises(SystemExit) as exc_info:
				main(["-c", str(workspace), "subagent", "summarize"])

		assert exc_info.value.code == 1
		assert "Task failed: fake API error - down" in capsys.readouterr().err


class TestSessionsCommand:
	"""sessions command."""

	def test_empty_list(self, workspace: Path, capsys):
		main(["-c", str(workspace), "sessions"])
		assert "No saved sessions." in capsys.readouterr().out

	def test_delete_unknown(self, workspace: Path, capsys):
		main(["-c", str(workspace), "sessions", "--delete", "nothing"])
		assert "No session matches 'nothing'." in capsys.readouterr().out

	def test_cleanup(self, workspace: Path, capsys):
		main(["-c", str(workspace), "sessions", "--cleanup"])
		assert "Deleted 0 old session(s)." in capsys.readouterr().out
