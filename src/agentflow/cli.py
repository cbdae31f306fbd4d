"""CLI for agentflow: init, run, chat, skill, config, models, subagent and sessions commands."""

import argparse
import asyncio
import os
import sys
from dataclasses import replace
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console

from .agents.context import AgentContext, add_message, create_agent_context, get_conversation_history
from .agents.runner import AgentRunner, chat
from .config import DEFAULT_MODEL, Config, ProviderConfig, config_to_toml, load_config
from .context.session import SessionTracker
from .context.tokens import estimate_conversation_tokens
from .errors import AgentFlowError, ProviderNotConfiguredError
from .logging_config import setup_logging
from .providers import create_provider, create_providers, parse_model_string
from .sessions.models import SessionMessage, to_messages
from .sessions.store import SessionStore
from .skills.loader import Skill, load_all_skills
from .skills.runner import get_skill, run_skill
from .subagents.pool import SubagentPool, TaskStatus
from .types import Message, Provider
from .visualizer import context_status_text, render_context, render_costs, render_session_list

DEFAULT_SKILL_INPUT = "Please assist with the task."
DEFAULT_SUBAGENT_TIMEOUT = 120.0

EXAMPLE_SKILL = """---
name: brainstorming
description: Mandatory design phase before coding
trigger: (design|brainstorm|plan|architect)
---
# Brainstorming Skill

You are entering brainstorming mode. Before writing any code:

1. **Explore the problem space**
   - What are we trying to solve?
   - What are the constraints?
   - What are the edge cases?

2. **Ask clarifying questions**
   - Ask 2-3 questions to understand requirements better
   - Wait for answers before proceeding

3. **Present design options**
   - Offer 2-3 different approaches
   - List pros and cons of each

4. **Get approval**
   - Only proceed to implementation after design approval

## Task
{{input}}

Start by exploring the problem and asking questions.
"""

CHAT_HELP = "Type /quit to exit, /skills to list skills, /context, /cost, /compact [focus], /clear"


def _version() -> str:
	try:
		return pkg_version("agentflow")
	except PackageNotFoundError:
		return "0.0.0"


def resolve_provider(config: Config, model_string: str) -> tuple[Provider, str]:
	"""
	Build the backend for a "provider/model" string from the config.

	Raises:
		InvalidModelStringError: If the string has no provider part
		ProviderNotConfiguredError: If the provider has no config section
		UnknownProviderError: If the provider name is not registered
	"""
	name, model = parse_model_string(model_string)
	provider_config = config.providers.get(name)
	if provider_config is None:
		raise ProviderNotConfiguredError(name)
	return create_provider(name, provider_config), model


def _load_skills(config: Config) -> list[Skill]:
	return load_all_skills(config.skills)


def _context_from(config: Config, skills: list[Skill], messages: list[Message]) -> AgentContext:
	context = create_agent_context(config, skills)
	for message in messages:
		context = add_message(context, message)
	return context


# -----------------------------------------------------------------------------
# init / config / models
# -----------------------------------------------------------------------------

def cmd_init(args: argparse.Namespace) -> None:
	"""Create .agentflow/ with a starter config and an example skill."""
	base = Path.cwd() / ".agentflow"
	skills_dir = base / "skills"
	skills_dir.mkdir(parents=True, exist_ok=True)

	config_path = base / "config.toml"
	if config_path.exists():
		print(f"  Config exists: {config_path}")
	else:
		config = Config(providers={
			"ollama": ProviderConfig(
				base_url="http://localhost:11434",
				models=["llama3.3:70b", "codellama:34b"],
			),
			"groq": ProviderConfig(
				api_key="${GROQ_API_KEY}",
				models=["llama-3.3-70b-versatile"],
			),
		})
		config_path.write_text(config_to_toml(config))
		print(f"  Created {config_path}")

	skill_path = skills_dir / "SKILL-brainstorming.md"
	if skill_path.exists():
		print(f"  Skill exists: {skill_path}")
	else:
		skill_path.write_text(EXAMPLE_SKILL)
		print(f"  Created {skill_path}")

	print()
	print("Edit .agentflow/config.toml to configure your providers.")


def cmd_config(args: argparse.Namespace) -> None:
	"""Show the effective configuration."""
	config = load_config(args.config)
	print(f"# Config dir: {config.config_dir}")
	print(f"# Data dir:   {config.data_dir}")
	print()
	print(config_to_toml(config), end="")


def cmd_models(args: argparse.Namespace) -> None:
	"""List the models each configured provider offers."""
	config = load_config(args.config)
	asyncio.run(_list_models(config))


async def _list_models(config: Config) -> None:
	providers = create_providers(config.providers)
	if not providers:
		print("No providers configured. Run 'agentflow init' first.")
		return

	for name, provider in providers.items():
		print(f"\n{name}:")
		models = await provider.list_models()
		if not models:
			print("  (no models reported)")
		for model in models:
			print(f"  - {name}/{model}")


# -----------------------------------------------------------------------------
# run / skill / subagent
# -----------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> None:
	"""Run the agent on a single prompt."""
	config = load_config(args.config)
	model_string = args.model or config.defaults.main or DEFAULT_MODEL
	provider, model = resolve_provider(config, model_string)
	skills = _load_skills(config)

	print(f"Using {model_string}\n")
	runner = AgentRunner(provider, model, max_turns=args.max_turns)
	result = asyncio.run(runner.run(args.prompt, create_agent_context(config, skills)))
	print(f"\n[{result.turns} turn(s): {result.stop_reason}]", file=sys.stderr)


def cmd_skill(args: argparse.Namespace) -> None:
	"""List skills, or run one by name."""
	config = load_config(args.config)
	skills = _load_skills(config)

	if args.list or not args.name:
		if not skills:
			print("No skills found. Add SKILL-<name>.md files to .agentflow/skills/")
			return
		print("Available skills:\n")
		for skill in skills:
			print(f"  {skill.name}")
			print(f"    {skill.description}")
			if skill.trigger:
				print(f"    Trigger: /{skill.trigger}/")
			print()
		return

	skill = get_skill(skills, args.name)
	model_string = args.model or config.defaults.main or DEFAULT_MODEL
	provider, model = resolve_provider(config, model_string)

	print(f"Running skill: {skill.name}")
	print(f"Model: {model_string}\n")
	asyncio.run(run_skill(skill, args.input or DEFAULT_SKILL_INPUT, provider, model))


def cmd_subagent(args: argparse.Namespace) -> None:
	"""Delegate a prompt to a subagent and print its result."""
	config = load_config(args.config)
	exit_code = asyncio.run(_run_subagent(config, args))
	if exit_code:
		sys.exit(exit_code)


async def _run_subagent(config: Config, args: argparse.Namespace) -> int:
	pool = SubagentPool(
		config,
		max_concurrent=config.max_concurrent_subagents,
		default_model=args.model or config.defaults.subagent,
		skills=_load_skills(config),
	)

	print("Spawning subagent...")
	task_id = await pool.spawn(args.prompt, args.model)

	if args.no_wait:
		print(f"Task ID: {task_id}")
		await pool.shutdown()
		return 0

	print("Waiting for completion...\n")
	try:
		task = await pool.wait_for(task_id, timeout=args.timeout)
	finally:
		await pool.shutdown()

	if task.status == TaskStatus.COMPLETED:
		print("Result:")
		print(task.result)
		return 0

	print(f"Task failed: {task.error}", file=sys.stderr)
	return 1


# -----------------------------------------------------------------------------
# chat
# -----------------------------------------------------------------------------

def cmd_chat(args: argparse.Namespace) -> None:
	"""Interactive chat session with persistence and context tracking."""
	config = load_config(args.config)
	config.ensure_dirs()
	asyncio.run(_chat_loop(config, args))


async def _chat_loop(config: Config, args: argparse.Namespace) -> None:
	console = Console()
	model_string = args.model or config.defaults.main or DEFAULT_MODEL
	provider, model = resolve_provider(config, model_string)
	provider_name = parse_model_string(model_string)[0]
	skills = _load_skills(config)

	store = SessionStore(config.sessions_db_path)
	await store.init()
	try:
		session = None
		history: list[Message] = []
		if args.resume is not None:
			if args.resume:
				session = await store.find(args.resume)
			else:
				session = await store.get_latest(os.getcwd())
			if session is None:
				console.print("[yellow]No session to resume; starting a new one.[/yellow]")
			else:
				history = to_messages(session)
				console.print(f"[dim]Resumed session {session.id} ({len(history)} messages)[/dim]")
		if session is None:
			session = await store.create(os.getcwd(), provider_name, model)

		tracker = SessionTracker(model, provider_name, config.max_budget)
		tracker.set_messages(history)
		context = _context_from(config, skills, history)

		console.print(f"[bold cyan]AgentFlow Chat[/bold cyan] - {model_string}")
		console.print(f"[dim]{CHAT_HELP}[/dim]\n")

		while True:
			try:
				line = await asyncio.to_thread(input, "> ")
			except EOFError:
				break
			text = line.strip()
			if not text:
				continue

			if text in ("/quit", "/exit"):
				break
			if text == "/skills":
				for skill in skills:
					console.print(f"  - [cyan]{skill.name}[/cyan]: {skill.description}")
				if not skills:
					console.print("[dim]No skills loaded.[/dim]")
				continue
			if text == "/clear":
				context = create_agent_context(config, skills)
				tracker.reset()
				console.print("Context cleared.\n")
				continue
			if text == "/context":
				render_context(tracker.messages, model, tracker.costs.get_current_cost(), console=console)
				continue
			if text == "/cost":
				stats = tracker.get_stats()
				render_costs(stats.input_tokens, stats.output_tokens, stats.current_cost, model, config.max_budget, console=console)
				continue
			if text.startswith("/compact"):
				focus = text[len("/compact"):].strip() or None
				context = await _compact(console, tracker, context, provider, focus)
				continue

			if tracker.is_budget_exceeded():
				console.print("[bold red]Budget exceeded. Raise max_budget to continue.[/bold red]")
				continue

			user_message = Message.user(text)
			tracker.track_input(user_message)
			sent = get_conversation_history(add_message(context, user_message))
			try:
				response, context = await chat(text, context, provider, model)
			except AgentFlowError as e:
				console.print(f"[red]Error: {e}[/red]")
				continue

			tracker.track_output(Message.assistant(response), estimate_conversation_tokens(sent, model))
			await store.add_message(session, SessionMessage(role="user", content=text))
			await store.add_message(session, SessionMessage(role="assistant", content=response))

			status, style = context_status_text(tracker.messages, model, tracker.costs.get_current_cost(), config.max_budget)
			console.print(f"[{style}]{status}[/{style}]")
			warning = tracker.get_budget_warning()
			if warning:
				console.print(f"[yellow]{warning}[/yellow]")

			if tracker.needs_compaction(config.compact_threshold):
				console.print("[dim]Context is filling up, compacting...[/dim]")
				context = await _compact(console, tracker, context, provider, None)
	finally:
		await store.close()


async def _compact(
	console: Console,
	tracker: SessionTracker,
	context: AgentContext,
	provider: Provider,
	focus: str | None,
) -> AgentContext:
	result = await tracker.compact(focus=focus, provider=provider)
	if result.saved_tokens == 0:
		console.print("[dim]Nothing to compact.[/dim]")
		return context
	console.print(
		f"[green]Compacted {result.original_tokens} -> {result.compacted_tokens} tokens "
		f"({result.saved_percentage}% saved)[/green]"
	)
	return replace(context, messages=tuple(result.messages))


# -----------------------------------------------------------------------------
# sessions
# -----------------------------------------------------------------------------

def cmd_sessions(args: argparse.Namespace) -> None:
	"""List, delete or clean up saved chat sessions."""
	config = load_config(args.config)
	asyncio.run(_sessions(config, args))


async def _sessions(config: Config, args: argparse.Namespace) -> None:
	store = SessionStore(config.sessions_db_path)
	await store.init()
	try:
		if args.cleanup:
			deleted = await store.cleanup()
			print(f"Deleted {deleted} old session(s).")
			return
		if args.delete:
			session = await store.find(args.delete)
			if session is None:
				print(f"No session matches '{args.delete}'.")
				return
			await store.delete(session.id)
			print(f"Deleted session {session.id}.")
			return
		render_session_list(await store.list())
	finally:
		await store.close()


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="agentflow",
		description="Agentic workflow framework for free and local LLMs",
	)
	parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
	parser.add_argument("-c", "--config", type=str, default=None, help="Path to config file")
	parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
	subparsers = parser.add_subparsers(dest="command")

	# init
	init_parser = subparsers.add_parser("init", help="Initialize agentflow in the current directory")
	init_parser.set_defaults(func=cmd_init)

	# run
	run_parser = subparsers.add_parser("run", help="Run the agent with a prompt")
	run_parser.add_argument("prompt", help="Initial prompt for the agent")
	run_parser.add_argument("-m", "--model", type=str, default=None, help="Model (provider/model)")
	run_parser.add_argument("--max-turns", type=int, default=5, help="Maximum conversation turns")
	run_parser.set_defaults(func=cmd_run)

	# chat
	chat_parser = subparsers.add_parser("chat", help="Start an interactive chat session")
	chat_parser.add_argument("-m", "--model", type=str, default=None, help="Model (provider/model)")
	chat_parser.add_argument(
		"-r", "--resume",
		nargs="?",
		const="",
		default=None,
		help="Resume a session by name or id (default: latest in this directory)",
	)
	chat_parser.set_defaults(func=cmd_chat)

	# skill
	skill_parser = subparsers.add_parser("skill", help="List or run skills")
	skill_parser.add_argument("name", nargs="?", default=None, help="Skill name to run")
	skill_parser.add_argument("-l", "--list", action="store_true", help="List available skills")
	skill_parser.add_argument("-i", "--input", type=str, default=None, help="Input for the skill")
	skill_parser.add_argument("-m", "--model", type=str, default=None, help="Model (provider/model)")
	skill_parser.set_defaults(func=cmd_skill)

	# config
	config_parser = subparsers.add_parser("config", help="Show current configuration")
	config_parser.set_defaults(func=cmd_config)

	# models
	models_parser = subparsers.add_parser("models", help="List available models")
	models_parser.set_defaults(func=cmd_models)

	# subagent
	subagent_parser = subparsers.add_parser("subagent", help="Delegate a task to a subagent")
	subagent_parser.add_argument("prompt", help="Task for the subagent")
	subagent_parser.add_argument("-m", "--model", type=str, default=None, help="Model (provider/model)")
	subagent_parser.add_argument("--no-wait", action="store_true", help="Print the task id and exit")
	subagent_parser.add_argument(
		"--timeout",
		type=float,
		default=DEFAULT_SUBAGENT_TIMEOUT,
		help=f"Seconds to wait (default: {DEFAULT_SUBAGENT_TIMEOUT:g})",
	)
	subagent_parser.set_defaults(func=cmd_subagent)

	# sessions
	sessions_parser = subparsers.add_parser("sessions", help="List saved chat sessions")
	sessions_parser.add_argument("--cleanup", action="store_true", help="Keep only the 50 most recent")
	sessions_parser.add_argument("--delete", type=str, default=None, help="Delete a session by name or id")
	sessions_parser.set_defaults(func=cmd_sessions)

	return parser


def main(argv: list[str] | None = None) -> None:
	"""CLI entry point."""
	load_dotenv()
	parser = build_parser()
	args = parser.parse_args(argv)

	if not args.command:
		parser.print_help()
		sys.exit(1)

	setup_logging("DEBUG" if args.verbose else os.getenv("AGENTFLOW_LOG_LEVEL", "WARNING"))

	try:
		args.func(args)
	except AgentFlowError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	except KeyboardInterrupt:
		print()
		sys.exit(130)
