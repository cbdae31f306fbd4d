"""Rich views for context window usage."""

from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..context.costs import format_cost
from ..context.tokens import estimate_conversation_tokens, estimate_message_tokens, get_context_limit
from ..types import Message
from .utils import ROLE_STYLES, format_number, usage_bar, usage_level, usage_style

GRID_WIDTH = 40
GRID_HEIGHT = 5


def _grid(used: int, limit: int) -> Text:
	"""Cell grid where each filled cell is colored by its own position."""
	total_cells = GRID_WIDTH * GRID_HEIGHT
	used_cells = round(used / limit * total_cells) if limit else 0

	grid = Text()
	for index in range(total_cells):
		if index and index % GRID_WIDTH == 0:
			grid.append("\n")
		if index < used_cells:
			grid.append("█", style=usage_style(index / total_cells * 100))
		else:
			grid.append("░", style="dim")
	return grid


def render_context(
	messages: Sequence[Message],
	model: str,
	session_cost: Optional[float] = None,
	console: Optional[Console] = None,
) -> None:
	"""Render context usage as a grid, stats panel and per-role breakdown."""
	console = console or Console()

	used = estimate_conversation_tokens(messages, model)
	limit = get_context_limit(model)
	percentage = round(used / limit * 100)
	style = usage_style(percentage)

	console.print()
	console.rule("[bold cyan]Context Visualization[/bold cyan]")
	console.print()
	console.print(_grid(used, limit))
	console.print()

	lines = [
		f"{usage_bar(used, limit)} [{style}]{percentage}%[/{style}]",
		"",
		f"[cyan]Used:[/cyan]      {format_number(used)} tokens",
		f"[dim]Available:[/dim] {format_number(limit - used)} tokens",
		f"[dim]Limit:[/dim]     {format_number(limit)} tokens",
		f"[dim]Model:[/dim]     {model}",
		f"[dim]Status:[/dim]    [{style}]{usage_level(percentage).value}[/{style}]",
	]
	if session_cost is not None:
		lines.append(f"[dim]Cost:[/dim]      {format_cost(session_cost)}")
	console.print(Panel("\n".join(lines), title="Context Usage", border_style=style))

	breakdown: dict[str, list[int]] = {}
	for message in messages:
		counts = breakdown.setdefault(message.role.value, [0, 0])
		counts[0] += 1
		counts[1] += estimate_message_tokens(message, model)

	if breakdown:
		table = Table(title="Token Breakdown by Role")
		table.add_column("Role")
		table.add_column("Messages", justify="right")
		table.add_column("Tokens", justify="right")
		table.add_column("Share", justify="right")
		for role, (count, tokens) in breakdown.items():
			role_style = ROLE_STYLES.get(role, "white")
			share = round(tokens / used * 100) if used else 0
			table.add_row(
				f"[{role_style}]{role}[/{role_style}]",
				str(count),
				format_number(tokens),
				f"{share}%",
			)
		console.print(table)
	console.print()


def context_status_text(
	messages: Sequence[Message],
	model: str,
	session_cost: Optional[float] = None,
	budget: Optional[float] = None,
) -> tuple[str, str]:
	"""
	One-line usage summary for a prompt or status bar.

	Returns:
		Tuple of (text, Rich style name)
	"""
	used = estimate_conversation_tokens(messages, model)
	limit = get_context_limit(model)
	percentage = round(used / limit * 100)

	text = f"{format_number(used)}/{format_number(limit)} ({percentage}%)"
	if session_cost is not None:
		text += f" | {format_cost(session_cost)}"
		if budget:
			text += f" [{round(session_cost / budget * 100)}% of ${budget:.2f}]"

	return text, usage_style(percentage)
