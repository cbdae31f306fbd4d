"""Rich view for session spend."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel

from ..context.costs import format_cost
from .utils import format_number, usage_bar


def render_costs(
	input_tokens: int,
	output_tokens: int,
	total_cost: float,
	model: str,
	budget: Optional[float] = None,
	console: Optional[Console] = None,
) -> None:
	"""Render token totals, cost and budget consumption."""
	console = console or Console()

	lines = [
		f"[cyan]Input Tokens:[/cyan]  {format_number(input_tokens)}",
		f"[cyan]Output Tokens:[/cyan] {format_number(output_tokens)}",
		f"[cyan]Total Tokens:[/cyan]  {format_number(input_tokens + output_tokens)}",
		"",
		f"[bold]Model:[/bold] {model}",
	]
	if total_cost == 0:
		lines.append("[bold]Total Cost:[/bold] [green]FREE (local model)[/green]")
	else:
		lines.append(f"[bold]Total Cost:[/bold] {format_cost(total_cost)}")

	if budget:
		used_percent = round(total_cost / budget * 100)
		remaining = max(0.0, budget - total_cost)
		lines.append("")
		lines.append("[bold]Budget:[/bold]")
		lines.append(f"{usage_bar(total_cost, budget, 20)} {used_percent}%")
		lines.append(f"[dim]Remaining:[/dim] {format_cost(remaining)} of {format_cost(budget)}")
		if used_percent >= 90:
			lines.append("[bold red]Budget almost exhausted![/bold red]")

	console.print(Panel("\n".join(lines), title="Session Costs", border_style="cyan"))
