"""Rich view for saved chat sessions."""

from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from ..sessions.models import SessionMetadata


def render_session_list(sessions: Sequence[SessionMetadata], console: Optional[Console] = None) -> None:
	"""Render saved sessions, most recent first."""
	console = console or Console()

	if not sessions:
		console.print("[dim]No saved sessions.[/dim]")
		return

	home = str(Path.home())
	table = Table(title=f"Sessions ({len(sessions)})")
	table.add_column("ID", style="cyan")
	table.add_column("Name")
	table.add_column("Messages", justify="right")
	table.add_column("Directory")
	table.add_column("Model", style="dim")
	table.add_column("Updated")

	for meta in sessions:
		workdir = meta.workdir
		if workdir.startswith(home):
			workdir = "~" + workdir[len(home):]
		table.add_row(
			meta.id[:8],
			meta.name or "[dim](unnamed)[/dim]",
			str(meta.message_count),
			workdir,
			f"{meta.provider}/{meta.model}" if meta.provider and meta.model else "",
			meta.updated_at[:19].replace("T", " "),
		)
	console.print(table)
