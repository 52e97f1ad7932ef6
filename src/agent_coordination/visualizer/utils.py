"""Shared utilities for visualizer views."""

from datetime import datetime

from ..models import CoordinationStatus

STATUS_ICONS = {
	CoordinationStatus.WAITING: "[dim]\\[ ][/dim]",
	CoordinationStatus.PENDING: "[yellow]\\[.][/yellow]",
	CoordinationStatus.IN_PROGRESS: "[blue]\\[~][/blue]",
	CoordinationStatus.COMPLETED: "[green]\\[x][/green]",
	CoordinationStatus.FAILED: "[red]\\[!][/red]",
}

STATUS_STYLES = {
	CoordinationStatus.WAITING: "dim",
	CoordinationStatus.PENDING: "yellow",
	CoordinationStatus.IN_PROGRESS: "blue",
	CoordinationStatus.COMPLETED: "green",
	CoordinationStatus.FAILED: "red",
}


def format_timestamp(iso_str: str) -> str:
	"""Format an ISO timestamp as relative time (e.g. '2m ago') or absolute."""
	try:
		dt = datetime.fromisoformat(iso_str)
		delta = datetime.now() - dt
		total_secs = int(delta.total_seconds())

		if total_secs < 0:
			return iso_str[:19]
		if total_secs < 60:
			return f"{total_secs}s ago"
		if total_secs < 3600:
			return f"{total_secs // 60}m ago"
		if total_secs < 86400:
			return f"{total_secs // 3600}h ago"
		days = total_secs // 86400
		return f"{days}d ago"
	except (ValueError, TypeError):
		return str(iso_str)[:19]


def truncate(text: str, max_len: int = 60) -> str:
	"""Shorten text for table display."""
	if not text:
		return ""
	text = text.strip()
	if len(text) <= max_len:
		return text
	return text[:max_len - 3] + "..."
