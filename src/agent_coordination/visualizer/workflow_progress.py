"""Rich views for project workflows, agents and templates."""

from collections import defaultdict
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..agents import AgentRegistry
from ..models import ACTIVE_STATUSES, CoordinationRecord, WorkflowView
from ..templates import WorkflowTemplate
from .utils import STATUS_ICONS, STATUS_STYLES, format_timestamp, truncate


def _agent_label(record: CoordinationRecord) -> str:
	return escape(record.target.name if record.target else record.target_agent_id)


def render_workflow_progress(project_id: str, view: WorkflowView, console: Optional[Console] = None) -> None:
	"""Render a project's records as a Rich Tree grouped by workflow."""
	console = console or Console()
	stats = view.stats

	tree = Tree(
		f"[bold]{project_id}[/bold]  "
		f"[dim]({stats.completed}/{stats.total} tasks, {stats.progress}%)[/dim]"
	)

	workflows: dict[str, list[CoordinationRecord]] = defaultdict(list)
	other: list[CoordinationRecord] = []
	for record in view.records:
		if record.task_data.is_workflow_step:
			workflows[record.task_data.workflow_type].append(record)
		else:
			other.append(record)

	summaries = {s.workflow_type: s for s in view.workflows}
	for workflow_type, records in workflows.items():
		label = f"[bold]{escape(workflow_type)}[/bold]"
		summary = summaries.get(workflow_type)
		if summary is not None:
			label += f" [dim]{summary.status.value}, {summary.completed_steps}/{summary.total_steps} steps[/dim]"
		branch = tree.add(label)
		for record in sorted(records, key=lambda r: r.task_data.workflow_step):
			icon = STATUS_ICONS.get(record.status, "[ ]")
			branch.add(
				f"{icon} {record.task_data.workflow_step}. "
				f"{escape(record.task_data.step_description or truncate(record.message))} "
				f"[dim]- {_agent_label(record)}[/dim]"
			)

	if other:
		branch = tree.add("[bold]Direct tasks[/bold]")
		for record in other:
			icon = STATUS_ICONS.get(record.status, "[ ]")
			branch.add(
				f"{icon} \\[{record.coordination_type.value}] {escape(truncate(record.message))} "
				f"[dim]- {_agent_label(record)}[/dim]"
			)

	console.print(tree)


def render_workflow_summary(project_id: str, view: WorkflowView, console: Optional[Console] = None) -> None:
	"""Render a stats panel and a table of active records."""
	console = console or Console()
	stats = view.stats

	lines = [
		f"[bold]Progress:[/bold] {stats.completed}/{stats.total} tasks ({stats.progress}%)",
		f"[yellow]pending[/yellow] {stats.pending}  "
		f"[blue]in progress[/blue] {stats.in_progress}  "
		f"[green]completed[/green] {stats.completed}  "
		f"[red]failed[/red] {stats.failed}  "
		f"[dim]waiting[/dim] {stats.waiting}",
	]
	console.print(Panel("\n".join(lines), title=f"Project: {project_id}", border_style="cyan"))

	active = [r for r in view.records if r.status in ACTIVE_STATUSES]
	if not active:
		return

	table = Table(title="Active tasks")
	table.add_column("Agent")
	table.add_column("Status")
	table.add_column("Task")
	table.add_column("Updated", justify="right")
	for record in active:
		style = STATUS_STYLES.get(record.status, "")
		table.add_row(
			_agent_label(record),
			f"[{style}]{record.status.value}[/{style}]",
			escape(truncate(record.task_data.step_description or record.message)),
			format_timestamp(record.updated_at),
		)
	console.print(table)


def render_agents(registry: AgentRegistry, console: Optional[Console] = None) -> None:
	"""Render the agent registry as a table."""
	console = console or Console()
	table = Table(title="Agents")
	table.add_column("ID", style="cyan")
	table.add_column("Name")
	table.add_column("Role")
	table.add_column("Active", justify="center")
	for agent in registry.list_agents(include_inactive=True):
		table.add_row(agent.id, agent.name, agent.role, "yes" if agent.active else "[dim]no[/dim]")
	console.print(table)


def render_templates(workflow_templates: list[WorkflowTemplate], console: Optional[Console] = None) -> None:
	"""Render each workflow template as a tree of steps."""
	console = console or Console()
	for template in workflow_templates:
		tree = Tree(f"[bold]{template.workflow_type}[/bold] [dim]- {template.description}[/dim]")
		for index, step in enumerate(template.steps):
			tree.add(f"{index}. {step.task_description} [dim]({step.agent_role})[/dim]")
		console.print(tree)
