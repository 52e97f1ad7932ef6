"""Tests for visualizer Rich views."""

from datetime import datetime, timedelta

from rich.console import Console

from agent_coordination.engine import compute_stats, summarize_workflows
from agent_coordination.models import (
	AgentRef,
	CoordinationRecord,
	CoordinationStatus,
	CoordinationType,
	TaskData,
	WorkflowView,
)
from agent_coordination.templates import list_templates
from agent_coordination.visualizer import (
	render_agents,
	render_templates,
	render_workflow_progress,
	render_workflow_summary,
)
from agent_coordination.visualizer.utils import format_timestamp, truncate

from .helpers import make_registry

# -- utils tests --

def test_format_timestamp_recent():
	ts = datetime.now().isoformat()
	assert "ago" in format_timestamp(ts)


def test_format_timestamp_hours():
	ts = (datetime.now() - timedelta(hours=3)).isoformat()
	assert format_timestamp(ts) == "3h ago"


def test_format_timestamp_invalid():
	assert format_timestamp("not-a-date") == "not-a-date"


def test_truncate_short():
	assert truncate("Run tests") == "Run tests"


def test_truncate_long():
	result = truncate("x" * 100, max_len=20)
	assert len(result) == 20
	assert result.endswith("...")


def test_truncate_empty():
	assert truncate("") == ""


# -- helper to make a populated view --

def _step(step: int, agent_id: str, name: str, status: CoordinationStatus, description: str) -> CoordinationRecord:
	return CoordinationRecord(
		id=f"step-{step}",
		project_id="shop",
		initiator_agent_id="manager",
		target_agent_id=agent_id,
		message=f"Workflow step {step}: {description}",
		task_data=TaskData(workflow_type="create_web_app", workflow_step=step, step_description=description),
		status=status,
		target=AgentRef(name=name, role=agent_id),
	)


def _make_view() -> WorkflowView:
	records = [
		CoordinationRecord(
			id="trigger",
			project_id="shop",
			initiator_agent_id="manager",
			target_agent_id="manager",
			message="Initialize project [phase one]",
			task_data=TaskData(workflow_type="create_web_app"),
			target=AgentRef(name="Manager Agent", role="manager"),
		),
		_step(1, "solutions_architect", "Solutions Architect", CoordinationStatus.COMPLETED,
			"Design system architecture and database schema"),
		_step(2, "full_stack_engineer", "Full Stack Engineer", CoordinationStatus.IN_PROGRESS,
			"Generate frontend and backend code"),
		_step(3, "devops_engineer", "DevOps Engineer", CoordinationStatus.WAITING,
			"Set up deployment pipeline and infrastructure"),
		CoordinationRecord(
			id="handoff",
			project_id="shop",
			initiator_agent_id="qa_engineer",
			target_agent_id="devops_engineer",
			coordination_type=CoordinationType.HANDOFF,
			message="Staging is green",
			status=CoordinationStatus.FAILED,
		),
	]
	return WorkflowView(records=records, stats=compute_stats(records), workflows=summarize_workflows(records))


def _console() -> Console:
	return Console(record=True, width=120)


def test_render_workflow_progress():
	console = _console()
	render_workflow_progress("shop", _make_view(), console)
	output = console.export_text()

	assert "shop" in output
	assert "(1/5 tasks, 20%)" in output
	assert "create_web_app in_progress, 1/7 steps" in output
	assert "[x] 1. Design system architecture and database schema" in output
	assert "[~] 2. Generate frontend and backend code" in output
	assert "Solutions Architect" in output
	assert "Direct tasks" in output
	assert "[handoff] Staging is green" in output
	assert "Initialize project [phase one]" in output


def test_render_workflow_summary():
	console = _console()
	render_workflow_summary("shop", _make_view(), console)
	output = console.export_text()

	assert "Project: shop" in output
	assert "1/5 tasks (20%)" in output
	assert "waiting 1" in output
	assert "Active tasks" in output
	assert "Full Stack Engineer" in output
	assert "in_progress" in output
	# Terminal and gated records are not active
	assert "Staging is green" not in output
	assert "Set up deployment pipeline" not in output


def test_render_workflow_summary_without_active_tasks():
	records = [_step(1, "solutions_architect", "Solutions Architect", CoordinationStatus.COMPLETED, "Design")]
	console = _console()
	render_workflow_summary("shop", WorkflowView(records=records, stats=compute_stats(records)), console)
	output = console.export_text()

	assert "100%" in output
	assert "Active tasks" not in output


def test_render_agents():
	console = _console()
	render_agents(make_registry(), console)
	output = console.export_text()

	assert "Agents" in output
	assert "solutions_architect" in output
	assert "Documentation Specialist" in output


def test_render_templates():
	console = _console()
	render_templates(list_templates(), console)
	output = console.export_text()

	assert "create_web_app" in output
	assert "create_mobile_app" in output
	assert "1. Design system architecture and database schema (solutions_architect)" in output
