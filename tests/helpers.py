"""Shared test fixtures and helpers for agent-coordination tests."""

from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

from agent_coordination.agents import DEFAULT_AGENTS, Agent, AgentRegistry
from agent_coordination.service import CoordinationService
from agent_coordination.store import CoordinationStore

WEB_APP_STEPS = 7


def make_registry(*extra: Agent) -> AgentRegistry:
	"""Default agents plus any extras (extras replace defaults with the same id)."""
	agents = [a for a in DEFAULT_AGENTS if a.id not in {e.id for e in extra}]
	return AgentRegistry(agents + list(extra))


def make_service(tmp_path: Path, registry: AgentRegistry | None = None) -> CoordinationService:
	"""Create a service backed by a fresh SQLite file."""
	store = CoordinationStore(str(tmp_path / "coordination.db"))
	return CoordinationService(store, registry=registry or make_registry())


async def start_web_app_workflow(service: CoordinationService, project_id: str = "p1"):
	"""Run the manager delegation that expands create_web_app."""
	return await service._delegate(
		project_id,
		"manager",
		"manager",
		message="Initialize project",
		task_data={"workflowType": "create_web_app"},
	)


def capture_tools(config: MagicMock, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Mock config object to pass to the registration function
		register_fn: The registration function (e.g., register_coordination_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured
