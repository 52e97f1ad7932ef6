"""Read-only tools over the agent registry and workflow templates."""

import json

from mcp.server.fastmcp import FastMCP

from .. import templates
from ..config import Config
from ..service import get_coordination_service


def register_catalog_tools(mcp: FastMCP, config: Config) -> None:
	"""Register registry and template lookup tools."""

	@mcp.tool()
	async def list_agents() -> str:
		"""List the active agents that can receive coordination tasks."""
		registry = get_coordination_service().registry
		return json.dumps([a.to_dict() for a in registry.list_agents()], indent=2)

	@mcp.tool()
	async def list_workflow_templates() -> str:
		"""List workflow types and the agent role behind each step."""
		return json.dumps([t.to_dict() for t in templates.list_templates()], indent=2)
