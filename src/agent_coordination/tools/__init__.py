"""MCP tool registration."""

from mcp.server.fastmcp import FastMCP

from ..config import Config
from .catalog import register_catalog_tools
from .coordination import register_coordination_tools


def register_all_tools(mcp: FastMCP, config: Config) -> None:
	"""Register all MCP tools."""
	register_coordination_tools(mcp, config)
	register_catalog_tools(mcp, config)
