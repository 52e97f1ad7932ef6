"""CLI for agent-coordination: serve, web, workflow, agents, templates and sweep commands."""

import argparse
import asyncio
import sys

from .config import load_config
from .logging_config import setup_logging


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server over stdio."""
	from .server import mcp
	mcp.run()


def cmd_web(args: argparse.Namespace) -> None:
	"""Run the coordination HTTP API."""
	from .web import run_web_server

	config = load_config()
	host = args.host or config.web_host
	port = args.port or config.web_port
	run_web_server(host=host, port=port, db_path=str(config.db_path))


def cmd_workflow(args: argparse.Namespace) -> None:
	"""Show a project's workflow."""
	from .errors import CoordinationError
	from .service import get_coordination_service
	from .visualizer import render_workflow_progress, render_workflow_summary

	try:
		view = asyncio.run(get_coordination_service().get_project_workflow(args.project_id))
	except CoordinationError as e:
		print(f"Error: {e}")
		sys.exit(1)

	if not view.records:
		print(f"No coordination records for project '{args.project_id}'.")
		return

	if args.summary:
		render_workflow_summary(args.project_id, view)
	else:
		render_workflow_progress(args.project_id, view)


def cmd_agents(args: argparse.Namespace) -> None:
	"""List registered agents."""
	from .agents import get_agent_registry
	from .visualizer import render_agents

	render_agents(get_agent_registry())


def cmd_templates(args: argparse.Namespace) -> None:
	"""List workflow templates."""
	from .templates import list_templates
	from .visualizer import render_templates

	render_templates(list_templates())


def cmd_sweep(args: argparse.Namespace) -> None:
	"""Fail in-progress tasks past their deadline."""
	from .service import get_coordination_service

	failed = asyncio.run(get_coordination_service().engine.sweep_overdue())
	for record in failed:
		print(f"  {record.project_id}: {record.target_agent_id} task {record.id} timed out")
	print(f"{len(failed)} overdue task(s) failed.")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="agent-coordination",
		description="Multi-agent task coordination: delegation, workflow gating and progress",
	)
	parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR")
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# web
	web_parser = subparsers.add_parser("web", help="Run the HTTP coordination API")
	web_parser.add_argument("--host", type=str, default=None, help="Bind address (default: config web_host)")
	web_parser.add_argument("--port", type=int, default=None, help="Server port (default: config web_port)")
	web_parser.set_defaults(func=cmd_web)

	# workflow
	workflow_parser = subparsers.add_parser("workflow", help="Show a project's workflow")
	workflow_parser.add_argument("project_id", help="Project ID")
	workflow_parser.add_argument("--summary", action="store_true", help="Show stats and active tasks instead of tree")
	workflow_parser.set_defaults(func=cmd_workflow)

	# agents
	agents_parser = subparsers.add_parser("agents", help="List registered agents")
	agents_parser.set_defaults(func=cmd_agents)

	# templates
	templates_parser = subparsers.add_parser("templates", help="List workflow templates")
	templates_parser.set_defaults(func=cmd_templates)

	# sweep
	sweep_parser = subparsers.add_parser("sweep", help="Fail in-progress tasks past their deadline")
	sweep_parser.set_defaults(func=cmd_sweep)

	return parser


def main(argv: list[str] | None = None) -> None:
	"""CLI entry point."""
	parser = build_parser()
	args = parser.parse_args(argv)

	if not args.command:
		parser.print_help()
		sys.exit(1)

	config = load_config()
	setup_logging(level=args.log_level or config.log_level, log_dir=config.log_dir)
	args.func(args)
