"""Starlette app with route assembly."""

from __future__ import annotations

import logging
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from ..agents import AgentRegistry
from ..service import CoordinationService
from ..store import CoordinationStore
from .api import coordination, health, list_agents, list_workflows, project_workflow

logger = logging.getLogger(__name__)


def build_app(db_path: str = "", registry: Optional[AgentRegistry] = None) -> Starlette:
	"""Build and return the Starlette ASGI app."""
	routes = [
		Route("/coordination", coordination, methods=["POST"]),
		Route("/coordination/{project_id}", project_workflow, methods=["GET"]),
		Route("/agents", list_agents, methods=["GET"]),
		Route("/workflows", list_workflows, methods=["GET"]),
		Route("/health", health, methods=["GET"]),
	]
	middleware = [
		Middleware(
			CORSMiddleware,
			allow_origins=["*"],
			allow_methods=["GET", "POST", "OPTIONS"],
			allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
		),
	]

	app = Starlette(routes=routes, middleware=middleware)
	app.state.service = CoordinationService(CoordinationStore(db_path), registry=registry)
	logger.debug(f"Coordination app built (db: {app.state.service.store.db_path})")
	return app
