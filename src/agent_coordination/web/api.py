"""JSON endpoints for agent coordination."""

from __future__ import annotations

import json

from starlette.requests import Request
from starlette.responses import JSONResponse

from .. import templates
from ..errors import InvalidRequestError
from ..models import Action
from ..service import CoordinationService


def get_service(request: Request) -> CoordinationService:
	"""Get the CoordinationService from app state."""
	return request.app.state.service


async def coordination(request: Request) -> JSONResponse:
	"""Single action endpoint: delegate, update status, read workflow, hand off."""
	service = get_service(request)
	try:
		payload = await request.json()
	except (json.JSONDecodeError, UnicodeDecodeError):
		error = InvalidRequestError("Request body must be valid JSON")
		return JSONResponse(error.to_dict(), status_code=error.status_code)

	status_code, body = await service.handle_payload(payload)
	return JSONResponse(body, status_code=status_code)


async def project_workflow(request: Request) -> JSONResponse:
	"""Read-only view of a project's workflow and stats."""
	service = get_service(request)
	status_code, body = await service.handle_payload({
		"action": Action.GET_PROJECT_WORKFLOW.value,
		"projectId": request.path_params["project_id"],
	})
	return JSONResponse(body, status_code=status_code)


async def list_agents(request: Request) -> JSONResponse:
	"""Active agents known to the registry."""
	service = get_service(request)
	return JSONResponse([a.to_dict() for a in service.registry.list_agents()])


async def list_workflows(request: Request) -> JSONResponse:
	"""Workflow templates with their ordered steps."""
	return JSONResponse([t.to_dict() for t in templates.list_templates()])


async def health(request: Request) -> JSONResponse:
	return JSONResponse({"status": "ok"})
