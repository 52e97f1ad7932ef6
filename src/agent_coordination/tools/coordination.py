"""Coordination protocol tools: delegate, update status, read workflow, hand off."""

import json
from typing import Any

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..models import Action
from ..service import get_coordination_service


def _parse_task_data(task_data: str) -> Any:
	"""Parse a JSON object string; invalid JSON is passed on for the service to reject."""
	if not task_data:
		return None
	try:
		return json.loads(task_data)
	except json.JSONDecodeError:
		return task_data


async def _dispatch(payload: dict) -> str:
	service = get_coordination_service()
	_, body = await service.handle_payload({k: v for k, v in payload.items() if v not in (None, "")})
	return json.dumps(body, indent=2)


def register_coordination_tools(mcp: FastMCP, config: Config) -> None:
	"""Register coordination protocol tools."""

	@mcp.tool()
	async def delegate_task(
		project_id: str,
		initiator_agent_id: str,
		target_agent_id: str,
		message: str,
		coordination_type: str = "delegate",
		task_data: str = "",
		deadline: str = "",
	) -> str:
		"""
		Delegate a task from one agent to another.

		A delegation from the manager whose task_data names a workflowType
		(e.g. {"workflowType": "create_web_app"}) also creates the gated
		workflow steps.

		Args:
			project_id: Project the task belongs to
			initiator_agent_id: Delegating agent (e.g. "manager")
			target_agent_id: Receiving agent
			message: Instruction for the target agent
			coordination_type: delegate, request, update, complete or handoff
			task_data: Optional JSON object with workflowType/workflowStep/stepDescription
			deadline: Optional ISO timestamp after which in-progress work counts as overdue
		"""
		return await _dispatch({
			"action": Action.DELEGATE_TASK.value,
			"projectId": project_id,
			"initiatorAgentId": initiator_agent_id,
			"targetAgentId": target_agent_id,
			"coordinationType": coordination_type,
			"message": message,
			"taskData": _parse_task_data(task_data),
			"deadline": deadline,
		})

	@mcp.tool()
	async def update_task_status(
		project_id: str,
		target_agent_id: str,
		status: str,
		message: str = "",
		coordination_id: str = "",
	) -> str:
		"""
		Report progress on an agent's current task.

		Completing a workflow step releases the next step.

		Args:
			project_id: Project the task belongs to
			target_agent_id: Agent reporting the status
			status: in_progress, completed or failed
			message: Result or progress note stored as the task's response
			coordination_id: Optional specific record to update
		"""
		return await _dispatch({
			"action": Action.UPDATE_TASK_STATUS.value,
			"projectId": project_id,
			"targetAgentId": target_agent_id,
			"status": status,
			"message": message,
			"coordinationId": coordination_id,
		})

	@mcp.tool()
	async def get_project_workflow(project_id: str) -> str:
		"""
		Get all coordination records of a project with status counts.

		Args:
			project_id: Project to read
		"""
		return await _dispatch({
			"action": Action.GET_PROJECT_WORKFLOW.value,
			"projectId": project_id,
		})

	@mcp.tool()
	async def agent_handoff(
		project_id: str,
		initiator_agent_id: str,
		target_agent_id: str,
		message: str,
		task_data: str = "",
		deadline: str = "",
	) -> str:
		"""
		Hand work from one agent to another outside workflow gating.

		Args:
			project_id: Project the work belongs to
			initiator_agent_id: Agent handing off
			target_agent_id: Agent taking over
			message: What is being handed over
			task_data: Optional JSON object with extra context
			deadline: Optional ISO timestamp after which in-progress work counts as overdue
		"""
		return await _dispatch({
			"action": Action.AGENT_HANDOFF.value,
			"projectId": project_id,
			"initiatorAgentId": initiator_agent_id,
			"targetAgentId": target_agent_id,
			"message": message,
			"taskData": _parse_task_data(task_data),
			"deadline": deadline,
		})
