"""
Coordination API - validated operations over the store and workflow engine.

Every operation runs as one store transaction: it either applies fully or
leaves the store untouched.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from . import templates
from .agents import Agent, AgentRegistry, get_agent_registry
from .engine import WorkflowEngine, compute_stats, summarize_workflows
from .errors import (
	CoordinationError,
	InvalidAgentError,
	InvalidRequestError,
	InvalidTransitionError,
	NoPendingTaskError,
	PendingTaskConflictError,
	StoreUnavailableError,
)
from .models import (
	ACTIVE_STATUSES,
	Action,
	AgentRef,
	CoordinationRecord,
	CoordinationRequest,
	CoordinationStatus,
	CoordinationType,
	TaskData,
	WorkflowView,
	can_transition,
)
from .store import CoordinationStore, StoreSession

logger = logging.getLogger(__name__)

MANAGER_ROLE = "manager"


def _normalize_deadline(deadline: Optional[str]) -> Optional[str]:
	"""Parse an ISO deadline into a local naive ISO string comparable with stored timestamps."""
	if not deadline:
		return None
	try:
		dt = datetime.fromisoformat(deadline)
	except ValueError as e:
		raise InvalidRequestError(f"Invalid deadline: {deadline}") from e
	if dt.tzinfo is not None:
		dt = dt.astimezone().replace(tzinfo=None)
	return dt.isoformat()


def _coerce_task_data(task_data: TaskData | dict | None) -> TaskData:
	if task_data is None:
		return TaskData()
	if isinstance(task_data, TaskData):
		return task_data
	try:
		return TaskData.model_validate(task_data)
	except ValidationError as e:
		raise InvalidRequestError(f"Invalid taskData: {e.errors()[0]['msg']}") from e


class CoordinationService:
	"""
	The four coordination operations plus request dispatch.

	Usage:
		service = CoordinationService(CoordinationStore("data/coordination.db"))
		record = await service.delegate_task("p1", "manager", "manager", message="Initialize project",
			task_data={"workflowType": "create_web_app"})
		view = await service.get_project_workflow("p1")
	"""

	def __init__(
		self,
		store: CoordinationStore,
		registry: Optional[AgentRegistry] = None,
		engine: Optional[WorkflowEngine] = None,
	):
		self.store = store
		self.registry = registry or get_agent_registry()
		self.engine = engine or WorkflowEngine(store, self.registry)

	def _resolve(self, agent_id: Optional[str], label: str) -> Agent:
		try:
			return self.registry.resolve(agent_id)
		except InvalidAgentError as e:
			raise InvalidAgentError(f"Invalid {label} agent: {e}") from e

	def annotate(self, record: CoordinationRecord) -> CoordinationRecord:
		"""Attach initiator/target display metadata."""
		refs = {}
		for field_name, agent_id in (
			("initiator", record.initiator_agent_id),
			("target", record.target_agent_id),
		):
			agent = self.registry.get(agent_id)
			if agent is not None:
				refs[field_name] = AgentRef(name=agent.name, role=agent.role)
		return record.model_copy(update=refs)

	async def _insert_pending(
		self,
		session: StoreSession,
		record: CoordinationRecord,
	) -> CoordinationRecord:
		if await session.has_pending(record.project_id, record.target_agent_id):
			raise PendingTaskConflictError(
				f"Agent {record.target_agent_id} already has a pending task in project {record.project_id}"
			)
		return await session.insert(record)

	async def _delegate(
		self,
		project_id: str,
		initiator_agent_id: Optional[str],
		target_agent_id: Optional[str],
		coordination_type: CoordinationType = CoordinationType.DELEGATE,
		message: str = "",
		task_data: TaskData | dict | None = None,
		deadline: Optional[str] = None,
	) -> tuple[CoordinationRecord, list[CoordinationRecord]]:
		if not initiator_agent_id or not target_agent_id:
			raise InvalidAgentError("Both initiator and target agent IDs are required for task delegation")
		initiator = self._resolve(initiator_agent_id, "initiator")
		target = self._resolve(target_agent_id, "target")
		data = _coerce_task_data(task_data)

		if data.is_workflow_step:
			self.engine.validate_step_assignment(data.workflow_type, data.workflow_step, target)

		expand = (
			initiator.role == MANAGER_ROLE
			and coordination_type != CoordinationType.HANDOFF
			and data.workflow_step is None
			and templates.is_known(data.workflow_type)
		)
		if data.workflow_type and data.workflow_step is None and not templates.is_known(data.workflow_type):
			logger.warning(f"Delegation names unknown workflow type {data.workflow_type}; not expanding")

		expanded: list[CoordinationRecord] = []
		async with self.store.transaction() as session:
			if data.is_workflow_step and coordination_type != CoordinationType.HANDOFF:
				await self.engine.check_step_slot(
					project_id, data.workflow_type, data.workflow_step, session=session,
				)
			record = await self._insert_pending(session, CoordinationRecord(
				project_id=project_id,
				initiator_agent_id=initiator.id,
				target_agent_id=target.id,
				coordination_type=coordination_type,
				message=message,
				task_data=data,
				status=CoordinationStatus.PENDING,
				deadline=_normalize_deadline(deadline),
			))
			if expand:
				logger.info(f"Initiating workflow {data.workflow_type} for project {project_id}")
				expanded = await self.engine.expand_workflow(
					project_id,
					data.workflow_type,
					initiator.id,
					target.id,
					session=session,
				)

		logger.info(
			f"{coordination_type.value.capitalize()} from {initiator.name} to {target.name} "
			f"in project {project_id}"
		)
		return self.annotate(record), [self.annotate(r) for r in expanded]

	async def delegate_task(
		self,
		project_id: str,
		initiator_agent_id: Optional[str],
		target_agent_id: Optional[str],
		coordination_type: CoordinationType = CoordinationType.DELEGATE,
		message: str = "",
		task_data: TaskData | dict | None = None,
		deadline: Optional[str] = None,
	) -> CoordinationRecord:
		"""
		Create a pending record from initiator to target.

		A Manager delegation naming a known ``workflowType`` (without a
		``workflowStep``) also expands that workflow.

		Raises:
			InvalidAgentError: If either agent does not resolve
			PendingTaskConflictError: If the target already holds a pending record
			RoleMismatchError: If an explicit workflow step does not fit the target
			WorkflowStepConflictError: If an explicit workflow step already has a record
			InvalidTransitionError: If an explicit workflow step's predecessor has not completed
		"""
		record, _ = await self._delegate(
			project_id, initiator_agent_id, target_agent_id,
			coordination_type, message, task_data, deadline,
		)
		return record

	async def agent_handoff(
		self,
		project_id: str,
		initiator_agent_id: Optional[str],
		target_agent_id: Optional[str],
		message: str = "",
		task_data: TaskData | dict | None = None,
		deadline: Optional[str] = None,
	) -> CoordinationRecord:
		"""Pass work between agents outside workflow gating; never expands a workflow."""
		record, _ = await self._delegate(
			project_id, initiator_agent_id, target_agent_id,
			CoordinationType.HANDOFF, message, task_data, deadline,
		)
		return record

	async def update_task_status(
		self,
		project_id: str,
		target_agent_id: Optional[str],
		status: CoordinationStatus,
		message: str = "",
		coordination_id: Optional[str] = None,
	) -> CoordinationRecord:
		"""
		Move an agent's oldest active record (or the named record) to ``status``.

		Completing a workflow step opens the gate for the next one within
		the same transaction.

		Raises:
			InvalidAgentError: If the target agent does not resolve
			NoPendingTaskError: If there is no matching active record
			InvalidTransitionError: If the record is terminal, gated, or the move is not allowed
		"""
		status = CoordinationStatus(status)
		target = self._resolve(target_agent_id, "target") if target_agent_id or not coordination_id else None

		async with self.store.transaction() as session:
			if coordination_id:
				record = await self._load_for_update(session, project_id, coordination_id, target)
				if not can_transition(record.status, status):
					raise InvalidTransitionError(
						f"Cannot move task {record.id} from {record.status.value} to {status.value}"
					)
				updated = await session.transition(record.id, record.status, status, message)
				if updated is None:
					raise InvalidTransitionError(f"Task {record.id} changed status concurrently")
			else:
				updated = await session.update_status(
					project_id, target.id, status, message, from_statuses=ACTIVE_STATUSES,
				)

			if updated.status == CoordinationStatus.COMPLETED:
				await self.engine.advance_on_completion(updated, session=session)

		logger.info(
			f"Task {updated.id} for {updated.target_agent_id} in project {project_id}: {status.value}"
		)
		return self.annotate(updated)

	async def _load_for_update(
		self,
		session: StoreSession,
		project_id: str,
		coordination_id: str,
		target: Optional[Agent],
	) -> CoordinationRecord:
		record = await session.get(coordination_id)
		if record is None or record.project_id != project_id:
			raise NoPendingTaskError(f"No task {coordination_id} in project {project_id}")
		if target is not None and record.target_agent_id != target.id:
			raise NoPendingTaskError(f"Task {coordination_id} is not assigned to {target.id}")
		if record.is_terminal:
			raise InvalidTransitionError(f"Task {record.id} is already {record.status.value}")
		if record.status == CoordinationStatus.WAITING:
			step = record.task_data.workflow_step
			raise InvalidTransitionError(
				f"Task {record.id} is waiting for workflow step {step - 1 if step else '?'} to complete"
			)
		return record

	async def get_project_workflow(self, project_id: str) -> WorkflowView:
		"""All records of a project in creation order, with stats derived from them."""
		records = await self.store.list_by_project(project_id)
		logger.info(f"Retrieved workflow for project {project_id}: {len(records)} tasks")
		return WorkflowView(
			records=[self.annotate(r) for r in records],
			stats=compute_stats(records),
			workflows=summarize_workflows(records),
		)

	async def handle(self, request: CoordinationRequest) -> dict[str, Any]:
		"""Dispatch a validated request to its operation."""
		logger.info(f"Agent coordination - action: {request.action.value}, project: {request.project_id}")

		if request.action == Action.DELEGATE_TASK:
			record, expanded = await self._delegate(
				request.project_id,
				request.initiator_agent_id,
				request.target_agent_id,
				request.coordination_type,
				request.message,
				request.task_data,
				request.deadline,
			)
			body: dict[str, Any] = {"success": True, "coordination": record.to_api()}
			if expanded:
				body["workflow"] = [r.to_api() for r in expanded]
			return body

		elif request.action == Action.UPDATE_TASK_STATUS:
			if request.status is None:
				raise InvalidRequestError("status is required for update_task_status")
			record = await self.update_task_status(
				request.project_id,
				request.target_agent_id,
				request.status,
				request.message,
				request.coordination_id,
			)
			return {"success": True, "coordination": record.to_api()}

		elif request.action == Action.GET_PROJECT_WORKFLOW:
			view = await self.get_project_workflow(request.project_id)
			return {
				"success": True,
				"workflow": [r.to_api() for r in view.records],
				"stats": view.stats.to_api(),
				"workflowStatus": [w.to_api() for w in view.workflows],
			}

		elif request.action == Action.AGENT_HANDOFF:
			record = await self.agent_handoff(
				request.project_id,
				request.initiator_agent_id,
				request.target_agent_id,
				request.message,
				request.task_data,
				request.deadline,
			)
			return {"success": True, "coordination": record.to_api()}

		raise InvalidRequestError(f"Unknown action: {request.action}")

	async def handle_payload(self, payload: Any) -> tuple[int, dict[str, Any]]:
		"""
		Validate and dispatch a raw JSON body.

		Returns:
			Tuple of (http_status, response_body)
		"""
		try:
			if not isinstance(payload, dict):
				raise InvalidRequestError("Request body must be a JSON object")
			try:
				request = CoordinationRequest.model_validate(payload)
			except ValidationError as e:
				raise InvalidRequestError(_describe_validation_error(e)) from e
			return 200, await self.handle(request)
		except StoreUnavailableError as e:
			logger.error(f"Agent coordination error: {e}")
			return e.status_code, e.to_dict()
		except CoordinationError as e:
			logger.warning(f"Agent coordination error ({e.error_type}): {e}")
			return e.status_code, e.to_dict()


def _describe_validation_error(error: ValidationError) -> str:
	first = error.errors()[0]
	location = ".".join(str(part) for part in first["loc"])
	if first["type"] == "enum" and location == "action":
		return f"Unknown action: {first.get('input')}"
	return f"Invalid request field {location}: {first['msg']}"


# Global service instance
_service: Optional[CoordinationService] = None


def get_coordination_service() -> CoordinationService:
	"""Get or create the global service backed by the configured database."""
	global _service
	if _service is None:
		_service = CoordinationService(CoordinationStore())
	return _service
