"""
Workflow Engine - expands templates into gated records and advances the gate.

Step 1 of an expanded workflow starts pending; every later step starts
waiting and becomes pending only when its predecessor completes. A project
holds at most one instance of each workflow type, with one record per step.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional

from . import templates
from .agents import Agent, AgentRegistry
from .errors import (
	InvalidRequestError,
	InvalidTransitionError,
	PendingTaskConflictError,
	RoleMismatchError,
	WorkflowStepConflictError,
)
from .models import (
	CoordinationRecord,
	CoordinationStatus,
	CoordinationType,
	TaskData,
	WorkflowStats,
	WorkflowStatus,
	WorkflowSummary,
)
from .store import CoordinationStore, StoreSession
from .templates import WorkflowStep, WorkflowTemplate

logger = logging.getLogger(__name__)


def compute_stats(records: Iterable[CoordinationRecord]) -> WorkflowStats:
	"""Count records per status in a single pass."""
	counts = {status: 0 for status in CoordinationStatus}
	total = 0
	for record in records:
		counts[record.status] += 1
		total += 1

	completed = counts[CoordinationStatus.COMPLETED]
	return WorkflowStats(
		total=total,
		pending=counts[CoordinationStatus.PENDING],
		in_progress=counts[CoordinationStatus.IN_PROGRESS],
		completed=completed,
		failed=counts[CoordinationStatus.FAILED],
		waiting=counts[CoordinationStatus.WAITING],
		progress=round(completed / total * 100) if total else 0,
	)


def summarize_workflows(records: Iterable[CoordinationRecord]) -> list[WorkflowSummary]:
	"""
	Derive the overall state of each workflow type from its step records.

	A failed step marks the workflow failed; it is completed once every
	template step completed, in progress once any step started, and
	planning before that. Handoffs and non-step records are ignored.
	"""
	steps: dict[str, list[CoordinationRecord]] = {}
	for record in records:
		if record.coordination_type == CoordinationType.HANDOFF or not record.task_data.is_workflow_step:
			continue
		steps.setdefault(record.task_data.workflow_type, []).append(record)

	summaries = []
	for workflow_type, step_records in steps.items():
		if templates.is_known(workflow_type):
			total_steps = templates.lookup(workflow_type).last_step
		else:
			total_steps = max(r.task_data.workflow_step for r in step_records)
		completed_steps = len({
			r.task_data.workflow_step for r in step_records if r.status == CoordinationStatus.COMPLETED
		})
		open_steps = [
			r.task_data.workflow_step for r in step_records if r.status != CoordinationStatus.COMPLETED
		]

		if any(r.status == CoordinationStatus.FAILED for r in step_records):
			status = WorkflowStatus.FAILED
		elif completed_steps == total_steps:
			status = WorkflowStatus.COMPLETED
		elif any(r.status in (CoordinationStatus.IN_PROGRESS, CoordinationStatus.COMPLETED) for r in step_records):
			status = WorkflowStatus.IN_PROGRESS
		else:
			status = WorkflowStatus.PLANNING

		summaries.append(WorkflowSummary(
			workflow_type=workflow_type,
			status=status,
			current_step=min(open_steps) if open_steps else None,
			completed_steps=completed_steps,
			total_steps=total_steps,
		))
	return summaries


class WorkflowEngine:
	"""
	Orchestrates workflow records on top of the coordination store.

	Every operation accepts an open StoreSession so it can run inside the
	caller's transaction; without one it opens its own.
	"""

	def __init__(self, store: CoordinationStore, registry: AgentRegistry):
		self.store = store
		self.registry = registry

	@asynccontextmanager
	async def _session(self, session: Optional[StoreSession], write: bool = True) -> AsyncIterator[StoreSession]:
		if session is not None:
			yield session
		else:
			async with self.store.transaction(write=write) as own:
				yield own

	def validate_step_assignment(self, workflow_type: str, workflow_step: int, agent: Agent) -> WorkflowStep:
		"""
		Check that an agent may take a given workflow step.

		Raises:
			UnknownWorkflowTypeError: If the workflow type has no template
			InvalidRequestError: If the step is outside the template
			RoleMismatchError: If the agent's role differs from the step's role
		"""
		template = templates.lookup(workflow_type)
		if not 1 <= workflow_step <= template.last_step:
			raise InvalidRequestError(
				f"Workflow {workflow_type} has steps 1..{template.last_step}, got {workflow_step}"
			)
		step = template.step(workflow_step)
		if agent.role != step.agent_role:
			raise RoleMismatchError(
				f"Step {workflow_step} of {workflow_type} expects role {step.agent_role}, "
				f"agent {agent.id} has role {agent.role}"
			)
		return step

	def resolve_step_agents(
		self,
		template: WorkflowTemplate,
		target_agent_id: Optional[str] = None,
		assignments: Optional[dict[int, str]] = None,
	) -> dict[int, Agent]:
		"""
		Pick a concrete agent for every step after step 0.

		Explicit assignments win, then the delegation's target when it has
		the step's role, then the first active registry agent with the role.

		Raises:
			InvalidAgentError: If an assigned agent does not resolve
			RoleMismatchError: If an assigned agent has the wrong role, or no
				active agent carries a step's role
		"""
		assignments = assignments or {}
		target = self.registry.get(target_agent_id) if target_agent_id else None

		resolved: dict[int, Agent] = {}
		for index in range(1, len(template.steps)):
			step = template.step(index)
			if index in assignments:
				agent = self.registry.resolve(assignments[index])
				self.validate_step_assignment(template.workflow_type, index, agent)
			elif target is not None and target.active and target.role == step.agent_role:
				agent = target
			else:
				agent = self.registry.find_by_role(step.agent_role)
				if agent is None:
					raise RoleMismatchError(
						f"No active agent with role {step.agent_role} for step {index} "
						f"of {template.workflow_type}"
					)
			resolved[index] = agent

		unknown = set(assignments) - set(resolved)
		if unknown:
			raise InvalidRequestError(
				f"Workflow {template.workflow_type} has no steps {sorted(unknown)}"
			)
		return resolved

	async def expand_workflow(
		self,
		project_id: str,
		workflow_type: str,
		initiator_agent_id: str,
		target_agent_id: Optional[str] = None,
		assignments: Optional[dict[int, str]] = None,
		session: Optional[StoreSession] = None,
	) -> list[CoordinationRecord]:
		"""
		Insert one record per template step after step 0.

		Step 1 is inserted pending, later steps waiting, in step order.

		Raises:
			UnknownWorkflowTypeError: If the workflow type has no template
			RoleMismatchError: If a step cannot be given an agent with its role
			PendingTaskConflictError: If the step 1 agent already holds a pending record
			WorkflowStepConflictError: If the project already has records of this workflow
		"""
		template = templates.lookup(workflow_type)
		step_agents = self.resolve_step_agents(template, target_agent_id, assignments)

		inserted: list[CoordinationRecord] = []
		async with self._session(session) as s:
			if await s.list_workflow_steps(project_id, workflow_type):
				raise WorkflowStepConflictError(
					f"Workflow {workflow_type} already has step records in project {project_id}"
				)
			for index, agent in step_agents.items():
				step = template.step(index)
				status = CoordinationStatus.PENDING if index == 1 else CoordinationStatus.WAITING

				if status == CoordinationStatus.PENDING and await s.has_pending(project_id, agent.id):
					raise PendingTaskConflictError(
						f"Agent {agent.id} already has a pending task in project {project_id}"
					)

				record = await s.insert(CoordinationRecord(
					project_id=project_id,
					initiator_agent_id=initiator_agent_id,
					target_agent_id=agent.id,
					coordination_type=CoordinationType.DELEGATE,
					message=f"Workflow step {index}: {step.task_description}",
					task_data=TaskData(
						workflow_type=workflow_type,
						workflow_step=index,
						step_description=step.task_description,
					),
					status=status,
				))
				inserted.append(record)

		logger.info(
			f"Expanded workflow {workflow_type} for project {project_id}: {len(inserted)} steps"
		)
		return inserted

	async def check_step_slot(
		self,
		project_id: str,
		workflow_type: str,
		workflow_step: int,
		session: Optional[StoreSession] = None,
	) -> None:
		"""
		Check that a directly delegated workflow step may be added as pending.

		The step must not have a record yet and, past step 1, its
		predecessor must already be completed.

		Raises:
			WorkflowStepConflictError: If the step already has a record
			InvalidTransitionError: If the previous step has not completed
		"""
		async with self._session(session, write=False) as s:
			existing = await s.list_workflow_steps(project_id, workflow_type)

		if any(r.task_data.workflow_step == workflow_step for r in existing):
			raise WorkflowStepConflictError(
				f"Step {workflow_step} of {workflow_type} already has a record in project {project_id}"
			)
		if workflow_step > 1 and not any(
			r.task_data.workflow_step == workflow_step - 1 and r.status == CoordinationStatus.COMPLETED
			for r in existing
		):
			raise InvalidTransitionError(
				f"Step {workflow_step} of {workflow_type} in project {project_id} "
				f"is waiting for step {workflow_step - 1} to complete"
			)

	async def advance_on_completion(
		self,
		record: CoordinationRecord,
		session: Optional[StoreSession] = None,
	) -> list[CoordinationRecord]:
		"""
		Open the gate for the step after a completed workflow step.

		Idempotent: records already promoted are not touched again. An
		empty result means the workflow has no further step.

		Returns:
			Records moved from waiting to pending
		"""
		if record.status != CoordinationStatus.COMPLETED:
			return []
		if record.coordination_type == CoordinationType.HANDOFF or not record.task_data.is_workflow_step:
			return []

		workflow_type = record.task_data.workflow_type
		next_step = record.task_data.workflow_step + 1

		promoted: list[CoordinationRecord] = []
		async with self._session(session) as s:
			waiting = await s.list_waiting_for_step(record.project_id, workflow_type, next_step)
			for candidate in waiting:
				updated = await s.transition(
					candidate.id, CoordinationStatus.WAITING, CoordinationStatus.PENDING,
				)
				if updated is not None:
					promoted.append(updated)

		if promoted:
			logger.info(
				f"Workflow {workflow_type} in project {record.project_id}: "
				f"step {next_step} now pending for {', '.join(r.target_agent_id for r in promoted)}"
			)
		else:
			logger.info(
				f"Workflow {workflow_type} in project {record.project_id} has no step {next_step}"
			)
		return promoted

	async def get_workflow_stats(
		self, project_id: str, session: Optional[StoreSession] = None,
	) -> WorkflowStats:
		"""Recompute a project's stats from the store's current contents."""
		async with self._session(session, write=False) as s:
			records = await s.list_by_project(project_id)
		return compute_stats(records)

	async def sweep_overdue(self, now: Optional[str] = None) -> list[CoordinationRecord]:
		"""
		Fail in-progress records whose deadline has passed.

		Meant to be driven by an external scheduler (see the ``sweep`` command).
		"""
		now = now or datetime.now().isoformat()
		failed: list[CoordinationRecord] = []
		async with self.store.transaction() as s:
			for record in await s.list_overdue(now):
				updated = await s.transition(
					record.id,
					CoordinationStatus.IN_PROGRESS,
					CoordinationStatus.FAILED,
					response=f"Deadline {record.deadline} exceeded",
				)
				if updated is not None:
					failed.append(updated)

		for record in failed:
			logger.warning(
				f"Task {record.id} for {record.target_agent_id} in project {record.project_id} timed out"
			)
		return failed
