"""
Coordination models - Pydantic schemas for records, requests and stats.

Wire format uses camelCase aliases (``projectId``, ``taskData``...);
Python attributes stay snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CoordinationType(str, Enum):
	"""Kind of coordination a record represents."""
	DELEGATE = "delegate"
	REQUEST = "request"
	UPDATE = "update"
	COMPLETE = "complete"
	HANDOFF = "handoff"


class CoordinationStatus(str, Enum):
	"""Status of a coordination record."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"
	WAITING = "waiting"


class Action(str, Enum):
	"""Operations accepted by the coordination endpoint."""
	DELEGATE_TASK = "delegate_task"
	UPDATE_TASK_STATUS = "update_task_status"
	GET_PROJECT_WORKFLOW = "get_project_workflow"
	AGENT_HANDOFF = "agent_handoff"


TERMINAL_STATUSES = frozenset({CoordinationStatus.COMPLETED, CoordinationStatus.FAILED})
ACTIVE_STATUSES = (CoordinationStatus.PENDING, CoordinationStatus.IN_PROGRESS)

# Transitions a caller may request; waiting -> pending belongs to the workflow engine.
ALLOWED_TRANSITIONS: dict[CoordinationStatus, frozenset[CoordinationStatus]] = {
	CoordinationStatus.PENDING: frozenset({
		CoordinationStatus.IN_PROGRESS,
		CoordinationStatus.COMPLETED,
		CoordinationStatus.FAILED,
	}),
	CoordinationStatus.IN_PROGRESS: frozenset({
		CoordinationStatus.COMPLETED,
		CoordinationStatus.FAILED,
	}),
	CoordinationStatus.WAITING: frozenset(),
	CoordinationStatus.COMPLETED: frozenset(),
	CoordinationStatus.FAILED: frozenset(),
}


def can_transition(current: CoordinationStatus, new: CoordinationStatus) -> bool:
	"""Whether a caller may move a record from ``current`` to ``new``."""
	return new in ALLOWED_TRANSITIONS[current]


class CamelModel(BaseModel):
	"""Base model serializing with camelCase aliases."""
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	def to_api(self) -> dict[str, Any]:
		return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class AgentRef(CamelModel):
	"""Display metadata attached to a record for its initiator or target."""
	name: str
	role: str


class TaskData(CamelModel):
	"""Structured payload of a record. Unknown keys are preserved."""
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

	workflow_type: Optional[str] = Field(default=None)
	workflow_step: Optional[int] = Field(default=None, ge=1)
	step_description: Optional[str] = Field(default=None)

	@property
	def is_workflow_step(self) -> bool:
		return self.workflow_type is not None and self.workflow_step is not None


class CoordinationRecord(CamelModel):
	"""One unit of delegated or handed-off work."""
	id: str = Field(default="")
	project_id: str
	initiator_agent_id: str
	target_agent_id: str
	coordination_type: CoordinationType = Field(default=CoordinationType.DELEGATE)
	message: str = Field(default="")
	task_data: TaskData = Field(default_factory=TaskData)
	status: CoordinationStatus = Field(default=CoordinationStatus.PENDING)
	response: Optional[str] = Field(default=None)
	deadline: Optional[str] = Field(default=None, description="ISO timestamp after which in_progress work is overdue")
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
	updated_at: str = Field(default_factory=lambda: datetime.now().isoformat())

	# Filled in for display by the service layer, never persisted
	initiator: Optional[AgentRef] = Field(default=None)
	target: Optional[AgentRef] = Field(default=None)

	@property
	def is_terminal(self) -> bool:
		return self.status in TERMINAL_STATUSES


class WorkflowStats(BaseModel):
	"""Aggregate counts over a project's records. Field names are the wire names."""
	total: int = 0
	pending: int = 0
	in_progress: int = 0
	completed: int = 0
	failed: int = 0
	waiting: int = 0
	progress: int = Field(default=0, description="Percent of records completed")

	def to_api(self) -> dict[str, Any]:
		return self.model_dump(mode="json")


class WorkflowStatus(str, Enum):
	"""Overall state of one workflow instance."""
	PLANNING = "planning"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"


class WorkflowSummary(CamelModel):
	"""Derived state of one workflow type within a project."""
	workflow_type: str
	status: WorkflowStatus
	current_step: Optional[int] = Field(default=None, description="Lowest step not yet completed; None once finished")
	completed_steps: int = 0
	total_steps: int = 0


class WorkflowView(BaseModel):
	"""Records of a project with their stats and per-workflow state."""
	records: list[CoordinationRecord] = Field(default_factory=list)
	stats: WorkflowStats = Field(default_factory=WorkflowStats)
	workflows: list[WorkflowSummary] = Field(default_factory=list)


class CoordinationRequest(CamelModel):
	"""Body accepted by ``POST /coordination``."""
	action: Action
	project_id: str = Field(min_length=1)
	coordination_id: Optional[str] = Field(default=None)
	initiator_agent_id: Optional[str] = Field(default=None)
	target_agent_id: Optional[str] = Field(default=None)
	coordination_type: CoordinationType = Field(default=CoordinationType.DELEGATE)
	message: str = Field(default="")
	task_data: Optional[TaskData] = Field(default=None)
	status: Optional[CoordinationStatus] = Field(default=None)
	deadline: Optional[str] = Field(default=None)
