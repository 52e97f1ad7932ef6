"""Multi-agent task coordination with gated workflow templates."""

from .agents import Agent, AgentRegistry
from .engine import WorkflowEngine
from .models import CoordinationRecord, CoordinationStatus, CoordinationType, TaskData, WorkflowStats
from .service import CoordinationService
from .store import CoordinationStore

__all__ = [
	"Agent",
	"AgentRegistry",
	"CoordinationRecord",
	"CoordinationService",
	"CoordinationStatus",
	"CoordinationStore",
	"CoordinationType",
	"TaskData",
	"WorkflowEngine",
	"WorkflowStats",
]
