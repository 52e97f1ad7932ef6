"""Error taxonomy surfaced to coordination callers."""


class CoordinationError(Exception):
	"""Base class for errors returned to callers as ``{"error": ...}``."""

	error_type = "CoordinationError"
	status_code = 400

	def to_dict(self) -> dict:
		return {"error": str(self), "errorType": self.error_type}


class InvalidRequestError(CoordinationError):
	"""Raised when a request is malformed or names an unknown action."""
	error_type = "InvalidRequest"


class InvalidAgentError(CoordinationError):
	"""Raised when an agent id does not resolve to an active agent."""
	error_type = "InvalidAgent"


class AgentNotFoundError(InvalidAgentError):
	"""Raised by the registry when an agent id is unknown."""
	pass


class UnknownWorkflowTypeError(CoordinationError):
	"""Raised when no template exists for a workflow type."""
	error_type = "UnknownWorkflowType"


class NoPendingTaskError(CoordinationError):
	"""Raised when a status update finds no active record."""
	error_type = "NoPendingTask"
	status_code = 404


class InvalidTransitionError(CoordinationError):
	"""Raised when a status change is not allowed from the current status."""
	error_type = "InvalidTransition"
	status_code = 409


class PendingTaskConflictError(CoordinationError):
	"""Raised when an agent already holds a pending record in the project."""
	error_type = "PendingTaskConflict"
	status_code = 409


class WorkflowStepConflictError(CoordinationError):
	"""Raised when a workflow step or workflow instance already has records in the project."""
	error_type = "WorkflowStepConflict"
	status_code = 409


class RoleMismatchError(CoordinationError):
	"""Raised when an agent's role differs from the role a workflow step expects."""
	error_type = "RoleMismatch"
	status_code = 422


class StoreUnavailableError(CoordinationError):
	"""Raised when the coordination store cannot be read or written."""
	error_type = "StoreUnavailable"
	status_code = 503
