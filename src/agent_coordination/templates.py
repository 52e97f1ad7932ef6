"""
Workflow Template Catalog - ordered agent steps per workflow type.

Step 0 is the Manager's own initialization and is represented by the
delegation that starts the workflow. New workflow types are added here.
"""

from dataclasses import dataclass

from .errors import UnknownWorkflowTypeError


@dataclass(frozen=True)
class WorkflowStep:
	"""One step of a workflow template."""
	agent_role: str
	task_description: str


@dataclass(frozen=True)
class WorkflowTemplate:
	"""A named, ordered list of steps."""
	workflow_type: str
	description: str
	steps: tuple[WorkflowStep, ...]

	@property
	def last_step(self) -> int:
		return len(self.steps) - 1

	def to_dict(self) -> dict:
		return {
			"workflowType": self.workflow_type,
			"description": self.description,
			"steps": [
				{"step": i, "agentRole": s.agent_role, "taskDescription": s.task_description}
				for i, s in enumerate(self.steps)
			],
		}

	def step(self, index: int) -> WorkflowStep:
		"""Get a step by index; raises IndexError outside 0..last_step."""
		if index < 0:
			raise IndexError(index)
		return self.steps[index]


CREATE_WEB_APP = WorkflowTemplate(
	workflow_type="create_web_app",
	description="Build and ship a web application",
	steps=(
		WorkflowStep("manager", "Initialize project and coordinate team"),
		WorkflowStep("solutions_architect", "Design system architecture and database schema"),
		WorkflowStep("full_stack_engineer", "Generate frontend and backend code"),
		WorkflowStep("devops_engineer", "Set up deployment pipeline and infrastructure"),
		WorkflowStep("qa_engineer", "Create and run test suites"),
		WorkflowStep("security_engineer", "Security audit and vulnerability scanning"),
		WorkflowStep("performance_engineer", "Performance optimization and benchmarking"),
		WorkflowStep("documentation_specialist", "Generate comprehensive documentation"),
	),
)

CREATE_MOBILE_APP = WorkflowTemplate(
	workflow_type="create_mobile_app",
	description="Build and ship a mobile application",
	steps=(
		WorkflowStep("manager", "Initialize mobile project and coordinate team"),
		WorkflowStep("solutions_architect", "Design mobile architecture and data flow"),
		WorkflowStep("full_stack_engineer", "Generate React Native/native code"),
		WorkflowStep("devops_engineer", "Set up CI/CD for mobile deployment"),
		WorkflowStep("qa_engineer", "Create mobile testing automation"),
		WorkflowStep("security_engineer", "Mobile security implementation"),
		WorkflowStep("performance_engineer", "Mobile performance optimization"),
		WorkflowStep("documentation_specialist", "Generate mobile app documentation"),
	),
)

_TEMPLATES: dict[str, WorkflowTemplate] = {
	"create_web_app": CREATE_WEB_APP,
	"create_mobile_app": CREATE_MOBILE_APP,
}


def lookup(workflow_type: str) -> WorkflowTemplate:
	"""
	Get the template for a workflow type.

	Raises:
		UnknownWorkflowTypeError: If no template is registered
	"""
	template = _TEMPLATES.get(workflow_type)
	if template is None:
		raise UnknownWorkflowTypeError(f"Unknown workflow type: {workflow_type}")
	return template


def is_known(workflow_type: str | None) -> bool:
	"""Check if a workflow type has a template."""
	return bool(workflow_type) and workflow_type in _TEMPLATES


def list_templates() -> list[WorkflowTemplate]:
	"""All templates, sorted by workflow type."""
	return [_TEMPLATES[k] for k in sorted(_TEMPLATES)]
