"""Tests for the workflow template catalog."""

import pytest

from agent_coordination import templates
from agent_coordination.agents import AgentRegistry
from agent_coordination.errors import UnknownWorkflowTypeError


def test_lookup_web_app():
	template = templates.lookup("create_web_app")
	assert len(template.steps) == 8
	assert template.last_step == 7
	assert template.step(0).agent_role == "manager"
	assert template.step(1).agent_role == "solutions_architect"
	assert template.step(7).agent_role == "documentation_specialist"


def test_lookup_unknown_raises():
	with pytest.raises(UnknownWorkflowTypeError, match="create_game"):
		templates.lookup("create_game")


def test_is_known():
	assert templates.is_known("create_mobile_app")
	assert not templates.is_known("create_game")
	assert not templates.is_known(None)


def test_list_templates_sorted():
	assert [t.workflow_type for t in templates.list_templates()] == ["create_mobile_app", "create_web_app"]


def test_every_step_role_has_default_agent():
	"""Built-in templates must be expandable with the default registry."""
	registry = AgentRegistry()
	for template in templates.list_templates():
		for step in template.steps:
			assert registry.find_by_role(step.agent_role) is not None, step.agent_role


def test_to_dict_numbers_steps():
	data = templates.lookup("create_web_app").to_dict()
	assert data["workflowType"] == "create_web_app"
	assert [s["step"] for s in data["steps"]] == list(range(8))
