"""Tests for the agent registry."""

from pathlib import Path

import pytest

from agent_coordination.agents import DEFAULT_AGENTS, Agent, AgentRegistry
from agent_coordination.errors import AgentNotFoundError, InvalidAgentError


def test_resolve_default_agent():
	registry = AgentRegistry()
	agent = registry.resolve("qa_engineer")
	assert agent.role == "qa_engineer"
	assert agent.name == "QA Engineer"


def test_resolve_unknown_agent_raises():
	registry = AgentRegistry()
	with pytest.raises(AgentNotFoundError, match="Unknown agent"):
		registry.resolve("nobody")


def test_resolve_missing_id_raises():
	with pytest.raises(InvalidAgentError):
		AgentRegistry().resolve(None)


def test_inactive_agent_does_not_resolve():
	registry = AgentRegistry([Agent("qa-old", "Old QA", "qa_engineer", active=False)])
	with pytest.raises(AgentNotFoundError, match="inactive"):
		registry.resolve("qa-old")
	# Still visible for display
	assert registry.get("qa-old") is not None


def test_find_by_role_skips_inactive():
	registry = AgentRegistry([
		Agent("qa-old", "Old QA", "qa_engineer", active=False),
		Agent("qa-new", "New QA", "qa_engineer"),
	])
	assert registry.find_by_role("qa_engineer").id == "qa-new"
	assert registry.find_by_role("game_dev") is None


def test_list_agents():
	registry = AgentRegistry()
	assert [a.id for a in registry.list_agents()] == [a.id for a in DEFAULT_AGENTS]


def test_from_toml_missing_file_uses_defaults(tmp_path: Path):
	registry = AgentRegistry.from_toml(tmp_path / "agents.toml")
	assert len(registry.list_agents()) == len(DEFAULT_AGENTS)


def test_from_toml_adds_and_replaces(tmp_path: Path):
	path = tmp_path / "agents.toml"
	path.write_text(
		'[[agents]]\n'
		'id = "qa-mobile"\n'
		'name = "Mobile QA"\n'
		'role = "qa_engineer"\n'
		'\n'
		'[[agents]]\n'
		'id = "security_engineer"\n'
		'role = "security_engineer"\n'
		'active = false\n'
	)
	registry = AgentRegistry.from_toml(path)

	assert registry.resolve("qa-mobile").name == "Mobile QA"
	with pytest.raises(AgentNotFoundError):
		registry.resolve("security_engineer")


def test_from_toml_rejects_incomplete_entry(tmp_path: Path):
	path = tmp_path / "agents.toml"
	path.write_text('[[agents]]\nid = "x"\n')
	with pytest.raises(ValueError, match="missing field"):
		AgentRegistry.from_toml(path)
