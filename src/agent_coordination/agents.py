"""
Agent Registry - resolves agent identifiers to roles and display metadata.

Built-in agents use their role tag as id. Additional agents can be
declared in ``agents.toml``:

	[[agents]]
	id = "qa-2"
	name = "QA Engineer (mobile)"
	role = "qa_engineer"
	active = true
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import AgentNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Agent:
	"""A named role that can initiate or receive coordination records."""
	id: str
	name: str
	role: str
	description: str = ""
	active: bool = True

	def to_dict(self) -> dict:
		return {"id": self.id, "name": self.name, "role": self.role, "description": self.description}


DEFAULT_AGENTS: tuple[Agent, ...] = (
	Agent("manager", "Manager Agent", "manager", "Plans the project and coordinates the team"),
	Agent("solutions_architect", "Solutions Architect", "solutions_architect", "System architecture and data design"),
	Agent("full_stack_engineer", "Full Stack Engineer", "full_stack_engineer", "Frontend and backend implementation"),
	Agent("devops_engineer", "DevOps Engineer", "devops_engineer", "Deployment pipelines and infrastructure"),
	Agent("qa_engineer", "QA Engineer", "qa_engineer", "Test suites and quality gates"),
	Agent("security_engineer", "Security Engineer", "security_engineer", "Security audits and vulnerability scanning"),
	Agent("performance_engineer", "Performance Engineer", "performance_engineer", "Profiling and optimization"),
	Agent("documentation_specialist", "Documentation Specialist", "documentation_specialist", "Project documentation"),
)


class AgentRegistry:
	"""Read-only lookup over a fixed set of agents."""

	def __init__(self, agents: tuple[Agent, ...] | list[Agent] = DEFAULT_AGENTS):
		self._agents: dict[str, Agent] = {}
		for agent in agents:
			self._agents[agent.id] = agent

	def resolve(self, agent_id: Optional[str]) -> Agent:
		"""
		Resolve an agent id to an active agent.

		Raises:
			AgentNotFoundError: If the id is missing, unknown or inactive
		"""
		if not agent_id:
			raise AgentNotFoundError("Agent id is required")
		agent = self._agents.get(agent_id)
		if agent is None:
			raise AgentNotFoundError(f"Unknown agent: {agent_id}")
		if not agent.active:
			raise AgentNotFoundError(f"Agent is inactive: {agent_id}")
		return agent

	def get(self, agent_id: str) -> Optional[Agent]:
		"""Look up an agent without raising, inactive agents included."""
		return self._agents.get(agent_id)

	def find_by_role(self, role: str) -> Optional[Agent]:
		"""Get the first active agent carrying a role."""
		for agent in self._agents.values():
			if agent.role == role and agent.active:
				return agent
		return None

	def list_agents(self, include_inactive: bool = False) -> list[Agent]:
		"""List agents in registration order."""
		return [a for a in self._agents.values() if include_inactive or a.active]

	@classmethod
	def from_toml(cls, path: Path, include_defaults: bool = True) -> "AgentRegistry":
		"""Build a registry from an agents.toml file layered over the defaults.

		Entries whose id matches a built-in agent replace it.
		"""
		agents: list[Agent] = list(DEFAULT_AGENTS) if include_defaults else []
		if not path.exists():
			return cls(agents)

		with open(path, "rb") as f:
			data = tomllib.load(f)

		for entry in data.get("agents", []):
			try:
				agent = Agent(
					id=entry["id"],
					name=entry.get("name", entry["id"]),
					role=entry["role"],
					description=entry.get("description", ""),
					active=bool(entry.get("active", True)),
				)
			except KeyError as e:
				raise ValueError(f"Agent entry in {path} missing field: {e}") from e
			agents = [a for a in agents if a.id != agent.id]
			agents.append(agent)

		logger.info(f"Loaded {len(agents)} agents from {path}")
		return cls(agents)


# Global registry instance
_registry: Optional[AgentRegistry] = None


def get_agent_registry() -> AgentRegistry:
	"""Get or create the global registry from the configured agents file."""
	global _registry
	if _registry is None:
		from .config import get_config
		_registry = AgentRegistry.from_toml(get_config().agents_file)
	return _registry
