"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "agent-coordination"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	db_path: Path = field(init=False)
	agents_file: Path = field(init=False)
	log_dir: Path = field(init=False)

	# User-configurable
	log_level: str = "INFO"
	web_host: str = "127.0.0.1"
	web_port: int = 8430
	busy_timeout: float = 5.0

	def __post_init__(self) -> None:
		self.db_path = self.data_dir / "coordination.db"
		self.agents_file = self.config_dir / "agents.toml"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


def _apply_env_overrides(config: Config) -> Config:
	"""Apply AGENT_COORDINATION_* environment variable overrides."""
	path_env = {
		"AGENT_COORDINATION_CONFIG_DIR": "config_dir",
		"AGENT_COORDINATION_DATA_DIR": "data_dir",
	}
	for env_key, attr in path_env.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	level = os.getenv("AGENT_COORDINATION_LOG_LEVEL")
	if level:
		config.log_level = level.upper()

	port = os.getenv("AGENT_COORDINATION_WEB_PORT")
	if port:
		config.web_port = int(port)

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if hasattr(config, key):
			if key in path_fields:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
