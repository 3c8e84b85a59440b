"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "ai-tasks"
APP_AUTHOR = "ai-tasks"

TRANSPORTS = ("stdio", "sse", "streamable-http")


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	log_dir: Path = field(init=False)

	# Valkey connection
	valkey_host: str = "localhost"
	valkey_port: int = 6379
	valkey_username: str = ""
	valkey_password: str = ""
	valkey_db: int = 0

	# MCP transport
	transport: str = "stdio"
	server_host: str = "127.0.0.1"
	server_port: int = 8080

	def __post_init__(self) -> None:
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def validate(self) -> None:
		"""Reject settings the server cannot start with."""
		if self.transport not in TRANSPORTS:
			raise ValueError(f"Unknown transport {self.transport!r} (expected one of {', '.join(TRANSPORTS)})")
		for name in ("valkey_port", "server_port"):
			port = getattr(self, name)
			if not 0 < port < 65536:
				raise ValueError(f"{name} out of range: {port}")


_PATH_FIELDS = {"config_dir", "data_dir"}
_INT_FIELDS = {"valkey_port", "valkey_db", "server_port"}


def _coerce(attr: str, value):
	if attr in _PATH_FIELDS:
		return Path(os.path.expanduser(str(value)))
	if attr in _INT_FIELDS:
		try:
			return int(value)
		except (TypeError, ValueError):
			raise ValueError(f"Invalid integer for {attr}: {value!r}") from None
	return value


def _apply_env_overrides(config: Config) -> Config:
	"""Apply environment variable overrides."""
	env_map = {
		"AI_TASKS_CONFIG_DIR": "config_dir",
		"AI_TASKS_DATA_DIR": "data_dir",
		"VALKEY_HOST": "valkey_host",
		"VALKEY_PORT": "valkey_port",
		"VALKEY_USERNAME": "valkey_username",
		"VALKEY_PASSWORD": "valkey_password",
		"VALKEY_DB": "valkey_db",
		"MCP_TRANSPORT": "transport",
		"SERVER_HOST": "server_host",
		"SERVER_PORT": "server_port",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
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

	for key, val in data.items():
		if hasattr(config, key) and key != "log_dir":
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.validate()
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
