"""Store wiring shared by the MCP server and the CLI."""

from dataclasses import dataclass

from redis.asyncio import Redis

from .config import Config, get_config
from .plans import PlanStore, TaskStore
from .storage import close_client, create_client


@dataclass
class Stores:
	"""The plan and task stores over one client."""
	redis: Redis
	plans: PlanStore
	tasks: TaskStore

	@classmethod
	def from_client(cls, redis: Redis) -> "Stores":
		plans = PlanStore(redis)
		return cls(redis=redis, plans=plans, tasks=TaskStore(redis, plans))

	async def close(self) -> None:
		await close_client(self.redis)


# Global stores instance
_stores: Stores | None = None


def get_stores(config: Config | None = None) -> Stores:
	"""Get or create the global stores. The client connects on first use."""
	global _stores
	if _stores is None:
		_stores = Stores.from_client(create_client(config or get_config()))
	return _stores
