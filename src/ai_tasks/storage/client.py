"""
Valkey client helpers.

Valkey speaks the Redis protocol, so the redis-py asyncio client is used
directly. Each command is atomic on the server; nothing here batches
commands into transactions.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..config import Config
from ..errors import StorageError

logger = logging.getLogger(__name__)


def create_client(config: Config) -> Redis:
	"""Build an asyncio client from the configured connection settings."""
	return Redis(
		host=config.valkey_host,
		port=config.valkey_port,
		db=config.valkey_db,
		username=config.valkey_username or None,
		password=config.valkey_password or None,
		decode_responses=True,
	)


async def ping(client: Redis) -> None:
	"""Check the connection, raising StorageError if the server is unreachable."""
	with storage_errors("ping valkey"):
		await client.ping()


async def close_client(client: Redis) -> None:
	"""Close the client's connection pool."""
	await client.aclose()


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
	"""
	Translate client failures into StorageError.

	Usage:
		with storage_errors("store task"):
			await redis.hset(key, mapping=data)
	"""
	try:
		yield
	except RedisError as e:
		logger.debug(f"Valkey call failed while trying to {action}: {e}")
		raise StorageError(f"failed to {action}: {e}") from e
