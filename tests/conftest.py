"""Shared fixtures: an isolated in-memory Valkey per test."""

import fakeredis
import pytest

from ai_tasks.stores import Stores


@pytest.fixture
async def redis():
	client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
	yield client
	await client.aclose()


@pytest.fixture
def stores(redis) -> Stores:
	return Stores.from_client(redis)


@pytest.fixture
def plan_store(stores):
	return stores.plans


@pytest.fixture
def task_store(stores):
	return stores.tasks
