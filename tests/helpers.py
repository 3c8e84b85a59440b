"""Shared test helpers for ai-tasks tests."""

from typing import Callable

from ai_tasks.plans import PlanStore, Task, TaskStore
from ai_tasks.stores import Stores


def capture_tools(stores: Stores, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured functions.

	Args:
		stores: Stores to pass to the registration function
		register_fn: The registration function (e.g., register_tasks_tools)

	Returns:
		Dict mapping tool or resource function name to the function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

		def resource(self, uri, **kwargs):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), stores)
	return captured


async def make_plan_with_tasks(
	plans: PlanStore,
	tasks: TaskStore,
	titles: list[str],
	application_id: str = "test-app",
	name: str = "Test plan",
) -> tuple[str, list[Task]]:
	"""Create a plan and append one task per title, in order."""
	plan = await plans.create_plan(application_id, name, "A plan for testing")
	created = [await tasks.create_task(plan.id, title) for title in titles]
	return plan.id, created


async def orders_by_title(tasks: TaskStore, plan_id: str) -> dict[str, int]:
	"""Map task title to stored order for a plan."""
	return {t.title: t.order for t in await tasks.list_tasks_by_plan(plan_id)}


async def assert_dense_order(redis, tasks: TaskStore, plan_id: str) -> None:
	"""Orders are exactly 0..N-1 and every index score matches its record."""
	listed = await tasks.list_tasks_by_plan(plan_id)
	assert [t.order for t in listed] == list(range(len(listed)))

	scores = dict(await redis.zrange(f"plan_tasks:{plan_id}", 0, -1, withscores=True))
	assert {t.id: float(t.order) for t in listed} == scores
