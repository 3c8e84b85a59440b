"""Tests for the task store: CRUD, bulk create, moves and listings."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ai_tasks.errors import ConsistencyError, NotFoundError, StorageError, ValidationError
from ai_tasks.plans import TaskCreateInput, TaskPriority, TaskStatus
from ai_tasks.plans.models import DEFAULT_TASK_DESCRIPTION

from tests.helpers import assert_dense_order, make_plan_with_tasks, orders_by_title


class TestCreateTask:
	"""Single task creation."""

	@pytest.mark.asyncio
	async def test_tasks_append_in_order(self, redis, plan_store, task_store):
		plan_id, tasks = await make_plan_with_tasks(plan_store, task_store, ["A", "B", "C"])

		assert [t.order for t in tasks] == [0, 1, 2]
		assert all(t.status == TaskStatus.PENDING for t in tasks)
		assert await redis.zrange(f"plan_tasks:{plan_id}", 0, -1) == [t.id for t in tasks]
		assert (await redis.hgetall(f"task:{tasks[2].id}"))["order"] == "2"

	@pytest.mark.asyncio
	async def test_create_in_missing_plan(self, redis, task_store):
		with pytest.raises(NotFoundError):
			await task_store.create_task("missing", "A")
		assert await redis.keys("task:*") == []

	@pytest.mark.asyncio
	async def test_create_requires_title(self, plan_store, task_store):
		plan = await plan_store.create_plan("app", "P")
		with pytest.raises(ValidationError):
			await task_store.create_task(plan.id, "")

	@pytest.mark.asyncio
	async def test_create_rejects_unknown_priority(self, plan_store, task_store):
		plan = await plan_store.create_plan("app", "P")
		with pytest.raises(ValidationError):
			await task_store.create_task(plan.id, "A", priority="urgent")

	@pytest.mark.asyncio
	async def test_failed_index_insert_removes_record(self, redis, plan_store, task_store):
		"""No task record is left behind when the index insert fails."""
		plan = await plan_store.create_plan("app", "P")
		with patch.object(redis, "zadd", AsyncMock(side_effect=RedisConnectionError("down"))):
			with pytest.raises(StorageError, match="add task to plan"):
				await task_store.create_task(plan.id, "A")

		assert await redis.keys("task:*") == []


class TestCreateBulk:
	"""Bulk creation validates first and writes in order."""

	@pytest.mark.asyncio
	async def test_bulk_defaults_and_offset(self, plan_store, task_store):
		plan_id, _ = await make_plan_with_tasks(plan_store, task_store, ["Existing"])

		created = await task_store.create_tasks_bulk(plan_id, [
			TaskCreateInput(title="B"),
			TaskCreateInput(title="C", description="details", status="in_progress", priority="high"),
		])

		assert [t.order for t in created] == [1, 2]
		assert created[0].description == DEFAULT_TASK_DESCRIPTION
		assert created[0].status == TaskStatus.PENDING
		assert created[0].priority == TaskPriority.MEDIUM
		assert created[1].status == TaskStatus.IN_PROGRESS
		assert created[1].priority == TaskPriority.HIGH
		assert await orders_by_title(task_store, plan_id) == {"Existing": 0, "B": 1, "C": 2}

	@pytest.mark.asyncio
	async def test_missing_title_writes_nothing(self, redis, plan_store, task_store):
		plan = await plan_store.create_plan("app", "P")

		with pytest.raises(ValidationError, match="task 2"):
			await task_store.create_tasks_bulk(plan.id, [
				TaskCreateInput(title="A"),
				TaskCreateInput(title="B"),
				TaskCreateInput(title=""),
			])

		assert await redis.keys("task:*") == []
		assert await task_store.list_tasks_by_plan(plan.id) == []

	@pytest.mark.asyncio
	async def test_unknown_status_writes_nothing(self, redis, plan_store, task_store):
		plan = await plan_store.create_plan("app", "P")

		with pytest.raises(ValidationError):
			await task_store.create_tasks_bulk(plan.id, [
				TaskCreateInput(title="A"),
				TaskCreateInput(title="B", status="blocked"),
			])

		assert await redis.keys("task:*") == []

	@pytest.mark.asyncio
	async def test_bulk_missing_plan(self, task_store):
		with pytest.raises(NotFoundError):
			await task_store.create_tasks_bulk("missing", [TaskCreateInput(title="A")])

	@pytest.mark.asyncio
	async def test_failure_midway_keeps_earlier_tasks(self, redis, plan_store, task_store):
		"""Tasks written before a failure stay; the failing one is cleaned up."""
		plan = await plan_store.create_plan("app", "P")
		real_zadd = redis.zadd
		calls = {"n": 0}

		async def flaky_zadd(*args, **kwargs):
			calls["n"] += 1
			if calls["n"] == 2:
				raise RedisConnectionError("connection lost")
			return await real_zadd(*args, **kwargs)

		with patch.object(redis, "zadd", flaky_zadd):
			with pytest.raises(StorageError, match="input 1"):
				await task_store.create_tasks_bulk(plan.id, [
					TaskCreateInput(title="A"),
					TaskCreateInput(title="B"),
					TaskCreateInput(title="C"),
				])

		remaining = await task_store.list_tasks_by_plan(plan.id)
		assert [t.title for t in remaining] == ["A"]
		assert len(await redis.keys("task:*")) == 1


class TestGetAndUpdateTask:
	"""Reads, full updates and moves."""

	@pytest.mark.asyncio
	async def test_get_missing_task(self, task_store):
		with pytest.raises(NotFoundError):
			await task_store.get_task("missing")

	@pytest.mark.asyncio
	async def test_update_keeps_order(self, plan_store, task_store):
		plan_id, tasks = await make_plan_with_tasks(plan_store, task_store, ["A", "B"])
		task = tasks[1]
		task.title = "B2"
		task.status = TaskStatus.COMPLETED
		task.order = 0
		task.updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)

		await task_store.update_task(task)

		stored = await task_store.get_task(task.id)
		assert stored.title == "B2"
		assert stored.status == TaskStatus.COMPLETED
		assert stored.order == 1
		assert stored.updated_at > datetime(2020, 1, 1, tzinfo=timezone.utc)

	@pytest.mark.asyncio
	async def test_any_status_transition_is_accepted(self, plan_store, task_store):
		_, tasks = await make_plan_with_tasks(plan_store, task_store, ["A"])
		task = tasks[0]
		task.status = TaskStatus.CANCELLED
		await task_store.update_task(task)
		task.status = TaskStatus.PENDING
		await task_store.update_task(task)

		assert (await task_store.get_task(task.id)).status == TaskStatus.PENDING

	@pytest.mark.asyncio
	async def test_update_missing_task(self, plan_store, task_store):
		_, tasks = await make_plan_with_tasks(plan_store, task_store, ["A"])
		task = tasks[0]
		task.id = "missing"
		with pytest.raises(NotFoundError):
			await task_store.update_task(task)

	@pytest.mark.asyncio
	async def test_move_appends_to_new_plan(self, redis, plan_store, task_store):
		"""A new plan_id moves the task to the end of that plan with a fresh order."""
		src_id, src_tasks = await make_plan_with_tasks(plan_store, task_store, ["A", "B", "C"])
		dst_id, _ = await make_plan_with_tasks(plan_store, task_store, ["X", "Y"])

		moving = src_tasks[0]
		moving.plan_id = dst_id
		moved = await task_store.update_task(moving)

		assert moved.order == 2
		assert not await redis.zscore(f"plan_tasks:{src_id}", moving.id)
		assert await orders_by_title(task_store, dst_id) == {"X": 0, "Y": 1, "A": 2}
		assert await orders_by_title(task_store, src_id) == {"B": 0, "C": 1}
		await assert_dense_order(redis, task_store, src_id)
		await assert_dense_order(redis, task_store, dst_id)

	@pytest.mark.asyncio
	async def test_move_to_missing_plan(self, plan_store, task_store):
		src_id, tasks = await make_plan_with_tasks(plan_store, task_store, ["A"])
		task = tasks[0]
		task.plan_id = "missing"

		with pytest.raises(NotFoundError):
			await task_store.update_task(task)

		assert (await task_store.get_task(task.id)).plan_id == src_id

	@pytest.mark.asyncio
	async def test_failed_move_restores_record(self, redis, plan_store, task_store):
		src_id, tasks = await make_plan_with_tasks(plan_store, task_store, ["A"])
		dst = await plan_store.create_plan("app", "Target")
		task = tasks[0]
		task.plan_id = dst.id

		with patch.object(redis, "zadd", AsyncMock(side_effect=RedisConnectionError("down"))):
			with pytest.raises(StorageError):
				await task_store.update_task(task)

		stored = await task_store.get_task(task.id)
		assert stored.plan_id == src_id
		assert await redis.zrange(f"plan_tasks:{src_id}", 0, -1) == [task.id]

	@pytest.mark.asyncio
	async def test_notes(self, plan_store, task_store):
		_, tasks = await make_plan_with_tasks(plan_store, task_store, ["A"])
		await task_store.update_task_notes(tasks[0].id, "- item\n")

		assert await task_store.get_task_notes(tasks[0].id) == "- item\n"
		assert (await task_store.get_task(tasks[0].id)).order == 0

	@pytest.mark.asyncio
	async def test_notes_missing_task(self, task_store):
		with pytest.raises(NotFoundError):
			await task_store.update_task_notes("missing", "text")
		with pytest.raises(NotFoundError):
			await task_store.get_task_notes("missing")


class TestDeleteTask:
	"""Deleting closes the gap."""

	@pytest.mark.asyncio
	async def test_delete_middle_task(self, redis, plan_store, task_store):
		plan_id, (a, b, c) = await make_plan_with_tasks(plan_store, task_store, ["A", "B", "C"])

		await task_store.delete_task(b.id)

		listed = await task_store.list_tasks_by_plan(plan_id)
		assert [(t.id, t.order) for t in listed] == [(a.id, 0), (c.id, 1)]
		assert not await redis.exists(f"task:{b.id}")
		await assert_dense_order(redis, task_store, plan_id)

	@pytest.mark.asyncio
	async def test_delete_missing_task(self, task_store):
		with pytest.raises(NotFoundError):
			await task_store.delete_task("missing")

	@pytest.mark.asyncio
	async def test_delete_last_task_empties_plan(self, plan_store, task_store):
		plan_id, tasks = await make_plan_with_tasks(plan_store, task_store, ["Only"])
		await task_store.delete_task(tasks[0].id)
		assert await task_store.list_tasks_by_plan(plan_id) == []


class TestListTasks:
	"""Plan, status and orphan listings."""

	@pytest.mark.asyncio
	async def test_list_by_missing_plan(self, task_store):
		with pytest.raises(NotFoundError):
			await task_store.list_tasks_by_plan("missing")

	@pytest.mark.asyncio
	async def test_dangling_index_entry_is_reported(self, redis, plan_store, task_store):
		plan_id, _ = await make_plan_with_tasks(plan_store, task_store, ["A"])
		await redis.zadd(f"plan_tasks:{plan_id}", {"ghost": 1})

		with pytest.raises(ConsistencyError, match="ghost"):
			await task_store.list_tasks_by_plan(plan_id)

	@pytest.mark.asyncio
	async def test_list_by_status_across_plans(self, plan_store, task_store):
		p1, (a, b) = await make_plan_with_tasks(plan_store, task_store, ["A", "B"])
		p2, (c,) = await make_plan_with_tasks(plan_store, task_store, ["C"])
		for task in (a, c):
			task.status = TaskStatus.COMPLETED
			await task_store.update_task(task)

		completed = await task_store.list_tasks_by_status("completed")
		assert {t.id for t in completed} == {a.id, c.id}
		assert [t.id for t in await task_store.list_tasks_by_status(TaskStatus.PENDING)] == [b.id]

	@pytest.mark.asyncio
	async def test_list_by_status_rejects_unknown(self, task_store):
		with pytest.raises(ValidationError):
			await task_store.list_tasks_by_status("blocked")

	@pytest.mark.asyncio
	async def test_list_by_plan_and_status_keeps_order(self, plan_store, task_store):
		plan_id, (a, b, c) = await make_plan_with_tasks(plan_store, task_store, ["A", "B", "C"])
		for task in (c, a):
			task.status = TaskStatus.IN_PROGRESS
			await task_store.update_task(task)

		listed = await task_store.list_tasks_by_plan_and_status(plan_id, "in_progress")
		assert [t.id for t in listed] == [a.id, c.id]

	@pytest.mark.asyncio
	async def test_orphans_after_plan_record_removed(self, redis, plan_store, task_store):
		"""Tasks of a plan removed without its tasks show up as orphans."""
		live_id, _ = await make_plan_with_tasks(plan_store, task_store, ["Live"])
		gone_id, gone_tasks = await make_plan_with_tasks(plan_store, task_store, ["X", "Y"])

		assert await task_store.list_orphaned_tasks() == []

		await redis.srem("plans", gone_id)
		await redis.delete(f"plan:{gone_id}")

		orphans = await task_store.list_orphaned_tasks()
		assert [t.id for t in orphans] == [t.id for t in gone_tasks]
		assert all(t.plan_id == gone_id for t in orphans)

	@pytest.mark.asyncio
	async def test_orphans_without_any_index(self, redis, task_store):
		"""Task records with no order index entry are still found."""
		await redis.hset("task:stray", mapping={
			"id": "stray",
			"plan_id": "long-gone",
			"title": "Stray",
			"status": "pending",
			"priority": "low",
			"order": "0",
			"created_at": "2024-01-01T00:00:00Z",
			"updated_at": "2024-01-01T00:00:00Z",
		})

		orphans = await task_store.list_orphaned_tasks()
		assert [t.id for t in orphans] == ["stray"]
		assert orphans[0].description == ""

	@pytest.mark.asyncio
	async def test_orphans_skip_unreadable_records(self, redis, plan_store, task_store, caplog):
		"""One malformed record does not hide the other orphans."""
		plan_id, (a,) = await make_plan_with_tasks(plan_store, task_store, ["A"])
		await redis.srem("plans", plan_id)
		await redis.hset("task:broken", mapping={"id": "broken", "plan_id": "gone", "status": "blocked"})

		with caplog.at_level("WARNING", logger="ai_tasks.plans.task_store"):
			orphans = await task_store.list_orphaned_tasks()

		assert [t.id for t in orphans] == [a.id]
		assert "task:broken" in caplog.text
