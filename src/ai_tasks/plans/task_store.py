"""
Task Store - ordered task storage within plans.

Each plan keeps its task ids in a sorted set scored by order. Orders form
a dense sequence 0..N-1, kept that way by repacking the plan after every
delete, reorder and move.

There is no locking and no multi-key transaction. Concurrent mutations of
the same plan can briefly leave duplicate or missing order values; the
repack run by the next mutation restores the sequence. Repacking only
rewrites entries that disagree with their position, so running it again
after an interrupted run is safe.
"""

import logging
import uuid
from typing import Optional, Sequence

from pydantic import ValidationError as ModelValidationError
from redis.asyncio import Redis

from ..errors import ConsistencyError, NotFoundError, StorageError, ValidationError
from ..storage import PLANS_KEY, plan_tasks_key, storage_errors, task_key
from ..storage.keys import TASK_KEY_PATTERN, task_id_from_key
from .models import (
	DEFAULT_TASK_DESCRIPTION,
	Task,
	TaskCreateInput,
	TaskPriority,
	TaskStatus,
	coerce_enum,
	format_timestamp,
	utc_now,
)
from .plan_store import PlanStore

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 500


class TaskStore:
	"""
	Task storage and per-plan ordering.

	Usage:
		tasks = TaskStore(redis, PlanStore(redis))

		a = await tasks.create_task(plan.id, "Write schema")
		b = await tasks.create_task(plan.id, "Write migrations")
		await tasks.reorder_task(b.id, 0)
		ordered = await tasks.list_tasks_by_plan(plan.id)

	The plan store is only consulted for plan existence.
	"""

	def __init__(self, redis: Redis, plans: PlanStore):
		self._redis = redis
		self._plans = plans

	async def _require_plan(self, plan_id: str) -> None:
		if not await self._plans.plan_exists(plan_id):
			raise NotFoundError(f"plan not found: {plan_id}")

	async def _sibling_count(self, plan_id: str) -> int:
		with storage_errors("get task count"):
			return await self._redis.zcard(plan_tasks_key(plan_id))

	async def create_task(
		self,
		plan_id: str,
		title: str,
		description: str = "",
		priority: TaskPriority | str = TaskPriority.MEDIUM,
	) -> Task:
		"""
		Append a new pending task to the end of a plan.

		Args:
			plan_id: Plan the task belongs to (must exist)
			title: Task title (required)
			description: Optional description
			priority: low, medium or high

		Returns:
			The stored Task with its assigned order

		Raises:
			NotFoundError: If the plan does not exist
			ValidationError: If the title is empty or the priority unknown
			StorageError: If a write fails (no record is left behind)
		"""
		if not title.strip():
			raise ValidationError("task title is required")
		priority = coerce_enum(TaskPriority, priority or TaskPriority.MEDIUM, "task priority")
		await self._require_plan(plan_id)

		task = Task(
			id=str(uuid.uuid4()),
			plan_id=plan_id,
			title=title,
			description=description,
			priority=priority,
			order=await self._sibling_count(plan_id),
		)
		await self._insert(task)

		logger.info(f"Created task {task.id} in plan {plan_id} at order {task.order}")
		return task

	async def _insert(self, task: Task) -> None:
		"""Write a task record and index it, removing the record if indexing fails."""
		key = task_key(task.id)
		with storage_errors("store task"):
			await self._redis.hset(key, mapping=task.to_hash())

		try:
			with storage_errors("add task to plan"):
				await self._redis.zadd(plan_tasks_key(task.plan_id), {task.id: task.order})
		except StorageError:
			try:
				with storage_errors(f"clean up task {task.id}"):
					await self._redis.delete(key)
			except StorageError as cleanup_error:
				logger.warning(f"Could not clean up task {task.id} after failed index insert: {cleanup_error}")
			raise

	async def create_tasks_bulk(self, plan_id: str, inputs: Sequence[TaskCreateInput]) -> list[Task]:
		"""
		Append several tasks to a plan, in input order.

		Every input is validated before the first write, so an invalid
		input means nothing is written. Once writing has started, a
		failure keeps the tasks already written and raises StorageError
		naming the failing input.

		Defaults: empty description becomes a placeholder, empty status
		pending, empty priority medium.

		Raises:
			NotFoundError: If the plan does not exist
			ValidationError: If any input has no title or an unknown status/priority
			StorageError: If a write fails part way through
		"""
		await self._require_plan(plan_id)

		prepared = []
		for i, item in enumerate(inputs):
			if not item.title or not item.title.strip():
				raise ValidationError(f"task {i}: title is required")
			status = coerce_enum(TaskStatus, item.status or TaskStatus.PENDING, f"task {i} status")
			priority = coerce_enum(TaskPriority, item.priority or TaskPriority.MEDIUM, f"task {i} priority")
			prepared.append((item, status, priority))

		offset = await self._sibling_count(plan_id)
		created: list[Task] = []
		for i, (item, status, priority) in enumerate(prepared):
			task = Task(
				id=str(uuid.uuid4()),
				plan_id=plan_id,
				title=item.title,
				description=item.description or DEFAULT_TASK_DESCRIPTION,
				status=status,
				priority=priority,
				order=offset + i,
			)
			try:
				await self._insert(task)
			except StorageError as e:
				logger.error(
					f"Bulk create in plan {plan_id} stopped at input {i}; "
					f"{len(created)} tasks were written and kept"
				)
				raise StorageError(
					f"bulk create failed at input {i} ({len(created)} tasks already created): {e}"
				) from e
			created.append(task)

		logger.info(f"Created {len(created)} tasks in plan {plan_id} starting at order {offset}")
		return created

	async def _read_task(self, task_id: str) -> Optional[Task]:
		with storage_errors(f"get task {task_id}"):
			data = await self._redis.hgetall(task_key(task_id))
		if not data:
			return None
		try:
			return Task.from_hash(data)
		except ModelValidationError as e:
			raise ConsistencyError(f"failed to parse task data for {task_id}: {e}") from e

	async def get_task(self, task_id: str) -> Task:
		"""
		Get a task by ID.

		Raises:
			NotFoundError: If no task record exists
		"""
		task = await self._read_task(task_id)
		if task is None:
			raise NotFoundError(f"task not found: {task_id}")
		return task

	async def update_task(self, task: Task) -> Task:
		"""
		Overwrite a task record and bump updated_at.

		If task.plan_id differs from the stored plan, the task moves: it
		is appended to the end of the new plan with a fresh order and the
		old plan is repacked. Otherwise the stored order is kept; use
		reorder_task to change position.

		Raises:
			NotFoundError: If the task, or the plan it moves to, does not exist
		"""
		current = await self.get_task(task.id)
		moving = current.plan_id != task.plan_id
		if moving:
			await self._require_plan(task.plan_id)

		task.updated_at = utc_now()
		if not moving:
			task.order = current.order
			with storage_errors(f"update task {task.id}"):
				await self._redis.hset(task_key(task.id), mapping=task.to_hash())
			return task

		task.order = await self._sibling_count(task.plan_id)
		with storage_errors(f"update task {task.id}"):
			await self._redis.hset(task_key(task.id), mapping=task.to_hash())

		try:
			with storage_errors("add task to new plan"):
				await self._redis.zadd(plan_tasks_key(task.plan_id), {task.id: task.order})
		except StorageError:
			try:
				with storage_errors(f"restore task {task.id}"):
					await self._redis.hset(task_key(task.id), mapping=current.to_hash())
			except StorageError as restore_error:
				logger.warning(f"Could not restore task {task.id} after failed move: {restore_error}")
			raise

		with storage_errors("remove task from old plan"):
			await self._redis.zrem(plan_tasks_key(current.plan_id), task.id)
		await self.repack_plan(current.plan_id)

		logger.info(f"Moved task {task.id} from plan {current.plan_id} to {task.plan_id} at order {task.order}")
		return task

	async def update_task_notes(self, task_id: str, notes: str) -> None:
		"""Replace a task's notes. Notes are stored exactly as given."""
		with storage_errors(f"check task {task_id}"):
			exists = await self._redis.exists(task_key(task_id))
		if not exists:
			raise NotFoundError(f"task not found: {task_id}")

		with storage_errors(f"update task notes {task_id}"):
			await self._redis.hset(task_key(task_id), mapping={
				"notes": notes,
				"updated_at": format_timestamp(utc_now()),
			})

	async def get_task_notes(self, task_id: str) -> str:
		task = await self.get_task(task_id)
		return task.notes

	async def delete_task(self, task_id: str) -> None:
		"""
		Delete a task and close the gap it leaves in its plan.

		Raises:
			NotFoundError: If the task does not exist
		"""
		task = await self.get_task(task_id)

		with storage_errors(f"delete task {task_id}"):
			await self._redis.delete(task_key(task_id))
		with storage_errors("remove task from plan list"):
			await self._redis.zrem(plan_tasks_key(task.plan_id), task_id)

		await self.repack_plan(task.plan_id)
		logger.info(f"Deleted task {task_id} from plan {task.plan_id}")

	async def reorder_task(self, task_id: str, new_order: int) -> None:
		"""
		Move a task to new_order within its plan.

		Index members without a live record in this plan are pruned
		first, so N counts only real tasks. Siblings between the old and
		new position shift one step toward the vacated slot, then the
		whole plan is repacked.

		Raises:
			NotFoundError: If the task does not exist
			ValidationError: If new_order is outside 0..N-1
			ConsistencyError: If the task is missing from its plan's index
		"""
		task = await self.get_task(task_id)
		plan_id = task.plan_id

		entries = await self._index_entries(plan_id)
		if new_order < 0 or new_order >= len(entries):
			raise ValidationError(
				f"invalid order: {new_order} (must be between 0 and {len(entries) - 1})"
			)

		positions = {member: position for position, (member, _, _) in enumerate(entries)}
		if task_id not in positions:
			raise ConsistencyError(f"task {task_id} is missing from the order index of plan {plan_id}")

		old_order = positions[task_id]
		if old_order != new_order:
			for sibling_id, order in positions.items():
				if sibling_id == task_id:
					continue
				if old_order < order <= new_order:
					await self._write_order(plan_id, sibling_id, order - 1)
				elif new_order <= order < old_order:
					await self._write_order(plan_id, sibling_id, order + 1)
			await self._write_order(plan_id, task_id, new_order)

		await self.repack_plan(plan_id)
		if old_order != new_order:
			logger.info(f"Reordered task {task_id} in plan {plan_id}: {old_order} -> {new_order}")

	async def _write_order(self, plan_id: str, task_id: str, order: int) -> bool:
		"""
		Set a task's order in both the index and its record.

		A task whose record is gone is dropped from the index instead, so
		no partial record is ever created. Returns whether the order was
		written.
		"""
		key = task_key(task_id)
		with storage_errors(f"check task {task_id}"):
			exists = await self._redis.hexists(key, "id")
		if not exists:
			logger.warning(f"Pruning task {task_id} from plan {plan_id}: record deleted before order update")
			with storage_errors(f"prune task {task_id}"):
				await self._redis.zrem(plan_tasks_key(plan_id), task_id)
			return False

		with storage_errors(f"update task order in plan for {task_id}"):
			await self._redis.zadd(plan_tasks_key(plan_id), {task_id: order})
		with storage_errors(f"update task order for {task_id}"):
			await self._redis.hset(key, mapping={
				"order": str(order),
				"updated_at": format_timestamp(utc_now()),
			})
		return True

	async def _index_entries(self, plan_id: str) -> list[tuple[str, float, Optional[str]]]:
		"""
		Read a plan's index as (task_id, score, stored_order) in index order.

		Members whose record is missing, has no id, or belongs to another
		plan are removed from the index and left out. A record without an
		id is a leftover partial hash and is deleted too.
		"""
		index_key = plan_tasks_key(plan_id)
		with storage_errors("list plan tasks"):
			entries = await self._redis.zrange(index_key, 0, -1, withscores=True)

		live = []
		for task_id, score in entries:
			with storage_errors(f"read task order for {task_id}"):
				record_id, owner, stored_order = await self._redis.hmget(
					task_key(task_id), "id", "plan_id", "order"
				)

			if record_id is not None and owner == plan_id:
				live.append((task_id, score, stored_order))
				continue

			reason = "no task record" if record_id is None else f"record belongs to plan {owner}"
			logger.warning(f"Pruning task {task_id} from plan {plan_id}: {reason}")
			with storage_errors(f"prune task {task_id}"):
				await self._redis.zrem(index_key, task_id)
				if record_id is None:
					await self._redis.delete(task_key(task_id))
		return live

	async def repack_plan(self, plan_id: str) -> int:
		"""
		Renumber a plan's tasks 0..N-1 in index order.

		Entries whose index score and stored order already equal their
		position are left alone. Index members without a record in this
		plan are removed.

		Returns:
			Number of tasks rewritten
		"""
		position = 0
		rewritten = 0
		for task_id, score, stored_order in await self._index_entries(plan_id):
			if score != position or stored_order != str(position):
				logger.debug(f"Repack {plan_id}: task {task_id} {score:g}/{stored_order} -> {position}")
				if not await self._write_order(plan_id, task_id, position):
					continue
				rewritten += 1
			position += 1

		if rewritten:
			logger.debug(f"Repacked plan {plan_id}: {rewritten} of {position} tasks rewritten")
		return rewritten

	async def list_tasks_by_plan(self, plan_id: str) -> list[Task]:
		"""
		List a plan's tasks in ascending order.

		Raises:
			NotFoundError: If the plan does not exist
			ConsistencyError: If the index names a task with no record
		"""
		await self._require_plan(plan_id)

		with storage_errors("get plan tasks"):
			task_ids = await self._redis.zrange(plan_tasks_key(plan_id), 0, -1)

		tasks = []
		for task_id in task_ids:
			task = await self._read_task(task_id)
			if task is None:
				raise ConsistencyError(f"plan {plan_id} lists task {task_id} which has no record")
			tasks.append(task)
		return tasks

	async def list_tasks_by_status(self, status: TaskStatus | str) -> list[Task]:
		"""
		List tasks with the given status across every live plan.

		There is no status index: this reads every task of every plan.
		"""
		status = coerce_enum(TaskStatus, status, "task status")
		with storage_errors("get plan list"):
			plan_ids = await self._redis.smembers(PLANS_KEY)

		matches = []
		for plan_id in sorted(plan_ids):
			try:
				tasks = await self.list_tasks_by_plan(plan_id)
			except NotFoundError:
				# Plan deleted since the set was read
				continue
			matches.extend(t for t in tasks if t.status == status)
		return matches

	async def list_tasks_by_plan_and_status(self, plan_id: str, status: TaskStatus | str) -> list[Task]:
		"""List one plan's tasks with the given status, keeping their order."""
		status = coerce_enum(TaskStatus, status, "task status")
		tasks = await self.list_tasks_by_plan(plan_id)
		return [t for t in tasks if t.status == status]

	async def list_orphaned_tasks(self) -> list[Task]:
		"""
		List tasks whose plan is no longer in the live plan set.

		Scans every task record in the keyspace. Records that cannot be
		parsed are logged and skipped.
		"""
		with storage_errors("get plan IDs"):
			live_plans = await self._redis.smembers(PLANS_KEY)

		orphans = []
		with storage_errors("scan task keys"):
			keys = [key async for key in self._redis.scan_iter(match=TASK_KEY_PATTERN, count=SCAN_BATCH_SIZE)]

		for key in keys:
			try:
				task = await self._read_task(task_id_from_key(key))
			except ConsistencyError as e:
				logger.warning(f"Skipping unreadable task record {key}: {e}")
				continue
			if task is None:
				continue
			if task.plan_id and task.plan_id not in live_plans:
				orphans.append(task)

		return sorted(orphans, key=lambda t: (t.plan_id, t.order, t.id))
