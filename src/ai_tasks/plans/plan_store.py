"""
Plan Store - Valkey-backed plan storage.

Features:
- CRUD operations for plans
- Membership indexes: all plans, plans per application
- Cascading delete of a plan's tasks and order index
- Listing by application and by status
"""

import logging
import uuid
from typing import Optional

from pydantic import ValidationError as ModelValidationError
from redis.asyncio import Redis

from ..errors import ConsistencyError, NotFoundError, StorageError, ValidationError
from ..storage import PLANS_KEY, app_plans_key, plan_key, plan_tasks_key, storage_errors, task_key
from .models import Plan, PlanStatus, coerce_enum, format_timestamp, utc_now

logger = logging.getLogger(__name__)


class PlanStore:
	"""
	Plan storage on top of Valkey hashes and sets.

	Usage:
		store = PlanStore(redis)

		plan = await store.create_plan("my-app", "Launch", "Ship v1")
		plans = await store.list_plans_by_application("my-app")
		await store.delete_plan(plan.id)

	No command batching or locking is used; every call is a single atomic
	command and multi-step operations document what they leave behind on
	failure.
	"""

	def __init__(self, redis: Redis):
		self._redis = redis

	async def create_plan(self, application_id: str, name: str, description: str = "") -> Plan:
		"""
		Create a new plan with status new.

		Args:
			application_id: Application the plan is grouped under
			name: Plan name
			description: Optional description

		Returns:
			The stored Plan

		Raises:
			ValidationError: If the name is empty
			StorageError: If a write fails (the record is removed again
				when an index insert fails)
		"""
		if not name.strip():
			raise ValidationError("plan name is required")

		plan = Plan(
			id=str(uuid.uuid4()),
			application_id=application_id,
			name=name,
			description=description,
		)
		key = plan_key(plan.id)

		with storage_errors("store plan"):
			await self._redis.hset(key, mapping=plan.to_hash())

		try:
			with storage_errors("add plan to list"):
				await self._redis.sadd(PLANS_KEY, plan.id)
			with storage_errors("add plan to application list"):
				await self._redis.sadd(app_plans_key(application_id), plan.id)
		except StorageError:
			await self._discard_plan_record(plan)
			raise

		logger.info(f"Created plan {plan.id} for application {application_id}")
		return plan

	async def _discard_plan_record(self, plan: Plan) -> None:
		"""Best-effort removal of a plan whose index inserts failed."""
		try:
			with storage_errors(f"clean up plan {plan.id}"):
				await self._redis.srem(PLANS_KEY, plan.id)
				await self._redis.delete(plan_key(plan.id))
		except StorageError as e:
			logger.warning(f"Could not clean up plan {plan.id} after failed create: {e}")

	async def _read_plan(self, plan_id: str) -> Optional[Plan]:
		with storage_errors(f"retrieve plan {plan_id}"):
			data = await self._redis.hgetall(plan_key(plan_id))
		if not data:
			return None
		try:
			return Plan.from_hash(data)
		except ModelValidationError as e:
			raise ConsistencyError(f"failed to parse plan data for {plan_id}: {e}") from e

	async def get_plan(self, plan_id: str) -> Plan:
		"""
		Get a plan by ID.

		Raises:
			NotFoundError: If no plan record exists
		"""
		plan = await self._read_plan(plan_id)
		if plan is None:
			raise NotFoundError(f"plan not found: {plan_id}")
		return plan

	async def plan_exists(self, plan_id: str) -> bool:
		"""Whether plan_id is in the live plan set."""
		with storage_errors(f"check plan {plan_id}"):
			return bool(await self._redis.sismember(PLANS_KEY, plan_id))

	async def update_plan(self, plan: Plan) -> Plan:
		"""
		Overwrite a plan record and bump updated_at.

		Status changes are not checked against any workflow. If the
		application changed, the plan moves between application sets.

		Raises:
			NotFoundError: If the plan does not exist
		"""
		current = await self.get_plan(plan.id)

		plan.updated_at = utc_now()
		with storage_errors(f"update plan {plan.id}"):
			await self._redis.hset(plan_key(plan.id), mapping=plan.to_hash())

		if current.application_id != plan.application_id:
			with storage_errors(f"move plan {plan.id} to application {plan.application_id}"):
				await self._redis.sadd(app_plans_key(plan.application_id), plan.id)
				await self._redis.srem(app_plans_key(current.application_id), plan.id)
			logger.info(
				f"Moved plan {plan.id} from application {current.application_id} "
				f"to {plan.application_id}"
			)

		return plan

	async def update_plan_status(self, plan_id: str, status: PlanStatus | str) -> Plan:
		"""Set only the status of a plan. Any known status is accepted."""
		status = coerce_enum(PlanStatus, status, "plan status")
		plan = await self.get_plan(plan_id)
		plan.status = status
		plan.updated_at = utc_now()

		with storage_errors(f"update plan status {plan_id}"):
			await self._redis.hset(plan_key(plan_id), mapping={
				"status": plan.status.value,
				"updated_at": format_timestamp(plan.updated_at),
			})
		return plan

	async def update_plan_notes(self, plan_id: str, notes: str) -> None:
		"""Replace a plan's notes. Notes are stored exactly as given."""
		with storage_errors(f"check plan {plan_id}"):
			exists = await self._redis.exists(plan_key(plan_id))
		if not exists:
			raise NotFoundError(f"plan not found: {plan_id}")

		with storage_errors(f"update plan notes {plan_id}"):
			await self._redis.hset(plan_key(plan_id), mapping={
				"notes": notes,
				"updated_at": format_timestamp(utc_now()),
			})

	async def get_plan_notes(self, plan_id: str) -> str:
		plan = await self.get_plan(plan_id)
		return plan.notes

	async def delete_plan(self, plan_id: str) -> None:
		"""
		Delete a plan and all its tasks.

		Steps: every task record in the plan's order index, the index
		itself, the plan record, then the plan's set memberships. A
		failure after the first task was deleted leaves a partially
		deleted plan and is raised as StorageError naming the step.

		Raises:
			NotFoundError: If the plan does not exist
			StorageError: If any step fails
		"""
		plan = await self.get_plan(plan_id)
		tasks_key = plan_tasks_key(plan_id)

		with storage_errors(f"retrieve plan tasks {plan_id}"):
			task_ids = await self._redis.zrange(tasks_key, 0, -1)

		step = "delete tasks"
		try:
			for task_id in task_ids:
				with storage_errors(f"delete task {task_id}"):
					await self._redis.delete(task_key(task_id))

			step = "delete order index"
			with storage_errors("delete plan tasks set"):
				await self._redis.delete(tasks_key)

			step = "delete plan record"
			with storage_errors("delete plan"):
				await self._redis.delete(plan_key(plan_id))

			step = "remove from indexes"
			with storage_errors("remove plan from list"):
				await self._redis.srem(PLANS_KEY, plan_id)
			with storage_errors("remove plan from application list"):
				await self._redis.srem(app_plans_key(plan.application_id), plan_id)
		except StorageError as e:
			logger.error(f"Plan {plan_id} partially deleted (failed at step: {step}): {e}")
			raise StorageError(f"plan {plan_id} partially deleted at step '{step}': {e}") from e

		logger.info(f"Deleted plan {plan_id} and {len(task_ids)} tasks")

	async def list_plans(self) -> list[Plan]:
		"""
		List all live plans, oldest first.

		Raises:
			ConsistencyError: If the plan set names a plan with no record
		"""
		with storage_errors("retrieve plan IDs"):
			plan_ids = await self._redis.smembers(PLANS_KEY)

		plans = []
		for plan_id in plan_ids:
			plan = await self._read_plan(plan_id)
			if plan is None:
				raise ConsistencyError(f"plan {plan_id} is listed but has no record")
			plans.append(plan)
		return _sorted_plans(plans)

	async def list_plans_by_application(self, application_id: str) -> list[Plan]:
		"""List the plans of one application. Ids without a record are skipped."""
		with storage_errors("retrieve application plan IDs"):
			plan_ids = await self._redis.smembers(app_plans_key(application_id))
		return _sorted_plans(await self._read_existing(plan_ids))

	async def list_plans_by_status(self, status: PlanStatus | str) -> list[Plan]:
		"""
		List plans with the given status.

		Legacy plans stored without a status count as new.
		"""
		status = coerce_enum(PlanStatus, status, "plan status")
		with storage_errors("retrieve plan IDs"):
			plan_ids = await self._redis.smembers(PLANS_KEY)

		plans = await self._read_existing(plan_ids)
		return _sorted_plans([p for p in plans if p.status == status])

	async def _read_existing(self, plan_ids) -> list[Plan]:
		plans = []
		for plan_id in plan_ids:
			plan = await self._read_plan(plan_id)
			if plan is None:
				# Deleted between the set read and the record read
				logger.warning(f"Skipping plan {plan_id}: listed but has no record")
				continue
			plans.append(plan)
		return plans


def _sorted_plans(plans: list[Plan]) -> list[Plan]:
	return sorted(plans, key=lambda p: (p.created_at, p.id))
