"""Task management tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..errors import StoreError, ValidationError
from ..plans.models import TaskCreateInput, TaskPriority, TaskStatus, coerce_enum
from ..stores import Stores
from .results import error, ok


def _parse_bulk_inputs(tasks_json: str) -> list[TaskCreateInput]:
	"""Decode the bulk-create argument: a JSON array of task objects."""
	try:
		items = json.loads(tasks_json)
	except json.JSONDecodeError as e:
		raise ValidationError(f"tasks must be a JSON array: {e}") from e
	if not isinstance(items, list):
		raise ValidationError("tasks must be a JSON array")

	inputs = []
	for i, item in enumerate(items):
		if not isinstance(item, dict):
			raise ValidationError(f"task {i}: expected an object")
		inputs.append(TaskCreateInput(
			title=str(item.get("title") or ""),
			description=str(item.get("description") or ""),
			status=str(item.get("status") or ""),
			priority=str(item.get("priority") or ""),
		))
	return inputs


def register_tasks_tools(mcp: FastMCP, stores: Stores) -> None:
	"""Register task management tools."""

	@mcp.tool()
	async def create_task(plan_id: str, title: str, description: str = "", priority: str = "medium") -> str:
		"""
		Add a task to the end of a plan.

		Args:
			plan_id: Plan ID
			title: Task title
			description: Task description
			priority: low, medium or high
		"""
		try:
			task = await stores.tasks.create_task(plan_id, title, description, priority)
		except StoreError as e:
			return error(e)
		return ok({"task": task.model_dump(mode="json")})

	@mcp.tool()
	async def bulk_create_tasks(plan_id: str, tasks: str) -> str:
		"""
		Add several tasks to the end of a plan, in the given order.

		Args:
			plan_id: Plan ID
			tasks: JSON array of objects with title (required), description,
				status and priority
		"""
		try:
			created = await stores.tasks.create_tasks_bulk(plan_id, _parse_bulk_inputs(tasks))
		except StoreError as e:
			return error(e)
		return ok({
			"count": len(created),
			"tasks": [t.model_dump(mode="json") for t in created],
		})

	@mcp.tool()
	async def get_task(task_id: str) -> str:
		"""
		Get a task by ID.

		Args:
			task_id: Task ID
		"""
		try:
			task = await stores.tasks.get_task(task_id)
		except StoreError as e:
			return error(e)
		return json.dumps({"task": task.model_dump(mode="json")}, indent=2)

	@mcp.tool()
	async def list_tasks_by_plan(plan_id: str) -> str:
		"""
		List a plan's tasks in order.

		Args:
			plan_id: Plan ID
		"""
		try:
			tasks = await stores.tasks.list_tasks_by_plan(plan_id)
		except StoreError as e:
			return error(e)
		return json.dumps({
			"plan_id": plan_id,
			"count": len(tasks),
			"tasks": [t.model_dump(mode="json") for t in tasks],
		}, indent=2)

	@mcp.tool()
	async def list_tasks_by_status(status: str) -> str:
		"""
		List tasks with a given status across all plans.

		Args:
			status: pending, in_progress, completed or cancelled
		"""
		try:
			tasks = await stores.tasks.list_tasks_by_status(status)
		except StoreError as e:
			return error(e)
		return json.dumps({
			"status": status,
			"count": len(tasks),
			"tasks": [t.model_dump(mode="json") for t in tasks],
		}, indent=2)

	@mcp.tool()
	async def list_tasks_by_plan_and_status(plan_id: str, status: str) -> str:
		"""
		List a plan's tasks with a given status, in order.

		Args:
			plan_id: Plan ID
			status: pending, in_progress, completed or cancelled
		"""
		try:
			tasks = await stores.tasks.list_tasks_by_plan_and_status(plan_id, status)
		except StoreError as e:
			return error(e)
		return json.dumps({
			"plan_id": plan_id,
			"status": status,
			"count": len(tasks),
			"tasks": [t.model_dump(mode="json") for t in tasks],
		}, indent=2)

	@mcp.tool()
	async def update_task(
		task_id: str,
		title: str = "",
		description: str = "",
		status: str = "",
		priority: str = "",
		plan_id: str = "",
	) -> str:
		"""
		Update a task. Empty arguments leave the field unchanged.

		Giving a different plan_id moves the task to the end of that plan.

		Args:
			task_id: Task ID
			title: New title
			description: New description
			status: pending, in_progress, completed or cancelled
			priority: low, medium or high
			plan_id: Plan to move the task to
		"""
		try:
			task = await stores.tasks.get_task(task_id)
			if title:
				task.title = title
			if description:
				task.description = description
			if status:
				task.status = coerce_enum(TaskStatus, status, "task status")
			if priority:
				task.priority = coerce_enum(TaskPriority, priority, "task priority")
			if plan_id:
				task.plan_id = plan_id
			task = await stores.tasks.update_task(task)
		except StoreError as e:
			return error(e)
		return ok({"task": task.model_dump(mode="json")})

	@mcp.tool()
	async def delete_task(task_id: str) -> str:
		"""
		Delete a task. Later tasks in the plan move up one place.

		Args:
			task_id: Task ID
		"""
		try:
			await stores.tasks.delete_task(task_id)
		except StoreError as e:
			return error(e)
		return ok({"deleted": task_id})

	@mcp.tool()
	async def reorder_task(task_id: str, new_order: int) -> str:
		"""
		Move a task to a new zero-based position within its plan.

		Args:
			task_id: Task ID
			new_order: Target position, 0 to number of tasks - 1
		"""
		try:
			await stores.tasks.reorder_task(task_id, new_order)
			task = await stores.tasks.get_task(task_id)
		except StoreError as e:
			return error(e)
		return ok({"task_id": task_id, "plan_id": task.plan_id, "order": task.order})

	@mcp.tool()
	async def list_orphaned_tasks() -> str:
		"""List tasks whose plan no longer exists."""
		try:
			tasks = await stores.tasks.list_orphaned_tasks()
		except StoreError as e:
			return error(e)
		return json.dumps({
			"count": len(tasks),
			"tasks": [t.model_dump(mode="json") for t in tasks],
		}, indent=2)
