"""Notes tools. Notes go through the markdown pipeline before storage."""

import json

from mcp.server.fastmcp import FastMCP

from ..errors import StoreError
from ..notes import prepare_notes
from ..stores import Stores
from .results import error, ok


def register_notes_tools(mcp: FastMCP, stores: Stores) -> None:
	"""Register plan and task notes tools."""

	@mcp.tool()
	async def update_plan_notes(plan_id: str, notes: str) -> str:
		"""
		Replace the notes of a plan.

		Args:
			plan_id: Plan ID
			notes: Markdown-formatted notes content
		"""
		try:
			await stores.plans.update_plan_notes(plan_id, prepare_notes(notes))
		except StoreError as e:
			return error(e)
		return ok({"plan_id": plan_id})

	@mcp.tool()
	async def get_plan_notes(plan_id: str) -> str:
		"""
		Get the notes of a plan.

		Args:
			plan_id: Plan ID
		"""
		try:
			notes = await stores.plans.get_plan_notes(plan_id)
		except StoreError as e:
			return error(e)
		return json.dumps({"plan_id": plan_id, "notes": notes})

	@mcp.tool()
	async def update_task_notes(task_id: str, notes: str) -> str:
		"""
		Replace the notes of a task.

		Args:
			task_id: Task ID
			notes: Markdown-formatted notes content
		"""
		try:
			await stores.tasks.update_task_notes(task_id, prepare_notes(notes))
		except StoreError as e:
			return error(e)
		return ok({"task_id": task_id})

	@mcp.tool()
	async def get_task_notes(task_id: str) -> str:
		"""
		Get the notes of a task.

		Args:
			task_id: Task ID
		"""
		try:
			notes = await stores.tasks.get_task_notes(task_id)
		except StoreError as e:
			return error(e)
		return json.dumps({"task_id": task_id, "notes": notes})
