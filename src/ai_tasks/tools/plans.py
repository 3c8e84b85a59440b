"""Plan management tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..errors import StoreError
from ..plans.models import PlanStatus, coerce_enum
from ..stores import Stores
from .results import error, ok


def register_plans_tools(mcp: FastMCP, stores: Stores) -> None:
	"""Register plan management tools."""

	@mcp.tool()
	async def create_plan(application_id: str, name: str, description: str = "") -> str:
		"""
		Create a new plan for an application.

		Args:
			application_id: Application the plan belongs to (e.g., "my-app")
			name: Plan name
			description: What the plan achieves
		"""
		try:
			plan = await stores.plans.create_plan(application_id, name, description)
		except StoreError as e:
			return error(e)
		return ok({"plan": plan.model_dump(mode="json")})

	@mcp.tool()
	async def get_plan(plan_id: str) -> str:
		"""
		Get a plan by ID.

		Args:
			plan_id: The plan ID
		"""
		try:
			plan = await stores.plans.get_plan(plan_id)
		except StoreError as e:
			return error(e)
		return json.dumps({"plan": plan.model_dump(mode="json")}, indent=2)

	@mcp.tool()
	async def list_plans() -> str:
		"""List all plans."""
		try:
			plans = await stores.plans.list_plans()
		except StoreError as e:
			return error(e)
		return json.dumps({
			"count": len(plans),
			"plans": [p.model_dump(mode="json") for p in plans],
		}, indent=2)

	@mcp.tool()
	async def list_plans_by_application(application_id: str) -> str:
		"""
		List the plans of one application.

		Args:
			application_id: Application ID
		"""
		try:
			plans = await stores.plans.list_plans_by_application(application_id)
		except StoreError as e:
			return error(e)
		return json.dumps({
			"application_id": application_id,
			"count": len(plans),
			"plans": [p.model_dump(mode="json") for p in plans],
		}, indent=2)

	@mcp.tool()
	async def list_plans_by_status(status: str) -> str:
		"""
		List plans with a given status.

		Args:
			status: new, inprogress, completed or cancelled
		"""
		try:
			plans = await stores.plans.list_plans_by_status(status)
		except StoreError as e:
			return error(e)
		return json.dumps({
			"status": status,
			"count": len(plans),
			"plans": [p.model_dump(mode="json") for p in plans],
		}, indent=2)

	@mcp.tool()
	async def update_plan(
		plan_id: str,
		name: str = "",
		description: str = "",
		application_id: str = "",
		status: str = "",
	) -> str:
		"""
		Update a plan. Empty arguments leave the field unchanged.

		Args:
			plan_id: Plan ID
			name: New name
			description: New description
			application_id: Move the plan to another application
			status: new, inprogress, completed or cancelled
		"""
		try:
			plan = await stores.plans.get_plan(plan_id)
			if name:
				plan.name = name
			if description:
				plan.description = description
			if application_id:
				plan.application_id = application_id
			if status:
				plan.status = coerce_enum(PlanStatus, status, "plan status")
			plan = await stores.plans.update_plan(plan)
		except StoreError as e:
			return error(e)
		return ok({"plan": plan.model_dump(mode="json")})

	@mcp.tool()
	async def update_plan_status(plan_id: str, status: str) -> str:
		"""
		Set the status of a plan.

		Args:
			plan_id: Plan ID
			status: new, inprogress, completed or cancelled
		"""
		try:
			plan = await stores.plans.update_plan_status(plan_id, status)
		except StoreError as e:
			return error(e)
		return ok({"plan_id": plan.id, "status": plan.status.value})

	@mcp.tool()
	async def delete_plan(plan_id: str) -> str:
		"""
		Delete a plan together with all of its tasks.

		Args:
			plan_id: Plan ID
		"""
		try:
			await stores.plans.delete_plan(plan_id)
		except StoreError as e:
			return error(e)
		return ok({"deleted": plan_id})
