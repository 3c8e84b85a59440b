"""
Plan resources - read-only views of plans with their tasks.

Resource reads raise on failure; the MCP server turns the exception into
a resource error for the client.
"""

import json

from mcp.server.fastmcp import FastMCP

from ..plans.models import Plan, PlanResource
from ..stores import Stores


async def build_plan_resource(stores: Stores, plan: Plan) -> PlanResource:
	"""Pair a plan with its ordered tasks."""
	tasks = await stores.tasks.list_tasks_by_plan(plan.id)
	return PlanResource(plan=plan, tasks=tasks)


async def _dump_resources(stores: Stores, plans: list[Plan]) -> str:
	resources = [await build_plan_resource(stores, plan) for plan in plans]
	return json.dumps([r.model_dump(mode="json") for r in resources], indent=2)


def register_plan_resources(mcp: FastMCP, stores: Stores) -> None:
	"""Register the full-plan resources."""

	@mcp.resource("ai-tasks://plans/full", mime_type="application/json")
	async def all_plans_resource() -> str:
		"""Every plan with its tasks."""
		return await _dump_resources(stores, await stores.plans.list_plans())

	@mcp.resource("ai-tasks://plans/{plan_id}/full", mime_type="application/json")
	async def plan_resource(plan_id: str) -> str:
		"""One plan with its tasks and progress."""
		resource = await build_plan_resource(stores, await stores.plans.get_plan(plan_id))
		return json.dumps({
			**resource.model_dump(mode="json"),
			"progress": resource.get_progress(),
		}, indent=2)

	@mcp.resource("ai-tasks://applications/{app_id}/plans/full", mime_type="application/json")
	async def application_plans_resource(app_id: str) -> str:
		"""Every plan of one application with its tasks."""
		plans = await stores.plans.list_plans_by_application(app_id)
		return await _dump_resources(stores, plans)
