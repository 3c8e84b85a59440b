"""MCP tool registration - modular tool definitions."""

import logging

from mcp.server.fastmcp import FastMCP

from ..stores import Stores
from .notes import register_notes_tools
from .plans import register_plans_tools
from .resources import register_plan_resources
from .tasks import register_tasks_tools

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, stores: Stores) -> None:
	"""Register all MCP tools and resources."""
	register_plans_tools(mcp, stores)
	register_tasks_tools(mcp, stores)
	register_notes_tools(mcp, stores)
	register_plan_resources(mcp, stores)
	logger.debug("Registered plan, task and notes tools")
