"""ai-tasks MCP server."""

from mcp.server.fastmcp import FastMCP

from .config import Config
from .logging_config import setup_logging
from .stores import Stores, get_stores
from .tools import register_all_tools


def create_server(config: Config, stores: Stores | None = None) -> FastMCP:
	"""Build the MCP server with every tool and resource registered."""
	server = FastMCP("ai-tasks", host=config.server_host, port=config.server_port)
	register_all_tools(server, stores or get_stores(config))
	return server


def run(config: Config) -> None:
	"""Serve on the configured transport until interrupted."""
	setup_logging(log_dir=config.log_dir)
	create_server(config).run(transport=config.transport)
