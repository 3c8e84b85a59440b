"""ai-tasks - Plan and task tracking on Valkey, exposed over MCP."""

__version__ = "0.1.0"
