"""Storage module - Valkey key layout and client helpers."""

from .client import close_client, create_client, ping, storage_errors
from .keys import PLANS_KEY, app_plans_key, plan_key, plan_tasks_key, task_key

__all__ = [
	"PLANS_KEY",
	"app_plans_key",
	"plan_key",
	"plan_tasks_key",
	"task_key",
	"create_client",
	"close_client",
	"ping",
	"storage_errors",
]
