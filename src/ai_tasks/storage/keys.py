"""Key layout shared with existing Valkey deployments. Do not change."""

PLANS_KEY = "plans"
TASK_KEY_PATTERN = "task:*"

_PLAN_PREFIX = "plan:"
_TASK_PREFIX = "task:"
_PLAN_TASKS_PREFIX = "plan_tasks:"


def plan_key(plan_id: str) -> str:
	"""Hash holding a plan record."""
	return _PLAN_PREFIX + plan_id


def app_plans_key(application_id: str) -> str:
	"""Set of plan ids belonging to an application."""
	return f"app:{application_id}:plans"


def task_key(task_id: str) -> str:
	"""Hash holding a task record."""
	return _TASK_PREFIX + task_id


def plan_tasks_key(plan_id: str) -> str:
	"""Sorted set of a plan's task ids, scored by order."""
	return _PLAN_TASKS_PREFIX + plan_id


def task_id_from_key(key: str) -> str:
	"""Inverse of task_key."""
	return key.removeprefix(_TASK_PREFIX)
