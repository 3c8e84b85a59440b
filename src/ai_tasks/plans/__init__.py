"""Plans module - Plan and task storage with per-plan ordering."""

from .models import (
	Plan,
	PlanResource,
	PlanStatus,
	Task,
	TaskCreateInput,
	TaskPriority,
	TaskStatus,
)
from .plan_store import PlanStore
from .task_store import TaskStore

__all__ = [
	"Plan",
	"PlanResource",
	"PlanStatus",
	"Task",
	"TaskCreateInput",
	"TaskPriority",
	"TaskStatus",
	"PlanStore",
	"TaskStore",
]
