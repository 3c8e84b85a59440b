"""
Plan Models - Pydantic schemas for plans and their ordered tasks.

Records are stored as flat string hashes. to_hash/from_hash own that
mapping, including the defaults applied to legacy records written before
a field existed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_TASK_DESCRIPTION = "no description provided"


def utc_now() -> datetime:
	"""Current time truncated to the second, which is what storage keeps."""
	return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
	"""Serialise a timestamp as RFC3339 UTC."""
	if value.tzinfo is None:
		value = value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc).strftime(RFC3339_FORMAT)


class PlanStatus(str, Enum):
	"""Status of a plan."""
	NEW = "new"
	IN_PROGRESS = "inprogress"
	COMPLETED = "completed"
	CANCELLED = "cancelled"


class TaskStatus(str, Enum):
	"""Status of a task within a plan."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	CANCELLED = "cancelled"


class TaskPriority(str, Enum):
	"""Priority of a task."""
	LOW = "low"
	MEDIUM = "medium"
	HIGH = "high"


class Plan(BaseModel):
	"""A named collection of ordered tasks, grouped under an application."""
	model_config = ConfigDict(validate_assignment=True)

	id: str = Field(description="Unique plan identifier")
	application_id: str = Field(description="Opaque application grouping key")
	name: str = Field(description="Plan name")
	description: str = Field(default="")
	notes: str = Field(default="", description="Markdown notes, stored verbatim")
	status: PlanStatus = Field(default=PlanStatus.NEW)
	created_at: datetime = Field(default_factory=utc_now)
	updated_at: datetime = Field(default_factory=utc_now)

	def to_hash(self) -> dict[str, str]:
		"""Flatten to the field/value mapping stored under plan:<id>."""
		return {
			"id": self.id,
			"application_id": self.application_id,
			"name": self.name,
			"description": self.description,
			"notes": self.notes,
			"status": self.status.value,
			"created_at": format_timestamp(self.created_at),
			"updated_at": format_timestamp(self.updated_at),
		}

	@classmethod
	def from_hash(cls, data: dict[str, str]) -> "Plan":
		"""
		Build a plan from a stored hash.

		Plans written before the status field existed have no status;
		they are read as new.
		"""
		return cls(
			id=data.get("id", ""),
			application_id=data.get("application_id", ""),
			name=data.get("name", ""),
			description=data.get("description", ""),
			notes=data.get("notes", ""),
			status=data.get("status") or PlanStatus.NEW,
			created_at=data.get("created_at"),
			updated_at=data.get("updated_at"),
		)


class Task(BaseModel):
	"""A single task, positioned within its plan by order."""
	model_config = ConfigDict(validate_assignment=True)

	id: str = Field(description="Unique task identifier")
	plan_id: str = Field(description="Plan the task belongs to")
	title: str = Field(description="Short task title")
	description: str = Field(default="")
	notes: str = Field(default="", description="Markdown notes, stored verbatim")
	status: TaskStatus = Field(default=TaskStatus.PENDING)
	priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
	order: int = Field(default=0, ge=0, description="Zero-based position within the plan")
	created_at: datetime = Field(default_factory=utc_now)
	updated_at: datetime = Field(default_factory=utc_now)

	def to_hash(self) -> dict[str, str]:
		"""Flatten to the field/value mapping stored under task:<id>."""
		return {
			"id": self.id,
			"plan_id": self.plan_id,
			"title": self.title,
			"description": self.description,
			"notes": self.notes,
			"status": self.status.value,
			"priority": self.priority.value,
			"order": str(self.order),
			"created_at": format_timestamp(self.created_at),
			"updated_at": format_timestamp(self.updated_at),
		}

	@classmethod
	def from_hash(cls, data: dict[str, str]) -> "Task":
		"""Build a task from a stored hash. A missing order reads as 0."""
		return cls(
			id=data.get("id", ""),
			plan_id=data.get("plan_id", ""),
			title=data.get("title", ""),
			description=data.get("description", ""),
			notes=data.get("notes", ""),
			status=data.get("status") or TaskStatus.PENDING,
			priority=data.get("priority") or TaskPriority.MEDIUM,
			order=data.get("order") or 0,
			created_at=data.get("created_at"),
			updated_at=data.get("updated_at"),
		)


@dataclass
class TaskCreateInput:
	"""
	One entry of a bulk create.

	Fields are plain strings so a whole batch can be checked before the
	first write; empty status and priority fall back to the defaults.
	"""
	title: str
	description: str = ""
	status: str = ""
	priority: str = ""


class PlanResource(BaseModel):
	"""A plan together with its tasks in order."""
	plan: Plan
	tasks: list[Task] = Field(default_factory=list)

	def get_progress(self) -> dict:
		"""Count tasks per status."""
		counts = {status.value: 0 for status in TaskStatus}
		for task in self.tasks:
			counts[task.status.value] += 1
		total = len(self.tasks)
		completed = counts[TaskStatus.COMPLETED.value]
		return {
			"total_tasks": total,
			"by_status": counts,
			"percent_complete": round(completed / total * 100, 1) if total > 0 else 0,
		}


def coerce_enum(enum_cls: type[Enum], value, field_name: str):
	"""Return the enum member for value, raising ValidationError if unknown."""
	try:
		return enum_cls(value)
	except ValueError:
		allowed = ", ".join(member.value for member in enum_cls)
		raise ValidationError(f"invalid {field_name}: {value!r} (must be one of: {allowed})") from None
