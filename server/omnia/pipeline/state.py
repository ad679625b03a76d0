"""Per-item task state for pipeline runs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import ErrorKind


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Allowed forward transitions
_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.SUCCEEDED, TaskStatus.FAILED},
    TaskStatus.SUCCEEDED: set(),
    TaskStatus.FAILED: set(),
}


class InvalidTransition(ValueError):
    pass


@dataclass
class PipelineTask:
    """One unit of work inside a pipeline run.

    Status only moves forward: pending -> in_progress -> succeeded | failed.
    A failed task is never retried within the run that produced it.
    """
    id: str
    status: TaskStatus = TaskStatus.PENDING
    error_kind: Optional[ErrorKind] = None
    error_detail: Optional[str] = None
    result: Any = None
    degraded: bool = False

    def _move(self, target: TaskStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"task {self.id}: cannot go from {self.status.value} to {target.value}"
            )
        self.status = target

    def start(self) -> None:
        self._move(TaskStatus.IN_PROGRESS)

    def succeed(self, result: Any = None, degraded: bool = False) -> None:
        self._move(TaskStatus.SUCCEEDED)
        self.result = result
        self.degraded = degraded

    def fail(self, kind: ErrorKind, detail: str) -> None:
        self._move(TaskStatus.FAILED)
        self.error_kind = kind
        self.error_detail = detail

    @property
    def finished(self) -> bool:
        return self.status in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "status": self.status.value,
            "result": self.result,
            "degraded": self.degraded,
        }
        if self.status == TaskStatus.FAILED:
            data["error"] = self.error_kind.value if self.error_kind else None
            data["error_detail"] = self.error_detail
        return data


@dataclass
class PipelineRun:
    """Ordered outcomes of one pipeline run."""
    tasks: list[PipelineTask] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def succeeded(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.FAILED)

    def get(self, task_id: str) -> Optional[PipelineTask]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def results(self) -> list[Any]:
        """Results of succeeded tasks, in input order."""
        return [t.result for t in self.tasks if t.status == TaskStatus.SUCCEEDED]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "tasks": [t.to_dict() for t in self.tasks],
        }
