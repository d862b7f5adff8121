"""Closed task-id to executor mapping."""

from __future__ import annotations

from collections.abc import Mapping

from research_engine.executors.interface import TaskExecutor
from research_engine.research.models import TaskId


class ExecutorRegistry:
  """Registry mapping each task id to the adapter that collects it."""

  def __init__(self, executors: Mapping[TaskId, TaskExecutor]) -> None:
    self._executors = dict(executors)

  def resolve(self, task_id: TaskId) -> TaskExecutor:
    """Resolve the executor for a task id."""
    executor = self._executors.get(task_id)
    if executor is None:
      raise LookupError(f"No executor registered for task {task_id.value}")
    return executor

  def task_ids(self) -> tuple[TaskId, ...]:
    return tuple(self._executors)
