from __future__ import annotations

import logging
from enum import Enum

from news_narrator.crew.task import Task
from news_narrator.errors import PipelineTaskError, PrerequisiteNotReadyError

logger = logging.getLogger(__name__)


class CrewState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def validate_task_order(tasks: list[Task]) -> None:
    """Raise if ``tasks`` is not a topological order of its prerequisite graph."""
    seen: set[int] = set()
    members = {id(task) for task in tasks}

    for index, task in enumerate(tasks):
        if id(task) in seen:
            raise ValueError(f"Task {task.name!r} appears more than once")
        for prerequisite in task.prerequisites:
            if id(prerequisite) not in members:
                raise PrerequisiteNotReadyError(
                    f"Task {task.name!r} depends on {prerequisite.name!r}, which is not part of the crew"
                )
            if id(prerequisite) not in seen:
                raise PrerequisiteNotReadyError(
                    f"Task {task.name!r} at position {index} runs before its prerequisite {prerequisite.name!r}"
                )
        seen.add(id(task))


class Crew:
    """Single-use orchestrator that runs its tasks strictly in order."""

    def __init__(self, tasks: list[Task]) -> None:
        if not tasks:
            raise ValueError("A crew needs at least one task")
        validate_task_order(tasks)
        self.tasks = list(tasks)
        self.state = CrewState.CREATED
        self.final_output: str | None = None

    async def kickoff(self) -> str:
        if self.state is not CrewState.CREATED:
            raise RuntimeError(f"Crew has already been kicked off (state={self.state.value})")

        self.state = CrewState.RUNNING
        logger.info("Crew starting with %s tasks", len(self.tasks))

        for index, task in enumerate(self.tasks):
            try:
                self.final_output = await task.execute()
            except Exception as exc:
                self.state = CrewState.FAILED
                logger.error("Task %s (%s) failed: %s", index, task.name, exc)
                raise PipelineTaskError(index, task.name, exc) from exc
            logger.info("Task %s (%s) completed: %s characters", index, task.name, len(self.final_output))

        self.state = CrewState.COMPLETED
        logger.info("Crew completed")
        return self.final_output or ""
