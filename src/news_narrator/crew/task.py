from __future__ import annotations

from news_narrator.crew.agent import Agent
from news_narrator.errors import PrerequisiteNotReadyError

CONTEXT_PREFIX = "Previous task result: "


class Task:
    """One unit of crew work.

    ``output`` stays ``None`` until ``execute`` finishes. Prerequisite outputs
    are threaded into the agent prompt in the order the prerequisites are
    listed.
    """

    def __init__(
        self,
        name: str,
        description: str,
        expected_output: str,
        agent: Agent,
        prerequisites: list[Task] | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.expected_output = expected_output
        self.agent = agent
        self.prerequisites: list[Task] = list(prerequisites or [])
        self.output: str | None = None

    def build_context(self) -> str:
        missing = [task.name for task in self.prerequisites if task.output is None]
        if missing:
            raise PrerequisiteNotReadyError(
                f"Task {self.name!r} cannot run before {', '.join(repr(name) for name in missing)}"
            )
        return "\n".join(f"{CONTEXT_PREFIX}{task.output}" for task in self.prerequisites)

    async def execute(self) -> str:
        context = self.build_context()
        self.output = await self.agent.execute(self.description, context)
        return self.output

    def __repr__(self) -> str:
        return f"Task(name={self.name!r}, prerequisites={[task.name for task in self.prerequisites]})"
