from __future__ import annotations

import logging
from dataclasses import dataclass

from langsmith import traceable

from news_narrator.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Context from previous tasks:"
COMPLETION_REQUEST = "Please complete the following task."


@dataclass(frozen=True)
class Persona:
    role: str
    goal: str
    backstory: str


def build_system_prompt(persona: Persona, context: str = "") -> str:
    """Assemble the system prompt for one agent call.

    Persona header first, then the threaded context (omitted when empty), then
    the completion request. Sections are separated by a blank line.
    """
    sections = [
        f"You are {persona.role}. Your goal is {persona.goal}. Your backstory: {persona.backstory}."
    ]
    if context.strip():
        sections.append(f"{CONTEXT_HEADER}\n{context}")
    sections.append(COMPLETION_REQUEST)
    return "\n\n".join(sections)


class Agent:
    def __init__(self, persona: Persona, client: LLMClient) -> None:
        self.persona = persona
        self.client = client

    @property
    def role(self) -> str:
        return self.persona.role

    @traceable(name="agent_execute")
    async def execute(self, task_description: str, context_text: str = "") -> str:
        system_prompt = build_system_prompt(self.persona, context_text)
        logger.debug("Agent %r running task (%s context chars)", self.role[:60], len(context_text))

        result = await self.client.generate(system_prompt, task_description)
        logger.debug("Agent %r returned %s characters", self.role[:60], len(result))
        return result
