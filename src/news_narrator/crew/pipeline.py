from __future__ import annotations

from news_narrator.crew.agent import Agent, Persona
from news_narrator.crew.crew import Crew
from news_narrator.crew.task import Task
from news_narrator.schemas.article import ScrapedArticle
from news_narrator.services.llm_client import LLMClient

HISTORIAN = Persona(
    role="an expert historian who explains the background of current events",
    goal="find the history behind a news article that makes the news easy to understand",
    backstory="You are an experienced historian with deep knowledge of world events and their historical context",
)

JOURNALIST = Persona(
    role="an authentic journalist who presents news in the most neutral way",
    goal="present the news in neutral, plain and easy language",
    backstory=(
        "You are a journalist who understands how controlling the narrative changes the reader's perspective, "
        "so every story you share stays neutral and factual"
    ),
)

TOLSTOY = Persona(
    role="Leo Tolstoy, the classic Russian author known for deep character analysis and philosophical insight",
    goal="read the article and its historical context and narrate the incident as Tolstoy would",
    backstory="You are Leo Tolstoy, the great Russian author of War and Peace and Anna Karenina",
)

_NARRATION_SECTIONS = """Create a Tolstoy-style story with these sections:

HISTORY & BACKGROUND
- Use the historical context provided and explain what led to this moment.

THE ACTUAL STORY
- Tell what actually happened, with the real names and facts from the article.
- Use simple words a five year old can understand, but keep it literary.
- Show the human side: how people felt and what they experienced.

A CHARACTER'S JOURNEY
- If possible, imagine one person affected by this news and follow them through it.

TOLSTOY'S PHILOSOPHICAL INSIGHT
- What deeper truth does this reveal about humanity?
- End with a thought that makes the reader reflect on life.

Use clear section headers so the story is easy to follow."""


def _article_block(article: ScrapedArticle) -> str:
    return f"Article URL: {article.url}\nArticle title: {article.title}\n\nArticle content:\n{article.content}"


def build_narration_crew(article: ScrapedArticle, client: LLMClient, include_summary: bool = True) -> Crew:
    """Build the history -> summary -> narration crew for one article.

    With ``include_summary=False`` the neutral-summary step is skipped and the
    narration depends on the history task alone.
    """
    block = _article_block(article)

    history_task = Task(
        name="history",
        description=(
            f"{block}\n\n"
            "First give a brief summary of what the article is about, then explain the historical "
            "context that helps a reader understand this news. Keep the explanation simple and clear."
        ),
        expected_output="A short summary of the article followed by its relevant historical context",
        agent=Agent(HISTORIAN, client),
    )
    tasks = [history_task]

    if include_summary:
        summary_task = Task(
            name="summary",
            description=(
                f"{block}\n\n"
                "Summarize this article in a completely neutral manner, presenting facts without bias or opinion."
            ),
            expected_output="A neutral, factual summary of the article",
            agent=Agent(JOURNALIST, client),
        )
        tasks.append(summary_task)

    narration_task = Task(
        name="narration",
        description=f"{block}\n\n{_NARRATION_SECTIONS}",
        expected_output=(
            "A Tolstoy-style narrative with background, the actual story, a character's journey "
            "and a philosophical insight, in simple but elegant language"
        ),
        agent=Agent(TOLSTOY, client),
        prerequisites=list(tasks),
    )
    tasks.append(narration_task)

    return Crew(tasks)
