import asyncio

import pytest

from news_narrator.cache.narration import NarrationCache
from news_narrator.crew.pipeline import build_narration_crew
from news_narrator.errors import PipelineTaskError, SourceFetchError, UpstreamGenerationError
from news_narrator.schemas.article import ScrapedArticle
from news_narrator.services.narration_service import NarrationService

URL = "https://example.com/news/national/flood-relief"
CONTENT = "Flood relief reaches village X. 200 families rehoused."


class FakeScraper:
    def __init__(self, content: str = CONTENT, success: bool = True) -> None:
        self.content = content
        self.success = success
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def fetch_article_content(self, url: str) -> ScrapedArticle:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return ScrapedArticle(
            title="Flood relief reaches village X",
            content=self.content,
            url=url,
            success=self.success,
            error=None if self.success else "HTTP 403",
        )


class PersonaClient:
    """Replies according to which persona the system prompt describes."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.prompts: list[str] = []

    async def generate(self, system_prompt: str, user_instruction: str) -> str:
        persona = "tolstoy"
        if "historian" in system_prompt:
            persona = "history"
        elif "journalist" in system_prompt:
            persona = "summary"
        self.calls.append(persona)
        self.prompts.append(system_prompt)

        if persona == self.fail_on:
            raise UpstreamGenerationError(f"{persona} model call failed")
        return f"<{persona} output>"


def _service(tmp_path, scraper: FakeScraper, client: PersonaClient) -> NarrationService:
    return NarrationService(
        scraper=scraper,
        cache=NarrationCache(tmp_path),
        crew_factory=lambda article: build_narration_crew(article, client),
    )


@pytest.mark.asyncio
async def test_miss_runs_crew_and_stores_result(tmp_path) -> None:
    client = PersonaClient()
    service = _service(tmp_path, FakeScraper(), client)

    result = await service.run_narration_pipeline(URL)

    assert result.cached is False
    assert result.narration_text == "<tolstoy output>"
    assert result.title == "Flood relief reaches village X"
    assert client.calls == ["history", "summary", "tolstoy"]
    assert "<history output>" in client.prompts[2]
    assert "<summary output>" in client.prompts[2]
    assert await NarrationCache(tmp_path).lookup(URL, CONTENT) is not None


@pytest.mark.asyncio
async def test_second_request_is_served_from_cache(tmp_path) -> None:
    client = PersonaClient()
    service = _service(tmp_path, FakeScraper(), client)
    first = await service.run_narration_pipeline(URL)

    second = await service.run_narration_pipeline(URL)

    assert second.cached is True
    assert second.narration_text == first.narration_text
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_changed_content_produces_new_narration(tmp_path) -> None:
    client = PersonaClient()
    scraper = FakeScraper()
    service = _service(tmp_path, scraper, client)
    await service.run_narration_pipeline(URL)

    scraper.content = CONTENT + " Officials promise more aid next week."
    result = await service.run_narration_pipeline(URL)

    assert result.cached is False
    assert len(client.calls) == 6


@pytest.mark.asyncio
async def test_fetch_failure_stops_before_the_crew(tmp_path) -> None:
    client = PersonaClient()
    service = _service(tmp_path, FakeScraper(success=False), client)

    with pytest.raises(SourceFetchError):
        await service.run_narration_pipeline(URL)
    assert client.calls == []


@pytest.mark.asyncio
async def test_generation_failure_propagates_and_caches_nothing(tmp_path) -> None:
    client = PersonaClient(fail_on="summary")
    service = _service(tmp_path, FakeScraper(), client)

    with pytest.raises(PipelineTaskError) as excinfo:
        await service.run_narration_pipeline(URL)

    assert excinfo.value.task_name == "summary"
    assert isinstance(excinfo.value.cause, UpstreamGenerationError)
    assert client.calls == ["history", "summary"]
    assert await NarrationCache(tmp_path).entries() == []


@pytest.mark.asyncio
async def test_concurrent_requests_for_same_url_share_one_run(tmp_path) -> None:
    client = PersonaClient()
    scraper = FakeScraper()
    scraper.gate = asyncio.Event()
    service = _service(tmp_path, scraper, client)

    first = asyncio.create_task(service.run_narration_pipeline(URL))
    second = asyncio.create_task(service.run_narration_pipeline(URL))
    await asyncio.sleep(0)
    scraper.gate.set()
    results = await asyncio.gather(first, second)

    assert scraper.calls == 1
    assert len(client.calls) == 3
    assert results[0].narration_text == results[1].narration_text


@pytest.mark.asyncio
async def test_cached_narration_reads_without_fetching(tmp_path) -> None:
    client = PersonaClient()
    scraper = FakeScraper()
    service = _service(tmp_path, scraper, client)
    assert await service.cached_narration(URL) is None

    await service.run_narration_pipeline(URL)
    cached = await service.cached_narration(URL)

    assert cached is not None
    assert cached.cached is True
    assert cached.narration_text == "<tolstoy output>"
    assert scraper.calls == 1


@pytest.mark.asyncio
async def test_blank_url_is_rejected(tmp_path) -> None:
    service = _service(tmp_path, FakeScraper(), PersonaClient())

    with pytest.raises(ValueError):
        await service.run_narration_pipeline("   ")


@pytest.mark.asyncio
async def test_unstorable_narration_is_still_returned(tmp_path) -> None:
    class SurrogateClient(PersonaClient):
        async def generate(self, system_prompt: str, user_instruction: str) -> str:
            text = await super().generate(system_prompt, user_instruction)
            return f"{text} \ud800"

    service = _service(tmp_path, FakeScraper(), SurrogateClient())

    result = await service.run_narration_pipeline(URL)

    assert result.cached is False
    assert result.narration_text == "<tolstoy output> \ud800"
    assert await NarrationCache(tmp_path).lookup(URL, CONTENT) is None
