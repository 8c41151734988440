"""Error taxonomy shared by the crew engine, caches and services."""

from __future__ import annotations


class NarratorError(Exception):
    """Base class for every error raised by news_narrator."""

    kind = "narrator_error"

    def describe(self) -> dict[str, str]:
        return {"kind": self.kind, "message": str(self)}


class SourceFetchError(NarratorError):
    """The article or the listing could not be retrieved."""

    kind = "source_fetch_error"


class UpstreamGenerationError(NarratorError):
    """The language-model call failed or returned no content."""

    kind = "upstream_generation_error"

    def __init__(self, message: str, *, timed_out: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.timed_out = timed_out
        self.status_code = status_code


class PrerequisiteNotReadyError(NarratorError):
    """A task was asked to run before one of its prerequisites produced output."""

    kind = "prerequisite_not_ready"


class PipelineTaskError(NarratorError):
    """Wraps the failure of one task inside a crew run."""

    kind = "pipeline_task_error"

    def __init__(self, task_index: int, task_name: str, cause: BaseException) -> None:
        super().__init__(f"Task {task_index} ({task_name}) failed: {cause}")
        self.task_index = task_index
        self.task_name = task_name
        self.cause = cause


class CacheIOError(NarratorError):
    """A persisted cache file could not be read or written."""

    kind = "cache_io_error"
