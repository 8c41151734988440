from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from news_narrator.cache.storage import read_json, remove_file, write_json_atomic
from news_narrator.errors import CacheIOError
from news_narrator.schemas.cache import NarrationCacheEntry

logger = logging.getLogger(__name__)

FINGERPRINT_CHARS = 500
KEY_PREFIX = "narration_"


def content_fingerprint(content: str) -> str:
    return content[:FINGERPRINT_CHARS]


def derive_narration_key(source_url: str, content: str) -> str:
    """32-bit rolling string hash of ``url|fingerprint``.

    Stable across processes (unlike ``hash()``); collisions are caught in
    ``NarrationCache.lookup`` by comparing the stored url and fingerprint.
    """
    value = 0
    for char in f"{source_url}|{content_fingerprint(content)}":
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f"{KEY_PREFIX}{abs(value)}"


class NarrationCache:
    def __init__(self, directory: str | Path, clock: Callable[[], datetime] | None = None) -> None:
        self.directory = Path(directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def new_entry(self, source_url: str, content: str, title: str, narration_text: str) -> NarrationCacheEntry:
        return NarrationCacheEntry(
            key=derive_narration_key(source_url, content),
            source_url=source_url,
            fingerprint=content_fingerprint(content),
            title=title,
            narration_text=narration_text,
            created_at=self._clock(),
        )

    async def lookup(self, source_url: str, content: str) -> NarrationCacheEntry | None:
        key = derive_narration_key(source_url, content)
        entry = await self.get(key)
        if entry is None:
            return None

        if entry.source_url != source_url or entry.fingerprint != content_fingerprint(content):
            logger.warning("Narration key collision on %s (stored url=%s), treating as miss", key, entry.source_url)
            return None
        return entry

    async def get(self, key: str) -> NarrationCacheEntry | None:
        try:
            return await asyncio.to_thread(self._read_entry, self.path_for(key))
        except CacheIOError as exc:
            logger.warning("Narration cache read failed, treating as miss: %s", exc)
            return None

    async def store(self, entry: NarrationCacheEntry) -> None:
        path = self.path_for(entry.key)
        try:
            await asyncio.to_thread(write_json_atomic, path, entry.model_dump(mode="json"))
        except (OSError, ValueError) as exc:
            raise CacheIOError(f"Failed to write narration cache {path}: {exc}") from exc
        logger.debug("Stored narration %s for %s", entry.key, entry.source_url)

    async def latest_for_url(self, source_url: str) -> NarrationCacheEntry | None:
        entries = await self.entries()
        matching = [entry for entry in entries if entry.source_url == source_url]
        if not matching:
            return None
        return max(matching, key=lambda entry: entry.created_at)

    async def entries(self) -> list[NarrationCacheEntry]:
        return await asyncio.to_thread(self._read_all)

    async def cleanup(self, max_age: timedelta) -> int:
        cutoff = self._clock() - max_age
        removed = 0
        for entry in await self.entries():
            if entry.created_at < cutoff:
                if await asyncio.to_thread(remove_file, self.path_for(entry.key)):
                    removed += 1
        if removed:
            logger.info("Evicted %s narrations older than %s", removed, max_age)
        return removed

    async def stats(self) -> dict[str, Any]:
        def collect() -> dict[str, Any]:
            files = list(self._entry_files())
            return {
                "directory": str(self.directory),
                "total_narrations": len(files),
                "total_bytes": sum(path.stat().st_size for path in files),
            }

        return await asyncio.to_thread(collect)

    async def clear(self) -> int:
        def remove_all() -> int:
            return sum(1 for path in self._entry_files() if remove_file(path))

        return await asyncio.to_thread(remove_all)

    def _entry_files(self) -> list[Path]:
        if not self.directory.exists():
            return []
        return sorted(self.directory.glob(f"{KEY_PREFIX}*.json"))

    def _read_all(self) -> list[NarrationCacheEntry]:
        entries: list[NarrationCacheEntry] = []
        for path in self._entry_files():
            try:
                entry = self._read_entry(path)
            except CacheIOError as exc:
                logger.warning("Skipping unreadable narration file: %s", exc)
                continue
            if entry is not None:
                entries.append(entry)
        return entries

    @staticmethod
    def _read_entry(path: Path) -> NarrationCacheEntry | None:
        try:
            data = read_json(path)
        except (OSError, ValueError) as exc:
            raise CacheIOError(f"Failed to read {path}: {exc}") from exc
        if data is None:
            return None
        try:
            return NarrationCacheEntry.model_validate(data)
        except ValidationError as exc:
            raise CacheIOError(f"Malformed narration entry {path}: {exc}") from exc
