"""Per-run cache of parsed documents.

Every file is parsed at most once per cache, no matter how many links point
at it or how many coroutines ask for it at the same time.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from .document import ParsedDocument
from .parser import MarkdownParser

log = logging.getLogger(__name__)


def normalize_cache_key(path: str | Path) -> str:
    return os.path.abspath(os.path.normpath(path))


class ParsedFileCache:
    """Single-flight, in-memory cache of ParsedDocument by absolute path.

    Concurrent ``resolve`` calls for the same path share one pending parse.
    Completed documents are kept for the cache's lifetime; a failed parse is
    forgotten so the next call tries again.
    """

    def __init__(self, parser: MarkdownParser | None = None) -> None:
        self.parser = parser or MarkdownParser()
        self._documents: dict[str, ParsedDocument] = {}
        self._pending: dict[str, asyncio.Task[ParsedDocument]] = {}

    async def resolve(self, file_path: str | Path) -> ParsedDocument:
        """Return the parsed document for file_path, parsing it on first use.

        Raises:
            ParseError: If the file cannot be read. Every caller waiting on the
                same parse receives the same error.
        """
        key = normalize_cache_key(file_path)

        document = self._documents.get(key)
        if document is not None:
            log.debug("Parsed cache hit: %s", key)
            return document

        # No await between the lookup and the insert, so concurrent callers
        # always find the first caller's task.
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._parse(key))
            self._pending[key] = task

        return await asyncio.shield(task)

    async def _parse(self, key: str) -> ParsedDocument:
        try:
            output = await asyncio.to_thread(self.parser.parse_file, key)
            document = ParsedDocument(output)
            self._documents[key] = document
            return document
        finally:
            self._pending.pop(key, None)

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, (str, Path)):
            return False
        return normalize_cache_key(file_path) in self._documents

    def __len__(self) -> int:
        return len(self._documents)
