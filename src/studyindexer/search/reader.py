"""
Lazy, single-pass reader over a scrolled search query.

Usage:
    async with ScrollReader(index, "en") as reader:
        total = await reader.size()
        async for study in reader:
            ...

A reader is not restartable and must not be shared between tasks.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from ..exceptions import ReaderExhaustedError
from ..models import StudyOfLanguage
from .engine import SearchIndex, decode_study

logger = logging.getLogger(__name__)


class ScrollReader:
    """Forward-only sequence of the documents matching a query in one language."""

    def __init__(
        self,
        index: SearchIndex,
        language: str,
        query: str = "*",
        page_size: int = 500,
        scroll_timeout: str = "60s",
    ):
        self.index = index
        self.language = language
        self.query = query
        self.page_size = page_size
        self.scroll_timeout = scroll_timeout
        self._scroll_id: Optional[str] = None
        self._started = False

    async def size(self) -> int:
        """Total matching documents, independent of iteration state."""
        return await self.index.count(self.language, self.query)

    def __aiter__(self) -> AsyncIterator[StudyOfLanguage]:
        if self._started:
            raise ReaderExhaustedError(
                f"Reader for {self.language} was already iterated, create a new one"
            )
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StudyOfLanguage]:
        page = await self.index.open_scroll(
            self.language, self.query, self.page_size, self.scroll_timeout
        )
        self._scroll_id = page.scroll_id
        try:
            while page.hits:
                for source in page.hits:
                    yield decode_study(source, self.language)
                if self._scroll_id is None:
                    break
                page = await self.index.next_scroll_page(
                    self._scroll_id, self.scroll_timeout
                )
                if page.scroll_id:
                    self._scroll_id = page.scroll_id
        finally:
            await self.close()

    async def close(self) -> None:
        """Release the server-side scroll, if one is open."""
        if self._scroll_id is None:
            return
        scroll_id, self._scroll_id = self._scroll_id, None
        await self.index.clear_scroll(scroll_id)
        logger.debug(f"Cleared scroll for {self.language}")

    async def __aenter__(self) -> ScrollReader:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["ScrollReader"]
