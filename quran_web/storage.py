from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Dict, List, Optional

from .client import Chapter


logger = logging.getLogger("quran_web.storage")


class BookmarkStore:
    """
    In-memory bookmarks keyed by client address.

    Each address owns an ordered list of verse keys with no duplicates. Nothing
    is written to disk; bookmarks are lost when the process exits.
    """

    def __init__(self) -> None:
        self._bookmarks: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def add(self, address: str, verse_key: str) -> bool:
        with self._lock:
            keys = self._bookmarks.setdefault(address, [])
            if verse_key in keys:
                return False
            keys.append(verse_key)
        logger.info("Bookmarked %s for %s", verse_key, address)
        return True

    def remove(self, address: str, verse_key: str) -> bool:
        with self._lock:
            keys = self._bookmarks.get(address)
            if not keys or verse_key not in keys:
                return False
            keys.remove(verse_key)
        logger.info("Removed bookmark %s for %s", verse_key, address)
        return True

    def list(self, address: str) -> List[str]:
        with self._lock:
            return list(self._bookmarks.get(address, []))


class ChapterCache:
    """
    Holds the full chapter list once it has been fetched successfully.

    Concurrent first requests share a single upstream fetch. Failures are not
    cached, so the next request tries again.
    """

    def __init__(self, loader: Callable[[], Awaitable[List[Chapter]]]) -> None:
        self._loader = loader
        self._chapters: Optional[List[Chapter]] = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._chapters is not None

    async def get(self) -> List[Chapter]:
        if self._chapters is not None:
            return self._chapters
        async with self._lock:
            if self._chapters is None:
                chapters = await self._loader()
                self._chapters = list(chapters)
                logger.info("Chapters cached: %d", len(self._chapters))
        return self._chapters
