"""Cache-first poster lookup: check the cache, otherwise resolve and download."""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Optional

from cache import PosterCacheStore
from errors import InternalError, NotFoundError, PosterServiceError, ValidationError
from scraper import ImageFetcher, PosterResolver, sanitize_filename

logger = logging.getLogger(__name__)


@dataclass
class PosterResult:
    """Outcome of a successful poster lookup."""

    title: str
    cache_key: str
    path: Path
    cache_hit: bool
    source_url: Optional[str] = None


def normalize_title(title: str) -> str:
    return title.strip().lower()


class PosterPipeline:
    def __init__(self, store: PosterCacheStore, resolver: PosterResolver, fetcher: ImageFetcher):
        self.store = store
        self.resolver = resolver
        self.fetcher = fetcher
        self._locks: Dict[str, "_InflightLock"] = {}
        self._locks_guard = threading.Lock()

    def get_poster(self, title: Optional[str]) -> PosterResult:
        """Return the local poster for a title, downloading it on a cache miss."""
        if not title or not title.strip():
            raise ValidationError("Movie name is required. Use ?movie=YourMovieName")

        logger.info(f"Searching for movie: {title}")
        cache_key = normalize_title(title)

        cached = self._lookup(title, cache_key)
        if cached:
            return cached

        # Concurrent misses for the same title share a single download
        with self._inflight(cache_key):
            cached = self._lookup(title, cache_key)
            if cached:
                return cached
            return self._fetch(title, cache_key)

    def _lookup(self, title: str, cache_key: str) -> Optional[PosterResult]:
        filepath = self.store.get(cache_key)
        if not filepath:
            return None
        if not os.path.exists(filepath):
            logger.info(f"Cached poster for '{cache_key}' is missing on disk: {filepath}")
            return None
        logger.info(f"Found in cache: {filepath}")
        return PosterResult(title=title, cache_key=cache_key, path=Path(filepath), cache_hit=True)

    def _fetch(self, title: str, cache_key: str) -> PosterResult:
        try:
            poster_url = self.resolver.resolve(title)
            if not poster_url:
                raise NotFoundError("Movie poster not found")
            logger.info(f"Found poster URL: {poster_url}")

            filepath = self.fetcher.fetch(poster_url, sanitize_filename(cache_key))
        except PosterServiceError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error fetching poster for '{title}'")
            raise InternalError("An error occurred while fetching the poster", details=str(e)) from e

        logger.info(f"Poster saved to: {filepath}")
        self.store.put(cache_key, str(filepath))
        logger.info("Cached for future requests")
        return PosterResult(
            title=title,
            cache_key=cache_key,
            path=Path(filepath),
            cache_hit=False,
            source_url=poster_url,
        )

    @contextmanager
    def _inflight(self, cache_key: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(cache_key, _InflightLock())
            entry.waiters += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.waiters -= 1
                if not entry.waiters:
                    del self._locks[cache_key]


@dataclass
class _InflightLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    waiters: int = 0
