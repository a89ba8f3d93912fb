from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from remote_catalog.config import CatalogConfig
from remote_catalog.errors import EmptyContentError
from remote_catalog.fetch.client import HttpFetcher
from remote_catalog.util.cache import CacheState, FileCache, now_millis
from remote_catalog.util.logging import get_logger

LOG = get_logger(__name__)

Fetcher = Callable[[str], str]
Clock = Callable[[], int]


@dataclass(frozen=True)
class RefreshResult:
    name: str
    path: Path
    fetched: bool
    refreshed_at_millis: int


class RefreshCoordinator:
    """Decides whether the cached catalog is usable and refreshes it when it is not.

    A failed fetch is never masked by stale content: FetchError and
    EmptyContentError propagate and the cache is left as it was.
    """

    def __init__(
        self,
        config: CatalogConfig,
        fetcher: Fetcher | None = None,
        store: FileCache | None = None,
        clock: Clock = now_millis,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or HttpFetcher()
        self.store = store or FileCache(config.storage_directory)
        self.clock = clock
        self.entry = self.store.entry(config.catalog_name)

    @property
    def content_path(self) -> Path:
        return self.entry.content_path

    def state(self) -> CacheState:
        return self.store.read(self.entry)

    def is_valid(self) -> bool:
        return self.state().is_valid(self.config.ttl_millis, self.clock())

    def ensure_fresh(self) -> RefreshResult:
        state = self.state()
        if state.is_valid(self.config.ttl_millis, self.clock()):
            LOG.info(
                "Version catalog cache is valid, skip download (url: %s)", self.config.source_url
            )
            return RefreshResult(
                name=self.entry.name,
                path=self.content_path,
                fetched=False,
                refreshed_at_millis=state.last_refreshed_at_millis,
            )
        return self._fetch_and_commit()

    def force_refresh(self) -> RefreshResult:
        return self._fetch_and_commit()

    def clean(self) -> bool:
        removed = self.store.clear(self.entry)
        if removed:
            LOG.info("The local version catalog cache deleted. (%s)", self.content_path)
        else:
            LOG.debug("No cached version catalog to delete. (%s)", self.content_path)
        return removed

    def _fetch_and_commit(self) -> RefreshResult:
        url = self.config.source_url
        LOG.info("Download version catalog file... %s", url)
        content = self.fetcher(url)
        if not content.strip():
            raise EmptyContentError(url)
        refreshed_at = self.clock()
        self.store.write(self.entry, content, refreshed_at)
        LOG.info("Download successfully. (%s)", self.content_path)
        return RefreshResult(
            name=self.entry.name,
            path=self.content_path,
            fetched=True,
            refreshed_at_millis=refreshed_at,
        )
