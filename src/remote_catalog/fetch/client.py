from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from remote_catalog.errors import FetchError
from remote_catalog.util.logging import get_logger

LOG = get_logger(__name__)

DEFAULT_USER_AGENT = "remote-version-catalog/1.1"


class HttpFetcher:
    """Blocking fetch of a catalog body. No retries; callers decide what a failure means."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float | None = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def __call__(self, url: str) -> str:
        return self.fetch(url)

    def fetch(self, url: str) -> str:
        if urlparse(url).scheme == "file":
            return self._read_local(url)
        LOG.debug("GET %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(url, f"Failed to fetch {url}: {exc}") from exc
        # Catalogs are UTF-8 regardless of the charset the server advertises.
        try:
            return resp.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FetchError(url, f"Response from {url} is not UTF-8: {exc}") from exc

    @staticmethod
    def _read_local(url: str) -> str:
        path = Path(url2pathname(urlparse(url).path))
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchError(url, f"Failed to read {url}: {exc}") from exc
