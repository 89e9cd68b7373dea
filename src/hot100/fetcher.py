from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import httpx

from hot100.config import HttpConfig

logger = logging.getLogger(__name__)


class PageFetcher:
    """
    Downloads weekly chart pages into the local HTML cache.

    The fetcher never consults the cache itself; callers check
    `cache_path()` first and only call `fetch()` for missing pages.
    """

    def __init__(self, config: HttpConfig, cache_dir: Path):
        self.config = config
        self.cache_dir = cache_dir
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialized HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.timeout_s,
                follow_redirects=False,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> PageFetcher:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # pyright: ignore[reportMissingParameterType, reportUnknownParameterType]
        self.close()

    def url_for(self, chart_date: date) -> str:
        return f"{self.config.base_url.rstrip('/')}/charts/hot-100/{chart_date.isoformat()}/"

    def cache_path(self, chart_date: date) -> Path:
        return self.cache_dir / f"{chart_date.isoformat()}.html"

    def fetch(self, chart_date: date) -> Path | None:
        """
        Fetch the chart page for ``chart_date`` and store it verbatim.

        The body is streamed to a ``.part`` file that is renamed into place only
        after the whole body was received, so a failed download never leaves
        something that looks like a cached page.

        Returns:
            Path of the cached page, or None if the response was rejected
            (status other than 200, unexpected content type) or the request
            failed.
        """
        url = self.url_for(chart_date)
        target = self.cache_path(chart_date)
        partial = target.with_name(target.name + ".part")

        logger.info(f"Downloading HTML for {chart_date.isoformat()}...")
        try:
            with self.client.stream("GET", url) as response:
                if response.status_code != 200:
                    logger.error(f"Status code is not 200 for {url}: {response.status_code}")
                    return None

                content_type = response.headers.get("content-type")
                if content_type != self.config.expected_content_type:
                    logger.error(f"Content type is unexpected for {url}: {content_type!r}")
                    return None

                self.cache_dir.mkdir(parents=True, exist_ok=True)
                with partial.open("wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
        except httpx.RequestError as e:
            partial.unlink(missing_ok=True)
            logger.error(f"Request error fetching {url}: {e}")
            return None

        partial.replace(target)
        logger.debug(f"Cached {url} as {target}")
        return target
