import asyncio
import time
from typing import Dict, List, Optional

import pytest

from webtrawl.crawler.fetcher import FetchResult
from webtrawl.crawler.url_frontier import normalize_url
from webtrawl.utils.config import CrawlerConfig


def html_page(*links: str, title: str = "page") -> bytes:
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"<html><head><title>{title}</title></head><body>{anchors}</body></html>".encode()


class FakeFetcher:
    """Serves canned responses keyed by URL and records every request."""

    def __init__(self, pages: Optional[Dict[str, tuple]] = None, delay: float = 0.0,
                 default_status: int = 404):
        self.pages = {normalize_url(url): response for url, response in (pages or {}).items()}
        self.delay = delay
        self.default_status = default_status
        self.requests: List[str] = []
        self.request_times: List[float] = []
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def fetch(self, url: str) -> FetchResult:
        self.requests.append(url)
        self.request_times.append(time.monotonic())
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.pages.get(normalize_url(url))
        if response is None:
            return FetchResult(url=url, status_code=self.default_status, final_url=url,
                               content_type="text/html", body=b"not found")
        if isinstance(response, str):
            return FetchResult(url=url, status_code=0, error=response, error_type="connection")

        status, body, *redirect = response
        final_url = redirect[0] if redirect else url
        return FetchResult(url=url, status_code=status, final_url=final_url, body=body,
                           content_type="text/html; charset=utf-8", encoding="utf-8")


@pytest.fixture
def make_config():
    def _make(*seed_urls: str, **kwargs) -> CrawlerConfig:
        kwargs.setdefault("max_threads", 4)
        return CrawlerConfig(seed_urls=tuple(seed_urls), **kwargs)

    return _make
