"""
HTTP fetching over a single shared aiohttp session.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field
from aiohttp import ClientResponse, ClientSession, ClientTimeout


DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024


@dataclass
class FetchResult:
    """Response data for one GET, or the reason there is none."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    body: bytes = b''
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    truncated: bool = False

    @property
    def ok(self) -> bool:
        """True when a response was received, whatever its status."""
        return self.error is None


class WebFetcher:
    """
    Issues GET requests with a fixed User-Agent, following redirects.

    Every outcome is a FetchResult: timeouts, refused connections, DNS
    failures, redirect loops and invalid URLs set `error` and `error_type`
    instead of raising. 4xx/5xx responses are ordinary results.
    """

    def __init__(self, user_agent: str, request_timeout: float = 10,
                 max_concurrent_requests: int = 10, max_redirects: int = 10,
                 max_body_size: int = DEFAULT_MAX_BODY_SIZE, verify_ssl: bool = False):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_redirects = max_redirects
        self.max_body_size = max_body_size
        self.verify_ssl = verify_ssl

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats: Dict[str, int] = {}
        self.reset_stats()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the session; calling it again is a no-op."""
        if self.session is not None:
            return

        connector_options = {
            'limit': self.max_concurrent_requests,
            'limit_per_host': 0,
            'ttl_dns_cache': 300
        }
        if not self.verify_ssl:
            connector_options['ssl'] = False

        connector = aiohttp.TCPConnector(**connector_options)
        self.session = ClientSession(
            connector=connector,
            timeout=ClientTimeout(total=self.request_timeout),
            headers={'User-Agent': self.user_agent}
        )
        self.logger.debug(f"HTTP session opened (timeout={self.request_timeout}s, "
                          f"verify_ssl={self.verify_ssl})")

    async def close(self):
        if self.session is None:
            return
        await self.session.close()
        self.session = None
        self.logger.debug("HTTP session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        GET a URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            FetchResult with the response, or with `error` set and status 0
        """
        if self.session is None:
            await self.start()

        self.stats['requests'] += 1
        started = time.monotonic()

        try:
            async with self.session.get(url, allow_redirects=True,
                                        max_redirects=self.max_redirects) as response:
                body, truncated = await self._read_body(response)
                result = self._to_result(url, response, body, truncated,
                                         time.monotonic() - started)
        except asyncio.TimeoutError:
            return self._failure(url, started, 'timeout', "Request timeout")
        except aiohttp.TooManyRedirects:
            return self._failure(url, started, 'redirects',
                                 f"Too many redirects (limit {self.max_redirects})")
        except aiohttp.ClientError as e:
            return self._failure(url, started, 'connection',
                                 f"Client error: {str(e) or type(e).__name__}")
        except ValueError as e:
            return self._failure(url, started, 'invalid_url', f"Invalid request: {e}")

        self.stats['responses'] += 1
        self.stats['bytes'] += len(body)
        self.logger.debug(f"{result.status_code} {url} ({len(body)} bytes, {result.fetch_time:.2f}s)")
        return result

    @staticmethod
    def _to_result(url: str, response: ClientResponse, body: bytes, truncated: bool,
                   elapsed: float) -> FetchResult:
        content_type = response.headers.get('Content-Type')
        return FetchResult(
            url=url,
            status_code=response.status,
            final_url=str(response.url),
            body=body,
            headers=dict(response.headers),
            content_type=content_type.lower() if content_type else None,
            encoding=response.charset,
            fetch_time=elapsed,
            truncated=truncated
        )

    def _failure(self, url: str, started: float, error_type: str, message: str) -> FetchResult:
        self.stats['failures'] += 1
        self.logger.warning(f"{message}: {url}")
        return FetchResult(
            url=url,
            status_code=0,
            error=message,
            error_type=error_type,
            fetch_time=time.monotonic() - started
        )

    async def _read_body(self, response: ClientResponse) -> Tuple[bytes, bool]:
        """Read at most max_body_size bytes; the flag tells whether the body was cut short."""
        buffer = bytearray()
        async for chunk in response.content.iter_chunked(READ_CHUNK_SIZE):
            buffer += chunk
            if len(buffer) > self.max_body_size:
                self.logger.warning(f"Body larger than {self.max_body_size} bytes, truncated: {response.url}")
                return bytes(buffer[:self.max_body_size]), True
        return bytes(buffer), False

    def get_stats(self) -> Dict[str, int]:
        """Counts of requests, responses, failures and bytes read."""
        return dict(self.stats)

    def reset_stats(self):
        self.stats = {'requests': 0, 'responses': 0, 'failures': 0, 'bytes': 0}
