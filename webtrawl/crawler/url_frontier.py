"""
URL Frontier implementation for managing URLs to crawl.
Deduplicates on admission and tracks in-flight work so the crawl knows when it is done.
"""

import asyncio
import logging
import posixpath
import re
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, Optional, Set
from urllib.parse import urlsplit, urlunsplit


_DEFAULT_PORTS = {'http': 80, 'https': 443}
_REPEATED_SLASHES = re.compile(r'/{2,}')


def normalize_url(url: str) -> str:
    """
    Normalize a URL for deduplication.

    Strips the fragment, lower-cases scheme and host (user info keeps its
    case), drops default ports, resolves dot segments and collapses repeated
    slashes. The query string is kept verbatim.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    userinfo, at, hostport = parts.netloc.rpartition('@')
    netloc = userinfo + at + _strip_default_port(scheme, hostport.lower())

    path = parts.path or '/'
    path = _REPEATED_SLASHES.sub('/', path)
    if '.' in path:
        trailing = path.endswith('/') or path.endswith('/.') or path.endswith('/..')
        path = posixpath.normpath(path)
        if trailing and path != '/':
            path += '/'

    return urlunsplit((scheme, netloc, path, parts.query, ''))


def _strip_default_port(scheme: str, hostport: str) -> str:
    host, sep, port = hostport.rpartition(':')
    if sep and port.isdigit() and _DEFAULT_PORTS.get(scheme) == int(port):
        return host
    return hostport


def get_host(url: str) -> str:
    """Extract the lower-cased host name (no port) from a URL."""
    try:
        return (urlsplit(url).hostname or '').lower()
    except ValueError:
        return ''


@dataclass(frozen=True)
class Target:
    """Represents a URL crawling task."""
    url: str
    depth: int
    origin_host: str
    parent_url: Optional[str] = None

    @classmethod
    def create(cls, url: str, depth: int = 0, origin_host: Optional[str] = None,
               parent_url: Optional[str] = None) -> 'Target':
        """Build a target with a normalized URL."""
        normalized = normalize_url(url)
        return cls(
            url=normalized,
            depth=depth,
            origin_host=origin_host if origin_host is not None else get_host(normalized),
            parent_url=parent_url
        )

    def child(self, url: str) -> 'Target':
        """Create a target for a link discovered on this target's page."""
        return Target.create(
            url,
            depth=self.depth + 1,
            origin_host=self.origin_host,
            parent_url=self.url
        )


class URLFrontier:
    """
    FIFO queue of targets backed by a visited set.

    Every URL is admitted at most once per crawl run. The frontier closes
    itself once the queue is empty and no dequeued target is still being
    processed, which is the crawl's completion signal.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        self._queue: Deque[Target] = deque()
        self._visited: Set[str] = set()
        self._in_flight = 0
        self._closed = False
        self._condition = asyncio.Condition()

    async def enqueue(self, target: Target) -> bool:
        """
        Add a target to the frontier.
        Returns True if it was admitted, False if already seen or the frontier is closed.
        """
        key = normalize_url(target.url)
        async with self._condition:
            if self._closed or key in self._visited:
                return False

            self._visited.add(key)
            self._queue.append(target if target.url == key else replace(target, url=key))
            self._condition.notify()

        self.logger.debug(f"Added URL to frontier: {key}")
        return True

    async def mark_seen(self, url: str) -> bool:
        """
        Record a URL as visited without queueing it.
        Returns True if the URL was not seen before.
        """
        key = normalize_url(url)
        async with self._condition:
            if key in self._visited:
                return False
            self._visited.add(key)
        return True

    async def dequeue(self) -> Optional[Target]:
        """
        Get the next target to crawl.

        Waits until a target is available or the frontier is closed, in which
        case None is returned. The caller must call task_done() for every
        target it receives.
        """
        async with self._condition:
            while not self._queue and not self._closed:
                if self._in_flight == 0:
                    self._mark_exhausted()
                    break
                await self._condition.wait()

            if not self._queue:
                return None

            target = self._queue.popleft()
            self._in_flight += 1

        self.logger.debug(f"Retrieved URL from frontier: {target.url}")
        return target

    async def task_done(self):
        """Mark a dequeued target as fully processed."""
        async with self._condition:
            if self._in_flight <= 0:
                raise ValueError("task_done() called more times than targets were dequeued")
            self._in_flight -= 1
            if self._in_flight == 0 and not self._queue and not self._closed:
                self._mark_exhausted()

    async def close(self) -> int:
        """
        Stop admitting targets and discard everything still queued.
        Returns the number of discarded targets.
        """
        async with self._condition:
            discarded = len(self._queue)
            self._queue.clear()
            self._closed = True
            self._condition.notify_all()

        self.logger.info(f"Frontier closed, {discarded} queued URLs discarded")
        return discarded

    def _mark_exhausted(self):
        self._closed = True
        self._condition.notify_all()
        self.logger.debug("Frontier exhausted")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._visited

    def __len__(self) -> int:
        return len(self._queue)

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self._queue),
            'total_visited': len(self._visited),
            'in_flight': self._in_flight,
            'closed': int(self._closed)
        }
