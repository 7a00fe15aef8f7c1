"""
Crawl strategies: how the frontier is seeded and whether fetched pages are expanded.
"""

import logging
from enum import Enum
from typing import Iterator, Optional, Sequence

from .url_frontier import Target, get_host


DEFAULT_FUZZ_MARKER = 'FUZZ'


class CrawlMode(Enum):
    """Crawl modes selectable from configuration."""
    DEEP = 'deep'
    SHALLOW = 'shallow'
    FORCED_BROWSE = 'forced_browse'
    FUZZ = 'fuzz'

    @property
    def expands(self) -> bool:
        return self is CrawlMode.DEEP

    @property
    def needs_wordlist(self) -> bool:
        return self in (CrawlMode.FORCED_BROWSE, CrawlMode.FUZZ)


class CrawlStrategy:
    """Base class for crawl strategies."""

    mode: CrawlMode

    def __init__(self, seed_urls: Sequence[str]):
        self.seed_urls = list(seed_urls)
        self.logger = logging.getLogger(__name__)

    def seed_targets(self) -> Iterator[Target]:
        """Yield the targets the frontier starts with."""
        raise NotImplementedError

    def should_expand(self, target: Target) -> bool:
        """Decide whether links found on a fetched target are followed."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seeds={len(self.seed_urls)})"


class DeepCrawl(CrawlStrategy):
    """Recursive link following from the seed URLs."""

    mode = CrawlMode.DEEP

    def __init__(self, seed_urls: Sequence[str], max_depth: Optional[int] = None):
        super().__init__(seed_urls)
        self.max_depth = max_depth

    def seed_targets(self) -> Iterator[Target]:
        for url in self.seed_urls:
            yield Target.create(url, depth=0)

    def should_expand(self, target: Target) -> bool:
        return self.max_depth is None or target.depth < self.max_depth


class ShallowCrawl(CrawlStrategy):
    """Fetch the seed URLs only."""

    mode = CrawlMode.SHALLOW

    def seed_targets(self) -> Iterator[Target]:
        for url in self.seed_urls:
            yield Target.create(url, depth=0)

    def should_expand(self, target: Target) -> bool:
        return False


class ForcedBrowse(CrawlStrategy):
    """Probe every wordlist entry as a path segment under every seed URL."""

    mode = CrawlMode.FORCED_BROWSE

    def __init__(self, seed_urls: Sequence[str], wordlist: Sequence[str]):
        super().__init__(seed_urls)
        self.wordlist = list(wordlist)

    def seed_targets(self) -> Iterator[Target]:
        for url in self.seed_urls:
            origin_host = get_host(url)
            base = url.rstrip('/')
            for word in self.wordlist:
                yield Target.create(f"{base}/{word.lstrip('/')}", depth=0,
                                    origin_host=origin_host, parent_url=url)

    def should_expand(self, target: Target) -> bool:
        return False


class FuzzStrategy(ForcedBrowse):
    """
    Substitute every wordlist entry for the marker in each seed URL.

    `https://example.test/api?id=FUZZ` with entries `1`, `2` probes
    `https://example.test/api?id=1` and `https://example.test/api?id=2`.
    Seeds without the marker are probed once, unchanged.
    """

    mode = CrawlMode.FUZZ

    def __init__(self, seed_urls: Sequence[str], wordlist: Sequence[str],
                 marker: str = DEFAULT_FUZZ_MARKER):
        super().__init__(seed_urls, wordlist)
        self.marker = marker

    def seed_targets(self) -> Iterator[Target]:
        for url in self.seed_urls:
            if self.marker not in url:
                self.logger.info(f"No {self.marker} marker in {url}, probing it as-is")
                yield Target.create(url, depth=0)
                continue

            for word in self.wordlist:
                candidate = url.replace(self.marker, word)
                yield Target.create(candidate, depth=0, parent_url=url)


def create_strategy(config) -> CrawlStrategy:
    """
    Select the strategy for a crawl.

    Args:
        config: CrawlerConfig with a resolved mode

    Returns:
        The strategy instance for config.mode
    """
    mode = config.mode
    if mode is CrawlMode.DEEP:
        return DeepCrawl(config.seed_urls, max_depth=config.max_depth)
    if mode is CrawlMode.SHALLOW:
        return ShallowCrawl(config.seed_urls)
    if mode is CrawlMode.FORCED_BROWSE:
        return ForcedBrowse(config.seed_urls, config.wordlist or ())
    if mode is CrawlMode.FUZZ:
        return FuzzStrategy(config.seed_urls, config.wordlist or (), marker=config.fuzz_marker)
    raise ValueError(f"Unknown crawl mode: {mode!r}")
