"""
Web crawler core components.
"""

from .url_frontier import URLFrontier, Target, normalize_url
from .fetcher import WebFetcher, FetchResult
from .parser import LinkExtractor
from .scope import ScopePolicy
from .rate_limiter import RateLimiter
from .modes import CrawlMode, CrawlStrategy, create_strategy
from .results import CrawlResult, CrawlSummary, StatusFilter

__all__ = [
    'URLFrontier', 'Target', 'normalize_url',
    'WebFetcher', 'FetchResult',
    'LinkExtractor', 'ScopePolicy', 'RateLimiter',
    'CrawlMode', 'CrawlStrategy', 'create_strategy',
    'CrawlResult', 'CrawlSummary', 'StatusFilter'
]
