"""
Crawl result records and status filtering.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, Optional


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class CrawlResult:
    """Outcome of one fetch attempt."""
    url: str
    status_code: Optional[int]
    content_type: Optional[str] = None
    byte_size: int = 0
    discovered_link_count: int = 0
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)
    final_url: Optional[str] = None
    depth: int = 0
    interesting: bool = False
    fetch_time: float = 0.0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class CrawlSummary:
    """Terminal statistics for a crawl run."""
    total_fetched: int
    total_errors: int
    elapsed: float
    total_interesting: int = 0
    total_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StatusFilter:
    """
    Include/exclude filter on HTTP status codes.

    An empty include list admits every code; the exclude list always wins.
    """

    def __init__(self, include: Iterable[int] = (), exclude: Iterable[int] = ()):
        self.include: FrozenSet[int] = frozenset(int(code) for code in include)
        self.exclude: FrozenSet[int] = frozenset(int(code) for code in exclude)

    def is_allowed(self, status_code: Optional[int]) -> bool:
        if status_code is None:
            return False
        if self.include and status_code not in self.include:
            return False
        return status_code not in self.exclude

    def __repr__(self) -> str:
        return f"StatusFilter(include={sorted(self.include)}, exclude={sorted(self.exclude)})"
