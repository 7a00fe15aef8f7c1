"""
Scope policy deciding which URLs a crawl may visit.
"""

from typing import FrozenSet, Iterable
from urllib.parse import urlsplit


CRAWLABLE_SCHEMES = ('http', 'https')


class ScopePolicy:
    """
    Restricts traversal to the hosts the crawl was seeded with.

    Host comparison is exact and case-insensitive; ports are ignored.
    Subdomains of a scope host are only admitted when include_subdomains is set.
    """

    def __init__(self, scope_hosts: Iterable[str], scoped: bool = True,
                 include_subdomains: bool = False):
        self.scope_hosts: FrozenSet[str] = frozenset(
            host.lower().rstrip('.') for host in scope_hosts if host
        )
        self.scoped = scoped
        self.include_subdomains = include_subdomains

    @classmethod
    def from_urls(cls, urls: Iterable[str], scoped: bool = True,
                  include_subdomains: bool = False) -> 'ScopePolicy':
        """Capture the scope set from seed URLs."""
        hosts = set()
        for url in urls:
            try:
                host = urlsplit(url).hostname
            except ValueError:
                continue
            if host:
                hosts.add(host)
        return cls(hosts, scoped=scoped, include_subdomains=include_subdomains)

    def is_allowed(self, url: str) -> bool:
        """Check whether a candidate URL may be crawled."""
        try:
            parsed = urlsplit(url)
            host = (parsed.hostname or '').rstrip('.')
        except ValueError:
            return False

        if parsed.scheme.lower() not in CRAWLABLE_SCHEMES or not host:
            return False

        if not self.scoped:
            return True

        if host in self.scope_hosts:
            return True

        if self.include_subdomains:
            return any(host.endswith('.' + scope_host) for scope_host in self.scope_hosts)

        return False

    def __repr__(self) -> str:
        return (f"ScopePolicy(scope_hosts={sorted(self.scope_hosts)}, scoped={self.scoped}, "
                f"include_subdomains={self.include_subdomains})")
