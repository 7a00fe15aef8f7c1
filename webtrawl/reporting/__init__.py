"""
Result reporting for the crawler.
"""

from .reporter import (
    ResultReporter, ReporterError, ConsoleReporter,
    JSONLinesReporter, MemoryReporter, MultiReporter
)

__all__ = [
    'ResultReporter', 'ReporterError', 'ConsoleReporter',
    'JSONLinesReporter', 'MemoryReporter', 'MultiReporter'
]
