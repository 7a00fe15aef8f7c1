"""
Result reporters consuming the crawl engine's events.
Supports console output, JSON lines files and in-memory collection.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from ..crawler.results import CrawlResult, CrawlSummary


class ReporterError(Exception):
    """Raised when a reporter cannot be set up."""
    pass


class ResultReporter:
    """Abstract base class for result reporters."""

    async def report(self, result: CrawlResult):
        """Handle one crawl result."""
        raise NotImplementedError

    async def summarize(self, summary: CrawlSummary):
        """Handle the terminal crawl summary."""
        raise NotImplementedError

    async def close(self):
        """Release any resources held by the reporter."""
        pass


class ConsoleReporter(ResultReporter):
    """Prints interesting results as they arrive, plus a final summary line."""

    def __init__(self, stream: Optional[TextIO] = None, quiet: bool = False):
        self.stream = stream or sys.stdout
        self.quiet = quiet

    @staticmethod
    def format_result(result: CrawlResult) -> str:
        timestamp = result.timestamp.strftime('%H:%M:%S.%f')[:-3]
        status = str(result.status_code) if result.status_code else '???'
        line = f"{timestamp} {status} {result.url}"
        if result.final_url and result.final_url != result.url:
            line += f" -> {result.final_url}"
        return line

    async def report(self, result: CrawlResult):
        if self.quiet or not result.interesting:
            return
        print(self.format_result(result), file=self.stream, flush=True)

    async def summarize(self, summary: CrawlSummary):
        print(
            f"Scan completed: {summary.total_fetched} fetched, "
            f"{summary.total_interesting} interesting, "
            f"{summary.total_errors} errors in {summary.elapsed:.2f}s",
            file=self.stream,
            flush=True
        )


class JSONLinesReporter(ResultReporter):
    """Writes every result, and finally the summary, as one JSON object per line."""

    def __init__(self, output_path: str):
        self.output_path = Path(output_path)
        self.logger = logging.getLogger(__name__)
        self.records_written = 0

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.output_path, 'w', encoding='utf-8')
        except OSError as e:
            raise ReporterError(f"Failed to open results file {self.output_path}: {e}")

        self.logger.info(f"Writing results to {self.output_path}")

    def _write(self, record: dict):
        self._file.write(json.dumps(record, ensure_ascii=False) + '\n')
        self._file.flush()
        self.records_written += 1

    async def report(self, result: CrawlResult):
        record = result.to_dict()
        record['type'] = 'result'
        self._write(record)

    async def summarize(self, summary: CrawlSummary):
        record = summary.to_dict()
        record['type'] = 'summary'
        self._write(record)

    async def close(self):
        if not self._file.closed:
            self._file.close()
            self.logger.debug(f"Closed results file after {self.records_written} records")


class MemoryReporter(ResultReporter):
    """Keeps all results in memory."""

    def __init__(self):
        self.results: List[CrawlResult] = []
        self.summary: Optional[CrawlSummary] = None

    async def report(self, result: CrawlResult):
        self.results.append(result)

    async def summarize(self, summary: CrawlSummary):
        self.summary = summary

    def interesting(self) -> List[CrawlResult]:
        """Results whose status passed the include/exclude filter."""
        return [result for result in self.results if result.interesting]

    def urls(self) -> List[str]:
        return [result.url for result in self.results]


class MultiReporter(ResultReporter):
    """Fans events out to several reporters."""

    def __init__(self, reporters: Sequence[ResultReporter]):
        self.reporters = list(reporters)

    async def report(self, result: CrawlResult):
        for reporter in self.reporters:
            await reporter.report(result)

    async def summarize(self, summary: CrawlSummary):
        for reporter in self.reporters:
            await reporter.summarize(summary)

    async def close(self):
        for reporter in self.reporters:
            await reporter.close()
