#!/usr/bin/env python3
"""
Main entry point for webtrawl.
"""

import asyncio
import argparse
import contextlib
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .crawler.scheduler import CrawlerScheduler
from .reporting import ConsoleReporter, JSONLinesReporter, MultiReporter, ResultReporter
from .utils.config import Config, ConfigurationError, load_config
from .utils.logger import setup_logging, log_system_info, verbosity_to_level
from .utils.monitoring import CrawlerMonitor, MetricsCollector


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


class CrawlerApp:
    """Main application class for webtrawl."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.warning(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signum, signal_handler, signum)

    def build_reporter(self, config: Config) -> ResultReporter:
        reporters: List[ResultReporter] = [ConsoleReporter(quiet=config.output.quiet)]
        if config.output.results_file:
            reporters.append(JSONLinesReporter(config.output.results_file))
        return reporters[0] if len(reporters) == 1 else MultiReporter(reporters)

    def build_monitor(self, config: Config) -> CrawlerMonitor:
        collector = MetricsCollector(
            enable_http_server=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        )
        collector.start_http_server()
        return CrawlerMonitor(collector)

    async def run(self, config: Config) -> int:
        """Run the crawl described by config."""
        self._shutdown_event = asyncio.Event()
        self.setup_signal_handlers()

        crawler_config = config.crawler
        self.logger.info("=== WEBTRAWL STARTING ===")
        self.logger.info(f"Seed URLs: {', '.join(crawler_config.seed_urls)}")
        self.logger.info(f"Mode: {crawler_config.mode.value}")
        self.logger.info(f"Scoped: {crawler_config.scoped}")
        self.logger.info(f"Threads: {crawler_config.max_threads}")
        self.logger.info(f"Rate limit: {crawler_config.rate_limit_ms}ms")
        if crawler_config.wordlist is not None:
            self.logger.info(f"Wordlist entries: {len(crawler_config.wordlist)}")

        try:
            self.scheduler = CrawlerScheduler(
                crawler_config,
                self.build_reporter(config),
                monitor=self.build_monitor(config),
                stats_interval=config.monitoring.stats_interval
            )

            crawl_task = asyncio.create_task(self.scheduler.start_crawling())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            done, _ = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            if shutdown_task in done:
                self.logger.warning("Shutdown requested, letting in-flight requests finish...")
                await self.scheduler.stop_crawling()
            else:
                shutdown_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await shutdown_task

            await crawl_task

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return EXIT_FAILURE

        finally:
            if self.scheduler:
                await self.scheduler.close()
            self.logger.info("=== WEBTRAWL FINISHED ===")

        return EXIT_OK


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='webtrawl',
        description="Concurrent web crawler and forced browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  webtrawl https://example.com                       # Crawl following links
  webtrawl https://example.com -S                    # Fetch the seed only
  webtrawl https://example.com -w words.txt          # Forced browse
  webtrawl "https://example.com/?id=FUZZ" -w ids.txt  # Fuzz a parameter
  webtrawl -H https://a.test -H https://b.test -r 100 # Two hosts, 100ms apart

Environment:
  WEBTRAWL_HOSTS, WEBTRAWL_RATE_LIMIT, WEBTRAWL_THREADS, WEBTRAWL_UA,
  WEBTRAWL_WORDLIST (each overridden by its flag)
        """
    )

    parser.add_argument('hosts', nargs='*', metavar='URL', help='Seed URL(s) to start from')
    parser.add_argument('-H', '--host', action='append', dest='extra_hosts', default=[],
                        metavar='URL', help='Additional seed URL, may be repeated')

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument('-D', '--deep', action='store_const', const='deep', dest='mode',
                            help='Follow links recursively (default without a wordlist)')
    mode_group.add_argument('-S', '--shallow', action='store_const', const='shallow', dest='mode',
                            help='Fetch the seed URLs only')

    parser.add_argument('--scoped', action=argparse.BooleanOptionalAction, default=None,
                        help='Restrict requests to the seed hosts (default: on)')
    parser.add_argument('--include-subdomains', action='store_true', default=None,
                        help='Treat subdomains of seed hosts as in scope')
    parser.add_argument('-u', '--user-agent', help='User-Agent header to send')
    parser.add_argument('-r', '--rate-limit', type=int, metavar='MS',
                        help='Minimum milliseconds between any two requests')
    parser.add_argument('-t', '--threads', type=int, help='Number of concurrent workers (1-1000)')
    parser.add_argument('-w', '--wordlist', metavar='FILE',
                        help='Wordlist for forced browsing or fuzzing')
    parser.add_argument('-i', '--status-include', nargs='+', type=int, metavar='CODE',
                        help='Only report these status codes')
    parser.add_argument('-e', '--status-exclude', nargs='+', type=int, metavar='CODE',
                        help='Never report these status codes')
    parser.add_argument('--max-depth', type=int, help='Maximum link depth in deep mode')
    parser.add_argument('--timeout', type=float, metavar='SECONDS', help='Per-request timeout')

    parser.add_argument('--config', help='Path to a YAML configuration file')
    parser.add_argument('-o', '--output', metavar='FILE', help='Also write results as JSON lines')
    parser.add_argument('-q', '--quiet', action='store_true', default=None,
                        help='Only print the final summary')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase log verbosity (-v info, -vv debug)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--metrics-port', type=int, metavar='PORT',
                        help='Expose Prometheus metrics on this port')

    parser.add_argument('--version', action='version', version=f'webtrawl {__version__}')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed arguments into configuration overrides."""
    hosts = [*args.hosts, *args.extra_hosts]

    overrides: Dict[str, Any] = {
        'seed_urls': hosts or None,
        'mode': args.mode,
        'scoped': args.scoped,
        'include_subdomains': args.include_subdomains,
        'user_agent': args.user_agent,
        'rate_limit_ms': args.rate_limit,
        'max_threads': args.threads,
        'wordlist_file': args.wordlist,
        'status_include': args.status_include,
        'status_exclude': args.status_exclude,
        'max_depth': args.max_depth,
        'request_timeout': args.timeout,
        'logging': {
            'level': verbosity_to_level(args.verbose) if args.verbose else None,
            'file': args.log_file
        },
        'output': {
            'results_file': args.output,
            'quiet': args.quiet
        }
    }
    if args.metrics_port is not None:
        overrides['monitoring'] = {'metrics_enabled': True, 'prometheus_port': args.metrics_port}

    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config, overrides=build_overrides(args))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging)
    log_system_info()

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
