#!/usr/bin/env python3
"""
Main entry point for the word crawler.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from wordcrawler import __version__
from wordcrawler.crawler.fetcher import HttpPageSource
from wordcrawler.crawler.scheduler import CrawlScheduler, build_scheduler
from wordcrawler.crawler.task import CrawlResult
from wordcrawler.storage.result_writer import CrawlResultWriter
from wordcrawler.utils.config import Config, load_config
from wordcrawler.utils.logger import log_system_info, setup_logging
from wordcrawler.utils.monitoring import initialize_monitoring


class CrawlerApp:
    """Main application class for the word crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._crawl_task: Optional[asyncio.Task] = None

    def setup_signal_handlers(self):
        """Cancel the running crawl on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self._crawl_task and not self._crawl_task.done():
                self._crawl_task.cancel()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Event loops without signal support (e.g. on Windows)
                signal.signal(signum, lambda s, f: signal_handler(s))

    def apply_overrides(self, config: Config, args: argparse.Namespace):
        """Apply command line overrides on top of the loaded configuration."""
        if args.output is not None:
            config.output.result_path = args.output
        if args.sequential:
            config.crawler.implementation = 'sequential'
        if args.max_depth is not None:
            if args.max_depth < 1:
                raise ValueError("--max-depth must be at least 1")
            config.crawler.max_depth = args.max_depth
        if args.timeout is not None:
            if args.timeout < 0:
                raise ValueError("--timeout must be non-negative")
            config.crawler.timeout_seconds = args.timeout

    async def run(self, args: argparse.Namespace) -> int:
        """Run the crawler."""
        try:
            config = load_config(args.config)
            self.apply_overrides(config, args)
        except (OSError, ValueError) as e:
            print(f"Error: invalid configuration: {e}", file=sys.stderr)
            return 1

        setup_logging(config.logging)
        log_system_info()

        crawler = config.crawler
        self.logger.info("=== WORD CRAWLER STARTING ===")
        self.logger.info(f"Configuration loaded from: {args.config}")
        self.logger.info(f"Seed URLs: {crawler.seed_urls}")
        self.logger.info(f"Max depth: {crawler.max_depth}")
        self.logger.info(f"Timeout: {crawler.timeout_seconds}s")
        self.logger.info(f"Implementation: {crawler.implementation} ({crawler.recursion_mode})")
        self.logger.info(f"Throttle delay: {crawler.throttle_delay_ms}ms")

        monitor = initialize_monitoring(
            config.monitoring.metrics_enabled,
            config.monitoring.prometheus_port
        )

        try:
            async with HttpPageSource(
                user_agent=crawler.user_agent,
                request_timeout=crawler.request_timeout,
                excluded_words=crawler.compiled_excluded_words()
            ) as page_source:
                self.scheduler = build_scheduler(config, page_source, monitor)
                self.logger.info(
                    f"Using {type(self.scheduler).__name__} with concurrency "
                    f"{self.scheduler.get_concurrency_level()}"
                )

                if args.dry_run:
                    self.logger.info("DRY RUN MODE: No actual crawling will be performed")
                    return 0

                self.setup_signal_handlers()
                self._crawl_task = asyncio.create_task(self.scheduler.crawl(crawler.seed_urls))
                result = await self._crawl_task

            self.write_result(result, config.output.result_path)
            self.logger.info(f"Monitoring summary: {monitor.get_summary()}")

        except asyncio.CancelledError:
            self.logger.info("Crawl cancelled, no result written")
            return 1
        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1
        finally:
            self.logger.info("=== WORD CRAWLER FINISHED ===")

        return 0

    def write_result(self, result: CrawlResult, result_path: str):
        writer = CrawlResultWriter(result)
        if result_path:
            writer.save_to_path(result_path)
            self.logger.info(f"Crawl result written to {result_path}")
        else:
            writer.save_to_stream(sys.stdout)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bounded word-frequency web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                             # Run with default config.yaml
  python main.py --config my_config.yaml    # Run with custom config
  python main.py --output result.json       # Write the result to a file
  python main.py --sequential --max-depth 2 # Single-task depth-first crawl
  python main.py --dry-run                  # Validate configuration only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--output',
        help='Path of the JSON result file (default: stdout)'
    )

    parser.add_argument(
        '--sequential',
        action='store_true',
        help='Use the sequential scheduler'
    )

    parser.add_argument(
        '--max-depth',
        type=int,
        help='Override the maximum crawl depth'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Override the crawl timeout in seconds'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate configuration without actually crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Word Crawler {__version__}'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.", file=sys.stderr)
        print("Please create a config.yaml file or specify a different path with --config",
              file=sys.stderr)
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
