"""
Command-line interface for LinkLoom.

Three commands share the same bounded-concurrency core:

- ``scan``: check every bookmark's URL and extract page metadata
- ``categorize``: group bookmarks into categories, a batch at a time
- ``organize``: scan, set dead links aside, categorize the rest

``--create-config PATH`` writes a sample configuration file instead.
"""

import argparse
import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from pathlib import Path

from tqdm import tqdm

from . import __version__
from .config.pydantic_config import ConfigurationManager, LinkLoomConfig
from .core.async_pipeline import run_categorization, run_liveness_scan
from .core.batch_types import RunStats
from .core.bookmark_loader import load_bookmarks
from .core.categorizer import create_categorizer
from .core.json_exporter import (
    export_grouping,
    export_organized,
    export_scan_results,
)
from .core.liveness_probe import LivenessProbe
from .core.organizer import run_organize
from .utils.error_handler import LinkLoomError
from .utils.logging_setup import setup_logging

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


class CLIInterface:
    """Argument parsing and command dispatch."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="linkloom",
            description="Check bookmark links and group bookmarks into categories",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  linkloom scan bookmarks.csv -o scan.json
  linkloom scan bookmarks.csv -o scan.json --concurrency 20 --retries 2
  linkloom categorize bookmarks.csv -o groups.json --chunk-size 20
  linkloom categorize bookmarks.json -o groups.json --engine openai
  linkloom organize bookmarks.csv -o organized.json --target-categories 5
  linkloom --create-config linkloom.toml

Input files are CSV or JSON with url and optional id and title columns.
The OpenAI engine reads its key from OPENAI_API_KEY or the config file.
            """,
        )
        parser.add_argument(
            "--version", "-V", action="version", version=f"%(prog)s {__version__}"
        )
        parser.add_argument(
            "--config",
            "-c",
            help="Configuration file path (TOML or JSON)",
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable debug logging",
        )
        parser.add_argument(
            "--no-progress",
            action="store_true",
            help="Disable the progress bar",
        )
        parser.add_argument("--log-file", help="Also write logs to this file")
        parser.add_argument(
            "--create-config",
            metavar="PATH",
            help="Write a sample configuration file (.toml or .json) and exit",
        )

        subparsers = parser.add_subparsers(dest="command")

        scan = subparsers.add_parser("scan", help="Check link liveness and metadata")
        scan.add_argument("input", help="Input bookmarks file (.csv or .json)")
        scan.add_argument("--output", "-o", required=True, help="Output JSON file")
        scan.add_argument(
            "--concurrency",
            dest="scan_concurrency",
            type=int,
            help="Maximum probes in flight (default: 10)",
        )
        scan.add_argument(
            "--timeout", type=float, help="Per-request timeout in seconds (default: 2)"
        )
        scan.add_argument(
            "--retries",
            type=int,
            help="Extra attempts for transient errors (default: 0)",
        )

        categorize = subparsers.add_parser(
            "categorize", help="Group bookmarks into categories"
        )
        categorize.add_argument("input", help="Input bookmarks file (.csv or .json)")
        categorize.add_argument(
            "--output", "-o", required=True, help="Output JSON file"
        )
        categorize.add_argument(
            "--chunk-size", type=int, help="Bookmarks per categorizer call (default: 10)"
        )
        categorize.add_argument(
            "--concurrency",
            dest="categorize_concurrency",
            type=int,
            help="Maximum categorizer calls in flight (default: 3)",
        )
        categorize.add_argument(
            "--engine",
            choices=["local", "openai"],
            help="Categorizer backend (default: local)",
        )
        categorize.add_argument(
            "--target-categories",
            type=int,
            help="Approximate number of categories; 5 or fewer gives broad groups "
            "(default: 10)",
        )

        organize = subparsers.add_parser(
            "organize",
            help="Check links, set broken ones aside and categorize the rest",
        )
        organize.add_argument("input", help="Input bookmarks file (.csv or .json)")
        organize.add_argument("--output", "-o", required=True, help="Output JSON file")
        organize.add_argument(
            "--scan-concurrency",
            type=int,
            help="Maximum probes in flight (default: 10)",
        )
        organize.add_argument(
            "--categorize-concurrency",
            type=int,
            help="Maximum categorizer calls in flight (default: 3)",
        )
        organize.add_argument(
            "--chunk-size", type=int, help="Bookmarks per categorizer call (default: 10)"
        )
        organize.add_argument(
            "--timeout", type=float, help="Per-request timeout in seconds (default: 2)"
        )
        organize.add_argument(
            "--retries",
            type=int,
            help="Extra attempts for transient errors (default: 0)",
        )
        organize.add_argument(
            "--engine",
            choices=["local", "openai"],
            help="Categorizer backend (default: local)",
        )
        organize.add_argument(
            "--target-categories",
            type=int,
            help="Approximate number of categories; 5 or fewer gives broad groups "
            "(default: 10)",
        )

        return parser

    def parse_args(self, args=None) -> argparse.Namespace:
        parsed_args = self.parser.parse_args(args)
        if parsed_args.command is None and not parsed_args.create_config:
            self.parser.error("a command is required (scan, categorize or organize)")
        return parsed_args

    def load_config(self, parsed_args: argparse.Namespace) -> ConfigurationManager:
        """Load the configuration file and apply command-line overrides."""
        manager = ConfigurationManager(parsed_args.config)
        manager.update_from_cli_args(vars(parsed_args))
        return manager

    def run(self, args=None) -> int:
        """Execute the CLI and return the process exit status."""
        parsed_args = self.parse_args(args)
        logger = logging.getLogger(__name__)

        try:
            if parsed_args.create_config:
                return self._handle_create_config(parsed_args.create_config)

            manager = self.load_config(parsed_args)
            config = manager.config
            setup_logging(config.log_level, parsed_args.log_file)

            logger.info(f"LinkLoom {__version__}: {parsed_args.command}")
            logger.info(f"Input file: {parsed_args.input}")
            logger.info(f"Output file: {parsed_args.output}")

            bookmarks = load_bookmarks(parsed_args.input)
            show_progress = not parsed_args.no_progress

            if parsed_args.command == "scan":
                coro = self._scan(bookmarks, config, parsed_args.output, show_progress)
            elif parsed_args.command == "organize":
                coro = self._organize(
                    bookmarks,
                    config,
                    manager.get_api_key("openai"),
                    parsed_args.output,
                    show_progress,
                )
            else:
                coro = self._categorize(
                    bookmarks,
                    config,
                    manager.get_api_key("openai"),
                    parsed_args.output,
                    show_progress,
                )
            asyncio.run(coro)
            return EXIT_OK

        except KeyboardInterrupt:
            print("\nInterrupted", file=sys.stderr)
            return EXIT_INTERRUPTED
        except LinkLoomError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            logger.exception("Unexpected error in CLI")
            return EXIT_ERROR

    async def _scan(
        self, bookmarks, config: LinkLoomConfig, output: str, show_progress: bool
    ) -> None:
        scan_config = config.scan
        with tqdm(
            total=len(bookmarks), desc="Scanning", unit="url", disable=not show_progress
        ) as pbar:
            async with LivenessProbe(
                timeout=scan_config.timeout,
                user_agent=scan_config.user_agent,
                verify_ssl=scan_config.verify_ssl,
            ) as probe:
                entries = await run_liveness_scan(
                    bookmarks,
                    scan_config.concurrency_limit,
                    probe,
                    max_retries=scan_config.max_retries,
                    retry_delay=scan_config.retry_delay,
                    on_unit_complete=lambda index, outcome: pbar.update(1),
                )

        export_scan_results(entries, Path(output))

        stats = RunStats.from_entries(entries)
        print(
            f"Scanned {stats.total} bookmarks: {stats.ok} ok, {stats.dead} dead, "
            f"{stats.error} error, {stats.failed} failed"
        )

    async def _categorize(
        self,
        bookmarks,
        config: LinkLoomConfig,
        api_key,
        output: str,
        show_progress: bool,
    ) -> None:
        cat_config = config.categorize
        classify = self._create_classifier(config, api_key)

        batch_count = -(-len(bookmarks) // cat_config.chunk_size)
        async with AsyncExitStack() as stack:
            if hasattr(classify, "__aenter__"):
                await stack.enter_async_context(classify)

            with tqdm(
                total=batch_count,
                desc="Categorizing",
                unit="batch",
                disable=not show_progress,
            ) as pbar:
                grouping = await run_categorization(
                    bookmarks,
                    cat_config.chunk_size,
                    cat_config.concurrency_limit,
                    classify,
                    # Leave the HTTP client room to finish its own retries
                    timeout=cat_config.timeout * 4,
                    on_unit_complete=lambda index, outcome: pbar.update(1),
                )

        export_grouping(grouping, Path(output))
        print(
            f"Categorized {len(grouping)} bookmarks into {len(grouping.labels)} "
            f"categories ({len(grouping.other)} in Other)"
        )

    async def _organize(
        self,
        bookmarks,
        config: LinkLoomConfig,
        api_key,
        output: str,
        show_progress: bool,
    ) -> None:
        scan_config = config.scan
        cat_config = config.categorize
        classify = self._create_classifier(config, api_key)

        async with AsyncExitStack() as stack:
            if hasattr(classify, "__aenter__"):
                await stack.enter_async_context(classify)
            probe = await stack.enter_async_context(
                LivenessProbe(
                    timeout=scan_config.timeout,
                    user_agent=scan_config.user_agent,
                    verify_ssl=scan_config.verify_ssl,
                )
            )
            pbar = stack.enter_context(
                tqdm(
                    total=len(bookmarks),
                    desc="Organizing",
                    unit="url",
                    disable=not show_progress,
                )
            )

            result = await run_organize(
                bookmarks,
                classify,
                scan_concurrency=scan_config.concurrency_limit,
                chunk_size=cat_config.chunk_size,
                categorize_concurrency=cat_config.concurrency_limit,
                probe=probe,
                max_retries=scan_config.max_retries,
                retry_delay=scan_config.retry_delay,
                categorize_timeout=cat_config.timeout * 4,
                on_scan_complete=lambda index, outcome: pbar.update(1),
            )

        export_organized(result, Path(output))
        summary = result.summary()
        print(
            f"Organized {summary['total']} bookmarks: {summary['categorized']} into "
            f"{summary['categories']} categories ({summary['other']} in Other), "
            f"{summary['broken']} broken, {summary['duplicates']} duplicates"
        )

    def _create_classifier(self, config: LinkLoomConfig, api_key):
        cat_config = config.categorize
        return create_categorizer(
            cat_config.engine,
            api_key=api_key,
            model=cat_config.model,
            categories=cat_config.categories,
            timeout=cat_config.timeout,
            requests_per_minute=cat_config.requests_per_minute,
            target_count=cat_config.target_categories,
        )

    def _handle_create_config(self, output: str) -> int:
        """Write a sample configuration file; the format follows the suffix."""
        output_path = Path(output)
        config_format = "json" if output_path.suffix.lower() == ".json" else "toml"
        if output_path.exists():
            print(f"Error: {output_path} already exists", file=sys.stderr)
            return EXIT_ERROR

        ConfigurationManager().create_sample_config(output_path, format=config_format)
        print(f"Created sample configuration: {output_path}")
        return EXIT_OK


def main(args=None):
    """Main entry point for the CLI."""
    cli = CLIInterface()
    return cli.run(args)


if __name__ == "__main__":
    sys.exit(main())
