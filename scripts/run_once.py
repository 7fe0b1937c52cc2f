#!/usr/bin/env python3
"""Run the feed pipeline once."""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from feedsieve.errors import ConfigError, RunFailedError
from feedsieve.pipeline.run import run_pipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Fetch configured feeds and render the new items")
    parser.add_argument("--config", help="Feed list, JSON or YAML")
    parser.add_argument("--cache-db", help="Cache database URL, e.g. sqlite:///data/cache.db")
    parser.add_argument("--workers", type=int, help="Feeds processed concurrently")
    parser.add_argument("--timeout", type=float, help="Seconds before pending feeds are cancelled")
    parser.add_argument("--format", action="append", dest="formats", choices=["text", "html"],
                        help="Output format (repeatable)")
    parser.add_argument("--output-dir", type=Path, help="Where rendered output is written")
    return parser.parse_args(argv)


def print_report(report):
    print("\nRESULTS:")
    for result in report.results:
        line = f"  [{result.status.value:>9}] {result.display_title}"
        if result.items:
            line += f" ({len(result.items)} new)"
        if result.error:
            line += f" - {result.error}"
        print(line)

    print(f"\n  Feeds: {len(report.done)} done, {len(report.skipped)} skipped, "
          f"{len(report.failed)} failed, {len(report.cancelled)} cancelled")
    print(f"  New items: {report.new_item_count}")
    print(f"  Cache entries pruned: {report.pruned_entries}")
    for name, error in report.render_errors.items():
        print(f"  Output error ({name}): {error}")


def main(argv=None):
    load_dotenv()
    args = parse_args(argv)

    try:
        report = asyncio.run(run_pipeline(
            config_path=args.config,
            database_url=args.cache_db,
            max_workers=args.workers,
            timeout=args.timeout,
            formats=args.formats,
            outputs_dir=args.output_dir,
        ))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except RunFailedError as e:
        if e.report is not None:
            print_report(e.report)
        print(f"\nRun failed: {e}", file=sys.stderr)
        return 1

    print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
