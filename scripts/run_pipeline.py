"""Manual pipeline runner.

Runs the catalog merge and/or the alert check once, outside the API server
and scheduler. Useful for cron hosts and for debugging sources.

Usage:
    python scripts/run_pipeline.py merge
    python scripts/run_pipeline.py merge --sources running-warehouse,holabird-mens
    python scripts/run_pipeline.py alerts
    python scripts/run_pipeline.py all --log-level DEBUG
"""

import argparse
import asyncio
import os
import sys

# Add backend to path so we can import solewatch without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

import structlog  # noqa: E402

from solewatch.config import settings  # noqa: E402
from solewatch.core.exceptions import SoleWatchError  # noqa: E402
from solewatch.core.logging_config import configure_logging  # noqa: E402
from solewatch.dependencies import build_container  # noqa: E402

logger = structlog.get_logger("run_pipeline")


async def run_merge(container, sources=None) -> None:
    enabled = set(sources) if sources else settings.get_enabled_sources()
    result = await container.pipeline_service().run(enabled_sources=enabled)

    print(f"\n{'='*70}")
    print(f"  Catalog: {result.stats.total_deals} deals")
    print(f"{'='*70}")
    for source_id, stats in result.source_stats.items():
        status = "ok" if stats.ok else f"FAILED ({stats.error})"
        print(
            f"  {source_id:<30} {status:<10} fetched={stats.fetched} "
            f"accepted={stats.accepted} rejected={stats.rejected} "
            f"duplicates={stats.duplicates}"
        )
        for reason, count in sorted(stats.rejection_reasons.items()):
            print(f"      - {reason}: {count}")


async def run_alerts(container) -> None:
    summary = await container.notification_service.run_alert_check()

    print(f"\n{'='*70}")
    print("  Alert check")
    print(f"{'='*70}")
    for key, value in summary.to_dict().items():
        print(f"  {key:<20} {value}")


async def main(args) -> int:
    container = build_container()
    try:
        if args.command in ("merge", "all"):
            await run_merge(container, args.sources)
        if args.command in ("alerts", "all"):
            await run_alerts(container)
    except SoleWatchError as e:
        logger.error("pipeline_failed", command=args.command, error=e.message)
        return 1
    finally:
        await container.close()
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the SoleWatch pipeline once")
    parser.add_argument("command", choices=["merge", "alerts", "all"])
    parser.add_argument(
        "--sources",
        type=lambda s: [x.strip() for x in s.split(",") if x.strip()],
        default=None,
        help="Comma-separated source ids (default: ENABLED_SOURCES or all)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


if __name__ == "__main__":
    arguments = parse_args()
    configure_logging(level=arguments.log_level)
    sys.exit(asyncio.run(main(arguments)))
