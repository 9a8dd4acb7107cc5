"""
Run one Growi sync from the command line and print its summary as JSON.

Usage:
    python scripts/run_sync.py private --start-date 01/01/2025 --end-date 01/31/2025
    python scripts/run_sync.py public --per-page 50 --limit 50 --include-gmv
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import make_engine, make_session_maker
from core.config import settings
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.runner import sync_growi_posts
from schemas.growi import PageVariant
from schemas.sync import SyncRunConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Growi content statistics into the database")
    parser.add_argument("variant", choices=[v.value for v in PageVariant], help="Which Growi API to sync")
    parser.add_argument("--start-date", help="MM/DD/YYYY (default: start of the lookback window)")
    parser.add_argument("--end-date", help="MM/DD/YYYY (default: today)")
    parser.add_argument("--per-page", type=int, default=settings.SYNC_PER_PAGE)
    parser.add_argument("--max-pages", type=int, default=settings.SYNC_MAX_PAGES)
    parser.add_argument("--limit", type=int, help="Public API only")
    parser.add_argument("--include-gmv", action="store_true", help="Public API only")
    return parser


def run_config_from_args(args: argparse.Namespace) -> SyncRunConfig:
    variant = PageVariant(args.variant)
    options = {"variant": variant, "per_page": args.per_page, "max_pages": args.max_pages}
    if variant is PageVariant.PUBLIC:
        options["limit"] = args.limit
        options["include_gmv"] = args.include_gmv

    if args.start_date is None and args.end_date is None:
        return SyncRunConfig.trailing_window(settings.SYNC_LOOKBACK_DAYS, **options)
    return SyncRunConfig.build(start_date=args.start_date, end_date=args.end_date, **options)


async def run_sync(run_config: SyncRunConfig) -> int:
    engine = make_engine()
    AsyncSessionLocal = make_session_maker(engine)

    try:
        async with AsyncSessionLocal() as session:
            summary = await sync_growi_posts(session, run_config)
        print(summary.model_dump_json(indent=2))
        return 0
    except SyncException as e:
        logger.error(f"Growi sync failed: {e}")
        return 1
    finally:
        await engine.dispose()


def main() -> None:
    setup_logging()
    args = build_parser().parse_args()
    try:
        run_config = run_config_from_args(args)
    except SyncException as e:
        logger.error(str(e))
        sys.exit(2)
    sys.exit(asyncio.run(run_sync(run_config)))


if __name__ == "__main__":
    main()
