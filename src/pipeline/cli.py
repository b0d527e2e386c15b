"""CLI for running the feedback pipeline once or on a schedule."""

from __future__ import annotations

import argparse
import logging
import time
from datetime import datetime, timezone

from dotenv import load_dotenv

from common.cli_helpers import parse_terms, positive_int, save_jsonl_local, setup_logging
from common.serialization import serialize_dataclass
from pipeline.config import get_config, load_config, set_config
from pipeline.orchestrator import build_orchestrator, query_from_config
from scrape_posts.models import TIMEFRAMES, SearchQuery

load_dotenv()

setup_logging()
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape, clean, embed and index Reddit posts")

    parser.add_argument("--config", default=None, help="Config name under configs/ (default: PIPELINE_CONFIG or 'default')")

    # Query options
    parser.add_argument("--subreddit", default=None, help="Subreddit to search (overrides config)")
    parser.add_argument("--terms", type=parse_terms, default=None, help="Comma-separated search terms")
    parser.add_argument("--limit", type=positive_int, default=None, help="Max posts per term (capped at 100)")
    parser.add_argument("--timeframe", choices=TIMEFRAMES, default=None, help="Reddit search time window")

    # Run options
    parser.add_argument(
        "--schedule",
        nargs="?",
        const="",
        default=None,
        help="Run on a cron schedule (default expression from config)",
    )

    # Output options
    parser.add_argument("--load-local", action="store_true", help="Save the run result to a local file")

    return parser.parse_args(argv)


def build_query(args: argparse.Namespace, default: SearchQuery) -> SearchQuery:
    return SearchQuery(
        subreddit=args.subreddit or default.subreddit,
        search_terms=args.terms or default.search_terms,
        limit=args.limit or default.limit,
        timeframe=args.timeframe or default.timeframe,
        sort=default.sort,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.config:
        set_config(load_config(args.config))
    config = get_config()
    orchestrator = build_orchestrator(config)
    query = build_query(args, query_from_config(config))

    if args.schedule is not None:
        expression = args.schedule or config.schedule.cron
        if not expression:
            logger.error("No cron expression given and none configured")
            return 1
        orchestrator.run_scheduled(expression, query)
        logger.info("Pipeline scheduled; press Ctrl+C to stop")
        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            orchestrator.stop_scheduled_jobs()
        return 0

    result = orchestrator.run_pipeline(query)

    if args.load_local:
        path = save_jsonl_local(
            [serialize_dataclass(result)],
            "pipeline_run",
            datetime.now(timezone.utc),
        )
        logger.info("Saved run result to %s", path)

    logger.info("Stats: %s", orchestrator.get_stats())
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
