"""Command line entry point for the sync backend."""
import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

from vocabsync.config import settings
from vocabsync.exceptions import VocabSyncError
from vocabsync.logging_config import setup_logging
from vocabsync.models.base import SessionLocal, init_db
from vocabsync.monitoring import start_monitoring
from vocabsync.services.exclusion_service import ExclusionService
from vocabsync.services.notification_service import NotificationService
from vocabsync.services.statistics_service import StatisticsService
from vocabsync.services.sync_service import SyncService

logger = logging.getLogger(__name__)


def _load_batch(path: str) -> Any:
    with Path(path).open(encoding="utf-8") as fh:
        return json.load(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocabsync", description="Learning progress sync tools")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    sync_progress = commands.add_parser("sync-progress", help="Sync a JSON batch of progress records")
    sync_progress.add_argument("user_id", type=int)
    sync_progress.add_argument("file")

    sync_exclusions = commands.add_parser("sync-exclusions", help="Sync a JSON batch of exclusions")
    sync_exclusions.add_argument("user_id", type=int)
    sync_exclusions.add_argument("file")

    record = commands.add_parser("record-learning", help="Record a day of learning")
    record.add_argument("user_id", type=int)
    record.add_argument("--date", type=date.fromisoformat, default=None)
    record.add_argument("--new", type=int, default=0)
    record.add_argument("--review", type=int, default=0)

    check = commands.add_parser("check-streak", help="Reset a broken continuous-day streak")
    check.add_argument("user_id", type=int)

    recompute = commands.add_parser("recompute", help="Recount learned and mastered words")
    recompute.add_argument("user_id", type=int)

    stats = commands.add_parser("stats", help="Show learning statistics")
    stats.add_argument("user_id", type=int)

    return parser


def run(args: argparse.Namespace) -> Any:
    """Execute one command and return its JSON-serialisable result."""
    if args.command == "init-db":
        init_db()
        return {"initialized": True}

    db = SessionLocal()
    notifications = NotificationService()
    try:
        if args.command == "sync-progress":
            service = SyncService(db, notifications)
            return service.sync_progress(args.user_id, _load_batch(args.file)).to_dict()
        if args.command == "sync-exclusions":
            return ExclusionService(db).sync_exclusions(args.user_id, _load_batch(args.file)).to_dict()

        statistics = StatisticsService(db, notifications)
        if args.command == "record-learning":
            return statistics.record_daily_learning(
                args.user_id, args.date, args.new, args.review
            ).to_dict()
        if args.command == "check-streak":
            return statistics.check_continuous_days(args.user_id).to_dict()
        if args.command == "recompute":
            return statistics.recompute(args.user_id).to_dict()
        return statistics.get_statistics(args.user_id)
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("Starting vocabsync ...", args.log_level)

    port = args.metrics_port or (settings.monitoring.port if settings.monitoring.enabled else None)
    if port:
        start_monitoring(port)
        logger.info(f"Metrics exposed on port {port}")

    try:
        result = run(args)
    except (VocabSyncError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
