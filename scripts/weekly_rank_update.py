"""
Run the weekly rank evaluation outside the HTTP cron endpoint.

With --once the evaluation runs immediately and the exit code reflects the
result. Otherwise the process sleeps until the next Sunday 23:59 UTC and
runs every week.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import db
from app.gamification.weekly_rank_update import weekly_rank_update

logger = logging.getLogger(__name__)

RUN_WEEKDAY = 6  # Sunday
RUN_HOUR = 23
RUN_MINUTE = 59


def next_run_after(moment: datetime) -> datetime:
    candidate = moment.replace(hour=RUN_HOUR, minute=RUN_MINUTE, second=0, microsecond=0)
    candidate += timedelta(days=(RUN_WEEKDAY - moment.weekday()) % 7)
    if candidate <= moment:
        candidate += timedelta(days=7)
    return candidate


async def run_once() -> bool:
    result = await weekly_rank_update(db)
    if not result.success:
        logger.error("Weekly rank update failed: %s", result.error)
    return result.success


async def run_forever():
    while True:
        now = datetime.utcnow()
        run_at = next_run_after(now)
        sleep_for = (run_at - now).total_seconds()
        logger.info("Next weekly rank update at %s UTC (sleeping %.0fs)", run_at.isoformat(), sleep_for)
        await asyncio.sleep(sleep_for)

        try:
            await run_once()
        except Exception as exc:
            logger.exception("Weekly rank update crashed: %s", exc)


def main() -> int:
    parser = argparse.ArgumentParser(description="Weekly rank evaluation")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single evaluation and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if args.once:
        return 0 if asyncio.run(run_once()) else 1

    asyncio.run(run_forever())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
