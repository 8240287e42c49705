"""
Seed rank configurations and achievements, and create missing user ranks.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import create_indexes, db
from app.gamification.achievements import seed_achievements
from app.gamification.ranks import initialize_user_rank, seed_rank_configurations

logger = logging.getLogger(__name__)


async def seed(with_indexes: bool) -> int:
    if with_indexes:
        await create_indexes(db)

    await seed_rank_configurations(db)
    await seed_achievements(db)

    ranked = {r["user_id"] for r in await db.user_ranks.find({}, {"user_id": 1}).to_list(length=None)}
    profiles = await db.users_profile.find({}, {"user_id": 1}).to_list(length=None)

    created = 0
    for profile in profiles:
        if profile["user_id"] not in ranked:
            await initialize_user_rank(db, profile["user_id"])
            created += 1

    logger.info("Initialized ranks for %d users", created)
    return created


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed gamification data")
    parser.add_argument(
        "--skip-indexes",
        action="store_true",
        help="Do not create indexes before seeding",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    asyncio.run(seed(with_indexes=not args.skip_indexes))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
