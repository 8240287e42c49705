"""
Weekly rank evaluation.

Active users are ordered by weekly points and split into zones:

    positions 1-10    PROMOTION  (up one rank with >= 500 weekly points)
    positions 11-50   SAFE       (rank kept)
    positions 51+     DEMOTION   (down one rank with < 200 weekly points)

New-user immunity and rank freezes keep the rank untouched. Each user is
processed on its own so one failure does not stop the batch. Weekly
points are reset once a user has been evaluated.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.common.ids import generate_id
from app.gamification.models import LeaderboardZone, RankChangeType, EvaluationStatus
from app.gamification.points import iso_week
from app.gamification.ranks import get_rank_config, record_rank_history
from app.notifications.service import (
    notify_rank_promotion,
    notify_rank_demotion,
    notify_weekly_leaderboard,
)
from app.users.models import UserStatus

logger = logging.getLogger(__name__)

PROMOTION_ZONE_SIZE = 10
SAFE_ZONE_LIMIT = 50
PROMOTION_THRESHOLD = 500
SAFE_THRESHOLD = 200

OUTCOME_PROMOTED = "promoted"
OUTCOME_DEMOTED = "demoted"
OUTCOME_MAINTAINED = "maintained"
OUTCOME_PROTECTED = "protected"


@dataclass
class RankDecision:
    new_rank: int
    change_type: RankChangeType
    reason: str
    zone: LeaderboardZone
    outcome: str


@dataclass
class WeeklyRankUpdateResult:
    success: bool
    evaluation_id: str
    week_number: int
    year: int
    users_evaluated: int = 0
    promotions: int = 0
    demotions: int = 0
    maintained: int = 0
    protected: int = 0
    errors: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ==================== RULES ====================

def classify_zone(position: int) -> LeaderboardZone:
    if position <= PROMOTION_ZONE_SIZE:
        return LeaderboardZone.PROMOTION
    if position <= SAFE_ZONE_LIMIT:
        return LeaderboardZone.SAFE
    return LeaderboardZone.DEMOTION


def _maintain(rank: int, zone: LeaderboardZone, reason: str, outcome: str = OUTCOME_MAINTAINED) -> RankDecision:
    return RankDecision(rank, RankChangeType.MAINTAIN, reason, zone, outcome)


def decide_rank_change(position: int, user_rank: dict, now: datetime,
                       has_next_rank: bool, has_previous_rank: bool) -> RankDecision:
    zone = classify_zone(position)
    current = user_rank["current_rank"]
    weekly = user_rank.get("weekly_points", 0)

    if user_rank.get("immunity_weeks", 0) > 0:
        return _maintain(current, zone, "New user immunity", OUTCOME_PROTECTED)

    frozen_until = user_rank.get("frozen_until")
    if frozen_until and frozen_until > now:
        return _maintain(current, zone, "Rank freeze active", OUTCOME_PROTECTED)

    if zone == LeaderboardZone.PROMOTION:
        if weekly >= PROMOTION_THRESHOLD and has_next_rank:
            return RankDecision(
                current + 1, RankChangeType.PROMOTION,
                f"Top {PROMOTION_ZONE_SIZE} with {weekly} weekly points", zone, OUTCOME_PROMOTED
            )
        if not has_next_rank:
            return _maintain(current, zone, "Already at max rank")
        return _maintain(current, zone, "Insufficient weekly points for promotion")

    if zone == LeaderboardZone.SAFE:
        if weekly >= SAFE_THRESHOLD:
            return _maintain(current, zone, "Safe zone")
        return _maintain(current, zone, "Safe zone, below weekly threshold")

    if weekly < SAFE_THRESHOLD and current > 1 and has_previous_rank:
        return RankDecision(
            current - 1, RankChangeType.DEMOTION,
            f"Demotion zone with {weekly} weekly points", zone, OUTCOME_DEMOTED
        )
    return _maintain(current, zone, "Demotion zone, rank kept")


# ==================== BATCH ====================

async def _active_user_ranks(db: AsyncIOMotorDatabase) -> List[dict]:
    profiles = await db.users_profile.find(
        {"status": UserStatus.ACTIVE.value}, {"user_id": 1}
    ).to_list(length=None)
    user_ids = [p["user_id"] for p in profiles]
    if not user_ids:
        return []

    cursor = db.user_ranks.find({"user_id": {"$in": user_ids}}, {"_id": 0}).sort(
        [("weekly_points", -1), ("user_id", 1)]
    )
    return await cursor.to_list(length=None)


async def _evaluate_user(db: AsyncIOMotorDatabase, user_rank: dict, position: int, now: datetime,
                         week_number: int, year: int, result: WeeklyRankUpdateResult):
    user_id = user_rank["user_id"]
    current = user_rank["current_rank"]

    current_cfg = await get_rank_config(db, current)
    if not current_cfg:
        result.errors.append(f"{user_id}: rank configuration {current} not found")
        return

    next_cfg = await get_rank_config(db, current + 1)
    previous_cfg = await get_rank_config(db, current - 1) if current > 1 else None

    decision = decide_rank_change(position, user_rank, now, next_cfg is not None, previous_cfg is not None)
    weekly_points = user_rank.get("weekly_points", 0)
    last_week_rank = user_rank.get("last_week_rank")

    await db.weekly_leaderboards.update_one(
        {"week_number": week_number, "year": year, "user_id": user_id},
        {"$set": {
            "rank": position,
            "weekly_points": weekly_points,
            "total_points": user_rank.get("total_points", 0),
            "current_rank": decision.new_rank,
            "rank_change": position - last_week_rank if last_week_rank else 0,
            "zone": decision.zone.value,
            "created_at": now,
        }},
        upsert=True
    )

    immunity = user_rank.get("immunity_weeks", 0)
    update = {
        "$set": {
            "current_rank": decision.new_rank,
            "last_week_rank": position,
            "weekly_points": 0,
            "immunity_weeks": max(0, immunity - 1),
            "highest_rank": max(user_rank.get("highest_rank", 1), decision.new_rank),
        }
    }
    if decision.change_type == RankChangeType.PROMOTION:
        update["$inc"] = {"promotion_count": 1}
    elif decision.change_type == RankChangeType.DEMOTION:
        update["$inc"] = {"demotion_count": 1}
    await db.user_ranks.update_one({"user_id": user_id}, update)

    if decision.new_rank != current:
        await record_rank_history(
            db, user_id, current, decision.new_rank, decision.change_type, decision.reason,
            weekly_points=weekly_points,
            total_points=user_rank.get("total_points", 0),
            now=now,
        )

    result.users_evaluated += 1
    if decision.outcome == OUTCOME_PROMOTED:
        result.promotions += 1
    elif decision.outcome == OUTCOME_DEMOTED:
        result.demotions += 1
    elif decision.outcome == OUTCOME_PROTECTED:
        result.protected += 1
    else:
        result.maintained += 1

    logger.info("Evaluated %s: position %d zone %s rank %d -> %d (%s)",
                user_id, position, decision.zone.value, current, decision.new_rank, decision.reason)

    try:
        if decision.outcome == OUTCOME_PROMOTED:
            await notify_rank_promotion(db, user_id, current_cfg, next_cfg)
        elif decision.outcome == OUTCOME_DEMOTED:
            await notify_rank_demotion(db, user_id, current_cfg, previous_cfg)
        await notify_weekly_leaderboard(db, user_id, position, decision.zone.value, weekly_points)
    except Exception:
        logger.exception("Weekly notifications failed for %s", user_id)


async def weekly_rank_update(db: AsyncIOMotorDatabase, now: datetime = None) -> WeeklyRankUpdateResult:
    now = now or datetime.utcnow()
    week_number, year = iso_week(now)
    evaluation_id = generate_id("EVAL")

    await db.weekly_evaluation_logs.insert_one({
        "evaluation_id": evaluation_id,
        "week_number": week_number,
        "year": year,
        "status": EvaluationStatus.RUNNING.value,
        "started_at": now,
    })
    logger.info("Weekly rank update %s started for week %d/%d", evaluation_id, week_number, year)

    result = WeeklyRankUpdateResult(success=True, evaluation_id=evaluation_id,
                                    week_number=week_number, year=year)
    try:
        user_ranks = await _active_user_ranks(db)
        for position, user_rank in enumerate(user_ranks, start=1):
            try:
                await _evaluate_user(db, user_rank, position, now, week_number, year, result)
            except Exception as e:
                logger.exception("Weekly evaluation failed for %s", user_rank.get("user_id"))
                result.errors.append(f"{user_rank.get('user_id')}: {e}")
    except Exception as e:
        logger.exception("Weekly rank update %s failed", evaluation_id)
        result.success = False
        result.error = str(e)
        await db.weekly_evaluation_logs.update_one(
            {"evaluation_id": evaluation_id},
            {"$set": {
                "status": EvaluationStatus.FAILED.value,
                "completed_at": datetime.utcnow(),
                "error_log": str(e),
            }}
        )
        return result

    await db.weekly_evaluation_logs.update_one(
        {"evaluation_id": evaluation_id},
        {"$set": {
            "status": EvaluationStatus.COMPLETED.value,
            "completed_at": datetime.utcnow(),
            "users_evaluated": result.users_evaluated,
            "promotions": result.promotions,
            "demotions": result.demotions,
            "maintained": result.maintained,
            "protected": result.protected,
            "error_log": "\n".join(result.errors) or None,
        }}
    )
    logger.info(
        "Weekly rank update %s completed: %d evaluated, %d promoted, %d demoted, %d maintained, "
        "%d protected, %d errors",
        evaluation_id, result.users_evaluated, result.promotions, result.demotions,
        result.maintained, result.protected, len(result.errors)
    )
    return result


async def reset_weekly_points(db: AsyncIOMotorDatabase) -> int:
    result = await db.user_ranks.update_many({}, {"$set": {"weekly_points": 0}})
    logger.info("Reset weekly points for %d users", result.modified_count)
    return result.modified_count


async def get_evaluation_logs(db: AsyncIOMotorDatabase, limit: int = 10) -> List[dict]:
    cursor = db.weekly_evaluation_logs.find({}, {"_id": 0}).sort("started_at", -1).limit(limit)
    return await cursor.to_list(length=limit)
