import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.gamification.models import LeaderboardPeriod

PERIOD_DAYS = {
    LeaderboardPeriod.WEEK: 7,
    LeaderboardPeriod.MONTH: 30,
}


async def _profiles_by_id(db: AsyncIOMotorDatabase, user_ids: List[str]) -> Dict[str, dict]:
    profiles = await db.users_profile.find(
        {"user_id": {"$in": user_ids}},
        {"_id": 0, "user_id": 1, "name": 1, "image": 1, "avatar": 1}
    ).to_list(length=None)
    return {p["user_id"]: p for p in profiles}


# ==================== QUIZ SCORE LEADERBOARD ====================

async def quiz_score_leaderboard(
    db: AsyncIOMotorDatabase,
    current_user_id: str,
    course_id: Optional[str] = None,
    search: Optional[str] = None,
    period: LeaderboardPeriod = LeaderboardPeriod.ALL,
    limit: int = 50,
    now: datetime = None,
) -> dict:
    """Users ranked by the sum of their quiz attempt scores"""
    now = now or datetime.utcnow()

    query = {}
    if course_id:
        query["course_id"] = course_id
    if period in PERIOD_DAYS:
        query["completed_at"] = {"$gte": now - timedelta(days=PERIOD_DAYS[period])}

    attempts = await db.quiz_attempts.find(query, {"user_id": 1, "score": 1}).to_list(length=None)

    totals: Dict[str, dict] = {}
    for attempt in attempts:
        entry = totals.setdefault(attempt["user_id"], {"total_score": 0, "attempt_count": 0})
        entry["total_score"] += attempt.get("score", 0)
        entry["attempt_count"] += 1

    profiles = await _profiles_by_id(db, list(totals))
    if search:
        pattern = re.compile(re.escape(search), re.IGNORECASE)
        totals = {
            uid: entry for uid, entry in totals.items()
            if pattern.search(profiles.get(uid, {}).get("name") or "")
        }

    ordered = sorted(totals.items(), key=lambda item: (-item[1]["total_score"], item[0]))

    rows = []
    for position, (user_id, entry) in enumerate(ordered, start=1):
        profile = profiles.get(user_id, {})
        rows.append({
            "rank": position,
            "user_id": user_id,
            "name": profile.get("name"),
            "image": profile.get("avatar") or profile.get("image"),
            "total_score": entry["total_score"],
            "attempt_count": entry["attempt_count"],
        })

    leaderboard = rows[:limit]
    current_user = next((row for row in rows if row["user_id"] == current_user_id), None)

    return {
        "leaderboard": leaderboard,
        "current_user": current_user,
        "total": len(rows),
    }


# ==================== POINTS STANDINGS ====================

async def points_standings(db: AsyncIOMotorDatabase, limit: int = 50) -> List[dict]:
    user_ranks = await db.user_ranks.find({}, {"_id": 0}).sort(
        [("total_points", -1), ("user_id", 1)]
    ).limit(limit).to_list(length=limit)

    configs = {
        cfg["rank_number"]: cfg
        for cfg in await db.rank_configurations.find({}, {"_id": 0}).to_list(length=None)
    }
    profiles = await _profiles_by_id(db, [r["user_id"] for r in user_ranks])

    standings = []
    for position, user_rank in enumerate(user_ranks, start=1):
        cfg = configs.get(user_rank["current_rank"], {})
        standings.append({
            "position": position,
            "user_id": user_rank["user_id"],
            "name": profiles.get(user_rank["user_id"], {}).get("name"),
            "total_points": user_rank.get("total_points", 0),
            "weekly_points": user_rank.get("weekly_points", 0),
            "current_rank": user_rank["current_rank"],
            "rank_name": cfg.get("name"),
            "rank_icon": cfg.get("icon"),
        })
    return standings


# ==================== WEEKLY SNAPSHOT ====================

async def weekly_snapshot(db: AsyncIOMotorDatabase, week_number: int = None, year: int = None,
                          limit: int = 100) -> dict:
    """Stored leaderboard of one evaluated week, the latest one when no week is given"""
    if week_number is None or year is None:
        latest = await db.weekly_leaderboards.find({}, {"week_number": 1, "year": 1}).sort(
            [("year", -1), ("week_number", -1)]
        ).limit(1).to_list(length=1)
        if not latest:
            return {"week_number": None, "year": None, "entries": []}
        week_number, year = latest[0]["week_number"], latest[0]["year"]

    entries = await db.weekly_leaderboards.find(
        {"week_number": week_number, "year": year}, {"_id": 0}
    ).sort("rank", 1).limit(limit).to_list(length=limit)

    profiles = await _profiles_by_id(db, [e["user_id"] for e in entries])
    for entry in entries:
        entry["name"] = profiles.get(entry["user_id"], {}).get("name")

    return {"week_number": week_number, "year": year, "entries": entries}
