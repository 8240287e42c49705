import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.common.ids import generate_id
from app.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)

ZONE_TITLE_ICONS = {
    "PROMOTION": "🚀",
    "SAFE": "✅",
    "DEMOTION": "⚠️",
}

ZONE_MESSAGES = {
    "PROMOTION": "You're in the promotion zone! Keep it up!",
    "SAFE": "You're safe for this week. Keep learning!",
    "DEMOTION": "You're in the demotion zone. Time to study more!",
}


async def create_notification(
    db: AsyncIOMotorDatabase,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> dict:
    notification = Notification(
        notification_id=generate_id("NTF"),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        metadata=metadata or {},
    ).dict()
    notification["type"] = NotificationType(type).value

    await db.notifications.insert_one(dict(notification))
    logger.debug("Notification %s (%s) created for %s",
                 notification["notification_id"], notification["type"], user_id)
    return notification


# ==================== TYPED HELPERS ====================

async def notify_rank_promotion(db: AsyncIOMotorDatabase, user_id: str, old_rank: dict, new_rank: dict) -> dict:
    return await create_notification(
        db, user_id, NotificationType.RANK_PROMOTION,
        title="🎉 Rank Promoted!",
        message=(
            f"Congratulations! You've been promoted from {old_rank['icon']} {old_rank['name']} "
            f"to {new_rank['icon']} {new_rank['name']}!"
        ),
        metadata={"old_rank": old_rank["name"], "new_rank": new_rank["name"]},
    )


async def notify_rank_demotion(db: AsyncIOMotorDatabase, user_id: str, old_rank: dict, new_rank: dict) -> dict:
    return await create_notification(
        db, user_id, NotificationType.RANK_DEMOTION,
        title="📉 Rank Changed",
        message=(
            f"Your rank has changed from {old_rank['icon']} {old_rank['name']} "
            f"to {new_rank['icon']} {new_rank['name']}. Keep learning to climb back up!"
        ),
        metadata={"old_rank": old_rank["name"], "new_rank": new_rank["name"]},
    )


async def notify_achievement(db: AsyncIOMotorDatabase, user_id: str, achievement: dict) -> dict:
    return await create_notification(
        db, user_id, NotificationType.ACHIEVEMENT_UNLOCKED,
        title="🏆 Achievement Unlocked!",
        message=(
            f"You've unlocked the \"{achievement['name']}\" achievement! "
            f"Earned {achievement['points_reward']} points."
        ),
        related_id=achievement["code"],
        metadata={
            "achievement_name": achievement["name"],
            "points_reward": achievement["points_reward"],
            "rarity": achievement["rarity"],
        },
    )


async def notify_weekly_leaderboard(db: AsyncIOMotorDatabase, user_id: str, position: int,
                                    zone: str, weekly_points: int) -> dict:
    icon = ZONE_TITLE_ICONS.get(zone, "📊")
    zone_message = ZONE_MESSAGES.get(zone, "")
    return await create_notification(
        db, user_id, NotificationType.WEEKLY_LEADERBOARD,
        title=f"{icon} Weekly Leaderboard Update",
        message=f"You're ranked #{position} this week with {weekly_points} points. {zone_message}".strip(),
        metadata={"position": position, "zone": zone, "weekly_points": weekly_points},
    )


async def notify_milestone(db: AsyncIOMotorDatabase, user_id: str, milestone: str, description: str) -> dict:
    return await create_notification(
        db, user_id, NotificationType.MILESTONE,
        title="🎯 Milestone Reached!",
        message=f"{milestone}: {description}",
        metadata={"milestone": milestone},
    )


# ==================== READ STATE ====================

async def list_notifications(db: AsyncIOMotorDatabase, user_id: str, unread_only: bool = False,
                             limit: int = 50) -> dict:
    query = {"user_id": user_id}
    if unread_only:
        query["is_read"] = False

    cursor = db.notifications.find(query, {"_id": 0}).sort("created_at", -1).limit(limit)
    notifications = await cursor.to_list(length=limit)
    unread_count = await db.notifications.count_documents({"user_id": user_id, "is_read": False})

    return {
        "notifications": notifications,
        "count": len(notifications),
        "unread_count": unread_count,
    }


async def mark_read(db: AsyncIOMotorDatabase, user_id: str, notification_id: str) -> bool:
    result = await db.notifications.update_one(
        {"notification_id": notification_id, "user_id": user_id},
        {"$set": {"is_read": True, "read_at": datetime.utcnow()}}
    )
    return result.matched_count > 0


async def mark_all_read(db: AsyncIOMotorDatabase, user_id: str) -> int:
    result = await db.notifications.update_many(
        {"user_id": user_id, "is_read": False},
        {"$set": {"is_read": True, "read_at": datetime.utcnow()}}
    )
    return result.modified_count
