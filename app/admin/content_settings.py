from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.models import ContentSettings

SETTINGS_ID = "content_settings"


def default_content_settings() -> dict:
    return ContentSettings().dict()


async def get_content_settings(db: AsyncIOMotorDatabase) -> dict:
    stored = await db.settings.find_one({"settings_id": SETTINGS_ID}, {"_id": 0, "settings_id": 0})
    if not stored:
        return default_content_settings()
    stored.pop("updated_at", None)
    stored.pop("updated_by", None)
    return stored


async def save_content_settings(db: AsyncIOMotorDatabase, settings: ContentSettings, updated_by: str) -> dict:
    doc = settings.dict()
    await db.settings.update_one(
        {"settings_id": SETTINGS_ID},
        {"$set": dict(doc, updated_at=datetime.utcnow(), updated_by=updated_by)},
        upsert=True
    )
    return doc
