"""
Shared fixtures: an in-memory Mongo database, seeded rank ladder,
user factories and an HTTP client bound to the FastAPI app.
"""

from datetime import datetime

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from app.auth.permissions import UserContext, get_current_user
from app.common.cache import cache
from app.database import get_db
from app.gamification.ranks import seed_rank_configurations
from app.gamification.models import UserRank
from app.main import app


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def db():
    return AsyncMongoMockClient()["academy_test"]


@pytest.fixture
async def seeded_db(db):
    await seed_rank_configurations(db)
    return db


async def insert_user(db, user_id, role="STUDENT", status="ACTIVE", name=None, email=None):
    profile = {
        "user_id": user_id,
        "email": email or f"{user_id}@example.com",
        "name": name or user_id.title(),
        "role": role,
        "status": status,
        "created_at": datetime(2024, 1, 1),
    }
    await db.users_profile.insert_one(dict(profile))
    return profile


async def insert_user_rank(db, user_id, **overrides):
    doc = UserRank(user_id=user_id).dict()
    doc.update(overrides)
    await db.user_ranks.insert_one(dict(doc))
    return doc


async def insert_course(db, course_id="CRS_1", chapters=("CH_1",), published=True, title="Intro to Testing"):
    await db.courses.insert_one({
        "course_id": course_id,
        "title": title,
        "description": "A course used by the test suite",
        "is_published": published,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    })
    for position, chapter_id in enumerate(chapters, start=1):
        await db.chapters.insert_one({
            "chapter_id": chapter_id,
            "course_id": course_id,
            "title": f"Chapter {position}",
            "position": position,
        })


@pytest.fixture
def login(db):
    """Switch the authenticated user for HTTP requests"""
    def _login(user_id, role="STUDENT", status="ACTIVE"):
        profile = {"user_id": user_id, "email": f"{user_id}@example.com", "name": user_id,
                   "role": role, "status": status}
        app.dependency_overrides[get_current_user] = lambda: UserContext(user_id, profile)
    return _login


@pytest.fixture
async def client(db):
    app.dependency_overrides[get_db] = lambda: db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()
