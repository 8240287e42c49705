"""HTTP tests for points, leaderboards, notifications and the weekly cron."""

from datetime import datetime

import pytest

import app.auth.permissions as permissions
from app.gamification.weekly_rank_update import weekly_rank_update
from app.notifications.service import create_notification
from tests.conftest import insert_course, insert_user, insert_user_rank

COMPLETION = {"course_id": "CRS_1", "chapter_id": "CH_1", "completion_time": 100,
              "quiz_score": 96, "expected_time": 200}


@pytest.fixture
async def points_course(seeded_db):
    await insert_course(seeded_db, "CRS_1", chapters=("CH_1", "CH_2"))
    await seeded_db.course_points.insert_one(
        {"course_id": "CRS_1", "total_points": 200, "points_per_chapter": 100.0}
    )
    return seeded_db


class TestPointsApi:
    async def test_calculate_then_complete(self, client, points_course, login):
        await insert_user_rank(points_course, "student")
        login("student")

        preview = await client.post("/points/calculate", json=COMPLETION)
        assert preview.status_code == 200
        assert preview.json()["points"]["final_points"] == 145

        response = await client.post("/points/complete-chapter", json=COMPLETION)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["points"]["final_points"] == 145
        assert body["rank"]["total_points"] == 145

    async def test_complete_without_rank(self, client, points_course, login):
        login("student")
        response = await client.post("/points/complete-chapter", json=COMPLETION)
        assert response.status_code == 400

    async def test_complete_without_course_points(self, client, points_course, login):
        await insert_user_rank(points_course, "student")
        login("student")
        response = await client.post("/points/complete-chapter", json=dict(COMPLETION, course_id="CRS_X"))
        assert response.status_code == 404

    async def test_unknown_chapter_is_not_found(self, client, points_course, login):
        await insert_user_rank(points_course, "student")
        login("student")
        unknown = dict(COMPLETION, chapter_id="NOT_A_CHAPTER")

        assert (await client.post("/points/calculate", json=unknown)).status_code == 404
        response = await client.post("/points/complete-chapter", json=unknown)
        assert response.status_code == 404
        assert response.json()["detail"] == "Chapter not found"
        assert await points_course.progress.count_documents({}) == 0

    async def test_rejects_invalid_scores(self, client, points_course, login):
        login("student")
        response = await client.post("/points/calculate", json=dict(COMPLETION, quiz_score=101))
        assert response.status_code == 422

    async def test_ranks_are_public(self, client, points_course):
        response = await client.get("/points/ranks")
        ranks = response.json()["ranks"]
        assert len(ranks) == 14
        assert ranks[0]["tier"] == "NOVICE"
        assert ranks[-1]["max_points"] is None

    async def test_achievements_flag_unlocked(self, client, points_course, login):
        await insert_user_rank(points_course, "student", achievements=["EARLY_BIRD"])
        login("student")

        body = (await client.get("/points/achievements")).json()
        unlocked = [a["code"] for a in body["achievements"] if a["unlocked"]]
        assert unlocked == ["EARLY_BIRD"]
        assert body["unlocked_count"] == 1

    async def test_user_summary(self, client, points_course, login):
        await insert_user_rank(points_course, "student", total_points=1750, current_rank=2)
        login("student")

        body = (await client.get("/points/user/student")).json()
        assert body["progress_percentage"] == 50
        assert (await client.get("/points/user/nobody")).status_code == 404


class TestLeaderboards:
    async def test_quiz_leaderboard(self, client, db, login):
        for user_id, name, scores in (("u1", "Ann", [80, 90]), ("u2", "Ben", [100]), ("u3", "Anya", [50])):
            await insert_user(db, user_id, name=name)
            for score in scores:
                await db.quiz_attempts.insert_one(
                    {"user_id": user_id, "course_id": "CRS_1", "score": score, "completed_at": datetime.utcnow()}
                )
        login("u3")

        body = (await client.get("/leaderboard", params={"limit": 2})).json()
        assert [row["user_id"] for row in body["leaderboard"]] == ["u1", "u2"]
        assert body["current_user"]["rank"] == 3
        assert body["total"] == 3

        body = (await client.get("/leaderboard", params={"search": "an"})).json()
        assert [row["name"] for row in body["leaderboard"]] == ["Ann", "Anya"]

    async def test_quiz_leaderboard_includes_caller_inside_top_list(self, client, db, login):
        await insert_user(db, "u1", name="Ann")
        await db.quiz_attempts.insert_one(
            {"user_id": "u1", "course_id": "CRS_1", "score": 70, "completed_at": datetime.utcnow()}
        )
        login("u1")

        body = (await client.get("/leaderboard")).json()
        assert body["current_user"]["rank"] == 1
        assert body["current_user"]["total_score"] == 70

    async def test_points_standings(self, client, seeded_db):
        await insert_user_rank(seeded_db, "a", total_points=10)
        await insert_user_rank(seeded_db, "b", total_points=3000, current_rank=3)

        standings = (await client.get("/leaderboard/points")).json()["standings"]
        assert [s["user_id"] for s in standings] == ["b", "a"]
        assert standings[0]["rank_name"] == "Dedicated Student"

    async def test_weekly_snapshot_defaults_to_latest_week(self, client, seeded_db):
        await insert_user(seeded_db, "a")
        await insert_user_rank(seeded_db, "a", weekly_points=300, immunity_weeks=0)
        await weekly_rank_update(seeded_db, now=datetime(2024, 6, 16, 12, 0))

        body = (await client.get("/leaderboard/weekly")).json()
        assert (body["week_number"], body["year"]) == (24, 2024)
        assert body["entries"][0]["user_id"] == "a"

    async def test_weekly_snapshot_empty(self, client, db):
        body = (await client.get("/leaderboard/weekly")).json()
        assert body["entries"] == []


class TestNotifications:
    async def test_read_state(self, client, db, login):
        first = await create_notification(db, "student", "MILESTONE", "One", "first")
        await create_notification(db, "student", "MILESTONE", "Two", "second")
        await create_notification(db, "someone_else", "MILESTONE", "Other", "x")
        login("student")

        body = (await client.get("/notifications")).json()
        assert body["count"] == 2
        assert body["unread_count"] == 2

        response = await client.post(f"/notifications/{first['notification_id']}/mark-read")
        assert response.status_code == 200
        assert (await client.get("/notifications")).json()["unread_count"] == 1

        response = await client.post("/notifications/mark-all-read")
        assert response.json()["modified_count"] == 1

    async def test_cannot_mark_other_users_notification(self, client, db, login):
        other = await create_notification(db, "someone_else", "MILESTONE", "Other", "x")
        login("student")
        response = await client.post(f"/notifications/{other['notification_id']}/mark-read")
        assert response.status_code == 404


class TestCron:
    async def test_requires_secret(self, client, seeded_db, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", "s3cret")
        response = await client.post("/cron/weekly-rank-update", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    async def test_runs_with_secret(self, client, seeded_db, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", "s3cret")
        await insert_user(seeded_db, "a")
        await insert_user_rank(seeded_db, "a", immunity_weeks=0)

        response = await client.get("/cron/weekly-rank-update", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200
        assert response.json()["users_evaluated"] == 1

    async def test_admin_actions(self, client, seeded_db, login):
        await insert_user_rank(seeded_db, "a", weekly_points=400)
        login("boss", role="ADMIN")

        response = await client.post("/admin/cron", json={"action": "reset-weekly-points"})
        assert response.status_code == 200
        assert (await seeded_db.user_ranks.find_one({"user_id": "a"}))["weekly_points"] == 0

        response = await client.post("/admin/cron", json={"action": "run"})
        assert response.status_code == 200
        assert len((await client.get("/admin/cron")).json()["logs"]) == 1

        assert (await client.post("/admin/cron", json={"action": "explode"})).status_code == 400
        assert await seeded_db.audit_logs.count_documents({"actor_user_id": "boss"}) == 2

    async def test_admin_only(self, client, seeded_db, login):
        login("student")
        assert (await client.post("/admin/cron", json={"action": "run"})).status_code == 403
