from datetime import datetime

from app.gamification.achievements import (
    ACHIEVEMENTS,
    evaluate_achievements,
    in_time_range,
    requirement_met,
    seed_achievements,
)
from tests.conftest import insert_user_rank


class TestTimeRanges:
    def test_early_bird_window(self):
        assert in_time_range("00:00-08:00", datetime(2024, 1, 1, 0, 0))
        assert in_time_range("00:00-08:00", datetime(2024, 1, 1, 7, 59))
        assert not in_time_range("00:00-08:00", datetime(2024, 1, 1, 8, 0))

    def test_night_owl_covers_last_minute(self):
        assert not in_time_range("22:00-23:59", datetime(2024, 1, 1, 21, 59))
        assert in_time_range("22:00-23:59", datetime(2024, 1, 1, 22, 0))
        assert in_time_range("22:00-23:59", datetime(2024, 1, 1, 23, 59))


class TestRequirements:
    def test_counter_threshold(self):
        assert requirement_met({"streak_days": 7}, {"streak_days": 7})
        assert not requirement_met({"streak_days": 7}, {"streak_days": 6})

    def test_missing_stat_counts_as_zero(self):
        assert not requirement_met({"perfect_scores": 5}, {})

    def test_time_range_needs_a_moment(self):
        assert not requirement_met({"completion_time_range": "00:00-08:00"}, {})

    def test_unknown_requirement_never_met(self):
        assert not requirement_met({"mystery": 1}, {"mystery": 100})


class TestCatalogue:
    def test_codes_are_unique(self):
        codes = [a["code"] for a in ACHIEVEMENTS]
        assert len(codes) == len(set(codes)) == 17

    async def test_seeding_is_idempotent(self, db):
        await seed_achievements(db)
        await seed_achievements(db)
        assert await db.achievements.count_documents({}) == 17


class TestEvaluateAchievements:
    async def test_unlocks_and_pays_reward(self, db):
        await insert_user_rank(db, "dana", streak_days=7, total_points=10, weekly_points=10)

        unlocked = await evaluate_achievements(db, "dana", datetime(2024, 1, 1, 12, 0))

        assert [a["code"] for a in unlocked] == ["STREAK_MASTER_7"]
        rank = await db.user_ranks.find_one({"user_id": "dana"})
        assert rank["achievements"] == ["STREAK_MASTER_7"]
        assert rank["total_points"] == 110
        assert rank["weekly_points"] == 110
        assert await db.notifications.count_documents({"type": "ACHIEVEMENT_UNLOCKED"}) == 1

    async def test_awarded_only_once(self, db):
        await insert_user_rank(db, "dana", streak_days=7)

        await evaluate_achievements(db, "dana", datetime(2024, 1, 1, 12, 0))
        second = await evaluate_achievements(db, "dana", datetime(2024, 1, 2, 12, 0))

        assert second == []
        rank = await db.user_ranks.find_one({"user_id": "dana"})
        assert rank["total_points"] == 100

    async def test_counts_perfect_scores(self, db):
        await insert_user_rank(db, "erin")
        for i in range(5):
            await db.chapter_completions.insert_one(
                {"user_id": "erin", "chapter_id": f"CH_{i}", "is_perfect_score": True, "has_speed_bonus": False}
            )

        unlocked = await evaluate_achievements(db, "erin", datetime(2024, 1, 1, 12, 0))
        assert [a["code"] for a in unlocked] == ["PERFECTIONIST_5"]

    async def test_unknown_user(self, db):
        assert await evaluate_achievements(db, "nobody") == []
