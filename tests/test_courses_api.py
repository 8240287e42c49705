"""HTTP tests for courses, chapters, enrollment, progress and quizzes."""

from datetime import datetime

import pytest

from tests.conftest import insert_course

COURSE = {"title": "Python Basics", "description": "Learn Python from the ground up", "is_published": True}


@pytest.fixture
async def course_id(client, login):
    login("teacher", role="INSTRUCTOR")
    response = await client.post("/courses", json=COURSE)
    assert response.status_code == 200
    return response.json()["course"]["course_id"]


async def _add_chapter(client, course_id, title):
    response = await client.post(f"/courses/{course_id}/chapters", json={"title": title})
    assert response.status_code == 200
    return response.json()["chapter"]["chapter_id"]


class TestCourses:
    async def test_students_cannot_create(self, client, login):
        login("student")
        response = await client.post("/courses", json=COURSE)
        assert response.status_code == 403

    async def test_validation(self, client, login):
        login("teacher", role="INSTRUCTOR")
        response = await client.post("/courses", json={"title": "Py", "description": "short"})
        assert response.status_code == 422

    async def test_list_hides_unpublished_from_students(self, client, db, login):
        await insert_course(db, "CRS_PUB", published=True)
        await insert_course(db, "CRS_DRAFT", published=False)

        login("student")
        response = await client.get("/courses")
        assert [c["course_id"] for c in response.json()["courses"]] == ["CRS_PUB"]
        assert (await client.get("/courses?all=true")).status_code == 403

        login("teacher", role="INSTRUCTOR")
        response = await client.get("/courses?all=true")
        assert response.json()["count"] == 2

    async def test_list_is_refreshed_after_create(self, client, login, course_id):
        login("student")
        before = await client.get("/courses")
        assert before.json()["count"] == 1

        login("teacher", role="INSTRUCTOR")
        await client.post("/courses", json=COURSE)

        login("student")
        after = await client.get("/courses")
        assert after.json()["count"] == 2

    async def test_unpublished_detail_is_hidden(self, client, db, login):
        await insert_course(db, "CRS_DRAFT", published=False)
        login("student")
        assert (await client.get("/courses/CRS_DRAFT")).status_code == 404
        login("admin", role="ADMIN")
        assert (await client.get("/courses/CRS_DRAFT")).status_code == 200

    async def test_delete_cascades(self, client, db, login, course_id):
        await _add_chapter(client, course_id, "One")
        response = await client.delete(f"/courses/{course_id}")

        assert response.status_code == 200
        assert await db.chapters.count_documents({"course_id": course_id}) == 0
        assert (await client.delete(f"/courses/{course_id}")).status_code == 404


class TestChapters:
    async def test_positions_and_delete_compaction(self, client, login, course_id):
        first = await _add_chapter(client, course_id, "One")
        second = await _add_chapter(client, course_id, "Two")
        third = await _add_chapter(client, course_id, "Three")

        await client.delete(f"/courses/{course_id}/chapters/{first}")

        chapters = (await client.get(f"/courses/{course_id}/chapters")).json()["chapters"]
        assert [(c["chapter_id"], c["position"]) for c in chapters] == [(second, 1), (third, 2)]

    async def test_reorder(self, client, login, course_id):
        first = await _add_chapter(client, course_id, "One")
        second = await _add_chapter(client, course_id, "Two")

        response = await client.post(f"/courses/{course_id}/chapters/reorder", json={"ids": [second, first]})
        assert response.status_code == 200
        assert [c["chapter_id"] for c in response.json()["chapters"]] == [second, first]

    async def test_reorder_rejects_partial_lists(self, client, login, course_id):
        first = await _add_chapter(client, course_id, "One")
        await _add_chapter(client, course_id, "Two")

        response = await client.post(f"/courses/{course_id}/chapters/reorder", json={"ids": [first]})
        assert response.status_code == 400

    async def test_convert_and_promote_keep_ids(self, client, db, login, course_id):
        parent = await _add_chapter(client, course_id, "Parent")
        child = await _add_chapter(client, course_id, "Child")

        response = await client.post(
            f"/courses/{course_id}/chapters/{child}/convert-to-subchapter",
            json={"parent_chapter_id": parent}
        )
        assert response.status_code == 200
        assert response.json()["subchapter"]["subchapter_id"] == child
        assert await db.chapters.count_documents({"course_id": course_id}) == 1

        response = await client.post(
            f"/courses/{course_id}/chapters/{parent}/subchapters/{child}/promote-to-chapter"
        )
        assert response.status_code == 200
        assert response.json()["chapter"]["chapter_id"] == child
        assert response.json()["chapter"]["position"] == 2
        assert await db.subchapters.count_documents({}) == 0

    async def test_convert_into_itself(self, client, login, course_id):
        chapter = await _add_chapter(client, course_id, "Solo")
        response = await client.post(
            f"/courses/{course_id}/chapters/{chapter}/convert-to-subchapter",
            json={"parent_chapter_id": chapter}
        )
        assert response.status_code == 400

    async def test_subchapters_follow_parent_order(self, client, login, course_id):
        chapter = await _add_chapter(client, course_id, "Parent")
        ids = []
        for title in ("a", "b", "c"):
            response = await client.post(f"/courses/{course_id}/chapters/{chapter}/subchapters",
                                         json={"title": title})
            ids.append(response.json()["subchapter"]["subchapter_id"])

        await client.delete(f"/courses/{course_id}/chapters/{chapter}/subchapters/{ids[0]}")
        response = await client.get(f"/courses/{course_id}/chapters/{chapter}/subchapters")
        assert [(s["subchapter_id"], s["position"]) for s in response.json()["subchapters"]] == [
            (ids[1], 1), (ids[2], 2)
        ]

    async def test_structure_changes_resync_course_points(self, client, db, login, course_id):
        await _add_chapter(client, course_id, "One")
        login("admin", role="ADMIN")
        response = await client.post("/admin/course-points",
                                     json={"course_id": course_id, "total_points": 1000, "difficulty": "BEGINNER"})
        assert response.json()["course_points"]["points_per_chapter"] == 1000

        login("teacher", role="INSTRUCTOR")
        await _add_chapter(client, course_id, "Two")
        config = await db.course_points.find_one({"course_id": course_id})
        assert config["points_per_chapter"] == 500


class TestEnrollmentAndProgress:
    async def test_enroll_is_idempotent(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1",))
        login("student")

        first = await client.post("/courses/CRS_1/enroll")
        second = await client.post("/courses/CRS_1/enroll")

        assert first.json()["message"] == "Enrolled successfully"
        assert second.json()["message"] == "Already enrolled"
        assert await db.enrollments.count_documents({"user_id": "student"}) == 1
        assert (await client.get("/courses/CRS_1/enroll")).json()["enrolled"] is True

    async def test_unpublished_course_rejects_enrollment(self, client, db, login):
        await insert_course(db, "CRS_DRAFT", published=False)
        login("student")
        assert (await client.post("/courses/CRS_DRAFT/enroll")).status_code == 403

    async def test_unknown_course(self, client, login):
        login("student")
        assert (await client.post("/courses/NOPE/enroll")).status_code == 404

    async def test_progress(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1", "CH_2"))
        login("student")

        assert (await client.post("/courses/CRS_1/progress",
                                  json={"chapter_id": "CH_1", "is_completed": True})).status_code == 403

        await client.post("/courses/CRS_1/enroll")
        assert (await client.post("/courses/CRS_1/progress",
                                  json={"chapter_id": "CH_9", "is_completed": True})).status_code == 404

        response = await client.post("/courses/CRS_1/progress", json={"chapter_id": "CH_1", "is_completed": True})
        assert response.status_code == 200

        progress = (await client.get("/courses/CRS_1/progress")).json()
        assert progress["completed_count"] == 1
        assert progress["total_items"] == 2
        assert progress["percentage"] == 50
        assert progress["is_completed"] is False

    async def test_progress_rounds_half_up(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=tuple(f"CH_{n}" for n in range(1, 9)))
        login("student")
        await client.post("/courses/CRS_1/enroll")
        await client.post("/courses/CRS_1/progress", json={"chapter_id": "CH_1", "is_completed": True})

        assert (await client.get("/courses/CRS_1/progress")).json()["percentage"] == 13

    async def test_progress_after_chapter_removed(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1", "CH_2"))
        login("student")
        await client.post("/courses/CRS_1/enroll")
        for chapter_id in ("CH_1", "CH_2"):
            await client.post("/courses/CRS_1/progress", json={"chapter_id": chapter_id, "is_completed": True})
        await db.progress.insert_one({"user_id": "student", "course_id": "CRS_1", "chapter_id": "GONE",
                                      "is_completed": True, "updated_at": datetime.utcnow()})

        login("teacher", role="INSTRUCTOR")
        assert (await client.delete("/courses/CRS_1/chapters/CH_2")).status_code == 200
        assert await db.progress.count_documents({"chapter_id": "CH_2"}) == 0

        login("student")
        progress = (await client.get("/courses/CRS_1/progress")).json()
        assert progress["completed_items"] == ["CH_1"]
        assert progress["total_items"] == 1
        assert progress["percentage"] == 100

    async def test_progress_survives_chapter_conversion(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1", "CH_2"))
        login("student")
        await client.post("/courses/CRS_1/enroll")
        await client.post("/courses/CRS_1/progress", json={"chapter_id": "CH_2", "is_completed": True})

        login("teacher", role="INSTRUCTOR")
        await client.post("/courses/CRS_1/chapters/CH_2/convert-to-subchapter", json={"parent_chapter_id": "CH_1"})

        login("student")
        progress = (await client.get("/courses/CRS_1/progress")).json()
        assert progress["completed_count"] == 1
        assert progress["total_items"] == 2
        assert progress["percentage"] == 50


QUIZ = {
    "title": "Checkpoint",
    "questions": [
        {"question_id": "q1", "text": "2 + 2?", "options": ["3", "4"], "answer": "4", "points": 2},
        {"question_id": "q2", "text": "Python is a snake?", "type": "TRUE_FALSE", "answer": "True"},
    ],
}


class TestQuizzes:
    @pytest.fixture
    async def quiz_id(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1",))
        login("teacher", role="INSTRUCTOR")
        response = await client.post("/courses/CRS_1/chapters/CH_1/quizzes", json=QUIZ)
        assert response.status_code == 200
        login("student")
        await client.post("/courses/CRS_1/enroll")
        return response.json()["quiz"]["quiz_id"]

    async def test_answer_must_be_an_option(self, client, db, login):
        await insert_course(db, "CRS_1", chapters=("CH_1",))
        login("teacher", role="INSTRUCTOR")
        bad = {"title": "Bad", "questions": [{"text": "?", "options": ["a", "b"], "answer": "c"}]}
        response = await client.post("/courses/CRS_1/chapters/CH_1/quizzes", json=bad)
        assert response.status_code == 422

    async def test_quiz_hides_answers(self, client, quiz_id):
        response = await client.get(f"/courses/CRS_1/quiz/{quiz_id}")
        body = response.json()
        assert all("answer" not in q for q in body["quiz"]["questions"])
        assert body["total_points"] == 3
        assert body["attempts_remaining"] == 3

    async def test_grading(self, client, quiz_id):
        response = await client.post(f"/courses/CRS_1/quiz/{quiz_id}", json={"answers": {"q1": "4", "q2": "true"}})
        body = response.json()
        assert body["score"] == 100
        assert body["passed"] is True
        assert body["attempts_remaining"] == 2

        response = await client.post(f"/courses/CRS_1/quiz/{quiz_id}", json={"answers": {"q1": "3", "q2": "true"}})
        assert response.json()["score"] == 33
        assert response.json()["passed"] is False

    async def test_multiple_choice_compares_exactly(self, client, quiz_id):
        response = await client.post(f"/courses/CRS_1/quiz/{quiz_id}", json={"answers": {"q1": " 4", "q2": " TRUE "}})
        graded = {g["question_id"]: g["is_correct"] for g in response.json()["graded_answers"]}
        assert graded == {"q1": False, "q2": True}

    async def test_attempt_limit(self, client, quiz_id):
        for _ in range(3):
            assert (await client.post(f"/courses/CRS_1/quiz/{quiz_id}", json={"answers": {}})).status_code == 200
        response = await client.post(f"/courses/CRS_1/quiz/{quiz_id}", json={"answers": {}})
        assert response.status_code == 400

    async def test_quiz_from_another_course(self, client, db, login, quiz_id):
        await insert_course(db, "CRS_2", chapters=("CH_2",))
        await client.post("/courses/CRS_2/enroll")
        response = await client.get(f"/courses/CRS_2/quiz/{quiz_id}")
        assert response.status_code == 400

    async def test_requires_enrollment(self, client, login, quiz_id):
        login("outsider")
        assert (await client.get(f"/courses/CRS_1/quiz/{quiz_id}")).status_code == 403
