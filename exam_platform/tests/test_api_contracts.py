"""
exam_platform/tests/test_api_contracts.py
API Contract Verification Tests

These tests verify:
1. Response shapes are consistent
2. Error responses follow the standard envelope
3. HTTP status codes are correct
4. Student identity and ownership are enforced

PRINCIPLE: APIs are contracts. Contracts must never break.
"""
from datetime import timedelta

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from exam_platform.core.clock import get_clock
from exam_platform.database import get_db
from exam_platform.errors import ErrorCode
from exam_platform.main import app
from exam_platform.tests.conftest import NOW, correct_option_id


@pytest_asyncio.fixture
async def client(session_factory, clock):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def as_student(student):
    return {"X-Student-Id": str(student.id)}


def assert_envelope(response, status_code, error, code):
    assert response.status_code == status_code
    data = response.json()
    assert data["success"] is False
    assert data["error"] == error
    assert data["code"] == code
    assert isinstance(data["message"], str) and data["message"]
    return data


class TestHealthEndpoints:

    async def test_main_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_errors_health(self, client):
        response = await client.get("/api/errors/health")
        assert response.status_code == 200
        assert "ACCESS_DENIED" in response.json()["error_codes"]


class TestStudentIdentity:

    async def test_missing_header_is_401(self, client, scenario):
        response = await client.get("/api/student/exams")
        assert_envelope(response, 401, "AuthRequired", ErrorCode.AUTH_REQUIRED)

    async def test_non_numeric_header_is_401(self, client, scenario):
        response = await client.get("/api/student/exams", headers={"X-Student-Id": "alice"})
        assert_envelope(response, 401, "AuthRequired", ErrorCode.AUTH_REQUIRED)


class TestStudentExamFlow:

    async def test_list_exams(self, client, scenario):
        response = await client.get("/api/student/exams", headers=as_student(scenario.alice))
        assert response.status_code == 200
        exams = response.json()["exams"]
        assert len(exams) == 1
        assert exams[0]["exam"]["id"] == scenario.exam.id
        assert exams[0]["is_accessible"] is True
        assert exams[0]["has_attempted"] is False

    async def test_non_member_sees_no_exams(self, client, scenario):
        response = await client.get("/api/student/exams", headers=as_student(scenario.mallory))
        assert response.status_code == 200
        assert response.json()["exams"] == []

    async def test_show_exam_hides_correct_options(self, client, scenario):
        response = await client.get(f"/api/student/exams/{scenario.exam.id}", headers=as_student(scenario.alice))
        assert response.status_code == 200
        questions = response.json()["paper"]["questions"]
        assert len(questions) == 3
        for question in questions:
            for option in question["options"]:
                assert "is_correct" not in option

    async def test_show_exam_to_non_member_is_403(self, client, scenario):
        response = await client.get(f"/api/student/exams/{scenario.exam.id}", headers=as_student(scenario.mallory))
        data = assert_envelope(response, 403, "AccessDenied", ErrorCode.ACCESS_DENIED)
        assert data["details"] == {"reason": "not_a_batch_member"}

    async def test_unknown_exam_is_404(self, client, scenario):
        response = await client.get("/api/student/exams/55555", headers=as_student(scenario.alice))
        assert_envelope(response, 404, "NotFound", ErrorCode.NOT_FOUND)

    async def test_start_then_duplicate(self, client, scenario):
        url = f"/api/student/exams/{scenario.exam.id}/start"

        first = await client.post(url, headers=as_student(scenario.alice))
        assert first.status_code == 201
        body = first.json()
        assert body["remaining_minutes"] == 60
        assert body["attempt"]["status"] == "in_progress"

        second = await client.post(url, headers=as_student(scenario.alice))
        assert_envelope(second, 409, "DuplicateAttempt", ErrorCode.DUPLICATE_ATTEMPT)

    async def test_answer_submit_and_results(self, client, clock, scenario):
        base = f"/api/student/exams/{scenario.exam.id}"
        headers = as_student(scenario.alice)
        await client.post(f"{base}/start", headers=headers)

        clock.advance(minutes=5)
        for question in (scenario.q1, scenario.q2):
            response = await client.post(
                f"{base}/answers",
                headers=headers,
                json={"question_id": question.id, "selected_option_id": correct_option_id(question)}
            )
            assert response.status_code == 200
            assert response.json()["remaining_minutes"] == 55
            assert response.json()["answer"]["question_id"] == question.id

        submitted = await client.post(f"{base}/submit", headers=headers)
        assert submitted.status_code == 200
        assert submitted.json()["score"] == 20.0
        assert submitted.json()["attempt"]["status"] == "submitted"

        again = await client.post(f"{base}/submit", headers=headers)
        assert_envelope(again, 409, "AlreadyClosed", ErrorCode.ALREADY_CLOSED)

        late = await client.post(
            f"{base}/answers",
            headers=headers,
            json={"question_id": scenario.q3.id, "answer_text": "too late"}
        )
        assert_envelope(late, 409, "AttemptClosed", ErrorCode.ATTEMPT_CLOSED)

        mine = await client.get(f"/api/results/exams/{scenario.exam.id}/me", headers=headers)
        assert mine.status_code == 200
        assert mine.json()["score"] == 20.0
        assert mine.json()["total_marks"] == 30

        summary = await client.get(f"/api/results/exams/{scenario.exam.id}")
        assert summary.status_code == 200
        assert summary.json()["total_attempts"] == 1
        assert summary.json()["pass_rate"] == 100.0

        performance = await client.get(f"/api/results/students/{scenario.alice.id}")
        assert performance.status_code == 200
        assert performance.json()["total_exams"] == 1

    async def test_expired_answer_is_410(self, client, clock, scenario):
        base = f"/api/student/exams/{scenario.exam.id}"
        headers = as_student(scenario.alice)
        await client.post(f"{base}/start", headers=headers)

        clock.advance(minutes=61)
        response = await client.post(
            f"{base}/answers",
            headers=headers,
            json={"question_id": scenario.q3.id, "answer_text": "Inertia"}
        )
        assert_envelope(response, 410, "AttemptExpired", ErrorCode.ATTEMPT_EXPIRED)

    async def test_attempt_state_auto_submits_expired(self, client, clock, scenario):
        headers = as_student(scenario.alice)
        started = await client.post(f"/api/student/exams/{scenario.exam.id}/start", headers=headers)
        attempt_id = started.json()["attempt"]["id"]

        clock.advance(minutes=30)
        live = await client.get(f"/api/student/exams/attempts/{attempt_id}", headers=headers)
        assert live.json()["attempt"]["status"] == "in_progress"
        assert live.json()["remaining_minutes"] == 30

        clock.advance(minutes=30)
        expired = await client.get(f"/api/student/exams/attempts/{attempt_id}", headers=headers)
        assert expired.status_code == 200
        assert expired.json()["attempt"]["status"] == "auto_submitted"
        assert expired.json()["remaining_minutes"] == 0

    async def test_attempt_of_other_student_is_404(self, client, scenario):
        started = await client.post(f"/api/student/exams/{scenario.exam.id}/start", headers=as_student(scenario.alice))
        attempt_id = started.json()["attempt"]["id"]

        response = await client.get(f"/api/student/exams/attempts/{attempt_id}", headers=as_student(scenario.bob))
        assert_envelope(response, 404, "NotFound", ErrorCode.NOT_FOUND)

    async def test_malformed_answer_body_is_422(self, client, scenario):
        base = f"/api/student/exams/{scenario.exam.id}"
        headers = as_student(scenario.alice)
        await client.post(f"{base}/start", headers=headers)

        response = await client.post(f"{base}/answers", headers=headers, json={"question_id": "first"})
        data = assert_envelope(response, 422, "Validation Error", ErrorCode.VALIDATION_ERROR)
        assert data["details"]["errors"]

    async def test_wrong_shape_answer_is_400(self, client, scenario):
        base = f"/api/student/exams/{scenario.exam.id}"
        headers = as_student(scenario.alice)
        await client.post(f"{base}/start", headers=headers)

        response = await client.post(
            f"{base}/answers",
            headers=headers,
            json={"question_id": scenario.q1.id, "answer_text": "B"}
        )
        assert_envelope(response, 400, "ValidationError", ErrorCode.VALIDATION_ERROR)


class TestExamAdmin:

    def exam_body(self, scenario, **overrides):
        body = {
            "organization_id": scenario.org.id,
            "batch_id": scenario.batch.id,
            "paper_id": scenario.paper.id,
            "title": "Physics Unit Test 2",
            "start_time": (NOW + timedelta(days=2)).isoformat(),
            "end_time": (NOW + timedelta(days=2, hours=1)).isoformat(),
            "duration_minutes": 45,
        }
        body.update(overrides)
        return body

    async def test_create_publish_complete(self, client, scenario):
        created = await client.post("/api/exams", json=self.exam_body(scenario))
        assert created.status_code == 201
        exam = created.json()["exam"]
        assert exam["status"] == "draft"
        assert exam["total_marks"] == 30

        published = await client.post(f"/api/exams/{exam['id']}/publish")
        assert published.status_code == 200
        assert published.json()["exam"]["status"] == "published"

        again = await client.post(f"/api/exams/{exam['id']}/publish")
        assert_envelope(again, 400, "InvalidState", ErrorCode.INVALID_STATE)

        completed = await client.post(f"/api/exams/{exam['id']}/complete")
        assert completed.json()["exam"]["status"] == "completed"

    async def test_create_with_past_start_is_400(self, client, scenario):
        body = self.exam_body(scenario, start_time=(NOW - timedelta(hours=1)).isoformat())
        response = await client.post("/api/exams", json=body)
        assert_envelope(response, 400, "ValidationError", ErrorCode.VALIDATION_ERROR)

    async def test_delete_rules(self, client, scenario):
        created = await client.post("/api/exams", json=self.exam_body(scenario))
        exam_id = created.json()["exam"]["id"]

        deleted = await client.delete(f"/api/exams/{exam_id}")
        assert deleted.status_code == 204

        await client.post(f"/api/student/exams/{scenario.exam.id}/start", headers=as_student(scenario.alice))
        refused = await client.delete(f"/api/exams/{scenario.exam.id}")
        assert_envelope(refused, 400, "InvalidState", ErrorCode.INVALID_STATE)

    async def test_update_only_while_draft(self, client, scenario):
        created = await client.post("/api/exams", json=self.exam_body(scenario))
        exam_id = created.json()["exam"]["id"]

        body = self.exam_body(scenario, title="Physics Unit Test 2 (moved)",
                              start_time=(NOW + timedelta(days=3)).isoformat(),
                              end_time=(NOW + timedelta(days=3, hours=2)).isoformat(),
                              duration_minutes=60)
        body.pop("organization_id")
        updated = await client.put(f"/api/exams/{exam_id}", json=body)
        assert updated.status_code == 200
        assert updated.json()["exam"]["title"] == "Physics Unit Test 2 (moved)"
        assert updated.json()["exam"]["duration_minutes"] == 60

        await client.post(f"/api/exams/{exam_id}/publish")
        refused = await client.put(f"/api/exams/{exam_id}", json=body)
        assert_envelope(refused, 400, "InvalidState", ErrorCode.INVALID_STATE)
        assert refused.json()["message"] == "Cannot update published or completed exams"

    async def test_update_with_bad_schedule_is_400(self, client, scenario):
        created = await client.post("/api/exams", json=self.exam_body(scenario))
        exam_id = created.json()["exam"]["id"]

        body = self.exam_body(scenario, end_time=(NOW + timedelta(days=1)).isoformat())
        response = await client.put(f"/api/exams/{exam_id}", json=body)
        assert_envelope(response, 400, "ValidationError", ErrorCode.VALIDATION_ERROR)
