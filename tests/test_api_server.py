import json

import pytest
from fastapi.testclient import TestClient

from exam_app.constants.about import APP_LICENSE, APP_VERSION
from exam_app.core.credentials import CredentialService
from exam_app.core.exam_manager import ExamManager
from exam_app.core.services.exam_store import ExamStore
from exam_app.server.api_server import create_api_app

SECRET = "test-secret-with-at-least-thirty-two-bytes"


@pytest.fixture
def client(clock) -> TestClient:
    store = ExamStore(clock=clock)
    manager = ExamManager(store, CredentialService(store, secret=SECRET, bcrypt_rounds=4), clock=clock)
    return TestClient(create_api_app(manager))


@pytest.fixture
def auth(client) -> dict[str, str]:
    response = client.post("/api/auth/register", json={"email": "ada@example.com", "password": "secret1"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def exam_payload(raw_questions) -> dict[str, object]:
    return {"title": "Web Basics", "subject": "Web", "questions": raw_questions}


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_reports_version_and_license(client):
    body = client.get("/").json()

    assert body["version"] == APP_VERSION
    assert body["license"] == APP_LICENSE


def test_register_login_and_me(client, auth):
    duplicate = client.post("/api/auth/register", json={"email": "ADA@example.com", "password": "secret1"})
    assert duplicate.status_code == 422

    bad_login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})
    assert bad_login.status_code == 401

    login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret1"})
    assert login.status_code == 200

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {login.json()['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "ada@example.com"
    assert me.json()["user"]["exam_history"] == []


def test_protected_routes_need_a_token(client):
    assert client.get("/api/exams/history").status_code == 401
    assert client.get("/api/exams/history", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_submit_rescores_and_records_history(client, auth, exam_payload):
    payload = {
        **exam_payload,
        "submission_id": "attempt-1",
        "time_taken_seconds": 75,
        "answers": [
            {"question_id": "q_1", "selected_answers": ["HyperText Markup Language"], "time_spent_seconds": 30},
            {"question_id": "q_2", "selected_answers": ["GET"], "flagged": True},
        ],
    }

    response = client.post("/api/exams/submit", json=payload, headers=auth)
    retried = client.post("/api/exams/submit", json=payload, headers=auth)

    assert response.status_code == 201
    body = response.json()
    assert body["saved"] is True
    assert body["result"]["score"] == 1
    assert body["result"]["percentage"] == 50.0
    assert body["streak"]["current"] == 1
    assert retried.json()["result"]["id"] == body["result"]["id"]

    history = client.get("/api/exams/history", headers=auth).json()["history"]
    assert [r["id"] for r in history] == [body["result"]["id"]]

    overview = client.get("/api/exams/history/overview", headers=auth).json()
    assert overview["total_exams"] == 1
    assert overview["avg_score"] == 50

    review = client.get(f"/api/exams/result/{body['result']['id']}/review", headers=auth).json()
    assert review["result"]["answers"][0]["question_html"].startswith("<p>")
    assert client.get("/api/exams/result/missing", headers=auth).status_code == 404


def test_invalid_question_set_is_rejected(client, auth, exam_payload):
    exam_payload["questions"][1]["correctAnswers"] = ["DELETE"]

    response = client.post("/api/exams/bank", json=exam_payload, headers=auth)

    assert response.status_code == 422
    assert "index 1" in response.json()["detail"]


def test_bank_crud(client, auth, exam_payload):
    created = client.post("/api/exams/bank", json=exam_payload, headers=auth)
    assert created.status_code == 201
    exam_id = created.json()["exam"]["id"]

    listed = client.get("/api/exams/bank", headers=auth).json()["exams"]
    assert [e["id"] for e in listed] == [exam_id]

    assert client.delete(f"/api/exams/bank/{exam_id}", headers=auth).status_code == 200
    assert client.delete(f"/api/exams/bank/{exam_id}", headers=auth).status_code == 404


def test_shared_exam_and_leaderboard(client, auth, exam_payload):
    share_id = client.post("/api/exams/share", json=exam_payload, headers=auth).json()["share_id"]

    shared = client.get(f"/api/exams/shared/{share_id}")
    assert shared.status_code == 200
    assert shared.json()["exam"]["title"] == "Web Basics"

    client.post(f"/api/exams/shared/{share_id}/score", json={"nickname": "bob", "score": 1, "total": 2})
    scored = client.post(
        f"/api/exams/shared/{share_id}/score",
        json={"nickname": "ada", "score": 2, "total": 2, "time_taken_seconds": 40},
    )
    assert scored.status_code == 201
    assert scored.json()["rank"] == 1

    missing_nickname = client.post(f"/api/exams/shared/{share_id}/score", json={"score": 2, "total": 2})
    assert missing_nickname.status_code == 422

    board = client.get(f"/api/exams/shared/{share_id}/leaderboard").json()
    assert [e["nickname"] for e in board["leaderboard"]] == ["ada", "bob"]
    assert client.get("/api/exams/shared/unknown/leaderboard").status_code == 404


def test_session_flow_hides_answers_until_submitted(client, auth, exam_payload):
    started = client.post("/api/sessions", json=exam_payload, headers=auth)
    assert started.status_code == 201
    session = started.json()
    session_id = session["session_id"]
    assert "correct_answers" not in session["current_question"]

    selected = client.post(
        f"/api/sessions/{session_id}/select",
        json={"question_id": "q_1", "options": ["HyperText Markup Language"]},
    ).json()
    assert selected["answered_count"] == 1

    moved = client.post(f"/api/sessions/{session_id}/navigate", json={"delta": 1}).json()
    assert moved["current_question"]["id"] == "q_2"
    assert client.post(f"/api/sessions/{session_id}/navigate", json={}).status_code == 422

    flagged = client.post(f"/api/sessions/{session_id}/flag", json={"question_id": "q_2"}).json()
    assert flagged["flagged"] == ["q_2"]

    submitted = client.post(f"/api/sessions/{session_id}/submit").json()
    assert submitted["state"] == "submitted"
    assert submitted["outcome"]["saved"] is True
    assert submitted["outcome"]["result"]["score"] == 1
    first_answer = submitted["outcome"]["result"]["answers"][0]
    assert first_answer["correct_answers"] == ["HyperText Markup Language"]
    assert "<strong>markup</strong>" in first_answer["explanation_html"]

    assert client.post(f"/api/sessions/{session_id}/quit").status_code == 409


def test_unknown_session(client):
    assert client.get("/api/sessions/nope").status_code == 404


def test_weak_area_drill_needs_history(client, auth):
    assert client.get("/api/exams/weak-areas", headers=auth).json() == {"weak_areas": []}
    assert client.get("/api/exams/weak-areas/drill", headers=auth).status_code == 404


def test_non_finite_score_is_rejected_and_store_still_loads(tmp_path, clock):
    data_file = tmp_path / "store.json"
    store = ExamStore(data_path=data_file, clock=clock)
    manager = ExamManager(store, CredentialService(store, secret=SECRET, bcrypt_rounds=4), clock=clock)
    file_client = TestClient(create_api_app(manager))
    token = file_client.post(
        "/api/auth/register", json={"email": "ada@example.com", "password": "secret1"}
    ).json()["token"]
    share_id = file_client.post(
        "/api/exams/share",
        json={"title": "Math", "questions": [{"question": "1 + 1?", "options": ["1", "2"], "correctAnswer": "2"}]},
        headers={"Authorization": f"Bearer {token}"},
    ).json()["share_id"]

    for body in (
        '{"nickname": "mallory", "score": NaN, "total": 2}',
        '{"nickname": "mallory", "score": Infinity, "total": 2}',
        '{"nickname": "mallory", "score": 1, "total": 2, "percentage": NaN}',
    ):
        response = file_client.post(
            f"/api/exams/shared/{share_id}/score",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422

    reloaded = ExamStore(data_path=data_file, clock=clock)
    assert reloaded.get_shared_exam(share_id).leaderboard == ()


def test_questions_pasted_as_text_blocks(client, auth):
    payload = {
        "title": "HTTP",
        "format": "text",
        "questions": "Q: Which methods are idempotent?\nA: GET\nB: POST\nC: PUT\nCORRECT: A, C\nTOPIC: HTTP\n",
    }

    response = client.post("/api/exams/bank", json=payload, headers=auth)

    assert response.status_code == 201
    question = response.json()["exam"]["questions"][0]
    assert question["correct_answers"] == ["GET", "PUT"]
    assert question["type"] == "multi"

    payload["questions"] = [{"question": "Q", "options": ["a"], "correctAnswer": "a"}]
    assert client.post("/api/exams/bank", json=payload, headers=auth).status_code == 422


def test_questions_pasted_as_json_text(client, auth, exam_payload):
    exam_payload["questions"] = json.dumps(exam_payload["questions"])

    response = client.post("/api/sessions", json=exam_payload, headers=auth)

    assert response.status_code == 201
    assert response.json()["total_questions"] == 2


def test_bank_export_round_trips(client, auth, exam_payload):
    exam_id = client.post("/api/exams/bank", json=exam_payload, headers=auth).json()["exam"]["id"]

    exported = client.get(f"/api/exams/bank/{exam_id}/export", headers=auth)
    as_text = client.get(f"/api/exams/bank/{exam_id}/export", params={"format": "text"}, headers=auth)

    assert exported.status_code == 200
    assert exported.json()["questions"][1]["correctAnswers"] == ["GET", "PUT"]
    assert as_text.headers["content-type"].startswith("text/plain")
    assert "CORRECT: A, C" in as_text.text

    reimported = client.post(
        "/api/exams/bank",
        json={"title": "Copy", "format": "text", "questions": as_text.text},
        headers=auth,
    )
    assert reimported.status_code == 201
    assert client.get("/api/exams/bank/unknown/export", headers=auth).status_code == 404
