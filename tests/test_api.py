from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from codebook_api import app
from conftest import FakeLLM, SleepRecorder
from database.crud import QuestionStore
from database.database import get_db
from generation.orchestrator import GenerationOrchestrator
from routers.deps import get_llm_client, get_orchestrator
from services.cache import cache
from services.rate_limit import RateLimiter, get_rate_limiter


@pytest.fixture
def api(session_factory):
    llm = FakeLLM()
    limiter = RateLimiter()
    store = QuestionStore(session_factory, cache)

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_orchestrator] = lambda: GenerationOrchestrator(llm, store, sleep=SleepRecorder())
    cache.clear()

    yield SimpleNamespace(client=TestClient(app), llm=llm, store=store, limiter=limiter)

    app.dependency_overrides.clear()
    cache.clear()


def generate(api, titles):
    return api.client.post("/api/generate", json={"titles": titles})


# ─── /api/generate ─────────────────────────────────────────────────────────────

def test_generate_all_succeed(api):
    resp = generate(api, ["Two Sum", "FizzBuzz"])

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Successfully generated 2 out of 2 questions"
    assert body["data"]["completed"] == 2
    assert body["data"]["outcome"] == "success"
    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == "4"
    assert "X-RateLimit-Reset" in resp.headers


def test_generate_partial_is_207(api):
    resp = generate(api, ["Check if a number is even or odd", ""])

    assert resp.status_code == 207
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Successfully generated 1 out of 2 questions (1 failed)"
    assert body["data"]["errors"] == ["<empty title>: Title cannot be empty"]


def test_generate_nothing_succeeds_is_500(api):
    resp = generate(api, ["", "   "])

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Failed to generate any questions"
    assert body["data"]["failed"] == 2
    assert api.llm.calls == []


@pytest.mark.parametrize("titles, error", [
    ([], "At least one question title is required"),
    ([f"t{i}" for i in range(21)], "Maximum 20 questions can be generated at once"),
])
def test_generate_bad_batch_is_400(api, titles, error):
    resp = generate(api, titles)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": error}


def test_generate_malformed_body_is_400(api):
    resp = api.client.post("/api/generate", json={"title": "Two Sum"})

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["error"].startswith("Invalid request")


def test_generate_rate_limit(api):
    for _ in range(5):
        assert generate(api, ["Two Sum"]).status_code == 200

    resp = generate(api, ["Two Sum"])

    assert resp.status_code == 429
    assert resp.json() == {"success": False, "error": "Too many requests. Please try again later."}
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    # other classes are unaffected
    assert api.client.get("/api/questions").status_code == 200


# ─── /api/questions ────────────────────────────────────────────────────────────

def test_questions_reflect_new_generations(api):
    assert api.client.get("/api/questions").json()["data"] == []

    generate(api, ["Two Sum"])

    body = api.client.get("/api/questions").json()
    assert [q["title"] for q in body["data"]] == ["Two Sum"]
    assert body["message"] == "Retrieved 1 questions"


def test_question_by_id(api):
    generate(api, ["Two Sum"])
    question_id = api.store.list_questions()[0].id

    resp = api.client.get("/api/questions", params={"id": question_id})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == question_id
    assert data["difficulty"] == "Easy"
    assert data["example"]["output"] == "Even"


def test_question_not_found(api):
    resp = api.client.get("/api/questions", params={"id": "missing"})

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Question not found"}


def test_question_filters(api):
    generate(api, ["Two Sum", "FizzBuzz"])

    search = api.client.get("/api/questions", params={"search": "fizz"}).json()
    easy = api.client.get("/api/questions", params={"difficulty": "Easy"}).json()
    topic = api.client.get("/api/questions", params={"topic": "Math"}).json()

    assert [q["title"] for q in search["data"]] == ["FizzBuzz"]
    assert len(easy["data"]) == 2
    assert len(topic["data"]) == 2


@pytest.mark.parametrize("params", [{"difficulty": "Trivial"}, {"search": "  "}, {"id": " "}, {"topic": ""}])
def test_question_bad_filters_are_400(api, params):
    resp = api.client.get("/api/questions", params=params)

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_questions_head_probe(api):
    assert api.client.head("/api/questions").status_code == 200


# ─── /api/chat ─────────────────────────────────────────────────────────────────

def test_chat_about_a_question(api):
    generate(api, ["Two Sum"])
    question_id = api.store.list_questions()[0].id

    resp = api.client.post("/api/chat", json={
        "questionId": question_id,
        "message": "Can you give me a hint?",
        "chatHistory": [
            {"id": "m1", "role": "user", "content": "Hi", "timestamp": "2026-01-01T10:00:00Z"},
        ],
    })

    assert resp.status_code == 200
    assert resp.json()["data"] == {"response": "Try using the modulo operator."}
    assert resp.headers["X-RateLimit-Limit"] == "30"
    assert "User: Hi" in api.llm.prompts[-1]


def test_chat_unknown_question(api):
    resp = api.client.post("/api/chat", json={"questionId": "missing", "message": "hint?"})

    assert resp.status_code == 404
    assert resp.json()["error"] == "Question not found"


def test_chat_blank_message(api):
    generate(api, ["Two Sum"])
    question_id = api.store.list_questions()[0].id

    resp = api.client.post("/api/chat", json={"questionId": question_id, "message": "   "})

    assert resp.status_code == 400


# ─── /api/health, /api/metrics ─────────────────────────────────────────────────

def test_health(api):
    generate(api, ["Two Sum"])

    resp = api.client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["services"]["database"] == "healthy"
    assert body["metrics"] == {"total_questions": 1}
    assert resp.headers["Cache-Control"].startswith("no-cache")


def test_metrics(api):
    generate(api, ["Two Sum"])
    api.client.get("/api/questions")

    body = api.client.get("/api/metrics").json()

    assert body["questions"] == {"total": 1, "by_difficulty": {"Easy": 1, "Medium": 0, "Hard": 0}}
    assert "questions:all" in body["cache"]["keys"]
    assert body["rate_limits"]["generation"]["active_clients"] == 1


def test_index(api):
    assert api.client.get("/").json()["endpoints"]["generate"] == "/api/generate"


def test_malformed_generate_bodies_do_not_use_quota(api):
    for _ in range(6):
        assert api.client.post("/api/generate", json={"title": "Two Sum"}).status_code == 400

    resp = generate(api, ["Two Sum"])

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Remaining"] == "4"


def test_metrics_question_stats_are_cached_until_a_write(api):
    generate(api, ["Two Sum"])

    first = api.client.get("/api/metrics").json()
    assert first["questions"]["total"] == 1
    assert "questions:stats" in cache.stats()["keys"]

    generate(api, ["FizzBuzz"])

    assert not cache.has("questions:stats")
    assert api.client.get("/api/metrics").json()["questions"]["total"] == 2
