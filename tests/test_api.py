import pytest
from conftest import MALFORMED, WELL_FORMED, FakeAssistant
from fastapi.testclient import TestClient

from mcqgen import main
from mcqgen.config import Settings
from mcqgen.main import app, get_leaderboard_service, get_question_service
from mcqgen.repositories import LeaderboardRepository, StoreUnavailableError
from mcqgen.services import LeaderboardService


class BrokenLeaderboard(LeaderboardRepository):
    async def add_entry(self, entry):
        raise StoreUnavailableError("connection refused")

    async def top_entries(self, limit=50):
        raise StoreUnavailableError("connection refused")


@pytest.fixture
def client_for(make_service, store):
    def factory(replies=(), leaderboard=None):
        service = make_service(FakeAssistant(list(replies)))
        board = LeaderboardService(leaderboard or store)
        app.dependency_overrides[get_question_service] = lambda: service
        app.dependency_overrides[get_leaderboard_service] = lambda: board
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


def test_ask_single_question_returns_object(client_for):
    client = client_for([WELL_FORMED])

    response = client.post(
        "/ask",
        json={"query": "Generate 1 MCQ", "category": "Polity", "userId": "u1-1", "chapter": "sc"},
    )

    assert response.status_code == 200
    answer = response.json()["answers"]
    assert answer["question"] == ["Which one of the following is a tributary of the Brahmaputra?"]
    assert answer["options"] == {"A": "Gandak", "B": "Kosi", "C": "Subansiri", "D": "Yamuna"}
    assert answer["correctAnswer"] == "C"
    assert answer["explanation"]


def test_ask_several_questions_returns_list(client_for):
    client = client_for([f"{WELL_FORMED}\n---\n{WELL_FORMED}"])

    response = client.post(
        "/ask", json={"category": "Economy", "sessionId": "u2", "count": 2, "forceGenerate": True}
    )

    assert response.status_code == 200
    assert len(response.json()["answers"]) == 2


def test_ask_unknown_category_is_400(client_for):
    client = client_for()

    response = client.post("/ask", json={"category": "Astrology", "sessionId": "u1"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert "Astrology" in body["details"]


def test_ask_pending_book_is_400(client_for):
    client = client_for()

    response = client.post("/ask", json={"category": "Atlas", "sessionId": "u1"})

    assert response.status_code == 400
    assert "not available" in response.json()["details"]


def test_ask_exhausted_generation_is_503(client_for):
    client = client_for([MALFORMED] * 3)

    response = client.post("/ask", json={"category": "Polity", "sessionId": "u1"})

    assert response.status_code == 503
    assert response.json()["error"] == "AI service error"


@pytest.mark.parametrize(
    "body",
    [
        {"sessionId": "u1"},
        {"category": "Polity"},
        {"category": "Polity", "sessionId": "u1", "count": 11},
        {"category": "  ", "sessionId": "u1"},
    ],
)
def test_ask_malformed_body_is_422(client_for, body):
    client = client_for()

    response = client.post("/ask", json=body)

    assert response.status_code == 422
    payload = response.json()
    assert payload["error"] == "Invalid request"
    assert payload["details"]


def test_leaderboard_round_trip(client_for):
    client = client_for()

    for username, score in [("asha", 4), ("ravi", 9), ("meena", 4)]:
        response = client.post("/leaderboard", json={"username": username, "score": score})
        assert response.status_code == 200
        assert response.json()["username"] == username

    entries = client.get("/leaderboard").json()["entries"]

    assert [entry["username"] for entry in entries] == ["ravi", "asha", "meena"]


def test_leaderboard_rejects_negative_score(client_for):
    client = client_for()

    response = client.post("/leaderboard", json={"username": "asha", "score": -1})

    assert response.status_code == 422


def test_leaderboard_store_outage_is_503(client_for):
    client = client_for(leaderboard=BrokenLeaderboard())

    assert client.get("/leaderboard").status_code == 503
    response = client.post("/leaderboard", json={"username": "asha", "score": 1})
    assert response.status_code == 503
    assert response.json()["error"] == "Leaderboard unavailable"


def test_metrics_endpoint_exposes_counters(client_for):
    client = client_for()

    snapshot = client.get("/metrics").json()

    assert {"generation_attempts", "cache_hits", "retries", "structures_used"} <= set(snapshot)


def test_run_serves_app_with_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
    monkeypatch.setattr(main, "settings", Settings(host="127.0.0.1", port=9100, log_level="DEBUG"))

    main.run()

    assert calls == [((app,), {"host": "127.0.0.1", "port": 9100, "log_level": "debug"})]


def test_address_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("MCQ_HOST", "127.0.0.1")
    monkeypatch.setenv("PORT", "9200")

    settings = Settings.from_env()

    assert (settings.host, settings.port) == ("127.0.0.1", 9200)
