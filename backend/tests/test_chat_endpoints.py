from fastapi.testclient import TestClient

from backend.main import app

client = TestClient(app)


def _select(name="Math Expert"):
    return client.post("/persona", json={"persona": name})


def test_initial_state_has_no_subject():
    r = client.get("/state")
    assert r.status_code == 200
    body = r.json()
    assert body["subject_selected"] is False
    assert body["active_persona"] is None
    assert body["messages"] == []
    assert body["busy"] is False


def test_chat_rejected_before_subject_selected():
    r = client.post("/chat", json={"message": "hello"})
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert client.get("/state").json()["messages"] == []


def test_chat_with_fallback_reply():
    assert _select().json()["status"] == "applied"
    r = client.post("/chat", json={"message": "Hello there"})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "ok"
    assert data["reply"].startswith("Hello! I'm your Math Expert assistant.")
    msgs = data["state"]["messages"]
    assert [m["sender"] for m in msgs] == ["user", "assistant"]
    assert msgs[1]["pending"] is False


def test_chat_monkeypatch(monkeypatch, fresh_session):
    from tutor.gemini_api import Reply

    async def fake_resolve(text, persona, use_remote, *, timeout_ms=None):
        return Reply(f"ECHO: {text}")

    monkeypatch.setattr(fresh_session.resolver, "resolve", fake_resolve)
    _select("Coding Coach")
    r = client.post("/chat", json={"message": "Hej"})
    assert r.json()["reply"] == "ECHO: Hej"


def test_persona_switch_confirmation_flow():
    _select("Math Expert")
    client.post("/chat", json={"message": "hi"})

    r = _select("History Mentor")
    assert r.json()["status"] == "confirmation_required"
    assert r.json()["state"]["pending_persona"] == "History Mentor"

    r = client.post("/persona/cancel")
    assert r.json()["status"] == "cancelled"
    assert r.json()["state"]["active_persona"] == "Math Expert"
    assert len(r.json()["state"]["messages"]) == 2

    _select("History Mentor")
    r = client.post("/persona/confirm")
    body = r.json()
    assert body["status"] == "applied"
    assert body["state"]["active_persona"] == "History Mentor"
    assert body["state"]["messages"] == []

    assert client.post("/persona/confirm").json()["status"] == "nothing_pending"


def test_unknown_persona_is_422():
    r = _select("Astrology Guru")
    assert r.status_code == 422


def test_clear_chat_endpoint():
    _select()
    client.post("/chat", json={"message": "hello"})
    r = client.post("/chat/clear")
    assert r.json()["status"] == "cleared"
    assert r.json()["state"]["messages"] == []
    assert r.json()["state"]["active_persona"] == "Math Expert"


def test_personas_listing():
    r = client.get("/personas")
    assert r.status_code == 200
    names = [p["name"] for p in r.json()]
    assert names == ["General Tutor", "Math Expert", "History Mentor", "Coding Coach"]


def test_api_key_endpoint_and_status():
    assert client.get("/admin/genai-status").json() == {
        "api_key_present": False,
        "use_remote": False,
    }
    r = client.post("/admin/api-key", json={"api_key": "AIza-0123456789abc"})
    assert r.json() == {"use_remote": True}
    status = client.get("/admin/genai-status").json()
    assert status["use_remote"] is True
    assert "AIza" not in str(status)
