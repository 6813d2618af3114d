from fastapi.testclient import TestClient

from backend.main import app

client = TestClient(app)


def test_healthz_and_genai_status():
    assert client.get("/healthz").json() == {"status": "ok"}
    status = client.get("/admin/genai-status").json()
    assert status == {"api_key_present": False, "use_remote": False}


def test_state_shape():
    r = client.get("/state")
    assert r.status_code == 200
    assert set(r.json()) == {
        "messages",
        "active_persona",
        "subject_selected",
        "busy",
        "last_error",
        "pending_persona",
    }


def test_chat_requires_message_field():
    r = client.post("/chat", json={})
    assert r.status_code == 422


def test_persona_requires_known_name():
    assert client.post("/persona", json={}).status_code == 422
    r = client.post("/persona", json={"persona": "General Tutor"})
    assert r.json()["state"]["subject_selected"] is True
