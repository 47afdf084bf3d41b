import io
import time
import zipfile

import pytest
from fastapi.testclient import TestClient

from genspecs import settings as settings_module
from genspecs.api import generate as generate_api
from genspecs.core.errors import ProviderError
from genspecs.llm.adapter import BaseCompletionClient
from genspecs.main import app

PROJECT = {
    "name": "Plant Tracker",
    "description": "Tracks watering schedules for house plants",
    "userStories": ["As a user I can add a plant", "As a user I get watering reminders"],
}


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.setenv("LLM_MODE", "mock")
    monkeypatch.setenv("ENCRYPTION_ITERATIONS", "1000")
    monkeypatch.setenv("RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


def _wait_for_documents(client: TestClient, status: str = "accepted") -> dict:
    for _ in range(50):
        state = client.get("/api/generation").json()
        if all(doc["status"] == status for doc in state["documents"].values()):
            return state
        time.sleep(0.1)
    raise AssertionError("Documents were not generated in time")


def test_initial_state():
    with TestClient(app) as client:
        response = client.get("/api/generation")
        assert response.status_code == 200
        body = response.json()
        assert body["currentStep"] == "project-details"
        assert body["canDownload"] is False
        assert body["stepIcons"] == {"readme": "idle", "bom": "idle", "roadmap": "idle", "implementation": "idle"}
        assert client.get("/api/credentials").json() == {"hasKey": False, "isValid": False}


def test_full_wizard_run_and_download():
    with TestClient(app) as client:
        assert client.post("/api/credentials", json={"apiKey": "sk-or-test"}).json()["isValid"] is True
        response = client.post("/api/generation/project/submit", json=PROJECT)
        assert response.status_code == 200
        assert response.json()["projectDetails"]["userStories"] == PROJECT["userStories"]

        state = _wait_for_documents(client)
        assert state["currentStep"] == "implementation"
        assert state["canDownload"] is True
        assert all(step["isCompleted"] for step in state["steps"])

        download = client.get("/api/generation/download")
        assert download.status_code == 200
        assert download.headers["content-type"] == "application/zip"
        assert 'filename="Plant Tracker_docs.zip"' in download.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(download.content)) as zf:
            assert zf.namelist() == ["readme.md", "bom.md", "roadmap.md", "implementation.md"]


def test_generation_without_key_reports_error():
    with TestClient(app) as client:
        client.post("/api/generation/project/submit", json=PROJECT)
        for _ in range(50):
            readme = client.get("/api/generation").json()["documents"]["readme"]
            if readme["status"] == "error":
                break
            time.sleep(0.1)
        assert readme["error"] == "API key is required"
        assert client.get("/api/generation").json()["stepIcons"]["readme"] == "error"


def test_download_conflict_before_documents_are_ready():
    with TestClient(app) as client:
        assert client.get("/api/generation/download").status_code == 409


def test_document_edit_and_navigation():
    with TestClient(app) as client:
        client.post("/api/credentials", json={"apiKey": "sk-or-test"})
        client.post("/api/generation/project/submit", json=PROJECT)
        _wait_for_documents(client)

        response = client.patch("/api/generation/documents/bom", json={"content": "# Edited", "status": "draft"})
        assert response.status_code == 200
        body = response.json()
        assert body["documents"]["bom"]["content"] == "# Edited"
        assert body["steps"][2]["isCompleted"] is False

        body = client.post("/api/generation/documents/bom/accept").json()
        assert body["documents"]["bom"]["status"] == "accepted"
        assert body["steps"][2]["isCompleted"] is True

        body = client.post("/api/generation/steps/readme").json()
        assert body["currentStep"] == "readme"

        assert client.post("/api/generation/steps/deploy").status_code == 404
        assert client.patch("/api/generation/documents/changelog", json={"content": "x"}).status_code == 404


def test_reset_returns_to_initial_state():
    with TestClient(app) as client:
        client.put("/api/generation/project", json={"name": "Half done"})
        assert client.get("/api/generation").json()["projectDetails"]["name"] == "Half done"
        body = client.post("/api/generation/reset").json()
        assert body["projectDetails"]["name"] == ""
        assert body["currentStep"] == "project-details"


def test_state_and_key_survive_restart():
    with TestClient(app) as client:
        client.post("/api/credentials", json={"apiKey": "sk-or-test"})
        client.put("/api/generation/project", json={"name": "Persisted", "description": "Still here"})

    with TestClient(app) as client:
        body = client.get("/api/generation").json()
        assert body["projectDetails"]["name"] == "Persisted"
        assert body["projectDetails"]["description"] == "Still here"
        assert client.get("/api/credentials").json() == {"hasKey": True, "isValid": True}


def test_credentials_lifecycle():
    with TestClient(app) as client:
        rejected = client.post("/api/credentials", json={"apiKey": "   "})
        assert rejected.status_code == 400
        assert rejected.json() == {"isValid": False, "error": "API key is required"}

        assert client.post("/api/credentials", json={"apiKey": "sk-or-test"}).status_code == 200
        assert client.post("/api/credentials/validate").json()["isValid"] is True

        assert client.delete("/api/credentials").status_code == 204
        assert client.get("/api/credentials").json() == {"hasKey": False, "isValid": False}
        assert client.post("/api/credentials/validate").json() == {"isValid": False, "error": "API key is required"}


def test_stateless_generate_endpoint():
    with TestClient(app) as client:
        response = client.post("/api/generate/readme", json={"projectDetails": PROJECT, "apiKey": "sk-or-test"})
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "readme"
        assert body["status"] == "accepted"
        assert body["content"].startswith("# Mock output")
        assert "lastUpdated" in body


def test_stateless_generate_rejects_unmet_preconditions():
    with TestClient(app) as client:
        missing_key = client.post("/api/generate/readme", json={"projectDetails": PROJECT})
        assert missing_key.status_code == 400
        assert missing_key.json() == {"error": "API key is required"}

        no_readme = client.post("/api/generate/bom", json={"projectDetails": PROJECT, "apiKey": "sk"})
        assert no_readme.status_code == 400
        assert no_readme.json()["error"] == "Cannot generate BOM: README generation has not completed successfully"

        no_stories = client.post(
            "/api/generate/roadmap",
            json={
                "projectDetails": {**PROJECT, "userStories": []},
                "apiKey": "sk",
                "bomState": {"type": "bom", "content": "# BOM", "status": "accepted"},
            },
        )
        assert no_stories.status_code == 400
        assert no_stories.json()["error"] == "At least one user story is required"

        assert client.post("/api/generate/changelog", json={"projectDetails": PROJECT}).status_code == 404


def test_websocket_sends_snapshot_on_connect():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/generation") as ws:
            message = ws.receive_json()
            assert message["type"] == "state"
            assert message["data"]["currentStep"] == "project-details"

            client.put("/api/generation/project", json={"name": "Live"})
            update = ws.receive_json()
            assert update["type"] == "state"
            assert update["data"]["projectDetails"]["name"] == "Live"


def test_admin_key_is_enforced(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", "admin-secret")
    settings_module.get_settings.cache_clear()
    with TestClient(app) as client:
        assert client.get("/api/generation").status_code == 401
        assert client.get("/api/generation", headers={"X-API-Key": "admin-secret"}).status_code == 200


def test_download_with_non_ascii_project_name():
    with TestClient(app) as client:
        client.post("/api/credentials", json={"apiKey": "sk-or-test"})
        client.post("/api/generation/project/submit", json={**PROJECT, "name": "植物 — Tracker"})
        _wait_for_documents(client)

        download = client.get("/api/generation/download")
        assert download.status_code == 200
        disposition = download.headers["content-disposition"]
        assert "filename*=UTF-8''%E6%A4%8D%E7%89%A9%20%E2%80%94%20Tracker_docs.zip" in disposition
        assert 'filename="__ _ Tracker_docs.zip"' in disposition


def test_stateless_generate_failure_returns_existing_content(monkeypatch):
    class FailingClient(BaseCompletionClient):
        async def complete(self, system_prompt, user_prompt):
            raise ProviderError("Invalid API key. Please check your OpenRouter API key.", status_code=401)

    monkeypatch.setattr(generate_api, "create_completion_client", lambda api_key: FailingClient())
    with TestClient(app) as client:
        response = client.post(
            "/api/generate/readme",
            json={"projectDetails": PROJECT, "apiKey": "sk-or-test", "existingContent": "# Earlier draft"},
        )
        assert response.status_code == 500
        assert response.json() == {
            "error": "Invalid API key. Please check your OpenRouter API key.",
            "content": "# Earlier draft",
        }


def test_websocket_ignores_non_object_frames():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/generation") as ws:
            ws.receive_json()
            ws.send_text("[]")
            ws.send_text("1")
            ws.send_text("not json")
            ws.send_text('{"type": "command", "command": "ping"}')
            assert ws.receive_json() == {"type": "info", "msg": "pong"}
