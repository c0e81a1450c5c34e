"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from venice_ai_bridge.api import create_app
from venice_ai_bridge.errors import InvalidRequest, LoginFailed, NavigationFailed
from venice_ai_bridge.models import PromptResult, Reference, resolve_model


class FakeService:
    """Records calls; replies with a canned result or raises ``error``."""

    def __init__(self, config):
        self.config = config
        self.calls = []
        self.launched = False
        self.shut_down = False
        self.launch_error = None
        self.error = None
        self.result = PromptResult(
            response="Hello **there**",
            references=[Reference(number="1", text="Doc", url="http://x")],
            references_markdown="1. [Doc](http://x)",
        )

    async def launch(self):
        if self.launch_error is not None:
            raise self.launch_error
        self.launched = True

    async def shutdown_and_close_all(self):
        self.shut_down = True

    async def chat(self, prompt, context_id=None, model=None):
        self.calls.append((prompt, context_id, model))
        resolve_model(model)
        if self.error is not None:
            raise self.error
        return context_id or "new-chat", self.result

    def describe(self):
        return {"status": "ok", "browser_ready": self.launched}


@pytest.fixture
def service(config):
    return FakeService(config)


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as client:
        yield client


class TestChatEndpoint:

    def test_reply_without_references(self, client, service):
        response = client.post("/chat", json={"prompt": "Hello"})

        assert response.status_code == 200
        assert response.json() == {"chatId": "new-chat", "response": "Hello **there**"}
        assert service.calls == [("Hello", None, "default")]

    def test_reply_with_references(self, client):
        response = client.post("/chat", json={"prompt": "Hello", "contextId": "abc", "withRefs": True})

        assert response.status_code == 200
        assert response.json() == {
            "chatId": "abc",
            "response": "Hello **there**",
            "references": "1. [Doc](http://x)",
        }

    def test_model_passed_through(self, client, service):
        client.post("/chat", json={"prompt": "Hello", "model": "llama3"})
        assert service.calls == [("Hello", None, "llama3")]

    def test_missing_prompt(self, client, service):
        response = client.post("/chat", json={"contextId": "abc"})

        assert response.status_code == 400
        assert response.json() == {"error": "No prompt provided"}
        assert service.calls == []

    def test_empty_prompt(self, client):
        response = client.post("/chat", json={"prompt": ""})
        assert response.status_code == 400

    def test_invalid_model(self, client):
        response = client.post("/chat", json={"prompt": "Hello", "model": "gpt-4"})

        assert response.status_code == 400
        assert "gpt-4" in response.json()["error"]

    def test_invalid_request_from_service(self, client, service):
        service.error = InvalidRequest("Invalid model: x")

        response = client.post("/chat", json={"prompt": "Hello"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid model: x"}

    def test_navigation_failure(self, client, service):
        service.error = NavigationFailed("net::ERR_NAME_NOT_RESOLVED")

        response = client.post("/chat", json={"prompt": "Hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to find or create chat session"
        assert body["details"] == "net::ERR_NAME_NOT_RESOLVED"
        assert "NavigationFailed" in body["stack"]

    def test_other_failure(self, client, service):
        service.error = LoginFailed("Login failed: timeout")

        response = client.post("/chat", json={"prompt": "Hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Login failed: timeout"
        assert "details" not in body
        assert "stack" in body

    def test_stack_hidden_when_disabled(self, config, service):
        config.expose_stack = False
        service.error = RuntimeError("boom")

        with TestClient(create_app(service)) as client:
            response = client.post("/chat", json={"prompt": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}


class TestMalformedBodies:

    def test_non_string_prompt(self, client, service):
        response = client.post("/chat", json={"prompt": 42})

        assert response.status_code == 400
        assert "prompt" in response.json()["error"]
        assert service.calls == []

    def test_null_model(self, client, service):
        response = client.post("/chat", json={"prompt": "Hello", "model": None})

        assert response.status_code == 400
        assert set(response.json()) == {"error"}
        assert "model" in response.json()["error"]

    def test_body_not_json_object(self, client):
        response = client.post("/chat", json=["Hello"])

        assert response.status_code == 400
        assert "error" in response.json()


class TestOtherEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "browser_ready": True}

    def test_models(self, client):
        body = client.get("/models").json()

        assert body["models"] == ["default", "dogge", "llama3"]
        assert body["descriptions"]["llama3"] == "llama-3.1-405b"


class TestLifespan:

    def test_launch_and_shutdown(self, service):
        with TestClient(create_app(service)):
            assert service.launched
            assert not service.shut_down
        assert service.shut_down

    def test_launch_failure_prevents_startup(self, service):
        service.launch_error = LoginFailed("LOGIN_EMAIL and LOGIN_PASSWORD must be set to sign in")

        with pytest.raises(LoginFailed):
            with TestClient(create_app(service)):
                pass
