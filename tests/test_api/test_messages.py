"""Tests for the /v1/messages endpoint."""

import pytest
from fastapi.testclient import TestClient

from chatops_orchestrator.api.main import create_app
from chatops_orchestrator.errors import ProviderError
from chatops_orchestrator.handler import ERROR_TEXT
from chatops_orchestrator.models import AppConfig
from chatops_orchestrator.platform import InMemoryPlatform

from conftest import StubProvider, calls, text


@pytest.fixture
def settings():
    settings = AppConfig()
    settings.planner.enabled = False
    settings.orchestrator.post_call_delay = 0
    settings.checklist.settle_delay = 0
    return settings


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def platform():
    return InMemoryPlatform(guild_id="guild-1")


@pytest.fixture
def client(settings, provider, platform):
    return TestClient(create_app(settings=settings, provider=provider, platform=platform))


class TestMessagesEndpoint:
    """Tests for POST /v1/messages."""

    def test_operation_round_trip(self, client, provider, platform, operations):
        operations.make("createRole", result="Role Mods created")
        provider.script = [calls(("createRole", {"name": "Mods"})), text("Created the Mods role.")]

        response = client.post(
            "/v1/messages",
            json={"content": "create a Mods role", "author": {"id": "u1", "name": "alice"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ignored"] is False
        assert data["reply"] == "Created the Mods role."
        assert data["channel_id"] == "general"
        assert data["stop_reason"] == "answered"
        assert data["rounds"] == 2
        assert [e["status"] for e in data["execution_log"]] == ["success"]
        assert data["checklist"].startswith("\U0001f4cb Action Checklist")
        assert platform.channels["general"][-1].content == "Created the Mods role."

    def test_read_only_run_has_no_checklist(self, client, provider):
        provider.script = [text("Hello!")]
        data = client.post("/v1/messages", json={"content": "hi"}).json()
        assert data["reply"] == "Hello!"
        assert data["checklist"] is None
        assert data["execution_log"] == []

    def test_history_seeded(self, client, provider):
        provider.script = [text("Deleted it.")]

        client.post(
            "/v1/messages",
            json={
                "content": "delete the role you just made",
                "channel_id": "ops",
                "channel_name": "ops",
                "history": [
                    {"author": {"id": "user-1", "name": "user"}, "content": "make a role"},
                    {"bot": True, "content": "Role created."},
                ],
            },
        )

        contents = provider.requests[0]["contents"]
        assert len(contents) == 4
        assert contents[-1].text == "Current channel: ops (ID: ops)\nUser message: delete the role you just made"

    def test_repeated_history_replaces_channel(self, client, provider, platform):
        provider.default = text("Deleted it.")
        body = {
            "content": "delete the role you just made",
            "channel_id": "ops",
            "history": [{"author": {"id": "user-1", "name": "user"}, "content": "make a role"}],
        }

        for _ in range(3):
            assert client.post("/v1/messages", json=body).status_code == 200

        channel = platform.channels["ops"]
        assert [m.content for m in channel].count("make a role") == 1
        assert len(channel) == 3
        first, *_, last = provider.requests
        assert len(last["contents"]) == len(first["contents"])

    def test_channel_kept_without_history(self, client, provider, platform):
        provider.default = text("ok")

        client.post("/v1/messages", json={"content": "first", "channel_id": "ops"})
        client.post("/v1/messages", json={"content": "second", "channel_id": "ops"})

        assert [m.content for m in platform.channels["ops"]] == ["first", "ok", "second", "ok"]

    def test_provider_failure_apologizes(self, client, provider):
        provider.script = [ProviderError("invalid key", status_code=401)]
        data = client.post("/v1/messages", json={"content": "hi"}).json()
        assert data["reply"] == ERROR_TEXT
        assert data["error"] == "invalid key"
        assert data["stop_reason"] is None

    def test_other_channel_ignored(self, settings, provider, platform):
        settings.conversation.allowed_channel = "ops"
        client = TestClient(create_app(settings=settings, provider=provider, platform=platform))

        data = client.post("/v1/messages", json={"content": "hi"}).json()

        assert data["ignored"] is True
        assert provider.requests == []


class TestMessagesValidation:
    """Request validation returns 400."""

    def test_blank_content(self, client):
        response = client.post("/v1/messages", json={"content": "   "})
        assert response.status_code == 400
        assert "detail" in response.json()

    def test_missing_content(self, client):
        response = client.post("/v1/messages", json={"channel_id": "general"})
        assert response.status_code == 400

    def test_negative_attachment_size(self, client):
        response = client.post(
            "/v1/messages",
            json={"content": "hi", "attachments": [{"name": "a", "url": "https://x/a", "size": -1}]},
        )
        assert response.status_code == 400
