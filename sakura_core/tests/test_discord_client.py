import asyncio

import httpx
import pytest

from sakura_core.commands.definitions import COMMANDS
from sakura_core.discord.client import MAX_CONTENT_LENGTH, DiscordClient, clamp_content
from sakura_core.domain.exceptions import ApiError, NetworkError, ValidationError


class SettingsStub:
    discord_api_base = "https://discord.example/api/v10/"
    discord_application_id = "app1"
    discord_bot_token = "bot-token"
    http_timeout = 1.0


class Resp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


def install_client(monkeypatch, resp=None, error=None):
    calls = []

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, **kwargs):
            calls.append((method, url, kwargs))
            if error is not None:
                raise error
            return resp or Resp(status_code=200)

    monkeypatch.setattr("httpx.AsyncClient", Client)
    return calls


def test_publisher_patches_original_response(monkeypatch):
    calls = install_client(monkeypatch)
    publish = DiscordClient(SettingsStub()).publisher("app1", "tok")
    asyncio.run(publish("> hi\n..."))

    method, url, kwargs = calls[0]
    assert method == "PATCH"
    assert url == "https://discord.example/api/v10/webhooks/app1/tok/messages/@original"
    assert kwargs["json"] == {"content": "> hi\n..."}


def test_long_content_is_clamped(monkeypatch):
    calls = install_client(monkeypatch)
    text = "x" * 10 + "y" * MAX_CONTENT_LENGTH
    asyncio.run(DiscordClient(SettingsStub()).edit_original_response("app1", "tok", text))

    sent = calls[0][2]["json"]["content"]
    assert len(sent) == MAX_CONTENT_LENGTH
    assert sent.endswith("y" * 100)
    assert clamp_content("short") == "short"


def test_failed_patch_is_not_retried(monkeypatch):
    calls = install_client(monkeypatch, resp=Resp(status_code=404, text="Unknown Webhook"))
    with pytest.raises(ApiError) as exc_info:
        asyncio.run(DiscordClient(SettingsStub()).edit_original_response("app1", "tok", "x"))
    assert exc_info.value.http_status == 404
    assert len(calls) == 1


def test_network_error(monkeypatch):
    install_client(monkeypatch, error=httpx.ConnectTimeout("timed out"))
    with pytest.raises(NetworkError):
        asyncio.run(DiscordClient(SettingsStub()).edit_original_response("app1", "tok", "x"))


def test_register_commands(monkeypatch):
    calls = install_client(monkeypatch, resp=Resp(payload=[{"id": "1", "name": "talk"}]))
    result = asyncio.run(DiscordClient(SettingsStub()).register_commands(COMMANDS.values()))

    method, url, kwargs = calls[0]
    assert method == "PUT"
    assert url == "https://discord.example/api/v10/applications/app1/commands"
    assert kwargs["headers"] == {"Authorization": "Bot bot-token"}
    assert kwargs["json"][0]["name"] == "talk"
    assert result == [{"id": "1", "name": "talk"}]


def test_register_commands_requires_bot_token(monkeypatch):
    class NoToken(SettingsStub):
        discord_bot_token = None

    calls = install_client(monkeypatch)
    with pytest.raises(ValidationError):
        asyncio.run(DiscordClient(NoToken()).register_commands(COMMANDS.values()))
    assert calls == []
