import json

import pytest

from sakura_core.agents.talk_agent import TalkAgent, run_talk_task
from sakura_core.api.service import process_interaction
from sakura_core.discord.client import DiscordClient
from sakura_core.domain.exceptions import ProtocolError
from sakura_core.domain.interactions import (
    InteractionResponse,
    InteractionResponseType,
    InteractionType,
    parse_interaction,
)


class SettingsStub:
    discord_api_base = "https://discord.example/api/v10"
    http_timeout = 1.0


class NullProvider:
    name = "null"

    async def chat_stream(self, req):
        if False:
            yield None


def _body(**fields):
    payload = {"id": "i1", "application_id": "app1", "token": "tok", "version": 1}
    payload.update(fields)
    return json.dumps(payload).encode()


def _talk_body(options):
    return _body(type=2, data={"id": "cmd1", "name": "talk", "type": 1, "options": options})


class ScheduleRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, func, *args, **kwargs):
        self.calls.append((func, args, kwargs))


def _dispatch(raw_body):
    schedule = ScheduleRecorder()
    response = process_interaction(
        parse_interaction(raw_body),
        schedule=schedule,
        agent=TalkAgent(NullProvider(), model="talk"),
        discord=DiscordClient(SettingsStub()),
    )
    return response, schedule


def test_parse_ping_ignores_unknown_fields():
    interaction = parse_interaction(_body(type=1, guild_locale="ja"))
    assert interaction.type == InteractionType.PING
    assert interaction.data is None
    assert interaction.option("prompt") is None


@pytest.mark.parametrize("raw", [b"not json", _body(type=99), b'{"type": 1}'])
def test_parse_invalid_payload(raw):
    with pytest.raises(ProtocolError):
        parse_interaction(raw)


def test_response_payloads():
    assert InteractionResponse.pong().to_payload() == {"type": 1}
    assert InteractionResponse.deferred_channel_message().to_payload() == {"type": 5}


def test_ping_returns_pong():
    response, schedule = _dispatch(_body(type=1))
    assert response.type == InteractionResponseType.PONG
    assert schedule.calls == []


def test_talk_is_deferred_and_scheduled():
    options = [
        {"name": "prompt", "type": 3, "value": "hello there"},
        {"name": "image_url", "type": 3, "value": "https://img.example/a.png"},
    ]
    response, schedule = _dispatch(_talk_body(options))

    assert response.type == InteractionResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE
    assert len(schedule.calls) == 1
    func, args, kwargs = schedule.calls[0]
    assert func is run_talk_task
    assert args[1] == "hello there"
    assert callable(args[2])
    assert kwargs == {"image_urls": ["https://img.example/a.png"], "interaction_id": "i1"}


def test_talk_without_prompt():
    with pytest.raises(ProtocolError):
        _dispatch(_talk_body([]))
    with pytest.raises(ProtocolError):
        _dispatch(_talk_body([{"name": "prompt", "type": 3, "value": "   "}]))


def test_unknown_command():
    body = _body(type=2, data={"id": "cmd1", "name": "dance", "type": 1})
    with pytest.raises(ProtocolError) as exc_info:
        _dispatch(body)
    assert exc_info.value.code == "UNKNOWN_COMMAND"


def test_unsupported_interaction_type():
    with pytest.raises(ProtocolError) as exc_info:
        _dispatch(_body(type=3))
    assert exc_info.value.http_status == 500
