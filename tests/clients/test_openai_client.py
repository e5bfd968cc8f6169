import asyncio
from types import SimpleNamespace

import pytest

from app.clients.openai_client import OpenAIJSONClient, parse_json_payload
from app.services.scoring.errors import ScoringProviderError, ScoringValidationError


class StubCompletions:
    def __init__(self, content) -> None:
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(content) -> tuple[OpenAIJSONClient, StubCompletions]:
    completions = StubCompletions(content)
    stub = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIJSONClient("", model="gpt-test", temperature=0.1, client=stub), completions


def test_complete_json_requests_json_mode():
    client, completions = _client('{"companies": []}')

    payload = asyncio.run(client.complete_json(system_prompt="sys", user_prompt="user"))

    assert payload == {"companies": []}
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["model"] == "gpt-test"
    assert [m["role"] for m in completions.kwargs["messages"]] == ["system", "user"]


def test_non_json_output_is_a_validation_error():
    client, _ = _client("I cannot help with that")

    with pytest.raises(ScoringValidationError):
        asyncio.run(client.complete_json(system_prompt="sys", user_prompt="user"))


def test_empty_output_is_a_provider_error():
    client, _ = _client("")

    with pytest.raises(ScoringProviderError):
        asyncio.run(client.complete_json(system_prompt="sys", user_prompt="user"))


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('[{"name": "Acme"}]', [{"name": "Acme"}]),
        ('Here you go: {"a": 2} thanks', {"a": 2}),
    ],
)
def test_parse_json_payload(raw, expected):
    assert parse_json_payload(raw) == expected
