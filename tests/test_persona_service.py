from __future__ import annotations

import json
from typing import Iterable, List

import pytest

from conftest import make_persona, result_for
from content_resonator.config import ContentMode
from content_resonator.errors import PersonaServiceError
from content_resonator.maf_client import ChatMessage, MAFChatClient
from content_resonator.persona_service import (
    PersonaGenerationService,
    extract_json_object,
)
from content_resonator.prompts import RETRY_NOTE


class ScriptedClient:
    """Replays canned replies and records every prompt it was sent."""

    def __init__(self, replies: List[str]) -> None:
        self._replies = list(replies)
        self.prompts: List[List[ChatMessage]] = []

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        self.prompts.append(list(messages))
        return ChatMessage(role="assistant", content=self._replies.pop(0))


def _service(settings, *clients: ScriptedClient) -> PersonaGenerationService:
    pending = list(clients)
    keys: List[str] = []

    def factory(key: str) -> ScriptedClient:
        keys.append(key)
        return pending.pop(0)

    service = PersonaGenerationService(settings, client_factory=factory)
    service.factory_keys = keys  # type: ignore[attr-defined]
    return service


SLATE_REPLY = json.dumps(
    {
        "personas": [
            {"id": "cfo", "name": "Priya", "role": "CFO", "painPoints": ["cost"]},
            {"name": "Sam", "role": "Developer", "description": "Hates fluff"},
            "not a persona",
        ]
    }
)


@pytest.mark.asyncio
async def test_slate_is_parsed_and_missing_ids_are_minted(settings):
    client = ScriptedClient([SLATE_REPLY])
    service = _service(settings, client)

    personas = await service.generate_personas("Launch", "sk", ContentMode.STANDARD)

    assert [persona.name for persona in personas] == ["Priya", "Sam"]
    assert personas[0].id.startswith("persona-1-")
    assert personas[1].id.startswith("persona-2-")
    assert len({persona.id for persona in personas}) == 2
    system, user = client.prompts[0]
    assert system.role == "system"
    assert "Launch" in user.content


@pytest.mark.asyncio
async def test_slate_ids_ignore_model_supplied_ids(settings):
    reply = json.dumps(
        {
            "personas": [
                {"id": "1", "name": "Ana"},
                {"id": "1", "name": "Ben"},
                {"id": "wildcard-7", "name": "Cy"},
            ]
        }
    )
    service = _service(settings, ScriptedClient([reply]))

    personas = await service.generate_personas("Launch", "sk", ContentMode.STANDARD)

    ids = [persona.id for persona in personas]
    assert len(set(ids)) == 3
    assert all(persona_id.startswith("persona-") for persona_id in ids)
    assert not any(persona.is_wildcard for persona in personas)


@pytest.mark.asyncio
async def test_crisis_mode_asks_for_hostile_reviewers(settings):
    client = ScriptedClient([SLATE_REPLY])
    service = _service(settings, client)

    await service.generate_personas("We regret...", "sk", ContentMode.CRISIS)

    assert "hostile" in client.prompts[0][1].content


@pytest.mark.asyncio
async def test_unparseable_reply_is_retried_with_a_note(settings):
    client = ScriptedClient(["Sure! Here you go.", f"```json\n{SLATE_REPLY}\n```"])
    service = _service(settings, client)

    personas = await service.generate_personas("Launch", "sk", ContentMode.STANDARD)

    assert len(personas) == 2
    assert len(client.prompts) == 2
    assert RETRY_NOTE not in client.prompts[0][1].content
    assert RETRY_NOTE in client.prompts[1][1].content


@pytest.mark.asyncio
async def test_gives_up_after_configured_attempts(settings):
    client = ScriptedClient(["nope", "still nope", "never asked"])
    service = _service(settings, client)

    with pytest.raises(PersonaServiceError, match="persona slate"):
        await service.generate_personas("Launch", "sk", ContentMode.STANDARD)

    assert len(client.prompts) == settings.parse_attempts


@pytest.mark.asyncio
async def test_slate_without_personas_list_is_an_error(settings):
    service = _service(settings, ScriptedClient(['{"personas": []}']))

    with pytest.raises(PersonaServiceError):
        await service.generate_personas("Launch", "sk", ContentMode.STANDARD)


@pytest.mark.asyncio
async def test_wildcard_always_gets_a_prefixed_id(settings):
    reply = json.dumps({"persona": {"id": "p9", "name": "Grandma Lou"}})
    service = _service(settings, ScriptedClient([reply]))

    persona = await service.generate_wildcard("Launch", "sk")

    assert persona.name == "Grandma Lou"
    assert persona.id.startswith("wildcard-")
    assert persona.is_wildcard


@pytest.mark.asyncio
async def test_interview_reply_is_bound_to_the_persona(settings):
    persona = make_persona("p1", "Dana")
    reply = json.dumps(
        {"strengths": ["short"], "confusionPoints": [], "suggestions": ["add date"]}
    )
    client = ScriptedClient([reply])
    service = _service(settings, client)

    result = await service.simulate_interview(
        "Launch", persona, "sk", ContentMode.STANDARD
    )

    assert result.persona_name == "Dana"
    assert result.strengths == ("short",)
    assert result.suggestions == ("add date",)
    assert "You are Dana" in client.prompts[0][1].content


@pytest.mark.asyncio
async def test_interview_reply_cannot_rename_the_persona(settings):
    persona = make_persona("p1", "Dana")
    reply = json.dumps({"personaName": "Someone Else", "strengths": ["short"]})
    service = _service(settings, ScriptedClient([reply]))

    result = await service.simulate_interview(
        "Launch", persona, "sk", ContentMode.STANDARD
    )

    assert result.persona_name == "Dana"


@pytest.mark.asyncio
async def test_report_prompt_contains_every_result(settings):
    results = [result_for(make_persona("p1")), result_for(make_persona("p3"))]
    reply = json.dumps(
        {
            "overallScore": 64,
            "toneAnalysis": {"clarity": 70},
            "goNoGo": {"decision": "HOLD", "confidenceScore": 50},
            "executiveSummary": "Needs a FAQ.",
        }
    )
    client = ScriptedClient([reply])
    service = _service(settings, client)

    report = await service.synthesize_report(results, "sk", ContentMode.STANDARD)

    assert report.overall_score == 64.0
    assert report.go_no_go is not None and report.go_no_go.decision == "HOLD"
    prompt = client.prompts[0][1].content
    assert "P1 missed the price" in prompt
    assert "P3 wants a FAQ" in prompt


@pytest.mark.asyncio
async def test_only_the_current_credential_keeps_a_client(settings):
    first = ScriptedClient([SLATE_REPLY, SLATE_REPLY])
    second = ScriptedClient([SLATE_REPLY])
    third = ScriptedClient([SLATE_REPLY])
    service = _service(settings, first, second, third)

    await service.generate_personas("a", "key-1", ContentMode.STANDARD)
    await service.generate_personas("b", "key-1", ContentMode.STANDARD)
    await service.generate_personas("c", "key-2", ContentMode.STANDARD)
    await service.generate_personas("d", "key-1", ContentMode.STANDARD)

    assert service.factory_keys == [  # type: ignore[attr-defined]
        "key-1",
        "key-2",
        "key-1",
    ]
    assert len(first.prompts) == 2
    assert len(third.prompts) == 1


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"a": 1}', {"a": 1}),
        ('noise {"a": {"b": 2}} trailing', {"a": {"b": 2}}),
        ("[1, 2]", None),
        ("", None),
        ("{broken", None),
    ],
)
def test_extract_json_object(raw, expected):
    assert extract_json_object(raw) == expected


def test_merge_consecutive_roles():
    merged = MAFChatClient._merge_consecutive_roles(
        [
            ChatMessage(role="system", content="a"),
            ChatMessage(role="user", content="b"),
            ChatMessage(role="user", content="c"),
        ]
    )
    assert [(message.role, message.content) for message in merged] == [
        ("system", "a"),
        ("user", "b\n\nc"),
    ]
