"""Generative backend boundary: personas, interviews and report text.

The wizard and the pipeline only rely on the :class:`ResonanceBackend`
protocol. :class:`PersonaGenerationService` is the production implementation
that routes every call through the Microsoft Agent Framework chat client.
"""

from __future__ import annotations

import json
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    cast,
)
from uuid import uuid4

from .config import AppSettings, ContentMode
from .errors import PersonaServiceError
from .maf_client import ChatMessage, MAFChatClient
from .models import WILDCARD_PREFIX, InterviewResult, Persona, Report
from .prompts import (
    RETRY_NOTE,
    SYSTEM_PROMPT,
    build_interview_prompt,
    build_slate_prompt,
    build_synthesis_prompt,
    build_wildcard_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_SLATE_SIZE = 4


class ResonanceBackend(Protocol):
    """Call contract of the generative collaborator."""

    async def generate_personas(
        self, content: str, credential: str, mode: ContentMode
    ) -> List[Persona]: ...

    async def generate_wildcard(
        self, content: str, credential: str
    ) -> Persona: ...

    async def simulate_interview(
        self,
        content: str,
        persona: Persona,
        credential: str,
        mode: ContentMode,
    ) -> InterviewResult: ...

    async def synthesize_report(
        self,
        results: Sequence[InterviewResult],
        credential: str,
        mode: ContentMode,
    ) -> Report: ...


class ChatCompleter(Protocol):
    async def complete(
        self, messages: Iterable[ChatMessage]
    ) -> ChatMessage: ...


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Pull the outermost JSON object out of a model reply."""

    text = raw.strip()
    if not text:
        return None
    candidate = text
    if not candidate.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        candidate = text[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)


class PersonaGenerationService:
    """Produces personas, interview results and reports through MAF."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        client_factory: Optional[Callable[[str], ChatCompleter]] = None,
        slate_size: int = DEFAULT_SLATE_SIZE,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or (
            lambda key: MAFChatClient(settings.model, key)
        )
        self._slate_size = slate_size
        self._client_key: Optional[str] = None
        self._client: Optional[ChatCompleter] = None

    async def generate_personas(
        self, content: str, credential: str, mode: ContentMode
    ) -> List[Persona]:
        prompt = build_slate_prompt(content, mode, count=self._slate_size)
        payload = await self._request_json(credential, prompt, "persona slate")
        raw_personas = payload.get("personas")
        if not isinstance(raw_personas, list):
            raise PersonaServiceError("Persona slate reply has no 'personas' list.")
        personas: List[Persona] = []
        for index, entry in enumerate(cast(List[Any], raw_personas), start=1):
            if not isinstance(entry, dict):
                continue
            # Slate ids are minted locally and must be unique.
            persona_data = dict(cast(Dict[str, Any], entry))
            persona_data["id"] = f"persona-{index}-{uuid4().hex[:8]}"
            personas.append(
                Persona.from_dict(persona_data, fallback_id=persona_data["id"])
            )
        if not personas:
            raise PersonaServiceError("Persona slate reply contained no personas.")
        return personas

    async def generate_wildcard(self, content: str, credential: str) -> Persona:
        payload = await self._request_json(
            credential, build_wildcard_prompt(content), "wildcard persona"
        )
        persona_raw = payload.get("persona", payload)
        if not isinstance(persona_raw, dict):
            raise PersonaServiceError("Wildcard reply is not a persona object.")
        # The model never chooses a wildcard id.
        persona_data = dict(cast(Dict[str, Any], persona_raw))
        persona_data["id"] = f"{WILDCARD_PREFIX}-{uuid4().hex[:12]}"
        return Persona.from_dict(persona_data, fallback_id=persona_data["id"])

    async def simulate_interview(
        self,
        content: str,
        persona: Persona,
        credential: str,
        mode: ContentMode,
    ) -> InterviewResult:
        prompt = build_interview_prompt(
            content,
            name=persona.name,
            role=persona.role,
            description=persona.description,
            pain_points="; ".join(persona.pain_points),
            mode=mode,
        )
        payload = await self._request_json(
            credential, prompt, f"interview with {persona.name}"
        )
        return InterviewResult.from_dict(payload, persona_name=persona.name)

    async def synthesize_report(
        self,
        results: Sequence[InterviewResult],
        credential: str,
        mode: ContentMode,
    ) -> Report:
        results_json = json.dumps(
            [result.to_dict() for result in results],
            ensure_ascii=False,
            indent=2,
        )
        prompt = build_synthesis_prompt(results_json, mode, count=len(results))
        payload = await self._request_json(credential, prompt, "report synthesis")
        return Report.from_dict(payload)

    def _client_for(self, credential: str) -> ChatCompleter:
        # Only the client for the most recent credential is kept.
        if self._client is None or self._client_key != credential:
            self._client = self._client_factory(credential)
            self._client_key = credential
        return self._client

    async def _request_json(
        self, credential: str, prompt: str, purpose: str
    ) -> Dict[str, Any]:
        client = self._client_for(credential)
        retry_note = ""
        for attempt in range(1, self._settings.parse_attempts + 1):
            content = f"{prompt}\n\n{retry_note}" if retry_note else prompt
            response = await client.complete(
                [
                    ChatMessage(role="system", content=SYSTEM_PROMPT),
                    ChatMessage(role="user", content=content),
                ]
            )
            payload = extract_json_object(response.content)
            if payload is not None:
                return payload
            logger.debug(
                "Unparseable %s reply (attempt %s): %s",
                purpose,
                attempt,
                response.content[:200],
            )
            retry_note = RETRY_NOTE
        raise PersonaServiceError(f"Model returned no usable JSON for {purpose}.")
