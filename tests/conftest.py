"""Shared fixtures: an in-memory generative backend and a wired controller."""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple

import pytest

from content_resonator.config import AppSettings, ContentMode, ModelSettings
from content_resonator.credential_store import CredentialStore
from content_resonator.models import (
    GoNoGo,
    InterviewResult,
    Persona,
    Report,
    ToneAnalysis,
)
from content_resonator.pipeline import InterviewPipeline
from content_resonator.wizard import WizardController

InterviewHook = Callable[[Persona], Awaitable[None]]


def make_persona(persona_id: str, name: Optional[str] = None) -> Persona:
    label = name or persona_id.upper()
    return Persona(
        id=persona_id,
        name=label,
        role=f"{label} role",
        description=f"{label} reads everything twice.",
        pain_points=("jargon", "vague dates"),
    )


def result_for(persona: Persona) -> InterviewResult:
    return InterviewResult(
        persona_name=persona.name,
        strengths=(f"{persona.name} liked the headline",),
        confusion_points=(f"{persona.name} missed the price",),
        suggestions=(f"{persona.name} wants a FAQ",),
    )


class FakeBackend:
    """Scriptable stand-in for the generative collaborator."""

    def __init__(
        self,
        personas: Sequence[Persona] = (),
        *,
        failing: Set[str] | None = None,
        slate_error: Exception | None = None,
        wildcard_error: Exception | None = None,
        synthesis_error: Exception | None = None,
        on_interview: InterviewHook | None = None,
    ) -> None:
        self.personas = list(personas) or [
            make_persona("p1"),
            make_persona("p2"),
            make_persona("p3"),
        ]
        self.failing = failing or set()
        self.slate_error = slate_error
        self.wildcard_error = wildcard_error
        self.synthesis_error = synthesis_error
        self.on_interview = on_interview
        self.slate_calls: List[Tuple[str, str, ContentMode]] = []
        self.wildcard_calls = 0
        self.interview_calls: List[str] = []
        self.synthesis_calls: List[List[InterviewResult]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_personas(
        self, content: str, credential: str, mode: ContentMode
    ) -> List[Persona]:
        self.slate_calls.append((content, credential, mode))
        await asyncio.sleep(0)
        if self.slate_error is not None:
            raise self.slate_error
        return list(self.personas)

    async def generate_wildcard(self, content: str, credential: str) -> Persona:
        self.wildcard_calls += 1
        await asyncio.sleep(0)
        if self.wildcard_error is not None:
            raise self.wildcard_error
        return make_persona(
            f"wildcard-{self.wildcard_calls}", f"Wildcard {self.wildcard_calls}"
        )

    async def simulate_interview(
        self,
        content: str,
        persona: Persona,
        credential: str,
        mode: ContentMode,
    ) -> InterviewResult:
        self.interview_calls.append(persona.id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_interview is not None:
                await self.on_interview(persona)
            await asyncio.sleep(0)
            if persona.id in self.failing:
                raise RuntimeError(f"{persona.name} walked out")
            return result_for(persona)
        finally:
            self.in_flight -= 1

    async def synthesize_report(
        self,
        results: Sequence[InterviewResult],
        credential: str,
        mode: ContentMode,
    ) -> Report:
        self.synthesis_calls.append(list(results))
        await asyncio.sleep(0)
        if self.synthesis_error is not None:
            raise self.synthesis_error
        return Report(
            overall_score=72,
            tone_analysis=ToneAnalysis(
                defensiveness=10, corporatespeak=35, empathy=60, clarity=80
            ),
            go_no_go=GoNoGo(
                decision="GO", confidence_score=70, reasoning="Mostly clear."
            ),
            executive_summary=f"{len(results)} reviewers weighed in.",
        )


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        model=ModelSettings(
            provider="openai",
            model="test-model",
            endpoint=None,
            api_version=None,
        ),
        state_dir=tmp_path / "state",
        credential_slot="test-slot",
        redis_url=None,
        call_timeout=5.0,
        parse_attempts=2,
        step_delay=0.0,
        report_delay=0.0,
    )


@pytest.fixture
def credential_store(settings: AppSettings) -> CredentialStore:
    store = CredentialStore(settings.credential_path, slot=settings.credential_slot)
    store.set_credential("test-key")
    return store


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


def build_controller(
    credential_store: CredentialStore,
    backend: FakeBackend,
    **kwargs: object,
) -> WizardController:
    pipeline = InterviewPipeline(backend, call_timeout=5.0)
    return WizardController(
        credential_store,
        backend,
        pipeline=pipeline,
        rng=random.Random(7),
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.fixture
def controller(
    credential_store: CredentialStore, backend: FakeBackend
) -> WizardController:
    return build_controller(credential_store, backend)
