"""Step state machine and the single owner of the run's session record."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Dict, List, Optional, TypeVar, cast

from .avatars import assign_avatars, with_random_avatar
from .config import AppSettings, ContentMode, ContentSource
from .credential_store import CredentialStore
from .errors import Notice, NoticeKind
from .models import InterviewResult
from .persona_service import PersonaGenerationService, ResonanceBackend
from .pipeline import InterviewPipeline, Observer, PipelineOutcome
from .session import Session, WizardStep

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WizardController:
    """Drives one session through credential, content, personas, analysis, report.

    Every mutation goes through a named method. Guards that protect an
    asynchronous call are checked and their busy flag set with no suspension
    point in between, so two overlapping triggers cannot both get through.
    Navigation is permissive: :meth:`advance` jumps anywhere and each step's
    own entry behavior refuses to act on missing prerequisites.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        backend: ResonanceBackend,
        *,
        pipeline: Optional[InterviewPipeline] = None,
        observer: Optional[Observer] = None,
        call_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._credentials = credentials
        self._backend = backend
        self._pipeline = pipeline or InterviewPipeline(
            backend, call_timeout=call_timeout
        )
        self._observer = observer
        self._call_timeout = call_timeout
        self._rng = rng
        self._session = Session()
        self._run_generation = 0
        self._notices: List[Notice] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def notices(self) -> List[Notice]:
        return list(self._notices)

    @property
    def credential(self) -> str:
        return self._credentials.get_credential()

    # -- navigation -------------------------------------------------------

    def advance(self, target_step: WizardStep) -> None:
        """Jump to ``target_step`` without any legality check."""

        if target_step is not self._session.current_step:
            logger.info(
                "Wizard step %s -> %s",
                self._session.current_step.value,
                target_step.value,
            )
        self._session.current_step = target_step

    def reset(self) -> None:
        """Start a new run on the content step. The credential survives."""

        self._run_generation += 1
        self._session = Session(current_step=WizardStep.CONTENT_INPUT)
        self._notices.clear()
        logger.info("Wizard reset (run %s)", self._run_generation)

    async def enter_step(self, target_step: WizardStep) -> None:
        """Advance and run the entry behavior of the target step."""

        self.advance(target_step)
        if target_step is WizardStep.PERSONA_SELECTION:
            await self.generate_initial_personas()
        elif target_step is WizardStep.ANALYSIS:
            await self.run_analysis()

    # -- credential & content -------------------------------------------

    async def save_credential(self, raw_key: str) -> bool:
        key = raw_key.strip()
        if not key:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION, "Please enter an API key."
            )
            return False
        self._credentials.set_credential(key)
        await self._notify(NoticeKind.SUCCESS, "API key saved.", level="info")
        self.advance(WizardStep.CONTENT_INPUT)
        return True

    def set_content(
        self,
        content: str,
        source: ContentSource = ContentSource.TEXT,
    ) -> bool:
        session = self._session
        if session.is_analyzing:
            logger.warning("Content is frozen while analysis is running.")
            return False
        if content != session.content:
            # A new text gets a new slate.
            session.generated_personas = []
            session.selected_persona_ids = []
        session.content = content
        session.content_source = source
        return True

    def set_content_mode(self, mode: ContentMode) -> bool:
        if self._session.is_analyzing:
            logger.warning("Content mode is frozen while analysis is running.")
            return False
        self._session.content_mode = mode
        return True

    async def submit_content(
        self,
        raw_content: str,
        source: ContentSource = ContentSource.TEXT,
    ) -> bool:
        if not raw_content.strip():
            await self._notify(
                NoticeKind.MISSING_PRECONDITION,
                "Please provide content to analyze.",
            )
            return False
        if not self.set_content(raw_content, source):
            return False
        await self.enter_step(WizardStep.PERSONA_SELECTION)
        return True

    # -- personas ---------------------------------------------------------

    def toggle_persona(self, persona_id: str) -> bool:
        """Flip membership of ``persona_id`` and return whether it is selected."""

        session = self._session
        if session.find_persona(persona_id) is None:
            raise KeyError(persona_id)
        if persona_id in session.selected_persona_ids:
            session.selected_persona_ids.remove(persona_id)
            return False
        session.selected_persona_ids.append(persona_id)
        return True

    async def generate_initial_personas(self) -> bool:
        session = self._session
        credential = self.credential
        if session.generated_personas or session.is_generating_personas:
            return False
        if not session.content or not credential:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION,
                "Content and an API key are required to generate personas.",
            )
            return False
        session.is_generating_personas = True
        content = session.content
        personas = None
        try:
            personas = await self._bounded(
                self._backend.generate_personas(
                    content, credential, session.content_mode
                )
            )
        except Exception:  # noqa: BLE001 - surfaced as a notice
            logger.exception("Persona generation failed")
        finally:
            session.is_generating_personas = False

        if personas is None:
            await self._notify(
                NoticeKind.GENERATION_FAILED, "Persona generation failed."
            )
            return False
        if session is not self._session or session.content != content:
            logger.info("Discarding persona slate generated for stale content")
            return False
        session.generated_personas = assign_avatars(personas, rng=self._rng)
        logger.info("Generated %s persona(s)", len(personas))
        return True

    async def generate_wildcard_persona(self) -> bool:
        session = self._session
        credential = self.credential
        if session.is_generating_wildcard:
            return False
        if not session.content or not credential:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION,
                "Content and an API key are required to summon a wildcard.",
            )
            return False
        session.is_generating_wildcard = True
        content = session.content
        wildcard = None
        try:
            wildcard = await self._bounded(
                self._backend.generate_wildcard(content, credential)
            )
        except Exception:  # noqa: BLE001 - surfaced as a notice
            logger.exception("Wildcard generation failed")
        finally:
            session.is_generating_wildcard = False

        if wildcard is None:
            await self._notify(
                NoticeKind.GENERATION_FAILED,
                "Failed to generate wildcard persona.",
            )
            return False
        if session is not self._session or session.content != content:
            logger.info("Discarding wildcard generated for stale content")
            return False
        session.generated_personas.append(
            with_random_avatar(wildcard, rng=self._rng)
        )
        await self._notify(
            NoticeKind.SUCCESS, "Wildcard persona generated.", level="info"
        )
        return True

    # -- analysis ---------------------------------------------------------

    async def begin_analysis(self) -> Optional[PipelineOutcome]:
        if not self._session.selected_persona_ids:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION, "Pick at least one persona."
            )
            return None
        self.advance(WizardStep.ANALYSIS)
        return await self.run_analysis()

    async def run_analysis(self) -> Optional[PipelineOutcome]:
        session = self._session
        credential = self.credential
        if session.is_analyzing:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION,
                "Analysis is already running.",
                level="warning",
            )
            return None
        selected = session.selected_personas
        if not credential or not selected or not session.content:
            await self._notify(
                NoticeKind.MISSING_PRECONDITION,
                "Analysis needs an API key, content and at least one persona.",
            )
            return None
        session.is_analyzing = True
        session.interview_results = []
        session.completed_persona_ids = []
        session.final_report = None
        session.progress = 0.0
        session.current_action = "Initializing analysis..."
        generation = self._run_generation

        def _still_current() -> bool:
            return generation == self._run_generation

        async def _relay(event_type: str, payload: Dict[str, object]) -> None:
            if not _still_current():
                return
            if event_type in {"interview_started", "synthesis_started"}:
                session.current_action = str(payload.get("content", ""))
            elif event_type == "interview_completed":
                session.completed_persona_ids.append(str(payload["persona_id"]))
                result = payload.get("result")
                if isinstance(result, InterviewResult):
                    session.interview_results.append(result)
            elif event_type == "progress":
                session.progress = cast(float, payload.get("value", 0.0))
            elif event_type == "interview_failed":
                await self._notify(
                    NoticeKind.INTERVIEW_FAILED,
                    str(payload.get("content", "Interview failed.")),
                    level="warning",
                    persona_id=str(payload.get("persona_id")),
                )
            if self._observer is not None:
                outcome = self._observer(event_type, payload)
                if asyncio.iscoroutine(outcome):
                    await outcome

        try:
            outcome = await self._pipeline.run(
                content=session.content,
                personas=selected,
                credential=credential,
                mode=session.content_mode,
                observer=_relay,
                should_continue=_still_current,
            )
        finally:
            session.is_analyzing = False

        if outcome.cancelled or not _still_current():
            logger.info("Analysis results discarded after reset")
            return outcome
        session.interview_results = list(outcome.results)
        session.progress = outcome.progress
        if outcome.report is not None:
            session.final_report = outcome.report
        if outcome.error:
            await self._notify(NoticeKind.TOTAL_FAILURE, outcome.error)
        if outcome.next_step is not None:
            self.advance(outcome.next_step)
        return outcome

    # -- helpers ----------------------------------------------------------

    async def _bounded(self, call: Awaitable[T]) -> T:
        if self._call_timeout:
            return await asyncio.wait_for(call, timeout=self._call_timeout)
        return await call

    async def _notify(
        self,
        kind: NoticeKind,
        message: str,
        *,
        level: str = "error",
        persona_id: Optional[str] = None,
    ) -> None:
        notice = Notice(
            kind=kind, message=message, level=level, persona_id=persona_id
        )
        self._notices.append(notice)
        if level == "error":
            logger.warning("%s: %s", kind.value, message)
        if self._observer is None:
            return
        try:
            outcome = self._observer("notice", {"notice": notice})
            if asyncio.iscoroutine(outcome):
                await outcome
        except Exception:  # noqa: BLE001 - observers must not break the wizard
            logger.exception("Wizard observer failed for notice '%s'", message)


def create_controller(
    settings: AppSettings,
    *,
    backend: Optional[ResonanceBackend] = None,
    observer: Optional[Observer] = None,
) -> WizardController:
    """Wire a controller from settings, defaulting to the MAF-backed service."""

    credentials = CredentialStore(
        settings.credential_path,
        slot=settings.credential_slot,
        redis_url=settings.redis_url,
    )
    resolved_backend = backend or PersonaGenerationService(settings)
    pipeline = InterviewPipeline(
        resolved_backend,
        call_timeout=settings.call_timeout,
        step_delay=settings.step_delay,
        report_delay=settings.report_delay,
    )
    return WizardController(
        credentials,
        resolved_backend,
        pipeline=pipeline,
        observer=observer,
        call_timeout=settings.call_timeout,
    )
