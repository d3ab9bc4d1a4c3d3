"""Sequential interview pipeline with per-persona failure tolerance."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from .config import ContentMode
from .models import InterviewResult, Persona, Report
from .persona_service import ResonanceBackend
from .session import WizardStep
from .synthesis import ReportSynthesizer

logger = logging.getLogger(__name__)

# The last 18 points are reserved for the synthesis phase.
INTERVIEW_PROGRESS_CEILING = 82.0
COMPLETE_PROGRESS = 100.0

T = TypeVar("T")

Observer = Callable[[str, Dict[str, object]], Awaitable[None] | None]
Sleeper = Callable[[float], Awaitable[None]]


def _empty_results() -> List[InterviewResult]:
    return []


def _empty_ids() -> List[str]:
    return []


@dataclass(slots=True)
class PipelineOutcome:
    """Everything the controller needs to fold a finished run into a session."""

    results: List[InterviewResult] = field(default_factory=_empty_results)
    report: Optional[Report] = None
    next_step: Optional[WizardStep] = None
    progress: float = 0.0
    error: Optional[str] = None
    completed_persona_ids: List[str] = field(default_factory=_empty_ids)
    failed_persona_ids: List[str] = field(default_factory=_empty_ids)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.report is not None


class InterviewPipeline:
    """Interviews each persona in order, then synthesizes the survivors.

    A persona whose interview fails is reported and skipped. Only an empty
    result set or a failed synthesis fails the run, and even then nothing is
    raised: the outcome carries the error and the step to route back to.
    """

    def __init__(
        self,
        backend: ResonanceBackend,
        *,
        synthesizer: Optional[ReportSynthesizer] = None,
        call_timeout: Optional[float] = None,
        step_delay: float = 0.0,
        report_delay: float = 0.0,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._call_timeout = call_timeout
        self._synthesizer = synthesizer or ReportSynthesizer(
            backend, call_timeout=call_timeout
        )
        self._step_delay = step_delay
        self._report_delay = report_delay
        self._sleep = sleep

    async def run(
        self,
        *,
        content: str,
        personas: Sequence[Persona],
        credential: str,
        mode: ContentMode,
        observer: Optional[Observer] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> PipelineOutcome:
        async def _emit(event_type: str, **payload: object) -> None:
            if observer is None:
                return
            try:
                outcome = observer(event_type, dict(payload))
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:  # noqa: BLE001 - observers must not abort a run
                logger.exception("Pipeline observer failed for event '%s'", event_type)

        def _alive() -> bool:
            return should_continue is None or should_continue()

        outcome = PipelineOutcome()
        total = len(personas)
        if total == 0:
            outcome.error = "No personas selected."
            outcome.next_step = WizardStep.PERSONA_SELECTION
            await _emit("failed", message=outcome.error)
            return outcome

        for index, persona in enumerate(personas):
            if not _alive():
                logger.info("Analysis stopped before interviewing %s", persona.name)
                outcome.cancelled = True
                return outcome

            action = f"Interviewing {persona.name}..."
            await _emit(
                "interview_started",
                content=action,
                persona_id=persona.id,
                persona_name=persona.name,
                index=index,
                total=total,
            )
            if self._step_delay:
                await self._sleep(self._step_delay)

            try:
                result = await self._bounded(
                    self._backend.simulate_interview(
                        content, persona, credential, mode
                    )
                )
            except Exception as exc:  # noqa: BLE001 - one persona never sinks the run
                logger.exception("Error interviewing %s", persona.name)
                outcome.failed_persona_ids.append(persona.id)
                await _emit(
                    "interview_failed",
                    content=f"Failed to interview {persona.name}",
                    persona_id=persona.id,
                    persona_name=persona.name,
                    error=_describe(exc),
                )
            else:
                outcome.results.append(result)
                outcome.completed_persona_ids.append(persona.id)
                await _emit(
                    "interview_completed",
                    persona_id=persona.id,
                    persona_name=persona.name,
                    result=result,
                )

            outcome.progress = (index + 1) / total * INTERVIEW_PROGRESS_CEILING
            await _emit("progress", value=outcome.progress)

        if not outcome.results:
            outcome.error = "No interviews completed successfully."
            outcome.next_step = WizardStep.PERSONA_SELECTION
            logger.warning("All %s interview(s) failed; skipping synthesis", total)
            await _emit("failed", message=outcome.error)
            return outcome

        if not _alive():
            outcome.cancelled = True
            return outcome

        await _emit("synthesis_started", content="Synthesizing final report...")
        try:
            report = await self._synthesizer.synthesize(
                outcome.results, credential, mode
            )
        except Exception as exc:  # noqa: BLE001 - converted into a run failure
            logger.exception("Report synthesis failed")
            outcome.error = f"Analysis failed: {_describe(exc)}"
            outcome.next_step = WizardStep.PERSONA_SELECTION
            await _emit("failed", message=outcome.error)
            return outcome

        outcome.report = report
        outcome.progress = COMPLETE_PROGRESS
        await _emit("progress", value=outcome.progress)
        await _emit("report", report=report)
        if self._report_delay:
            await self._sleep(self._report_delay)
        outcome.next_step = WizardStep.REPORT
        return outcome

    async def _bounded(self, call: Awaitable[T]) -> T:
        if self._call_timeout:
            return await asyncio.wait_for(call, timeout=self._call_timeout)
        return await call


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return str(exc).strip() or exc.__class__.__name__
