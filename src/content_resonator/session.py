"""The mutable per-run session record owned by the wizard controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import ContentMode, ContentSource
from .models import InterviewResult, Persona, Report


class WizardStep(str, Enum):
    """The five workflow stages."""

    CREDENTIAL = "credential"
    CONTENT_INPUT = "content-input"
    PERSONA_SELECTION = "persona-selection"
    ANALYSIS = "analysis"
    REPORT = "report"

    @classmethod
    def from_string(cls, step: str) -> "WizardStep":
        normalized = step.strip().lower().replace("_", "-")
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        raise ValueError(f"Unknown wizard step: {step}")


def _empty_personas() -> List[Persona]:
    return []


def _empty_ids() -> List[str]:
    return []


def _empty_results() -> List[InterviewResult]:
    return []


@dataclass(slots=True)
class Session:
    """State of one run.

    ``selected_persona_ids`` keeps selection order; it always references
    entries of ``generated_personas``. ``interview_results`` holds only
    successful interviews, so it is never longer than the selection.
    """

    current_step: WizardStep = WizardStep.CREDENTIAL
    content: str = ""
    content_source: ContentSource = ContentSource.TEXT
    content_mode: ContentMode = ContentMode.STANDARD
    generated_personas: List[Persona] = field(default_factory=_empty_personas)
    selected_persona_ids: List[str] = field(default_factory=_empty_ids)
    interview_results: List[InterviewResult] = field(
        default_factory=_empty_results
    )
    final_report: Optional[Report] = None
    is_generating_personas: bool = False
    is_generating_wildcard: bool = False
    is_analyzing: bool = False
    progress: float = 0.0
    current_action: str = ""
    completed_persona_ids: List[str] = field(default_factory=_empty_ids)

    @property
    def selected_personas(self) -> List[Persona]:
        by_id = {persona.id: persona for persona in self.generated_personas}
        return [
            by_id[persona_id]
            for persona_id in self.selected_persona_ids
            if persona_id in by_id
        ]

    def find_persona(self, persona_id: str) -> Optional[Persona]:
        for persona in self.generated_personas:
            if persona.id == persona_id:
                return persona
        return None

    def is_selected(self, persona_id: str) -> bool:
        return persona_id in self.selected_persona_ids

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready snapshot for renderers and exporters."""

        return {
            "currentStep": self.current_step.value,
            "content": self.content,
            "contentSource": self.content_source.value,
            "contentMode": self.content_mode.value,
            "generatedPersonas": [
                persona.to_dict() for persona in self.generated_personas
            ],
            "selectedPersonaIds": list(self.selected_persona_ids),
            "interviewResults": [
                result.to_dict() for result in self.interview_results
            ],
            "finalReport": (
                self.final_report.to_dict() if self.final_report else None
            ),
            "isGeneratingPersonas": self.is_generating_personas,
            "isGeneratingWildcard": self.is_generating_wildcard,
            "isAnalyzing": self.is_analyzing,
            "progress": round(self.progress, 2),
            "currentAction": self.current_action,
            "completedPersonaIds": list(self.completed_persona_ids),
        }
