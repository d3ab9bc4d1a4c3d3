"""Data contracts exchanged between the wizard, the pipeline and renderers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, cast

WILDCARD_PREFIX = "wildcard"
GO_NO_GO_DECISIONS = ("GO", "NO-GO", "HOLD")


def _coerce_list(value: object) -> Tuple[str, ...]:
    items: List[str] = []
    if isinstance(value, (list, tuple)):
        for element in cast(List[Any], value):
            element_str = str(element).strip()
            if element_str:
                items.append(element_str)
    elif isinstance(value, str):
        items = [
            segment.strip()
            for segment in value.split("\n")
            if segment.strip()
        ]
    return tuple(items)


def _coerce_score(value: object, default: float = 0.0) -> float:
    try:
        score = float(cast(Any, value))
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return max(0.0, min(100.0, score))


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True, slots=True)
class Persona:
    """A synthetic reviewer profile. ``id`` is the only identity key."""

    id: str
    name: str
    role: str
    description: str
    pain_points: Tuple[str, ...] = ()
    avatar: Optional[str] = None

    @property
    def is_wildcard(self) -> bool:
        return self.id.startswith(WILDCARD_PREFIX)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        fallback_id: str,
    ) -> "Persona":
        raw_id = str(data.get("id") or "").strip()
        name = str(data.get("name") or "").strip() or "Unnamed reviewer"
        return cls(
            id=raw_id or fallback_id,
            name=name,
            role=str(data.get("role") or "").strip(),
            description=str(data.get("description") or "").strip(),
            pain_points=_coerce_list(_first(data, "painPoints", "pain_points")),
            avatar=data.get("avatar"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "description": self.description,
            "painPoints": list(self.pain_points),
            "avatar": self.avatar,
            "isWildcard": self.is_wildcard,
        }


@dataclass(frozen=True, slots=True)
class InterviewResult:
    """Outcome of one successful simulated interview."""

    persona_name: str
    strengths: Tuple[str, ...] = ()
    confusion_points: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        persona_name: str,
    ) -> "InterviewResult":
        return cls(
            # The interviewed persona wins over any name the reply makes up.
            persona_name=persona_name.strip()
            or str(_first(data, "personaName", "persona_name") or "").strip(),
            strengths=_coerce_list(data.get("strengths")),
            confusion_points=_coerce_list(
                _first(data, "confusionPoints", "confusion_points")
            ),
            suggestions=_coerce_list(data.get("suggestions")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personaName": self.persona_name,
            "strengths": list(self.strengths),
            "confusionPoints": list(self.confusion_points),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True, slots=True)
class ToneAnalysis:
    """Tone metrics on a 0-100 scale."""

    defensiveness: float = 0.0
    corporatespeak: float = 0.0
    empathy: float = 0.0
    clarity: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToneAnalysis":
        return cls(
            defensiveness=_coerce_score(data.get("defensiveness")),
            corporatespeak=_coerce_score(data.get("corporatespeak")),
            empathy=_coerce_score(data.get("empathy")),
            clarity=_coerce_score(data.get("clarity")),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "defensiveness": self.defensiveness,
            "corporatespeak": self.corporatespeak,
            "empathy": self.empathy,
            "clarity": self.clarity,
        }


@dataclass(frozen=True, slots=True)
class GoNoGo:
    """Launch recommendation attached to a report."""

    decision: str
    confidence_score: float
    reasoning: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["GoNoGo"]:
        decision = str(data.get("decision") or "").strip().upper()
        decision = decision.replace("_", "-").replace(" ", "-")
        if decision == "NOGO":
            decision = "NO-GO"
        if decision not in GO_NO_GO_DECISIONS:
            return None
        return cls(
            decision=decision,
            confidence_score=_coerce_score(
                _first(data, "confidenceScore", "confidence_score")
            ),
            reasoning=str(data.get("reasoning") or "").strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision,
            "confidenceScore": self.confidence_score,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True, slots=True)
class Report:
    """Aggregate verdict synthesized from every surviving interview."""

    overall_score: float
    tone_analysis: ToneAnalysis = field(default_factory=ToneAnalysis)
    go_no_go: Optional[GoNoGo] = None
    executive_summary: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Report":
        tone_raw = _first(data, "toneAnalysis", "tone_analysis")
        go_raw = _first(data, "goNoGo", "go_no_go")
        return cls(
            overall_score=_coerce_score(
                _first(data, "overallScore", "overall_score")
            ),
            tone_analysis=(
                ToneAnalysis.from_dict(cast(Mapping[str, Any], tone_raw))
                if isinstance(tone_raw, Mapping)
                else ToneAnalysis()
            ),
            go_no_go=(
                GoNoGo.from_dict(cast(Mapping[str, Any], go_raw))
                if isinstance(go_raw, Mapping)
                else None
            ),
            executive_summary=str(
                _first(data, "executiveSummary", "executive_summary") or ""
            ).strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "toneAnalysis": self.tone_analysis.to_dict(),
            "goNoGo": self.go_no_go.to_dict() if self.go_no_go else None,
            "executiveSummary": self.executive_summary,
        }
