"""Exception types and user-facing notices for the resonance workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ResonatorError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigurationError(ResonatorError):
    """Raised when environment configuration is missing or invalid."""


class MAFIntegrationError(ResonatorError):
    """Raised when the MAF client cannot be initialized."""


class PersonaServiceError(ResonatorError):
    """Raised when the generative backend returns an unusable reply."""


class NoticeKind(str, Enum):
    """Failure categories surfaced to whoever drives the wizard."""

    MISSING_PRECONDITION = "missing_precondition"
    INTERVIEW_FAILED = "interview_failed"
    TOTAL_FAILURE = "total_failure"
    GENERATION_FAILED = "generation_failed"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class Notice:
    """A transient or blocking message meant for the user."""

    kind: NoticeKind
    message: str
    level: str = "error"
    persona_id: Optional[str] = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def blocking(self) -> bool:
        return self.kind is NoticeKind.TOTAL_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "level": self.level,
            "personaId": self.persona_id,
            "blocking": self.blocking,
            "createdAt": self.created_at.isoformat(),
        }
