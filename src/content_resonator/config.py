"""Configuration helpers for the content resonance workflow."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from importlib import import_module
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

DEFAULT_CREDENTIAL_SLOT = "content-resonator-settings"


class ContentMode(str, Enum):
    """Prompt severity applied to persona generation and interviews."""

    STANDARD = "standard"
    CRISIS = "crisis"

    @classmethod
    def from_string(
        cls,
        mode: str | None,
        default: Optional["ContentMode"] = None,
    ) -> "ContentMode":
        """Normalize arbitrary user input into a valid mode."""
        if not mode:
            if default is None:
                raise ValueError("Content mode is required.")
            return default
        normalized = mode.strip().lower()
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported content mode: {mode}")


class ContentSource(str, Enum):
    """Where the evaluated text came from. Informational only."""

    TEXT = "text"
    YOUTUBE = "youtube"
    FILE = "file"


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the generative backend.

    The API key is not part of the settings: it lives in the credential
    store and is handed to every call by the wizard.
    """

    provider: str
    model: str
    endpoint: Optional[str]
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    state_dir: Path
    credential_slot: str
    redis_url: Optional[str]
    call_timeout: float
    parse_attempts: int
    step_delay: float
    report_delay: float
    otlp_endpoint: Optional[str] = None

    @property
    def credential_path(self) -> Path:
        return self.state_dir / f"{self.credential_slot}.json"

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("RESONATOR_MODEL_PROVIDER", "openai").strip()
        model = os.getenv("RESONATOR_MODEL", "gpt-4o-mini").strip()
        if not model:
            raise ConfigurationError("RESONATOR_MODEL must not be empty.")
        endpoint = _optional_env("RESONATOR_MODEL_ENDPOINT")
        api_version = _optional_env("RESONATOR_MODEL_API_VERSION")
        state_dir = Path(os.getenv("RESONATOR_STATE_DIR", ".resonator"))
        credential_slot = (
            os.getenv("RESONATOR_CREDENTIAL_SLOT", "").strip()
            or DEFAULT_CREDENTIAL_SLOT
        )
        call_timeout = _float_env("RESONATOR_CALL_TIMEOUT", "120")
        if call_timeout <= 0:
            raise ConfigurationError(
                "RESONATOR_CALL_TIMEOUT must be greater than 0"
            )
        parse_attempts_raw = os.getenv("RESONATOR_PARSE_ATTEMPTS", "2")
        try:
            parse_attempts = int(parse_attempts_raw)
        except ValueError as exc:
            raise ConfigurationError(
                "RESONATOR_PARSE_ATTEMPTS must be an integer"
            ) from exc
        if parse_attempts < 1:
            raise ConfigurationError(
                "RESONATOR_PARSE_ATTEMPTS must be at least 1"
            )
        step_delay = _float_env("RESONATOR_STEP_DELAY", "0.5")
        report_delay = _float_env("RESONATOR_REPORT_DELAY", "0.6")
        if step_delay < 0 or report_delay < 0:
            raise ConfigurationError("Display delays cannot be negative.")
        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_version=api_version,
            ),
            state_dir=state_dir,
            credential_slot=credential_slot,
            redis_url=_optional_env("RESONATOR_REDIS_URL"),
            call_timeout=call_timeout,
            parse_attempts=parse_attempts,
            step_delay=step_delay,
            report_delay=report_delay,
            otlp_endpoint=_optional_env("RESONATOR_OTLP_ENDPOINT"),
        )


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number") from exc


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise ConfigurationError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
