"""Folds the collected interview results into one report."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from .config import ContentMode
from .models import InterviewResult, Report
from .persona_service import ResonanceBackend

logger = logging.getLogger(__name__)


class ReportSynthesizer:
    """Issues the single synthesis call over the complete result set."""

    def __init__(
        self,
        backend: ResonanceBackend,
        *,
        call_timeout: Optional[float] = None,
    ) -> None:
        self._backend = backend
        self._call_timeout = call_timeout

    async def synthesize(
        self,
        results: Sequence[InterviewResult],
        credential: str,
        mode: ContentMode,
    ) -> Report:
        if not results:
            raise ValueError("Cannot synthesize a report from zero interviews.")
        logger.info(
            "Synthesizing report from %s interview(s) in %s mode",
            len(results),
            mode.value,
        )
        call = self._backend.synthesize_report(list(results), credential, mode)
        if self._call_timeout:
            return await asyncio.wait_for(call, timeout=self._call_timeout)
        return await call
