"""FastAPI surface that lets a remote UI drive the resonance wizard."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from contextlib import suppress
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Set

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from .config import AppSettings, ContentMode, ContentSource
from .errors import ConfigurationError
from .observability import initialize_tracing
from .pipeline import PipelineOutcome
from .session import WizardStep
from .wizard import WizardController, create_controller


class CredentialRequest(BaseModel):
    key: str


class ContentRequest(BaseModel):
    content: str
    source: str = ContentSource.TEXT.value


class ModeRequest(BaseModel):
    mode: str


class StepRequest(BaseModel):
    step: str


def _jsonable(value: object) -> object:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _event_payload(kind: str, data: Dict[str, object]) -> Dict[str, Any]:
    event: Dict[str, Any] = {"type": kind}
    for key, value in data.items():
        event[key] = _jsonable(value)
    return event


class EventBroadcaster:
    """Fans wizard events out to every open progress stream."""

    def __init__(self) -> None:
        self._queues: Set[asyncio.Queue[Dict[str, Any]]] = set()

    def subscribe(self) -> asyncio.Queue[Dict[str, Any]]:
        queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Dict[str, Any]]) -> None:
        self._queues.discard(queue)

    async def __call__(self, kind: str, data: Dict[str, object]) -> None:
        event = _event_payload(kind, data)
        for queue in list(self._queues):
            await queue.put(event)


def _outcome_payload(outcome: PipelineOutcome) -> Dict[str, Any]:
    return {
        "succeeded": outcome.succeeded,
        "error": outcome.error,
        "nextStep": outcome.next_step.value if outcome.next_step else None,
        "progress": outcome.progress,
        "completedPersonaIds": list(outcome.completed_persona_ids),
        "failedPersonaIds": list(outcome.failed_persona_ids),
    }


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    controller: Optional[WizardController] = None,
    broadcaster: Optional[EventBroadcaster] = None,
    allow_origins: Sequence[str] | None = None,
) -> FastAPI:
    """Create the HTTP app around one wizard controller."""

    events = broadcaster or EventBroadcaster()
    if controller is None:
        if settings is None:
            raise ValueError("Either settings or a controller is required.")
        controller = create_controller(settings, observer=events)
    wizard = controller

    app = FastAPI(title="Content Resonator")
    origins = list(allow_origins) if allow_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _snapshot() -> Dict[str, Any]:
        snapshot = wizard.session.to_dict()
        snapshot["credentialPresent"] = bool(wizard.credential)
        snapshot["notices"] = [notice.to_dict() for notice in wizard.notices]
        return snapshot

    def _last_notice_detail(default: str) -> str:
        notices = wizard.notices
        return notices[-1].message if notices else default

    @app.get("/session")
    async def get_session() -> Dict[str, Any]:
        return _snapshot()

    @app.post("/credential")
    async def save_credential(payload: CredentialRequest) -> Dict[str, Any]:
        if not await wizard.save_credential(payload.key):
            raise HTTPException(
                status_code=400,
                detail=_last_notice_detail("Credential rejected."),
            )
        return _snapshot()

    @app.post("/content")
    async def submit_content(payload: ContentRequest) -> Dict[str, Any]:
        try:
            source = ContentSource(payload.source)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not await wizard.submit_content(payload.content, source):
            raise HTTPException(
                status_code=400,
                detail=_last_notice_detail("Content rejected."),
            )
        return _snapshot()

    @app.post("/mode")
    async def set_mode(payload: ModeRequest) -> Dict[str, Any]:
        try:
            mode = ContentMode.from_string(payload.mode)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not wizard.set_content_mode(mode):
            raise HTTPException(
                status_code=409,
                detail="Content mode is frozen while analysis is running.",
            )
        return _snapshot()

    @app.post("/personas/generate")
    async def generate_personas() -> Dict[str, Any]:
        await wizard.generate_initial_personas()
        return _snapshot()

    @app.post("/personas/wildcard")
    async def generate_wildcard() -> Dict[str, Any]:
        await wizard.generate_wildcard_persona()
        return _snapshot()

    @app.post("/personas/{persona_id}/toggle")
    async def toggle_persona(persona_id: str) -> Dict[str, Any]:
        try:
            wizard.toggle_persona(persona_id)
        except KeyError as exc:
            raise HTTPException(
                status_code=404,
                detail=f"Persona '{persona_id}' not found.",
            ) from exc
        return _snapshot()

    @app.post("/step")
    async def advance(payload: StepRequest) -> Dict[str, Any]:
        try:
            step = WizardStep.from_string(payload.step)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        wizard.advance(step)
        return _snapshot()

    @app.post("/reset")
    async def reset() -> Dict[str, Any]:
        wizard.reset()
        return _snapshot()

    @app.post("/analysis")
    async def run_analysis() -> Dict[str, Any]:
        outcome = await wizard.begin_analysis()
        if outcome is None:
            raise HTTPException(
                status_code=400,
                detail=_last_notice_detail("Analysis could not start."),
            )
        snapshot = _snapshot()
        snapshot["outcome"] = _outcome_payload(outcome)
        return snapshot

    @app.post("/analysis/stream")
    async def stream_analysis() -> StreamingResponse:
        queue = events.subscribe()
        done_token = object()

        async def producer() -> None:
            try:
                outcome = await wizard.begin_analysis()
                if outcome is None:
                    await queue.put(
                        {
                            "type": "error",
                            "message": _last_notice_detail(
                                "Analysis could not start."
                            ),
                        }
                    )
                else:
                    await queue.put(
                        {"type": "complete", "outcome": _outcome_payload(outcome)}
                    )
            except Exception as exc:  # noqa: BLE001 - reported to the stream
                logging.exception("Analysis stream failed")
                await queue.put({"type": "error", "message": str(exc)})
            finally:
                await queue.put({"type": done_token})

        analysis_task = asyncio.create_task(producer())

        async def event_stream() -> AsyncIterator[bytes]:
            try:
                while True:
                    event = await queue.get()
                    if event.get("type") is done_token:
                        break
                    payload = json.dumps(event, ensure_ascii=False)
                    yield f"data: {payload}\n\n".encode("utf-8")
            finally:
                events.unsubscribe(queue)
                if not analysis_task.done():
                    analysis_task.cancel()
                    with suppress(asyncio.CancelledError):
                        await analysis_task

        headers = {"Cache-Control": "no-cache"}
        return StreamingResponse(
            event_stream(), media_type="text/event-stream", headers=headers
        )

    @app.get("/report")
    async def get_report() -> Dict[str, Any]:
        report = wizard.session.final_report
        if report is None:
            raise HTTPException(status_code=404, detail="No report available.")
        return {
            "report": report.to_dict(),
            "interviewResults": [
                result.to_dict() for result in wizard.session.interview_results
            ],
            "contentMode": wizard.session.content_mode.value,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - simple probe
        return {"status": "ok"}

    return app


def run_api_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8090,
    allow_origins: Sequence[str] | None = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server."""

    if settings.otlp_endpoint:
        initialize_tracing(settings.otlp_endpoint)
    app = create_app(settings, allow_origins=allow_origins)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m content_resonator.api",
        description="Serve the content resonance wizard over HTTP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8090,
        help="Port for the server (default: 8090).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*'.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except ConfigurationError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc
    run_api_server(
        settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
