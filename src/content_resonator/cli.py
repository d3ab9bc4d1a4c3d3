"""Command line entry-point for the content resonance wizard."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, cast

from .api import run_api_server
from .config import AppSettings, ContentMode, ContentSource
from .credential_store import CredentialStore
from .errors import ConfigurationError, Notice
from .models import InterviewResult, Report
from .observability import initialize_tracing
from .session import WizardStep
from .wizard import WizardController, create_controller

CommandHandler = Callable[[AppSettings, argparse.Namespace], int]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-resonator",
        description=(
            "Stress-test content against simulated reviewer personas"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    credential_parser = subparsers.add_parser(
        "credential",
        help="Manage the stored API credential",
    )
    credential_sub = credential_parser.add_subparsers(dest="action")
    credential_sub.required = True
    set_parser = credential_sub.add_parser("set", help="Store a new API key")
    set_parser.add_argument(
        "key",
        nargs="?",
        help="API key to store. Prompted for when omitted.",
    )
    set_parser.set_defaults(func=_handle_credential_set)
    show_parser = credential_sub.add_parser(
        "show",
        help="Show whether a key is stored (masked)",
    )
    show_parser.set_defaults(func=_handle_credential_show)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the full wizard headlessly and print the report",
    )
    source = run_parser.add_mutually_exclusive_group()
    source.add_argument("--text", help="Content to evaluate.")
    source.add_argument(
        "--file",
        type=Path,
        help="Plain text file with the content. Reads stdin when omitted.",
    )
    run_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ContentMode],
        default=ContentMode.STANDARD.value,
        help="Prompt severity (default: standard).",
    )
    run_parser.add_argument(
        "--select",
        default="all",
        help=(
            "Comma separated 1-based persona numbers to interview, or 'all' "
            "(default: all)."
        ),
    )
    run_parser.add_argument(
        "--wildcards",
        type=int,
        default=0,
        help="Number of wildcard personas to add before selection.",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the final session as JSON instead of a text report.",
    )
    run_parser.set_defaults(func=_handle_run)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the wizard over HTTP",
    )
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8090)
    serve_parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow.",
    )
    serve_parser.set_defaults(func=_handle_serve)
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    """Entry-point invoked from ``python -m content_resonator``."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else sys.argv[1:])
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        settings = AppSettings.load()
    except ConfigurationError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        return 1
    handler: CommandHandler = args.func
    return handler(settings, args)


def _credential_store(settings: AppSettings) -> CredentialStore:
    return CredentialStore(
        settings.credential_path,
        slot=settings.credential_slot,
        redis_url=settings.redis_url,
    )


def _handle_credential_set(settings: AppSettings, args: argparse.Namespace) -> int:
    raw_key = args.key if args.key is not None else getpass.getpass("API key: ")
    key = raw_key.strip()
    if not key:
        print("Please enter an API key.", file=sys.stderr)
        return 1
    _credential_store(settings).set_credential(key)
    print("API key saved.")
    return 0


def _handle_credential_show(settings: AppSettings, args: argparse.Namespace) -> int:
    key = _credential_store(settings).get_credential()
    if not key:
        print("No API key stored.")
        return 1
    print(f"Stored API key: {mask_credential(key)}")
    return 0


def _handle_serve(settings: AppSettings, args: argparse.Namespace) -> int:
    run_api_server(
        settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
    )
    return 0


def _handle_run(settings: AppSettings, args: argparse.Namespace) -> int:
    if settings.otlp_endpoint:
        initialize_tracing(settings.otlp_endpoint)
    if args.text is not None:
        content, source = args.text, ContentSource.TEXT
    elif args.file is not None:
        content = args.file.read_text(encoding="utf-8")
        source = ContentSource.FILE
    else:
        content, source = sys.stdin.read(), ContentSource.TEXT
    controller = create_controller(settings, observer=_print_event)
    return asyncio.run(
        run_headless(
            controller,
            content=content,
            source=source,
            mode=ContentMode.from_string(args.mode),
            selection=args.select,
            wildcards=args.wildcards,
            as_json=args.json,
        )
    )


async def run_headless(
    controller: WizardController,
    *,
    content: str,
    source: ContentSource = ContentSource.TEXT,
    mode: ContentMode = ContentMode.STANDARD,
    selection: str = "all",
    wildcards: int = 0,
    as_json: bool = False,
) -> int:
    """Walk every wizard step without a UI. Returns a process exit code."""

    if not controller.credential:
        print(
            "No API key stored. Run `content-resonator credential set` first.",
            file=sys.stderr,
        )
        return 1
    controller.advance(WizardStep.CONTENT_INPUT)
    controller.set_content_mode(mode)
    if not await controller.submit_content(content, source):
        return 1
    for _ in range(max(0, wildcards)):
        await controller.generate_wildcard_persona()

    personas = controller.session.generated_personas
    if not personas:
        print("No personas were generated.", file=sys.stderr)
        return 1
    try:
        indices = parse_selection(selection, len(personas))
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    for index in indices:
        controller.toggle_persona(personas[index].id)

    outcome = await controller.begin_analysis()
    session = controller.session
    if as_json:
        print(json.dumps(session.to_dict(), ensure_ascii=False, indent=2))
    elif session.final_report is not None:
        print(render_report(session.final_report, session.interview_results))
    if outcome is None or not outcome.succeeded:
        return 1
    return 0


def parse_selection(raw: str, count: int) -> List[int]:
    """Turn '1,3' (1-based) or 'all' into ordered, de-duplicated indices."""

    text = raw.strip().lower()
    if text in {"", "all"}:
        return list(range(count))
    indices: List[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            number = int(part)
        except ValueError as exc:
            raise ValueError(f"Invalid persona number: {part!r}") from exc
        if number < 1 or number > count:
            raise ValueError(
                f"Persona number {number} is out of range (1-{count})."
            )
        if number - 1 not in indices:
            indices.append(number - 1)
    if not indices:
        raise ValueError("Select at least one persona.")
    return indices


def mask_credential(key: str) -> str:
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"


def render_report(report: Report, results: Sequence[InterviewResult]) -> str:
    lines = [
        "Resonance Report",
        "=" * 16,
        f"Overall score: {report.overall_score:.0f}/100",
    ]
    if report.go_no_go is not None:
        lines.append(
            f"Decision: {report.go_no_go.decision} "
            f"({report.go_no_go.confidence_score:.0f}% confidence)"
        )
        if report.go_no_go.reasoning:
            lines.append(f"  {report.go_no_go.reasoning}")
    tone = report.tone_analysis
    lines.append(
        "Tone: "
        f"defensiveness {tone.defensiveness:.0f}, "
        f"jargon {tone.corporatespeak:.0f}, "
        f"empathy {tone.empathy:.0f}, "
        f"clarity {tone.clarity:.0f}"
    )
    if report.executive_summary:
        lines.extend(["", report.executive_summary])
    for result in results:
        lines.append("")
        lines.append("-" * 40)
        lines.append(result.persona_name)
        for label, entries in (
            ("Strengths", result.strengths),
            ("Confusion", result.confusion_points),
            ("Suggestions", result.suggestions),
        ):
            for entry in entries:
                lines.append(f"  [{label}] {entry}")
    return "\n".join(lines)


def _print_event(kind: str, data: Dict[str, object]) -> None:
    if kind in {"interview_started", "synthesis_started"}:
        print(data.get("content", ""))
    elif kind == "progress":
        print(f"  progress: {cast(float, data.get('value', 0.0)):.0f}%")
    elif kind == "notice":
        notice = data.get("notice")
        if isinstance(notice, Notice):
            stream = sys.stdout if notice.level == "info" else sys.stderr
            print(f"[{notice.level}] {notice.message}", file=stream)


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    raise SystemExit(run_cli())
