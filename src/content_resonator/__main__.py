"""Module executed when running ``python -m content_resonator``."""

from __future__ import annotations

from .cli import run_cli


def main() -> None:
    """Invoke the CLI entry point."""

    raise SystemExit(run_cli())


if __name__ == "__main__":  # pragma: no cover - runtime hook
    main()
