"""Console status lines for migration commands."""

from __future__ import annotations

from enum import StrEnum

import typer


class Status(StrEnum):
    """Progress markers shown in front of status lines."""

    PENDING = "🔄"
    DONE = "✅"
    SKIPPED = "⏭️"
    FAILED = "❌"


def render_status(status: Status, message: str) -> str:
    return f"[{status.value}] {message}"


def echo_status(status: Status, message: str) -> None:
    typer.echo(render_status(status, message))
