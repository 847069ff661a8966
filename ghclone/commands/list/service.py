"""Services for the list command."""

from __future__ import annotations

import asyncio

import typer

from ...config.settings import Settings
from ...core.controller import RunController
from ...core.errors import ApiError, PreconditionError, TransportError
from ...core.events import Event, EventKind
from ...core.types import Protocol, RepositoryRecord


def _echo_fetch_errors(event: Event) -> None:
    if event.kind == EventKind.fetch_failed:
        typer.secho(event.message(), err=True, fg=typer.colors.RED)


def format_record(record: RepositoryRecord, protocol: Protocol) -> str:
    flags = [f for f, on in (("archived", record.is_archived), ("fork", record.is_fork)) if on]
    line = f"{record.name}  {record.clone_url(protocol)}"
    return f"{line}  [{', '.join(flags)}]" if flags else line


def list_repos(settings: Settings) -> int:
    """Print the repositories a clone run would process. Returns an exit code."""
    controller = RunController.from_settings(settings, sink=_echo_fetch_errors)
    try:
        repos = asyncio.run(controller.list_only())
    except PreconditionError as e:
        typer.secho(f"Error: {e}", err=True, fg=typer.colors.RED)
        return 2
    except (TransportError, ApiError):
        return 1

    for r in repos:
        typer.echo(format_record(r, settings.protocol))
    typer.echo(f"{len(repos)} repositories.")
    return 0
