"""Services for the clone command."""

from __future__ import annotations

import asyncio
import signal

import typer

from ...config.settings import Settings
from ...core.controller import RunController
from ...core.errors import ApiError, CancellationError, PreconditionError, TransportError
from ...core.events import Event, EventKind
from ...core.types import RunSummary

EXIT_FAILURES = 1
EXIT_PRECONDITION = 2
EXIT_CANCELLED = 130

_QUIET = {EventKind.fetch_started, EventKind.job_started, EventKind.repo_listed}
_ERR = {EventKind.fetch_failed, EventKind.job_failed, EventKind.run_cancelled}


def echo_event(event: Event) -> None:
    """Render progress events the way the rest of the CLI prints."""
    if event.kind in _QUIET:
        return
    err = event.kind in _ERR
    fg = typer.colors.RED if event.kind in (EventKind.fetch_failed, EventKind.job_failed) else None
    typer.secho(event.message(), err=err, fg=fg)


def print_failures(summary: RunSummary) -> None:
    if not summary.failures:
        return
    typer.secho(f"{summary.failed} repositories failed:", err=True)
    for name, reason in summary.failures:
        typer.secho(f"  {name}: {reason}", err=True)


async def _run(controller: RunController, dest: str) -> RunSummary:
    loop = asyncio.get_running_loop()
    pending: list[asyncio.Task] = []

    def request_cancel() -> None:
        typer.secho("Cancelling...", err=True)
        pending.append(loop.create_task(controller.cancel_run()))

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # not supported on this platform/loop; Ctrl-C falls back to KeyboardInterrupt
            pass
    try:
        return await controller.start_run(dest)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def clone_all(settings: Settings, dest: str) -> int:
    """Clone every repository owned by the token's user into ``dest``. Returns an exit code."""
    controller = RunController.from_settings(settings, sink=echo_event)
    try:
        summary = asyncio.run(_run(controller, dest))
    except PreconditionError as e:
        typer.secho(f"Error: {e}", err=True, fg=typer.colors.RED)
        return EXIT_PRECONDITION
    except (TransportError, ApiError):
        # already reported through the fetch_failed event
        return EXIT_FAILURES
    except CancellationError:
        return EXIT_CANCELLED

    print_failures(summary)
    return EXIT_FAILURES if summary.failed else 0
