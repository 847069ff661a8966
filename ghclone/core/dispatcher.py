"""Bounded-concurrency clone scheduler.

All RunState mutation happens on the event loop thread: jobs run as tasks and
their completion is delivered back through ``Task.add_done_callback``, so the
queue, the active counter and the results never need a lock. The only true
parallelism is the git child processes themselves.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from .errors import CancellationError, PreconditionError
from .events import Event, EventKind, EventSink, log_event
from .types import Outcome, OutcomeKind, RepositoryRecord, RunSummary

logger = logging.getLogger(__name__)

CloneFn = Callable[[RepositoryRecord, str], Awaitable[Outcome]]
CheckoutFn = Callable[[str], bool]


@dataclass
class RunState:
    target_dir: str
    repos: list[RepositoryRecord]
    max_parallel: int
    pending: deque[RepositoryRecord] = field(default_factory=deque)
    active: int = 0
    results: dict[str, Outcome] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def total(self) -> int:
        return len(self.repos)

    @property
    def complete(self) -> bool:
        return len(self.results) == self.total


class RunHandle:
    """Handle on one dispatched run: await its summary or cancel it."""

    def __init__(self, state: RunState, future: asyncio.Future) -> None:
        self.state = state
        self.cancelled = False
        self.tasks: dict[str, asyncio.Task] = {}
        self._future = future

    @property
    def done(self) -> bool:
        return self._future.done()

    async def wait(self) -> RunSummary:
        return await self._future

    def finish(self, summary: RunSummary) -> None:
        self._future.set_result(summary)

    def cancel(self) -> list[asyncio.Task]:
        """Stop launching, cancel every in-flight job and return their tasks."""
        if self._future.done():
            return []
        self.cancelled = True
        tasks = list(self.tasks.values())
        for t in tasks:
            t.cancel()
        self.tasks.clear()
        self._future.set_exception(CancellationError("run cancelled"))
        # mark retrieved: wait() may never be called on a cancelled run
        self._future.exception()
        return tasks


class Dispatcher:
    def __init__(
        self,
        clone: CloneFn,
        has_checkout: CheckoutFn,
        emit: EventSink | None = None,
    ) -> None:
        self._clone = clone
        self._has_checkout = has_checkout
        self._emit = emit or log_event
        self.handle: RunHandle | None = None

    @property
    def state(self) -> RunState | None:
        return self.handle.state if self.handle else None

    def start(self, repos: Iterable[RepositoryRecord], max_parallel: int, target_dir: str) -> RunHandle:
        """Seed the queue in listing order and launch the first batch. Must run inside a loop."""
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")
        if self.handle is not None and not self.handle.done:
            raise PreconditionError("a run is already active on this dispatcher")

        repos = list(repos)
        if len({r.name for r in repos}) != len(repos):
            raise ValueError("repository names must be unique within a run")
        state = RunState(target_dir=target_dir, repos=repos, max_parallel=max_parallel, pending=deque(repos))
        self.handle = RunHandle(state, asyncio.get_running_loop().create_future())
        self._emit(Event(EventKind.run_started, {
            "total": state.total, "target_dir": target_dir, "max_parallel": max_parallel,
        }))
        self.advance_queue()
        return self.handle

    def advance_queue(self) -> None:
        """The only place new work starts."""
        handle = self.handle
        if handle is None or handle.cancelled or handle.done:
            return
        state = handle.state
        while state.pending and state.active < state.max_parallel:
            record = state.pending.popleft()
            if self._has_checkout(os.path.join(state.target_dir, record.name)):
                self._record(state, record.name, Outcome.skipped())
                continue
            self._launch(handle, record)
        if state.complete:
            self._finalize(handle)

    def on_job_outcome(self, name: str, outcome: Outcome) -> None:
        handle = self.handle
        if handle is None or handle.cancelled or handle.done:
            return
        state = handle.state
        handle.tasks.pop(name, None)
        state.active -= 1
        self._record(state, name, outcome)
        if state.complete:
            self._finalize(handle)
        else:
            self.advance_queue()

    # ---------- internals ----------
    def _launch(self, handle: RunHandle, record: RepositoryRecord) -> None:
        state = handle.state
        state.active += 1
        self._emit(Event(EventKind.job_started, {"name": record.name}))
        logger.debug("launch %s (active=%d/%d)", record.name, state.active, state.max_parallel)
        task = asyncio.ensure_future(self._clone(record, state.target_dir))
        handle.tasks[record.name] = task
        task.add_done_callback(lambda t, name=record.name: self._job_done(handle, name, t))

    def _job_done(self, handle: RunHandle, name: str, task: asyncio.Task) -> None:
        if handle is not self.handle or task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("clone job %s raised", name, exc_info=exc)
            outcome = Outcome.failed(repr(exc))
        else:
            outcome = task.result()
        self.on_job_outcome(name, outcome)

    def _record(self, state: RunState, name: str, outcome: Outcome) -> None:
        if name in state.results:
            logger.warning("ignoring second outcome for %s: %s", name, outcome.kind.value)
            return
        state.results[name] = outcome
        if outcome.kind == OutcomeKind.skipped:
            self._emit(Event(EventKind.job_skipped, {"name": name}))
        elif outcome.kind == OutcomeKind.cloned:
            self._emit(Event(EventKind.job_cloned, {"name": name}))
        else:
            self._emit(Event(EventKind.job_failed, {"name": name, "reason": outcome.reason}))

    def _finalize(self, handle: RunHandle) -> None:
        state = handle.state
        summary = RunSummary(results=dict(state.results), elapsed=time.monotonic() - state.started_at)
        handle.finish(summary)
        self._emit(Event(EventKind.run_completed, {
            "total": summary.total,
            "cloned": summary.cloned,
            "skipped": summary.skipped,
            "failed": summary.failed,
            "failures": summary.failures,
            "elapsed": summary.elapsed,
        }))
