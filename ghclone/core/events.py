"""Structured progress notifications emitted by the fetch and clone stages."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger("ghclone.events")


class EventKind(str, Enum):
    fetch_started = "fetch_started"
    page_fetched = "page_fetched"
    fetch_failed = "fetch_failed"
    repo_listed = "repo_listed"
    run_started = "run_started"
    job_started = "job_started"
    job_skipped = "job_skipped"
    job_cloned = "job_cloned"
    job_failed = "job_failed"
    run_completed = "run_completed"
    run_cancelled = "run_cancelled"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)

    def message(self) -> str:
        """Render a one-line, human-readable description."""
        p = self.payload
        k = self.kind
        if k == EventKind.fetch_started:
            return "Fetching repository list..."
        if k == EventKind.page_fetched:
            return f"Fetched page {p['page']} ({p['count']} repositories, {p['total']} so far)"
        if k == EventKind.fetch_failed:
            return f"Could not list repositories: {p['error']}"
        if k == EventKind.repo_listed:
            return f"{p['name']}  {p['url']}"
        if k == EventKind.run_started:
            return f"Found {p['total']} repositories. Cloning to '{p['target_dir']}' (jobs={p['max_parallel']})..."
        if k == EventKind.job_started:
            return f"[start] {p['name']}"
        if k == EventKind.job_skipped:
            return f"[skip] {p['name']} (exists)"
        if k == EventKind.job_cloned:
            return f"[cloned] {p['name']}"
        if k == EventKind.job_failed:
            return f"[fail] {p['name']}: {p['reason']}"
        if k == EventKind.run_completed:
            return (
                f"Done. cloned={p['cloned']}, skipped={p['skipped']}, "
                f"failed={p['failed']} of {p['total']} in {p['elapsed']:.1f}s."
            )
        if k == EventKind.run_cancelled:
            return "Run cancelled."
        return k.value


EventSink = Callable[[Event], None]

_WARN_KINDS = {EventKind.fetch_failed, EventKind.job_failed}


def log_event(event: Event) -> None:
    """Default sink: write the event to the ``ghclone.events`` logger."""
    level = logging.WARNING if event.kind in _WARN_KINDS else logging.INFO
    logger.log(level, event.message())
