"""End-to-end run orchestration: fetch, dispatch, summarize or cancel."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from ..config.settings import Settings
from .constants import DEFAULT_MAX_PARALLEL
from .dispatcher import Dispatcher
from .errors import CancellationError, GhcloneError, PreconditionError
from .events import Event, EventKind, EventSink, log_event
from .git_client import GitClient
from .github_client import GitHubClient
from .types import Page, RepositoryRecord, RunSummary

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]
ClientFactory = Callable[[str], GitHubClient]
GitFactory = Callable[[str], GitClient]


@dataclass
class _ActiveRun:
    target_dir: str
    fetch_task: asyncio.Future | None = None
    dispatcher: Dispatcher | None = None
    cancelled: bool = False


class RunController:
    """Owns at most one live run and exposes start / list / cancel to front ends."""

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        client_factory: ClientFactory | None = None,
        git_factory: GitFactory | None = None,
        max_parallel: int = DEFAULT_MAX_PARALLEL,
        include_archived: bool = True,
        include_forks: bool = True,
        sink: EventSink | None = None,
    ) -> None:
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")
        self._token_provider = token_provider
        self._client_factory = client_factory or (lambda token: GitHubClient(token))
        self._git_factory = git_factory or (lambda token: GitClient(token=token))
        self.max_parallel = max_parallel
        self.include_archived = include_archived
        self.include_forks = include_forks
        self._emit = sink or log_event
        self._run: _ActiveRun | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, sink: EventSink | None = None) -> RunController:
        def git_factory(token: str) -> GitClient:
            return GitClient(
                protocol=settings.protocol,
                shallow=settings.shallow,
                token=token,
                embed_token=settings.embed_token,
                timeout=settings.git_timeout,
            )

        def client_factory(token: str) -> GitHubClient:
            return GitHubClient(token, url=settings.graphql_url, timeout=settings.http_timeout)

        return cls(
            lambda: settings.github_token,
            client_factory=client_factory,
            git_factory=git_factory,
            max_parallel=settings.max_parallel,
            include_archived=settings.include_archived,
            include_forks=settings.include_forks,
            sink=sink,
        )

    @property
    def is_running(self) -> bool:
        return self._run is not None

    # ---------- control surface ----------
    async def start_run(self, target_dir: str) -> RunSummary:
        """Fetch every repository and clone them into ``target_dir``.

        Raises PreconditionError before any work, TransportError/ApiError if
        the listing fails (nothing is cloned), CancellationError if
        ``cancel_run`` was called.
        """
        if self._run is not None:
            raise PreconditionError("a run is already active")
        token = self._require_token()
        try:
            os.makedirs(target_dir, exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"cannot create {target_dir}: {e}") from e

        run = _ActiveRun(target_dir=target_dir)
        self._run = run
        try:
            run.fetch_task = asyncio.ensure_future(self._fetch(token))
            try:
                repos = await run.fetch_task
            except asyncio.CancelledError:
                if run.cancelled:
                    raise CancellationError("run cancelled during listing") from None
                raise
            if run.cancelled:
                raise CancellationError("run cancelled during listing")

            git = self._git_factory(token)
            run.dispatcher = Dispatcher(git.clone, git.has_checkout, self._emit)
            handle = run.dispatcher.start(repos, self.max_parallel, target_dir)
            return await handle.wait()
        finally:
            # a cancelled run is released by cancel_run once its processes are reaped
            if self._run is run and not run.cancelled:
                self._run = None

    async def list_only(self) -> list[RepositoryRecord]:
        """Fetch and report the repository set without cloning anything."""
        token = self._require_token()
        repos = await self._fetch(token)
        for r in repos:
            self._emit(Event(EventKind.repo_listed, {
                "name": r.name,
                "url": r.https_url,
                "ssh_url": r.ssh_url,
                "archived": r.is_archived,
                "fork": r.is_fork,
            }))
        return repos

    async def cancel_run(self) -> bool:
        """Kill every running clone and drop the run. False if nothing was running."""
        run = self._run
        if run is None or run.cancelled:
            return False
        handle = run.dispatcher.handle if run.dispatcher is not None else None
        if handle is not None and handle.done:
            # already completed, start_run just has not resumed yet
            return False
        run.cancelled = True
        if run.fetch_task is not None:
            run.fetch_task.cancel()
        tasks: list[asyncio.Task] = []
        try:
            if handle is not None:
                tasks = handle.cancel()
            if tasks:
                logger.debug("waiting for %d clone process(es) to exit", len(tasks))
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if self._run is run:
                self._run = None
        self._emit(Event(EventKind.run_cancelled, {"target_dir": run.target_dir, "killed": len(tasks)}))
        return True

    # ---------- internals ----------
    def _require_token(self) -> str:
        token = self._token_provider()
        if not token:
            raise PreconditionError("no GitHub token available (set GITHUB_TOKEN or pass --token)")
        return token

    async def _fetch(self, token: str) -> list[RepositoryRecord]:
        self._emit(Event(EventKind.fetch_started))
        seen = 0

        def on_page(page_no: int, page: Page) -> None:
            nonlocal seen
            seen += len(page.records)
            self._emit(Event(EventKind.page_fetched, {"page": page_no, "count": len(page.records), "total": seen}))

        try:
            async with self._client_factory(token) as client:
                repos = await client.list_user_repos(on_page=on_page)
        except GhcloneError as e:
            self._emit(Event(EventKind.fetch_failed, {"error": str(e), "type": type(e).__name__}))
            raise
        return self._select(repos)

    def _select(self, repos: list[RepositoryRecord]) -> list[RepositoryRecord]:
        return [
            r for r in repos
            if (self.include_archived or not r.is_archived) and (self.include_forks or not r.is_fork)
        ]
