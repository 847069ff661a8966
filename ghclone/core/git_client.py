"""Async wrapper around ``git clone`` plus the existing-checkout check."""

from __future__ import annotations

import asyncio
import logging
import os
from urllib.parse import urlparse, urlunparse

from .constants import GIT_METADATA_DIR
from .types import Outcome, Protocol, RepositoryRecord

logger = logging.getLogger(__name__)


def inject_token_into_https(clone_url: str, token: str) -> str:
    """https://github.com/owner/repo.git -> https://x-access-token:<token>@github.com/owner/repo.git"""
    u = urlparse(clone_url)
    netloc = f"x-access-token:{token}@{u.netloc}"
    return urlunparse((u.scheme, netloc, u.path, u.params, u.query, u.fragment))


class GitClient:
    def __init__(
        self,
        *,
        protocol: Protocol = Protocol.https,
        shallow: bool = False,
        token: str | None = None,
        embed_token: bool = False,
        timeout: float | None = None,
        git: str = "git",
    ) -> None:
        self.protocol = protocol
        self.shallow = shallow
        self.token = token
        self.embed_token = embed_token
        self.timeout = timeout
        self.git = git

    # ---------- skip detection ----------
    @staticmethod
    def has_checkout(path: str) -> bool:
        """True when ``path`` already holds git metadata. Content is not inspected."""
        return os.path.exists(os.path.join(path, GIT_METADATA_DIR))

    # ---------- clone ----------
    def clone_url(self, record: RepositoryRecord) -> str:
        url = record.clone_url(self.protocol)
        if self.protocol == Protocol.https and self.embed_token and self.token:
            url = inject_token_into_https(url, self.token)
        return url

    def clone_command(self, record: RepositoryRecord, target_dir: str) -> list[str]:
        # disable credential helpers so a bad credential fails instead of prompting
        cmd = [self.git, "-c", "credential.helper=", "clone"]
        if self.shallow:
            cmd += ["--depth", "1", "--single-branch"]
        cmd += [self.clone_url(record), os.path.join(target_dir, record.name)]
        return cmd

    def _redact(self, text: str) -> str:
        if self.token:
            text = text.replace(self.token, "***")
        return text

    async def clone(self, record: RepositoryRecord, target_dir: str) -> Outcome:
        """Run one clone to completion. Never retries.

        Cancelling the awaiting task kills the child process before the
        cancellation propagates.
        """
        cmd = self.clone_command(record, target_dir)
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            return Outcome.failed(self._redact(str(e)))

        logger.debug("git clone %s started (pid %s)", record.name, proc.pid)
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            return Outcome.failed(f"git clone timed out after {self.timeout:g}s")
        except asyncio.CancelledError:
            logger.debug("killing git clone %s (pid %s)", record.name, proc.pid)
            await _kill(proc)
            raise

        if proc.returncode == 0:
            return Outcome.cloned()
        diag = (err or b"").decode("utf-8", "ignore").strip() or (out or b"").decode("utf-8", "ignore").strip()
        return Outcome.failed(self._redact(diag) or f"git exited with status {proc.returncode}")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
