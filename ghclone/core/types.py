"""Small types and Enums used by ghclone."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Protocol(str, Enum):
    """Clone transport preference."""

    ssh = "ssh"
    https = "https"


class RepositoryRecord(BaseModel):
    """One repository as listed by the API. Never mutated."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    ssh_url: str = Field(alias="sshUrl")
    https_url: str = Field(alias="url")
    is_archived: bool = Field(default=False, alias="isArchived")
    is_fork: bool = Field(default=False, alias="isFork")

    @field_validator("https_url")
    @classmethod
    def _git_suffix(cls, v: str) -> str:
        # GraphQL `url` is the web page URL
        return v if v.endswith(".git") else v + ".git"

    def clone_url(self, protocol: Protocol) -> str:
        return self.ssh_url if protocol == Protocol.ssh else self.https_url


@dataclass
class Page:
    records: list[RepositoryRecord]
    has_next: bool
    cursor: str | None = None


class OutcomeKind(str, Enum):
    cloned = "cloned"
    skipped = "skipped"
    failed = "failed"


@dataclass(frozen=True)
class Outcome:
    """Terminal result for a single repository."""

    kind: OutcomeKind
    reason: str | None = None

    @classmethod
    def cloned(cls) -> Outcome:
        return cls(OutcomeKind.cloned)

    @classmethod
    def skipped(cls) -> Outcome:
        return cls(OutcomeKind.skipped)

    @classmethod
    def failed(cls, reason: str) -> Outcome:
        return cls(OutcomeKind.failed, reason)


@dataclass
class RunSummary:
    """Counts and failures of a run that reached completion."""

    results: dict[str, Outcome] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    def _count(self, kind: OutcomeKind) -> int:
        return sum(1 for o in self.results.values() if o.kind == kind)

    @property
    def cloned(self) -> int:
        return self._count(OutcomeKind.cloned)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeKind.skipped)

    @property
    def failed(self) -> int:
        return self._count(OutcomeKind.failed)

    @property
    def failures(self) -> list[tuple[str, str]]:
        return [
            (name, o.reason or "")
            for name, o in self.results.items()
            if o.kind == OutcomeKind.failed
        ]
