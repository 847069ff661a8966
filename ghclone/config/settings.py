from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.constants import DEFAULT_DEST, DEFAULT_MAX_PARALLEL, GRAPHQL_URL, HTTP_TIMEOUT_SEC
from ..core.types import Protocol

# Load .env once, early
load_dotenv()


class Settings(BaseSettings):
    """Application config (env or .env). Every field can be set as ``GHCLONE_<NAME>``."""

    model_config = SettingsConfigDict(env_prefix="GHCLONE_", env_file=None, extra="ignore")

    github_token: str | None = Field(default_factory=lambda: os.getenv("GITHUB_TOKEN"))
    default_dest: str = Field(default=DEFAULT_DEST)
    max_parallel: int = Field(default=DEFAULT_MAX_PARALLEL, ge=1)
    protocol: Protocol = Field(default=Protocol.https)
    shallow: bool = False
    embed_token: bool = False
    include_archived: bool = True
    include_forks: bool = True
    graphql_url: str = Field(default=GRAPHQL_URL)
    http_timeout: float = Field(default=HTTP_TIMEOUT_SEC, gt=0)
    git_timeout: float | None = Field(default=None, gt=0)


def get_settings() -> Settings:
    return Settings()
