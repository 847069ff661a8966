"""CLI for listing the repositories without cloning them."""

import typer

from ...config.settings import get_settings
from ...core.types import Protocol
from .service import list_repos


def list_cmd(
    token: str | None = typer.Option(None, help="GitHub PAT"),
    ssh: bool = typer.Option(False, "--ssh", help="Show SSH URLs"),
    exclude_archived: bool = typer.Option(False, "--exclude-archived", help="Hide archived repos"),
    exclude_forks: bool = typer.Option(False, "--exclude-forks", help="Hide forks"),
):
    """List every repository owned by the token's user."""
    s = get_settings()
    updates = {
        "include_archived": s.include_archived and not exclude_archived,
        "include_forks": s.include_forks and not exclude_forks,
    }
    if token is not None:
        updates["github_token"] = token
    if ssh:
        updates["protocol"] = Protocol.ssh
    raise typer.Exit(code=list_repos(s.model_copy(update=updates)))
