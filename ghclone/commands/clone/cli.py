"""CLI for cloning every repository owned by the authenticated user."""

import typer

from ...config.settings import get_settings
from ...core.types import Protocol
from .service import clone_all


def clone(
    dest: str = typer.Option(None, help="Destination directory"),
    token: str | None = typer.Option(None, help="GitHub PAT"),
    max_parallel: int = typer.Option(None, "--max-parallel", "-j", min=1, help="Concurrent git clones"),
    ssh: bool = typer.Option(False, "--ssh", help="Use SSH URLs"),
    shallow: bool = typer.Option(False, "--shallow", help="Shallow clones (depth 1)"),
    embed_token: bool = typer.Option(False, "--embed-token", help="Put the token into HTTPS clone URLs"),
    exclude_archived: bool = typer.Option(False, "--exclude-archived", help="Skip archived repos"),
    exclude_forks: bool = typer.Option(False, "--exclude-forks", help="Skip forks"),
    git_timeout: float = typer.Option(None, "--git-timeout", min=1, help="Kill a clone after this many seconds"),
):
    """Typer command to clone all repositories of the token's user."""
    s = get_settings()
    updates = {
        "shallow": shallow or s.shallow,
        "embed_token": embed_token or s.embed_token,
        "include_archived": s.include_archived and not exclude_archived,
        "include_forks": s.include_forks and not exclude_forks,
    }
    if token is not None:
        updates["github_token"] = token
    if max_parallel is not None:
        updates["max_parallel"] = max_parallel
    if ssh:
        updates["protocol"] = Protocol.ssh
    if git_timeout is not None:
        updates["git_timeout"] = git_timeout
    s = s.model_copy(update=updates)

    code = clone_all(s, dest or s.default_dest)
    raise typer.Exit(code=code)
