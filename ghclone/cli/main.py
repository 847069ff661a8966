"""CLI entrypoint that wires subcommands into a Typer app."""

import logging

import typer

from ..commands.clone.cli import clone
from ..commands.list.cli import list_cmd

app = typer.Typer(add_completion=False, help="Clone every GitHub repository you own.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app.command(help="Clone all repositories you own")(clone)
app.command("list", help="List repositories without cloning")(list_cmd)
