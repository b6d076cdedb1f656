"""CLI entry point for prscribe.

Commands:
  run   run the PR content pipeline (summary and/or review) on one pull request
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prscribe_cli.commands.run import run_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prscribe"),
    prog_name="prscribe",
)
@click.option(
    "--config",
    "config_path",
    default=".prscribe.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSCRIBE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Generate PR summaries and reviews with an LLM and publish them idempotently."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(run_cmd)
