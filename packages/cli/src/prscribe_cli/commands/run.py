"""run command: execute the PR pipeline on one pull request."""

from __future__ import annotations

import json
import logging
import os

import click
from rich.console import Console

from prscribe_core.errors import PrscribeError, StageFailedError
from prscribe_core.pipeline import run_pipeline

console = Console()
logger = logging.getLogger(__name__)


def pr_number_from_event(event_path: str | None) -> int | None:
    """Read the PR number from a GitHub Actions event payload, if there is one."""
    if not event_path or not os.path.exists(event_path):
        return None
    with open(event_path) as f:
        try:
            event = json.load(f)
        except json.JSONDecodeError as e:
            raise click.UsageError(f"Could not parse GitHub event payload {event_path}: {e}")
    number = (event.get("pull_request") or {}).get("number") or event.get("number")
    return int(number) if number else None


@click.command("run")
@click.option(
    "--repo",
    envvar="GITHUB_REPOSITORY",
    required=True,
    help="GitHub repository in owner/name format. Defaults to $GITHUB_REPOSITORY.",
)
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Defaults to the PR in $GITHUB_EVENT_PATH.",
)
@click.option(
    "--actions",
    default=None,
    help="Comma-separated actions to run (summary, review). Overrides config file.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai", "azure", "openai-compatible"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print what would be published without writing to GitHub.",
)
@click.pass_context
def run_cmd(ctx, repo: str, pr_number: int | None, actions: str | None, model: str | None, shadow: bool):
    """Summarise and/or review a pull request and publish the result.

    The summary is written into the PR description between marker comments;
    the review is posted as a single bot comment that is edited on re-runs.

    \b
    Environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai / openai-compatible
      JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN   Optional ticket context
      PR_AGENT_ACTIONS, IGNORE_PATTERNS, MAX_DIFF_CHARS, MODEL_TEMPERATURE,
      JIRA_BRANCH_REGEX, MODEL_PROVIDER, ANTHROPIC_MODEL, OPENAI_MODEL
                           Settings that override .prscribe.yml
    """
    from prscribe_core.config import load_config
    from prscribe_cli.auth import github_token_for

    config_path = (ctx.obj or {}).get("config_path", ".prscribe.yml")

    if pr_number is None:
        pr_number = pr_number_from_event(os.environ.get("GITHUB_EVENT_PATH"))
    if pr_number is None:
        raise click.UsageError("No pull request number. Pass --pr or run from a pull_request event.")

    try:
        config = load_config(config_path, cli_overrides={"model": model, "actions": actions})
    except PrscribeError as e:
        raise click.ClickException(str(e))

    token = github_token_for(config)
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    try:
        run_pipeline(repo=repo, pr_number=pr_number, config=config, shadow=shadow)
    except StageFailedError as e:
        console.print(f"[red]Workflow failed at stage {e.stage_id}: {e.cause}[/red]")
        raise click.ClickException(str(e))
    except PrscribeError as e:
        console.print(f"[red]{e}[/red]")
        raise click.ClickException(str(e))
