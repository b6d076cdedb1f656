"""PR content pipeline: wiring of stages, collaborators and configuration."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.table import Table

from prscribe_core.config import RunOptions, resolve_options
from prscribe_core.errors import ConfigurationError, StageFailedError
from prscribe_core.gh.pull_request import GitHubHost
from prscribe_core.gh.shadow import ShadowHost
from prscribe_core.providers.anthropic import AnthropicGenerator
from prscribe_core.providers.base import RetryingGenerator
from prscribe_core.providers.openai import AzureOpenAIGenerator, OpenAIGenerator
from prscribe_core.tracker.jira import JiraTracker
from prscribe_core.workflow import steps
from prscribe_core.workflow.engine import RunContext, StageStatus, Workflow, WorkflowRun

console = Console()
logger = logging.getLogger(__name__)

WORKFLOW_NAME = "pr_agent"


def build_generator(config: dict):
    model = config["model"]
    name = config.get("model_name")
    if model == "anthropic":
        generator = AnthropicGenerator(api_key=config["anthropic_api_key"], model=name)
    elif model == "openai":
        generator = OpenAIGenerator(api_key=config["openai_api_key"], model=name)
    elif model == "openai-compatible":
        generator = OpenAIGenerator(api_key=config["openai_api_key"], model=name, base_url=config["openai_base_url"])
    elif model == "azure":
        generator = AzureOpenAIGenerator(
            api_key=config["azure_api_key"],
            endpoint=config["azure_endpoint"],
            deployment=name,
            api_version=config.get("azure_api_version"),
        )
    else:
        raise ConfigurationError(f"Unknown model provider: {model!r}.")

    retries = int(config.get("model_retries") or 1)
    if retries > 1:
        return RetryingGenerator(generator, attempts=retries)
    return generator


def build_tracker(config: dict) -> JiraTracker:
    return JiraTracker(
        base_url=config["jira_base_url"],
        email=config["jira_email"],
        api_token=config["jira_api_token"],
    )


def build_pr_workflow() -> Workflow:
    """Declare the pipeline.

    get_pr_details → [ticket?] → get_pr_diff → [summary?] → [review?]

    All three branch predicates depend only on the run options, so they are
    static: decided once before the first stage runs.
    """
    ticket = Workflow("ticket_sequence").step(steps.get_ticket_info).commit()
    ticket_skip = Workflow("ticket_skip").step(steps.ticket_noop).commit()
    summary = Workflow("summary_sequence").step(steps.generate_summary).step(steps.publish_summary).commit()
    summary_skip = Workflow("summary_skip").step(steps.summary_noop).commit()
    review = Workflow("review_sequence").step(steps.generate_review).step(steps.publish_review).commit()
    review_skip = Workflow("review_skip").step(steps.review_noop).commit()

    return (
        Workflow(WORKFLOW_NAME)
        .step(steps.get_pr_details)
        .branch("ticket", _ticket_enabled, ticket, ticket_skip, static=True)
        .step(steps.get_pr_diff)
        .branch("summary", _summary_enabled, summary, summary_skip, static=True)
        .branch("review", _review_enabled, review, review_skip, static=True)
        .commit()
    )


def _ticket_enabled(ctx: RunContext) -> bool:
    options: RunOptions = ctx.options
    return options.ticket_integration_enabled and options.ticket_pattern is not None


def _summary_enabled(ctx: RunContext) -> bool:
    return ctx.options.summary_enabled


def _review_enabled(ctx: RunContext) -> bool:
    return ctx.options.review_enabled


def published_stages(run: WorkflowRun) -> list[str]:
    """Return the publication stages that actually wrote to the pull request."""
    published = []
    for stage_id in (steps.PUBLISH_SUMMARY, steps.PUBLISH_REVIEW):
        result = run.output(stage_id)
        if result is not None and result.published:
            published.append(stage_id)
    return published


def print_run_summary(run: WorkflowRun) -> None:
    _status_color = {
        StageStatus.COMPLETED: "green",
        StageStatus.FAILED: "red",
        StageStatus.SKIPPED: "dim",
        StageStatus.PENDING: "yellow",
        StageStatus.RUNNING: "yellow",
    }
    table = Table(title=f"Workflow {run.workflow}: {run.status.value}")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    for record in run.trace():
        color = _status_color[record.status]
        duration = f"{record.duration:.1f}s" if record.duration is not None else "-"
        table.add_row(record.stage_id, f"[{color}]{record.status.value}[/{color}]", duration)
    console.print(table)
    console.print(f"Published: {', '.join(published_stages(run)) or 'nothing'}")


def run_pipeline(
    repo: str,
    pr_number: int,
    config: dict,
    host=None,
    tracker=None,
    generator=None,
    shadow: bool = False,
) -> WorkflowRun:
    """Run the full PR pipeline and return its trace.

    Configuration is validated before anything touches GitHub. Collaborators
    not passed in are built from ``config``. Any stage failure propagates as
    StageFailedError; publications made before the failing stage stay.
    """
    options = resolve_options(config)

    if host is None:
        token = config.get("github_token")
        if not token:
            raise ConfigurationError("A GitHub token is required (set GITHUB_TOKEN).")
        host = GitHubHost.connect(
            repo,
            pr_number,
            token=token,
            max_commit_chars=config.get("max_commit_message_chars", 2000),
        )
    if shadow:
        host = ShadowHost(host)
    if tracker is None and options.ticket_integration_enabled:
        tracker = build_tracker(config)
    if generator is None and options.actions:
        generator = build_generator(config)

    if not options.actions:
        console.print("[yellow]No actions enabled. Set actions: [summary, review] in .prscribe.yml.[/yellow]")

    enabled = ", ".join(sorted(options.actions)) or "none"
    console.print(f"Running {WORKFLOW_NAME} on {repo}#{pr_number} (actions: {enabled})")
    ctx = RunContext(options=options, host=host, tracker=tracker, generator=generator)
    try:
        run = build_pr_workflow().run(ctx)
    except StageFailedError as e:
        # The partial trace shows which stages ran before the failure.
        if e.run is not None:
            print_run_summary(e.run)
        raise
    print_run_summary(run)
    return run
