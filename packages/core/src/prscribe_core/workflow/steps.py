"""The stages of the PR pipeline.

Each stage reads what it needs from the RunContext, writes its artifact to
the shared WorkflowState, and returns it as its output. Artifacts that a
stage cannot do without are read with ``state.require`` and abort the run
when missing; the publication stages instead report ``skipped`` when there
is nothing to publish.
"""

from __future__ import annotations

import logging
import re

from rich.console import Console

from prscribe_core.constants import REVIEW_COMMENT_MARKER
from prscribe_core.errors import MissingArtifactError
from prscribe_core.models import DiffPayload, PrDetails, PrReview, PrSummary, PublishResult, TicketInfo
from prscribe_core.prompts import REVIEW_INSTRUCTIONS, SUMMARY_INSTRUCTIONS, build_user_prompt
from prscribe_core.reconcile import publish_comment, publish_description
from prscribe_core.utils.diff import process_diff
from prscribe_core.utils.markdown import render_review, render_summary
from prscribe_core.workflow.engine import RunContext, noop_stage, stage
from prscribe_core.workflow.state import StateKey

console = Console()
logger = logging.getLogger(__name__)

GET_PR_DETAILS = "get_pr_details"
GET_TICKET_INFO = "get_ticket_info"
GET_PR_DIFF = "get_pr_diff"
GENERATE_SUMMARY = "generate_summary"
PUBLISH_SUMMARY = "publish_summary"
GENERATE_REVIEW = "generate_review"
PUBLISH_REVIEW = "publish_review"


def extract_ticket_id(branch_name: str, pattern: re.Pattern | None) -> str | None:
    """Return the first capture group of ``pattern`` found in the branch name."""
    if pattern is None or pattern.groups < 1:
        return None
    match = pattern.search(branch_name or "")
    if match is None:
        return None
    return match.group(1) or None


@stage(GET_PR_DETAILS, output=PrDetails)
def get_pr_details(ctx: RunContext) -> PrDetails:
    details = ctx.host.fetch_metadata()
    console.print(f"Fetched PR details: [bold]{details.title}[/bold] ([cyan]{details.branch_name}[/cyan])")
    ctx.state.set(StateKey.PR_DETAILS, details)
    return details


@stage(GET_TICKET_INFO, output=TicketInfo)
def get_ticket_info(ctx: RunContext) -> TicketInfo:
    details = ctx.lookup(StateKey.PR_DETAILS, GET_PR_DETAILS)
    if details is None and isinstance(ctx.last_result, PrDetails):
        details = ctx.last_result
    if details is None:
        raise MissingArtifactError(StateKey.PR_DETAILS.value)

    info = TicketInfo()
    ticket_id = extract_ticket_id(details.branch_name, ctx.options.ticket_pattern)
    if ticket_id:
        console.print(f"Fetching ticket [bold]{ticket_id}[/bold]")
        info = ctx.tracker.fetch_ticket(ticket_id)
    else:
        console.print(f"[dim]No ticket id found in branch {details.branch_name!r}. Skipping ticket fetch.[/dim]")

    ctx.state.set(StateKey.TICKET_INFO, info)
    return info


@stage(GET_PR_DIFF, output=DiffPayload)
def get_pr_diff(ctx: RunContext) -> DiffPayload:
    options = ctx.options
    raw = ctx.host.fetch_diff()
    if options.ignore_patterns:
        logger.debug("Ignore patterns: %s", ", ".join(options.ignore_patterns))

    result = process_diff(raw, options.ignore_patterns, options.max_diff_chars)
    if result.was_truncated:
        console.print(
            f"[yellow]Diff length ({result.original_length}) exceeded limit ({options.max_diff_chars}). "
            f"Clipped to {len(result.text)} characters on file boundaries.[/yellow]"
        )
    logger.debug("Raw diff %d chars, processed diff %d chars.", len(raw), len(result.text))

    payload = DiffPayload(diff=result.text, was_truncated=result.was_truncated, original_length=result.original_length)
    ctx.state.set(StateKey.DIFF, payload)
    return payload


def _generate(ctx: RunContext, verb: str, output_model, instructions: str):
    diff = ctx.state.require(StateKey.DIFF)
    details = ctx.state.require(StateKey.PR_DETAILS)
    ticket = ctx.state.get(StateKey.TICKET_INFO)
    prompt = build_user_prompt(verb, details, diff, ticket)
    logger.debug("Prompt for %s:\n%s", output_model.__name__, prompt)
    return ctx.generator.generate(prompt, output_model, ctx.options.temperature, instructions)


@stage(GENERATE_SUMMARY, output=PrSummary)
def generate_summary(ctx: RunContext) -> PrSummary:
    console.print("Generating PR summary...")
    summary = _generate(ctx, "Summarise", PrSummary, SUMMARY_INSTRUCTIONS)
    ctx.state.set(StateKey.SUMMARY, summary)
    return summary


@stage(PUBLISH_SUMMARY, output=PublishResult)
def publish_summary(ctx: RunContext) -> PublishResult:
    summary = ctx.state.get(StateKey.SUMMARY)
    details = ctx.state.get(StateKey.PR_DETAILS)
    if summary is None or details is None:
        console.print("[yellow]No summary available. Skipping description update.[/yellow]")
        return PublishResult(action="skipped")

    result = publish_description(ctx.host, details.description, render_summary(summary))
    console.print("[green]PR description updated with summary.[/green]")
    return result


@stage(GENERATE_REVIEW, output=PrReview)
def generate_review(ctx: RunContext) -> PrReview:
    console.print("Generating PR review...")
    review = _generate(ctx, "Review", PrReview, REVIEW_INSTRUCTIONS)
    ctx.state.set(StateKey.REVIEW, review)
    return review


@stage(PUBLISH_REVIEW, output=PublishResult)
def publish_review(ctx: RunContext) -> PublishResult:
    review = ctx.state.get(StateKey.REVIEW)
    if review is None:
        console.print("[yellow]No review available. Skipping comment.[/yellow]")
        return PublishResult(action="skipped")

    result = publish_comment(ctx.host, render_review(review), ctx.options.bot_login, REVIEW_COMMENT_MARKER)
    console.print(f"[green]Review comment {result.action} (id {result.comment_id}).[/green]")
    return result


ticket_noop = noop_stage("ticket_noop")
summary_noop = noop_stage("summary_noop")
review_noop = noop_stage("review_noop")
