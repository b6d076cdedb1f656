"""Render generated artifacts as GitHub-flavored markdown. Pure functions."""

from __future__ import annotations

from prscribe_core.constants import REVIEW_COMMENT_MARKER
from prscribe_core.models import FeedbackPoint, FileChange, PrReview, PrSummary

_CHANGE_GROUPS = (
    ("enhancements", "Enhancements"),
    ("bugfixes", "Bug fixes"),
    ("tests", "Tests"),
    ("config", "Configuration"),
)


def _change_lines(changes: list[FileChange]) -> list[str]:
    return [f"- `{c.file_name}`: {c.summary}" for c in changes]


def render_summary(summary: PrSummary) -> str:
    lines = ["## PR Summary", "", f"**Type:** {summary.pr_type.value}", ""]
    lines.extend(f"- {point}" for point in summary.description)

    groups = [(title, getattr(summary.changes, attr)) for attr, title in _CHANGE_GROUPS]
    groups = [(title, items) for title, items in groups if items]
    if groups:
        lines.extend(["", "### Changes"])
        for title, items in groups:
            lines.extend(["", f"**{title}**", ""])
            lines.extend(_change_lines(items))

    return "\n".join(lines)


def _feedback_block(index: int, point: FeedbackPoint) -> list[str]:
    heading = f"#### {index}. `{point.file_path}`"
    if point.line_reference:
        heading += f" ({point.line_reference})"
    if point.severity is not None:
        heading += f" · **{point.severity.value}**"
    block = [heading, "", point.description]
    if point.suggested_code_change:
        block.extend(["", "```", point.suggested_code_change.strip("\n"), "```"])
    return block


def render_review(review: PrReview) -> str:
    """Render a review comment. The last line is the review marker."""
    effort = f"**Review effort:** {review.review_effort.value}"
    if review.review_effort_reasoning:
        effort += f" · _{review.review_effort_reasoning}_"

    lines = ["## PR Review", "", f"> {review.overall_assessment}", "", effort]

    lines.extend(["", "### Feedback", ""])
    if review.feedback_points:
        for i, point in enumerate(review.feedback_points, 1):
            if i > 1:
                lines.append("")
            lines.extend(_feedback_block(i, point))
    else:
        lines.append("_No issues found._")

    lines.extend(["", "### Security concerns", ""])
    if review.security_concerns:
        lines.extend(f"- {concern}" for concern in review.security_concerns)
    else:
        lines.append("_None identified._")

    if review.test_coverage_assessment:
        lines.extend(["", "### Test coverage", "", review.test_coverage_assessment])

    lines.extend(["", REVIEW_COMMENT_MARKER])
    return "\n".join(lines)
