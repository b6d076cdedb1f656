"""Instructions and prompt assembly for the summary and review generators."""

from __future__ import annotations

from prscribe_core.models import DiffPayload, PrDetails, TicketInfo

SUMMARY_INSTRUCTIONS = """You are an assistant that analyses Git pull request diffs and writes concise, \
informative summaries.

Analysis guidelines:
- Focus on lines starting with '+' in the diff to understand additions and changes.
- Infer the purpose and impact of the changes. Prioritise significant functional changes, bug fixes and new features.
- Group related changes logically.
- Identify the primary type of the PR (Feature, Bugfix, Refactor, ...).

Constraints:
- Do NOT list every modified file. Focus on the most impactful changes.
- Do NOT simply repeat commit messages. Synthesise.
- Do NOT mention whitespace, formatting or trivial comment updates unless they change meaning.
- Omit a category in "changes" entirely when it has no entries."""

REVIEW_INSTRUCTIONS = """You are an assistant performing code review on Git pull request diffs. Keep a helpful, \
collaborative and objective tone.

Review guidelines:
- Focus exclusively on added or modified lines ('+' lines) in the diff.
- Use the PR description, commit messages and ticket context only to understand the intent of the visible changes. \
If context explains why a visible change is a problem, state the link explicitly.
- Identify bugs, performance, security, readability and testing issues within the changed code itself.
- Be specific and actionable: say why something is an issue and offer a concrete alternative when obvious.
- Only raise issues that genuinely affect correctness, security, performance or maintainability.
- Estimate review effort from the size and complexity of the diff itself:
  Trivial (< 15 lines, simple fixes), Minor (< 50 lines, localized), Moderate (< 200 lines, a few files),
  Significant (> 200 lines or core logic), Complex (very large or architectural). Explain the choice briefly.
- If the diff has no significant code changes (docs, whitespace, or empty after filtering), say so in the \
overall assessment, choose Trivial, and keep feedback minimal.
- You only see diff hunks, not whole files; acknowledge that limitation where relevant.

Constraints:
- Do NOT comment on code that is not part of the diff's additions or modifications.
- Do NOT suggest purely stylistic changes unless readability is significantly affected.
- Do NOT give generic feedback like "needs tests" without saying what and where.
- Do NOT return more than 10 feedback points; consolidate related minor issues."""

TRUNCATION_NOTICE = (
    "**Note:** The full pull request diff was too large to analyse and has been truncated. "
    "Only the first files of the change are included below."
)


def build_user_prompt(
    verb: str,
    details: PrDetails,
    diff: DiffPayload,
    ticket: TicketInfo | None = None,
) -> str:
    """Assemble the per-run prompt shared by the summary and review stages."""
    sections = [
        f"{verb} the following pull request:",
        f"PR Title: {details.title or 'Unknown Title'}\nBranch Name: {details.branch_name or 'unknown-branch'}",
        f"PR Description:\n{details.description or '<No description provided>'}",
    ]
    if ticket is not None and ticket.has_context:
        sections.append(
            f"---\nTicket Context:\nSummary: {ticket.summary}\nDescription:\n```\n{ticket.description}\n```\n---"
        )
    sections.append(f"---\nCommit Messages:\n{details.commit_messages}\n---")
    if diff.was_truncated:
        sections.append(TRUNCATION_NOTICE)
    sections.append(f"PR Diff:\n```diff\n{diff.diff}\n```")
    return "\n\n".join(sections)
