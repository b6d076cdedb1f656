"""Idempotent publication of generated content to a pull request.

Two targets, both safe to re-run any number of times:

Description (document mode)
    The agent's block sits at the end of the PR description between
    SUMMARY_START_MARKER and SUMMARY_END_MARKER. Whatever the author wrote
    above the start marker is preserved; the old block is replaced. If the
    markers are missing or out of order, the whole description is treated as
    the author's and the block is appended below it.

Comment (stream mode)
    The agent's review lives in one conversation comment ending with
    REVIEW_COMMENT_MARKER. The newest comment by the bot account carrying
    the marker is edited in place; if there is none, a new one is created.

Two runs racing on the same PR can both see "no comment" and both create
one. The next run edits the newer of the two and leaves the older alone,
so duplicates stop growing but are not cleaned up. Single-flight per PR is
the caller's job (e.g. a GitHub Actions concurrency group).
"""

from __future__ import annotations

import logging
from typing import Iterable

from prscribe_core.constants import SUMMARY_END_MARKER, SUMMARY_START_MARKER
from prscribe_core.gh.base import ChangeHost, CommentRef
from prscribe_core.models import PublishResult

logger = logging.getLogger(__name__)

_SEPARATOR = "\n\n---\n\n"


def split_user_content(current: str, start: str = SUMMARY_START_MARKER, end: str = SUMMARY_END_MARKER) -> str:
    """Return the author-owned part of a description.

    Everything after the start marker, including anything past the end
    marker, belongs to the agent and is dropped.
    """
    current = current or ""
    start_idx = current.find(start)
    end_idx = current.find(end)
    if start_idx != -1 and end_idx != -1 and end_idx > start_idx:
        logger.debug("Found previous summary block; preserving content above it.")
        return current[:start_idx].strip()
    return current.strip()


def merge_description(
    current: str,
    rendered: str,
    start: str = SUMMARY_START_MARKER,
    end: str = SUMMARY_END_MARKER,
) -> str:
    user_content = split_user_content(current, start, end)
    separator = _SEPARATOR if user_content else ""
    return f"{user_content}{separator}{start}\n{rendered}\n{end}".strip()


def publish_description(host: ChangeHost, current: str, rendered: str) -> PublishResult:
    host.update_description(merge_description(current, rendered))
    return PublishResult(action="updated")


def select_live_comment(comments: Iterable[CommentRef], author: str, marker: str) -> CommentRef | None:
    """Return the newest comment by ``author`` that carries ``marker``.

    Equal timestamps are broken by the higher comment id, which GitHub
    assigns monotonically.
    """
    candidates = [c for c in comments if c.author == author and marker in c.body]
    if not candidates:
        return None
    return max(candidates, key=lambda c: (c.created_at, c.id))


def publish_comment(host: ChangeHost, body: str, author: str, marker: str) -> PublishResult:
    # A comment without the marker could never be found again.
    if marker not in body:
        body = f"{body}\n{marker}"

    existing = select_live_comment(host.list_comments(), author, marker)
    if existing is not None:
        logger.info("Editing previous comment %d by %s.", existing.id, author)
        host.edit_comment(existing.id, body)
        return PublishResult(action="edited", comment_id=existing.id)

    logger.info("No previous comment by %s with marker; creating one.", author)
    comment_id = host.create_comment(body)
    return PublishResult(action="created", comment_id=comment_id)
