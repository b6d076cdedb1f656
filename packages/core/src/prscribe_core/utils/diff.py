"""Unified-diff filtering and boundary-safe truncation.

The PR diff is handed to the model as plain text, so everything here works
on the unified-diff text format alone: no hunk arithmetic, no AST. A diff is
split into file sections at each ``diff --git`` header, sections whose path
matches an ignore pattern are dropped whole, and what remains is cut to the
character budget on section boundaries.

All functions are pure. Splitting on ``\\n`` and re-joining with ``\\n``
reproduces the input exactly, so sections that survive filtering are
byte-identical to the original text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from wcmatch import glob

logger = logging.getLogger(__name__)

_HEADER_PREFIX = "diff --git "
_HEADER_RE = re.compile(r"^diff --git a/(.*?) b/(.*?)$")

# `*` stops at `/` and `**/` may also match zero directories.
_GLOB_FLAGS = glob.GLOBSTAR | glob.DOTMATCH | glob.BRACE | glob.CASE


@dataclass
class FileSection:
    """One file's block within a unified diff.

    ``path`` is the destination path from the header. It is None for a
    header that could not be parsed and for any preamble before the first
    header; such sections are never matched against ignore patterns, so an
    unreadable header can never cause unrelated content to disappear.
    """

    path: str | None
    lines: list[str] = field(default_factory=list)

    @property
    def header_lines(self) -> list[str]:
        # Everything up to the first hunk: the diff --git line, index, ---/+++.
        for i, line in enumerate(self.lines):
            if line.startswith("@@"):
                return self.lines[:i]
        return list(self.lines)

    @property
    def hunk_lines(self) -> list[str]:
        return self.lines[len(self.header_lines) :]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class DiffResult:
    text: str
    was_truncated: bool
    original_length: int


def parse_header(line: str) -> str | None:
    """Return the destination path of a ``diff --git`` header, or None."""
    match = _HEADER_RE.match(line)
    if not match:
        return None
    return match.group(2)


def parse_diff(raw: str) -> list[FileSection]:
    """Split a unified diff into file sections, preserving order."""
    if not raw:
        return []

    sections: list[FileSection] = []
    current: FileSection | None = None
    for line in raw.split("\n"):
        if line.startswith(_HEADER_PREFIX):
            path = parse_header(line)
            if path is None:
                logger.warning("Could not parse file path from diff header: %s", line)
            current = FileSection(path=path, lines=[line])
            sections.append(current)
            continue
        if current is None:
            current = FileSection(path=None)
            sections.append(current)
        current.lines.append(line)
    return sections


def render_sections(sections: Iterable[FileSection]) -> str:
    return "\n".join(section.text for section in sections)


def is_ignored(path: str | None, patterns: Sequence[str]) -> bool:
    """Return True if ``path`` matches any shell-glob pattern.

    Patterns match the full relative path, case-sensitively: ``*.json``
    matches ``lock.json`` but not ``web/lock.json``, while ``**/*.json``
    matches both. Dot-files get no special treatment.
    """
    if path is None or not patterns:
        return False
    return glob.globmatch(path, list(patterns), flags=_GLOB_FLAGS)


def filter_sections(sections: Iterable[FileSection], patterns: Sequence[str]) -> list[FileSection]:
    kept = []
    for section in sections:
        if is_ignored(section.path, patterns):
            logger.debug("Ignoring diff section: %s", section.path)
            continue
        kept.append(section)
    return kept


def filter_diff(raw: str, patterns: Sequence[str] | None) -> str:
    """Drop every file section whose path matches one of ``patterns``.

    Idempotent: filtering an already-filtered diff with the same patterns
    returns it unchanged.
    """
    if not patterns:
        return raw
    return render_sections(filter_sections(parse_diff(raw), patterns))


def _cut_to_lines(lines: list[str], max_chars: int) -> str:
    kept: list[str] = []
    length = 0
    for line in lines:
        added = len(line) + (1 if kept else 0)
        if length + added > max_chars:
            break
        kept.append(line)
        length += added
    return "\n".join(kept)


def truncate_sections(sections: list[FileSection], max_chars: int) -> str:
    """Join whole sections until the next one would exceed ``max_chars``.

    A partially included file would mislead the model about what changed,
    so sections are only ever taken whole. The one exception is a first
    section that alone exceeds the budget: it is cut back to the last full
    line that fits, which may leave nothing at all.
    """
    kept: list[str] = []
    length = 0
    for section in sections:
        text = section.text
        added = len(text) + (1 if kept else 0)
        if length + added > max_chars:
            break
        kept.append(text)
        length += added

    if not kept and sections:
        return _cut_to_lines(sections[0].lines, max_chars)
    return "\n".join(kept)


def process_diff(raw: str, ignore_patterns: Sequence[str] | None, max_chars: int | None) -> DiffResult:
    """Filter ``raw`` by ``ignore_patterns`` and fit it into ``max_chars``.

    ``was_truncated`` compares against the filtered text: dropping ignored
    files is not truncation. ``max_chars=None`` disables the budget.
    """
    if not raw:
        return DiffResult(text="", was_truncated=False, original_length=0)

    sections = parse_diff(raw)
    if ignore_patterns:
        sections = filter_sections(sections, ignore_patterns)
    filtered = render_sections(sections)

    if max_chars is None or len(filtered) <= max_chars:
        return DiffResult(text=filtered, was_truncated=False, original_length=len(filtered))

    text = truncate_sections(sections, max_chars)
    logger.debug("Diff truncated from %d to %d chars (budget %d).", len(filtered), len(text), max_chars)
    return DiffResult(text=text, was_truncated=len(text) < len(filtered), original_length=len(filtered))
