"""Dry-run host: reads from GitHub, prints what would be written."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from prscribe_core.gh.base import ChangeHost, CommentRef
from prscribe_core.models import PrDetails

console = Console()

# Id reported for comments that were printed instead of created.
SHADOW_COMMENT_ID = 0


class ShadowHost(ChangeHost):
    def __init__(self, inner: ChangeHost):
        self._inner = inner

    def fetch_metadata(self) -> PrDetails:
        return self._inner.fetch_metadata()

    def fetch_diff(self) -> str:
        return self._inner.fetch_diff()

    def list_comments(self) -> list[CommentRef]:
        return self._inner.list_comments()

    def create_comment(self, body: str) -> int:
        console.print(Panel(Markdown(body), title="Shadow: new comment (not posted)"))
        return SHADOW_COMMENT_ID

    def edit_comment(self, comment_id: int, body: str) -> None:
        console.print(Panel(Markdown(body), title=f"Shadow: edit comment {comment_id} (not posted)"))

    def update_description(self, body: str) -> None:
        console.print(Panel(Markdown(body), title="Shadow: PR description (not updated)"))
