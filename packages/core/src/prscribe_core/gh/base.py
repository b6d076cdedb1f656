"""Abstract change-host interface.

The pipeline talks to the code host only through ChangeHost, so the GitHub
adapter can be swapped for a fake in tests or wrapped for shadow runs
without touching any stage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscribe_core.models import PrDetails


@dataclass(frozen=True)
class CommentRef:
    """A conversation comment as seen by the reconciler."""

    id: int
    author: str
    body: str
    created_at: datetime


class ChangeHost(ABC):
    """Read and write access to one pull request."""

    @abstractmethod
    def fetch_metadata(self) -> PrDetails:
        """Return branch, title, description and condensed commit log."""

    @abstractmethod
    def fetch_diff(self) -> str:
        """Return the raw unified diff of the pull request."""

    @abstractmethod
    def list_comments(self) -> list[CommentRef]:
        """Return the conversation comments, oldest first."""

    @abstractmethod
    def create_comment(self, body: str) -> int:
        """Post a new comment and return its id."""

    @abstractmethod
    def edit_comment(self, comment_id: int, body: str) -> None:
        """Replace the body of an existing comment."""

    @abstractmethod
    def update_description(self, body: str) -> None:
        """Replace the pull request description."""
