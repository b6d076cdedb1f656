from __future__ import annotations

import logging
from contextlib import contextmanager

import requests
from github import Github, GithubException

from prscribe_core.errors import ExternalServiceError
from prscribe_core.gh.base import ChangeHost, CommentRef
from prscribe_core.models import PrDetails

logger = logging.getLogger(__name__)

_DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
_REQUEST_TIMEOUT = 30
_DEFAULT_COMMIT_MESSAGE_CHARS = 2000


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def format_commit_messages(messages: list[str], max_chars: int = _DEFAULT_COMMIT_MESSAGE_CHARS) -> str:
    """Condense commit messages to one ``- subject`` line each."""
    if not messages:
        return "No commit messages found."
    condensed = "\n".join(f"- {m.splitlines()[0] if m else ''}" for m in messages)
    if len(condensed) > max_chars:
        logger.debug("Commit messages (%d chars) truncated to %d.", len(condensed), max_chars)
        return condensed[:max_chars] + "\n... (truncated)"
    return condensed


@contextmanager
def _github_call(action: str):
    try:
        yield
    except GithubException as e:
        raise ExternalServiceError("GitHub", f"{action} failed ({e.status}): {e.data}") from e
    except requests.RequestException as e:
        raise ExternalServiceError("GitHub", f"{action} failed: {e}") from e


class GitHubHost(ChangeHost):
    """ChangeHost backed by PyGithub for one pull request.

    The raw unified diff is the one thing PyGithub does not expose, so it
    is fetched from the pull request's API URL with the diff media type.
    """

    def __init__(self, repo, pr_number: int, token: str, max_commit_chars: int = _DEFAULT_COMMIT_MESSAGE_CHARS):
        self._repo = repo
        self._pr_number = pr_number
        self._token = token
        self._max_commit_chars = max_commit_chars
        self._pr = None

    @classmethod
    def connect(cls, repo_name: str, pr_number: int, token: str, **kwargs) -> GitHubHost:
        with _github_call(f"Fetching repository {repo_name}"):
            repo = get_repo(repo_name, token=token)
        return cls(repo, pr_number, token=token, **kwargs)

    @property
    def pr(self):
        if self._pr is None:
            with _github_call(f"Fetching PR #{self._pr_number}"):
                self._pr = get_pull(self._repo, self._pr_number)
        return self._pr

    def fetch_metadata(self) -> PrDetails:
        pr = self.pr
        with _github_call("Listing commits"):
            messages = [c.commit.message for c in pr.get_commits()]
        return PrDetails(
            branch_name=pr.head.ref,
            title=pr.title or "",
            description=pr.body or "",
            commit_messages=format_commit_messages(messages, self._max_commit_chars),
        )

    def fetch_diff(self) -> str:
        headers = {"Accept": _DIFF_MEDIA_TYPE, "Authorization": f"Bearer {self._token}"}
        with _github_call("Fetching diff"):
            resp = requests.get(self.pr.url, headers=headers, timeout=_REQUEST_TIMEOUT)
            resp.raise_for_status()
        return resp.text

    def list_comments(self) -> list[CommentRef]:
        with _github_call("Listing comments"):
            return [
                CommentRef(
                    id=c.id,
                    author=c.user.login if c.user is not None else "",
                    body=c.body or "",
                    created_at=c.created_at,
                )
                for c in self.pr.get_issue_comments()
            ]

    def create_comment(self, body: str) -> int:
        with _github_call("Creating comment"):
            comment = self.pr.create_issue_comment(body)
        logger.debug("Created comment %s on PR #%d.", comment.id, self._pr_number)
        return comment.id

    def edit_comment(self, comment_id: int, body: str) -> None:
        with _github_call(f"Editing comment {comment_id}"):
            self.pr.get_issue_comment(comment_id).edit(body)

    def update_description(self, body: str) -> None:
        with _github_call("Updating description"):
            self.pr.edit(body=body)
