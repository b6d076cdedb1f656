"""GitHub token for a CLI run.

In Actions, load_config has already copied $GITHUB_TOKEN into the config.
On a developer machine without it, the token of the local ``gh`` session is
borrowed so `prscribe run --shadow` works with no extra setup.
"""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)

GH_TOKEN_COMMAND = ("gh", "auth", "token")


def gh_session_token(timeout: float = 5) -> str | None:
    """Return the token of the logged-in gh CLI session, or None."""
    try:
        completed = subprocess.run(
            list(GH_TOKEN_COMMAND),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError:
        logger.debug("gh CLI is not installed.")
        return None
    except subprocess.TimeoutExpired:
        logger.debug("gh auth token did not answer within %ss.", timeout)
        return None
    except subprocess.CalledProcessError as e:
        logger.debug("No gh CLI session (exit %d): %s", e.returncode, (e.stderr or "").strip())
        return None
    return completed.stdout.strip() or None


def github_token_for(config: dict) -> str | None:
    """Pick the token the pipeline should use: the configured one, else the gh session's."""
    token = config.get("github_token")
    if token:
        return token
    token = gh_session_token()
    if token:
        logger.info("Using the GitHub token of the local gh CLI session.")
    return token
