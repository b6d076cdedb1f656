"""Sentinel markers written into GitHub markdown.

These strings are part of the durable format: later runs search for them in
PR descriptions and comments to find and replace their own earlier output.
Changing any of them orphans every previously published block.
"""

SUMMARY_START_MARKER = "<!-- PR_AGENT_SUMMARY_START -->"
SUMMARY_END_MARKER = "<!-- PR_AGENT_SUMMARY_END -->"
REVIEW_COMMENT_MARKER = "<!-- PR_AGENT_REVIEW_COMMENT -->"

# Default author of comments posted from GitHub Actions with the built-in token.
GITHUB_ACTIONS_BOT_LOGIN = "github-actions[bot]"

SUMMARY_ACTION = "summary"
REVIEW_ACTION = "review"
KNOWN_ACTIONS = frozenset({SUMMARY_ACTION, REVIEW_ACTION})
