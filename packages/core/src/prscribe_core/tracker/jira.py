"""Jira Cloud ticket lookup.

Only two fields are read: ``summary`` and ``description``. Jira Cloud's v3
API returns descriptions in Atlassian Document Format (a JSON tree); it is
passed on to the model serialised as JSON rather than flattened, since the
model reads ADF well enough and flattening loses list/code structure.
"""

from __future__ import annotations

import json
import logging

import requests

from prscribe_core.errors import ExternalServiceError
from prscribe_core.models import TicketInfo
from prscribe_core.tracker.base import TicketTracker

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30


class JiraTracker(TicketTracker):
    def __init__(self, base_url: str, email: str, api_token: str, session: requests.Session | None = None):
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.auth = (email, api_token)
        self._session.headers.update({"Accept": "application/json"})

    def fetch_ticket(self, ticket_id: str) -> TicketInfo:
        url = f"{self._base_url}/rest/api/3/issue/{ticket_id}"
        logger.debug("Fetching Jira ticket %s", ticket_id)
        try:
            resp = self._session.get(url, params={"fields": "summary,description"}, timeout=_REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise ExternalServiceError("Jira", f"request for {ticket_id} failed: {e}") from e

        if not resp.ok:
            raise ExternalServiceError(
                "Jira", f"request for {ticket_id} failed with status {resp.status_code}: {resp.text}"
            )

        try:
            fields = resp.json()["fields"]
        except (ValueError, KeyError, TypeError) as e:
            raise ExternalServiceError("Jira", f"unexpected response for {ticket_id}: {e}") from e

        summary = fields.get("summary")
        if not isinstance(summary, str):
            raise ExternalServiceError("Jira", f"ticket {ticket_id} has no summary")

        return TicketInfo(summary=summary, description=_description_text(fields.get("description")))


def _description_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
