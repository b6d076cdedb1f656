"""Per-run artifact store shared by all pipeline stages.

One WorkflowState is created for each run and handed to every stage through
the RunContext. Nothing is module-global, so two runs in the same process
(tests, a long-lived worker) never observe each other's artifacts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from prscribe_core.errors import MissingArtifactError
from prscribe_core.models import DiffPayload, PrDetails, PrReview, PrSummary, TicketInfo


class StateKey(str, Enum):
    PR_DETAILS = "pr_details"
    TICKET_INFO = "ticket_info"
    DIFF = "diff"
    SUMMARY = "summary"
    REVIEW = "review"


# Expected type of the artifact stored under each key.
_KEY_TYPES: dict[StateKey, type] = {
    StateKey.PR_DETAILS: PrDetails,
    StateKey.TICKET_INFO: TicketInfo,
    StateKey.DIFF: DiffPayload,
    StateKey.SUMMARY: PrSummary,
    StateKey.REVIEW: PrReview,
}


class WorkflowState:
    """Typed key -> artifact map for a single run.

    Access is strictly sequential (one stage at a time), so no locking.
    """

    def __init__(self) -> None:
        self._data: dict[StateKey, Any] = {}

    def set(self, key: StateKey | str, value: Any) -> None:
        key = StateKey(key)
        expected = _KEY_TYPES[key]
        if not isinstance(value, expected):
            raise TypeError(f"State key {key.value!r} expects {expected.__name__}, got {type(value).__name__}.")
        self._data[key] = value

    def get(self, key: StateKey | str, default: Any = None) -> Any:
        return self._data.get(StateKey(key), default)

    def require(self, key: StateKey | str) -> Any:
        """Return the artifact under ``key`` or raise MissingArtifactError."""
        key = StateKey(key)
        if key not in self._data:
            raise MissingArtifactError(key.value)
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        try:
            return StateKey(key) in self._data
        except ValueError:
            return False

    def keys(self) -> list[str]:
        return [k.value for k in self._data]

    def snapshot(self) -> dict[str, Any]:
        return {k.value: v for k, v in self._data.items()}
