from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscribe_core.models import TicketInfo


class TicketTracker(ABC):
    @abstractmethod
    def fetch_ticket(self, ticket_id: str) -> TicketInfo:
        """Return summary and description for ``ticket_id``. Raises on failure."""
