# backend/services/history_store.py
"""
In-memory analysis history.

Every successful analysis becomes an immutable HistoryEntry placed at the
front of the list. Nothing is persisted; the history lives as long as the
process does.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from errors import NotFoundError
from models import AnalysisResult, HistoryEntry, HistoryListing, HistorySummary

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Talent Audit"


class AnalysisHistory:
    """
    Ordered, append-only history of analysis results.

    Analyses are ticketed when they start. When an analysis finishes it is
    always recorded, but it only becomes the current selection if no newer
    analysis was started in the meantime.
    """

    def __init__(self):
        self._entries: List[HistoryEntry] = []
        self._lock = threading.Lock()
        self._latest_ticket = 0
        self._current_id: Optional[str] = None

    def begin_analysis(self) -> int:
        """Issue a ticket for an analysis that is about to start."""
        with self._lock:
            self._latest_ticket += 1
            return self._latest_ticket

    def record(self, ticket: int, analysis: AnalysisResult) -> HistoryEntry:
        """
        Store a finished analysis.

        Args:
            ticket: Value returned by begin_analysis() for this request
            analysis: The parsed result

        Returns:
            The new HistoryEntry
        """
        entry = HistoryEntry(
            id=uuid4().hex,
            createdAt=datetime.now(timezone.utc),
            title=analysis.title or DEFAULT_TITLE,
            analysis=analysis,
        )
        with self._lock:
            self._entries.insert(0, entry)
            if ticket >= self._latest_ticket:
                self._current_id = entry.id
            else:
                logger.info(f"Stale analysis {ticket} recorded without taking the selection")
        return entry

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def require(self, entry_id: str) -> HistoryEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise NotFoundError("Analysis not found.", details={"id": entry_id})
        return entry

    def entries(self) -> List[HistoryEntry]:
        """Snapshot of all entries, newest first."""
        with self._lock:
            return list(self._entries)

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current(self) -> Optional[HistoryEntry]:
        current_id = self._current_id
        return self.get(current_id) if current_id else None

    def select(self, entry_id: str) -> HistoryEntry:
        entry = self.require(entry_id)
        with self._lock:
            self._current_id = entry.id
        return entry

    def clear_selection(self):
        with self._lock:
            self._current_id = None

    def listing(self) -> HistoryListing:
        return HistoryListing(
            currentId=self._current_id,
            entries=[
                HistorySummary(
                    id=e.id,
                    createdAt=e.createdAt,
                    title=e.title,
                    hasCandidate=e.analysis.candidateAnalysis is not None,
                )
                for e in self.entries()
            ],
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Singleton instance
_history_instance: Optional[AnalysisHistory] = None


def get_history() -> AnalysisHistory:
    """Get or create the process-wide history."""
    global _history_instance

    if _history_instance is None:
        _history_instance = AnalysisHistory()

    return _history_instance


def reset_history():
    """Reset the singleton instance (useful for testing)."""
    global _history_instance
    _history_instance = None
