"""
Deduplication store.

Remembers every message id admitted into the visible history so that the
broker's echo of a message we already show (our own optimistic echo, or a
repeated delivery) is dropped instead of appearing twice.
"""

from typing import Optional, Set


class DeduplicationStore:
    """Set of admitted message ids, scoped to one login session."""

    def __init__(self):
        self._seen: Set[str] = set()

    def mark_seen(self, msg_id: str):
        """Record an id as admitted."""
        self._seen.add(msg_id)

    def has_seen(self, msg_id: str) -> bool:
        return msg_id in self._seen

    def admit(self, msg_id: Optional[str]) -> bool:
        """Check and mark in one step.

        Returns False when ``msg_id`` was already admitted. Messages without
        an id are always admitted and never remembered.
        """
        if not msg_id:
            return True
        if msg_id in self._seen:
            return False
        self._seen.add(msg_id)
        return True

    def clear(self):
        """Forget all ids (end of session)."""
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, msg_id) -> bool:
        return msg_id in self._seen
