"""
Presence tracker.

Active users are derived only from the LOGIN and LOGOUT messages admitted
into history. A peer whose socket dies without the broker announcing a
LOGOUT stays listed.
"""

from typing import FrozenSet, Set

from common.protocol_definitions import Message, MessageType


class PresenceTracker:
    """Fold of LOGIN/LOGOUT events into the set of active usernames."""

    def __init__(self):
        self._active: Set[str] = set()

    def apply(self, message: Message) -> bool:
        """Update presence from an admitted message.

        Returns True if the active set changed.
        """
        if not message.sender:
            return False
        if message.type == MessageType.LOGIN:
            if message.sender in self._active:
                return False
            self._active.add(message.sender)
            return True
        if message.type == MessageType.LOGOUT:
            if message.sender not in self._active:
                return False
            self._active.discard(message.sender)
            return True
        return False

    @property
    def active_users(self) -> FrozenSet[str]:
        return frozenset(self._active)

    def is_active(self, username: str) -> bool:
        return username in self._active

    def clear(self):
        self._active.clear()
