"""Per-message swipe data.

Each assistant message remembers the tracker snapshot generated with each of
its swipes, in ``message.extra["rpg_companion_swipes"]``, keyed by the swipe
index as a string. The reconciler and the companion only talk to the
SwipeRepository protocol; ChatHistory implements it over the host's message
list.
"""

from __future__ import annotations

import logging
from typing import Protocol

from rpg_companion.models import ChatMessage, TrackerSnapshot

logger = logging.getLogger(__name__)

SWIPES_KEY = "rpg_companion_swipes"


class SwipeRepository(Protocol):
    def get_swipe_data(self, message_index: int, swipe_id: int) -> TrackerSnapshot | None: ...

    def set_swipe_data(
        self, message_index: int, swipe_id: int, snapshot: TrackerSnapshot
    ) -> None: ...


def is_assistant(message: ChatMessage) -> bool:
    return not message.is_user and not message.is_system


class ChatHistory:
    """SwipeRepository over a list of host chat messages (mutated in place)."""

    def __init__(self, messages: list[ChatMessage]) -> None:
        self.messages = messages

    def __len__(self) -> int:
        return len(self.messages)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def last_message(self) -> ChatMessage | None:
        return self.messages[-1] if self.messages else None

    def last_assistant_index(self) -> int | None:
        for i in range(len(self.messages) - 1, -1, -1):
            if is_assistant(self.messages[i]):
                return i
        return None

    def last_assistant_depth(self) -> int | None:
        """Depth (0 = newest) of the last assistant message before the newest one."""
        for depth in range(1, len(self.messages)):
            if is_assistant(self.messages[len(self.messages) - 1 - depth]):
                return depth
        return None

    def recent(self, count: int) -> list[ChatMessage]:
        if count <= 0:
            return []
        return self.messages[-count:]

    # ------------------------------------------------------------------
    # Swipe data
    # ------------------------------------------------------------------

    def get_swipe_data(self, message_index: int, swipe_id: int) -> TrackerSnapshot | None:
        raw = self.messages[message_index].extra.get(SWIPES_KEY, {}).get(str(swipe_id))
        if not isinstance(raw, dict):
            return None
        return TrackerSnapshot.model_validate(raw)

    def set_swipe_data(
        self, message_index: int, swipe_id: int, snapshot: TrackerSnapshot
    ) -> None:
        swipes = self.messages[message_index].extra.setdefault(SWIPES_KEY, {})
        swipes[str(swipe_id)] = snapshot.model_dump(by_alias=True)

    def current_swipe_data(self, message_index: int) -> TrackerSnapshot | None:
        message = self.messages[message_index]
        return self.get_swipe_data(message_index, message.swipe_id or 0)

    def swipe_has_content(self, message_index: int, swipe_id: int) -> bool:
        """True when the host already holds generated text for that swipe slot."""
        swipes = self.messages[message_index].swipes or []
        return 0 <= swipe_id < len(swipes) and bool(swipes[swipe_id])

    def clear_all(self) -> int:
        """Drop swipe data from every message. Returns how many were touched."""
        cleared = 0
        for message in self.messages:
            if message.extra.pop(SWIPES_KEY, None) is not None:
                cleared += 1
        logger.debug("cleared swipe data from %d messages", cleared)
        return cleared
