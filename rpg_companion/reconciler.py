"""Commit/swipe reconciliation.

Decides when the displayed tracker data (``last_generated``) becomes the
prompt baseline (``committed``). The rule: a new user message commits, a
swipe does not. Every swipe of one assistant turn is therefore generated
from the same committed data as the first attempt.

The driver is ``state.last_action_was_swipe``:

    user sends a message         -> False
    swipe to an empty slot       -> True (a generation will follow)
    swipe to a filled slot       -> unchanged (navigation only)
    generation starts            -> commit if False, keep committed if True
    generation ends              -> False

A dedicated tracker call (``state.is_generating``) also triggers the host's
generation-start event; it must not commit.
"""

from __future__ import annotations

import logging

from rpg_companion.models import TrackerSnapshot
from rpg_companion.state import SessionState
from rpg_companion.swipes import ChatHistory

logger = logging.getLogger(__name__)


def on_message_sent(state: SessionState) -> None:
    state.last_action_was_swipe = False


def on_swipe(state: SessionState, chat: ChatHistory, message_index: int, swipe_id: int) -> bool:
    """Handle a swipe on ``message_index``. Returns True if it will generate.

    Navigating to a slot that already has text only reloads that slot's
    tracker data for display.
    """
    if not chat.swipe_has_content(message_index, swipe_id):
        state.last_action_was_swipe = True
        logger.debug("swipe %d on message %d will generate", swipe_id, message_index)
        return True

    data = chat.get_swipe_data(message_index, swipe_id)
    if data is not None:
        state.set_last_generated(data)
    logger.debug("swipe %d on message %d is navigation", swipe_id, message_index)
    return False


def on_generation_started(state: SessionState) -> bool:
    """Apply the commit rule. Returns True if a commit happened."""
    if state.is_generating:
        logger.debug("dedicated tracker call in progress, not committing")
        return False
    if state.last_action_was_swipe:
        logger.debug("swipe generation, reusing committed data")
        return False
    state.commit()
    return True


def on_generation_ended(state: SessionState) -> None:
    state.last_action_was_swipe = False


def auto_commit(state: SessionState) -> bool:
    """Commit right away if there is no baseline yet. Returns True if it did."""
    if not state.committed.is_placeholder_only():
        return False
    state.commit()
    logger.debug("auto-committed first tracker data")
    return True


def commit_from_chat(state: SessionState, chat: ChatHistory) -> bool:
    """Commit the current swipe's data of the last assistant message.

    Used on chat load, so the next generation continues from what the user
    last saw in that chat. Returns True if swipe data was found.
    """
    index = chat.last_assistant_index()
    if index is None:
        return False
    data = chat.current_swipe_data(index)
    if data is None:
        return False
    state.set_committed(TrackerSnapshot(
        user_stats=data.user_stats or None,
        info_box=data.info_box or None,
        character_thoughts=data.character_thoughts or None,
    ))
    return True
