"""Companion - reacts to chat events for one chat session.

Event flow (together mode):
  1. message sent         → not a swipe
  2. generation started   → commit rule, then inject instructions + example
  3. message received     → parse trackers, store per-swipe data, auto-commit
                            the first parse, strip tracker fences from the text
  4. swipe                → new slot: keep committed data for the re-roll;
                            existing slot: show that slot's trackers

In separate mode step 2 injects a contextual summary instead, and step 3
runs a dedicated tracker-only generation through the LLM (when auto-update
is on, or on demand via ``update_rpg_data``).

Manual edits go through the pure functions in ``edits`` and are applied to
both the displayed and committed snapshots, then persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from rpg_companion import edits, reconciler
from rpg_companion.debug import set_debug_mode
from rpg_companion.dice import roll_dice
from rpg_companion.llm import LLM
from rpg_companion.models import (
    DiceRoll,
    ExtensionSettings,
    PromptInjection,
    TrackerSnapshot,
    UserStats,
)
from rpg_companion.persistence import Persistence
from rpg_companion.prompts import (
    PLOT_KEY,
    build_injections,
    clear_injections,
    generate_plot_prompt,
    generate_separate_update_prompt,
)
from rpg_companion.state import SessionState
from rpg_companion.swipes import ChatHistory, is_assistant
from rpg_companion.tracker import (
    parse_response,
    parse_user_stats,
    strip_tracker_blocks,
    update_character_field,
    update_info_box_field,
)

logger = logging.getLogger(__name__)

Injector = Callable[[PromptInjection], None]

UPDATE_STAGE = "tracker_update"


class Companion:
    """Event handlers and edit operations for one chat.

    Args:
        chat_id:     Identifier of the chat in storage.
        state:       Session state, owned by the caller.
        persistence: Mirrors ``state`` to storage.
        chat:        The host's message list for this chat.
        llm:         Generator for the dedicated tracker call (separate mode).
        injector:    Host prompt-injection API. Every injection is also kept
                     in ``self.injections``.
    """

    def __init__(
        self,
        chat_id: str,
        state: SessionState,
        persistence: Persistence,
        chat: ChatHistory,
        llm: LLM | None = None,
        injector: Injector | None = None,
    ) -> None:
        self.chat_id = chat_id
        self.state = state
        self.persistence = persistence
        self.chat = chat
        self.llm = llm
        self._injector = injector
        self.injections: dict[str, PromptInjection] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def settings(self) -> ExtensionSettings:
        return self.state.settings

    def _inject(self, injection: PromptInjection) -> None:
        if injection.text:
            self.injections[injection.key] = injection
        else:
            self.injections.pop(injection.key, None)
        if self._injector is not None:
            self._injector(injection)

    def _save_chat(self) -> None:
        self.persistence.save_chat_data(self.chat_id)
        self.persistence.save_messages(self.chat_id, self.chat)

    def _save_all(self) -> None:
        self.persistence.save_settings()
        self._save_chat()

    def _set_both(self, snapshot: TrackerSnapshot) -> None:
        self.state.update_last_generated(snapshot)
        self.state.update_committed(snapshot)

    def _persist_edit(self) -> None:
        self.persistence.update_message_swipe_data(self.chat)
        self._save_all()

    def _apply_stats_edit(self, edited: ExtensionSettings) -> None:
        self.state.set_settings(edited)
        text = edits.render_stats_text(edited, self.state.user_name)
        self._set_both(TrackerSnapshot(user_stats=text))
        self._persist_edit()

    # ------------------------------------------------------------------
    # Chat lifecycle
    # ------------------------------------------------------------------

    def load_chat(self) -> None:
        """Restore this chat's data and commit its last assistant swipe.

        The persona name is taken from the latest user message, if any.
        """
        self.persistence.load_chat_data(self.chat_id)
        reconciler.commit_from_chat(self.state, self.chat)
        for message in reversed(self.chat.messages):
            if message.is_user and message.name:
                self.state.user_name = message.name
                break
        set_debug_mode(self.settings.debug_mode)

    def update_settings(self, fragment: dict[str, Any]) -> ExtensionSettings:
        self.state.update_settings(fragment)
        set_debug_mode(self.settings.debug_mode)
        if not self.settings.enabled:
            for injection in clear_injections():
                self._inject(injection)
        self.persistence.save_settings()
        return self.settings

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def on_message_sent(self, user_name: str | None = None) -> None:
        """Handle a user message. ``user_name`` is the persona that sent it."""
        if user_name:
            self.state.user_name = user_name
        if not self.settings.enabled:
            return
        reconciler.on_message_sent(self.state)

    def on_generation_started(self) -> list[PromptInjection]:
        """Apply the commit rule and inject prompts for the next generation."""
        if not self.settings.enabled or self.state.is_plot_progression:
            return []

        reconciler.on_generation_started(self.state)
        if self.state.is_generating:
            return []

        if self.state.committed.user_stats:
            parse_user_stats(self.settings, self.state.committed.user_stats)

        injections = build_injections(self.state, self.chat)
        for injection in injections:
            self._inject(injection)
        return injections

    async def on_message_received(self) -> TrackerSnapshot | None:
        """Handle a finished main generation. Returns the parsed trackers, if any."""
        if not self.settings.enabled:
            return None

        parsed = None
        try:
            if self.settings.generation_mode == "together":
                parsed = self._ingest_last_message()
            elif self.settings.auto_update:
                await self.update_rpg_data()
        finally:
            reconciler.on_generation_ended(self.state)
        return parsed

    def _ingest_last_message(self) -> TrackerSnapshot | None:
        index = len(self.chat) - 1
        message = self.chat.last_message()
        if message is None or not is_assistant(message):
            return None

        parsed = parse_response(message.mes)
        self.state.update_last_generated(parsed)
        if parsed.user_stats:
            parse_user_stats(self.settings, parsed.user_stats)

        swipe_id = message.swipe_id or 0
        self.chat.set_swipe_data(index, swipe_id, parsed)
        if not parsed.is_empty():
            reconciler.auto_commit(self.state)

        cleaned = strip_tracker_blocks(message.mes)
        message.mes = cleaned
        if message.swipes and 0 <= swipe_id < len(message.swipes):
            message.swipes[swipe_id] = cleaned

        self._save_all()
        return parsed

    def on_swipe(self, message_index: int | None = None) -> bool:
        """Handle a swipe on a message (default: the last one).

        The message's ``swipe_id`` must already point at the new slot.
        Returns True if the swipe will trigger a generation.
        """
        if not self.settings.enabled or not self.chat.messages:
            return False
        if message_index is None:
            message_index = len(self.chat) - 1
        swipe_id = self.chat.messages[message_index].swipe_id or 0
        return reconciler.on_swipe(self.state, self.chat, message_index, swipe_id)

    # ------------------------------------------------------------------
    # Dedicated tracker generation (separate mode)
    # ------------------------------------------------------------------

    async def update_rpg_data(self) -> TrackerSnapshot | None:
        """Run the tracker-only generation and store its result.

        A call while another is in flight is ignored. Failures are logged;
        nothing is raised to the caller.
        """
        state = self.state
        if state.is_generating:
            logger.debug("tracker update already running, ignoring request")
            return None
        if not self.settings.enabled or self.settings.generation_mode != "separate":
            return None
        if self.llm is None:
            logger.warning("No LLM configured, cannot update trackers")
            return None

        state.is_generating = True
        try:
            messages = generate_separate_update_prompt(state, self.chat)
            response = await self.llm(UPDATE_STAGE, messages)
            parsed = parse_response(response)

            state.update_last_generated(parsed)
            if parsed.user_stats:
                parse_user_stats(self.settings, parsed.user_stats)

            index = self.chat.last_assistant_index()
            if index is not None:
                swipe_id = self.chat.messages[index].swipe_id or 0
                self.chat.set_swipe_data(index, swipe_id, parsed)

            reconciler.auto_commit(state)
            self._save_all()
            return parsed
        except Exception:
            logger.exception("Error updating tracker data")
            return None
        finally:
            state.is_generating = False
            state.last_action_was_swipe = False

    # ------------------------------------------------------------------
    # Manual edits
    # ------------------------------------------------------------------

    def edit_stat(self, field: str, raw_value: str) -> UserStats:
        self._apply_stats_edit(edits.apply_stat_edit(self.settings, field, raw_value))
        return self.settings.user_stats

    def edit_mood(self, value: str) -> UserStats:
        self._apply_stats_edit(edits.apply_mood_edit(self.settings, value))
        return self.settings.user_stats

    def edit_conditions(self, value: str) -> UserStats:
        self._apply_stats_edit(edits.apply_conditions_edit(self.settings, value))
        return self.settings.user_stats

    def edit_inventory(self, bucket: str, value: str, location: str | None = None) -> UserStats:
        self._apply_stats_edit(edits.apply_inventory_edit(self.settings, bucket, value, location))
        return self.settings.user_stats

    def add_location(self, name: str) -> UserStats:
        self._apply_stats_edit(edits.add_storage_location(self.settings, name))
        return self.settings.user_stats

    def remove_location(self, name: str) -> UserStats:
        self._apply_stats_edit(edits.remove_storage_location(self.settings, name))
        return self.settings.user_stats

    def toggle_location(self, name: str) -> list[str]:
        self.state.set_settings(edits.toggle_location_collapsed(self.settings, name))
        self.persistence.save_settings()
        return self.settings.collapsed_inventory_locations

    def set_main_quest(self, value: str) -> None:
        self._apply_stats_edit(edits.set_main_quest(self.settings, value))

    def add_optional_quest(self, value: str) -> None:
        self._apply_stats_edit(edits.add_optional_quest(self.settings, value))

    def remove_optional_quest(self, index: int) -> None:
        self._apply_stats_edit(edits.remove_optional_quest(self.settings, index))

    def adjust_classic_stat(self, stat: str, delta: int) -> None:
        self.state.set_settings(edits.adjust_classic_stat(self.settings, stat, delta))
        self._save_all()

    def edit_info_box(self, field: str, value: str) -> str:
        text = update_info_box_field(self.state.last_generated.info_box, field, value)
        self._set_both(TrackerSnapshot(info_box=text))
        self._persist_edit()
        return text

    def edit_character(self, name: str, field: str, value: str) -> str:
        text = update_character_field(
            self.state.last_generated.character_thoughts, name, field, value
        )
        self._set_both(TrackerSnapshot(character_thoughts=text))
        self._persist_edit()
        return text

    # ------------------------------------------------------------------
    # Dice
    # ------------------------------------------------------------------

    def roll(self, formula: str) -> DiceRoll:
        """Roll and keep the result pending until ``save_roll``."""
        self.state.pending_dice_roll = roll_dice(formula)
        return self.state.pending_dice_roll

    def save_roll(self) -> DiceRoll:
        roll = self.state.pending_dice_roll
        if roll is None:
            raise ValueError("No pending dice roll")
        self.settings.last_dice_roll = roll
        self.state.pending_dice_roll = None
        self.persistence.save_settings()
        return roll

    def clear_roll(self) -> None:
        self.settings.last_dice_roll = None
        self.state.pending_dice_roll = None
        self.persistence.save_settings()

    # ------------------------------------------------------------------
    # Plot progression and cache
    # ------------------------------------------------------------------

    def begin_plot_progression(self, kind: str) -> str:
        """Inject a story nudge and suppress tracker injection until it ends."""
        prompt = generate_plot_prompt(kind, include_html=self.settings.enable_html_prompt)
        self.state.is_plot_progression = True
        for injection in clear_injections():
            self._inject(injection)
        self._inject(PromptInjection(key=PLOT_KEY, text=prompt, depth=0, role="user"))
        return prompt

    def end_plot_progression(self) -> None:
        self.state.is_plot_progression = False
        self._inject(PromptInjection(key=PLOT_KEY, text="", depth=0, role="user"))

    def clear_cache(self) -> None:
        """Forget all tracker data for this chat and reset the user stats."""
        self.state.reset_trackers()
        self.chat.clear_all()
        self.settings.user_stats = UserStats()
        for injection in clear_injections():
            self._inject(injection)
        self._save_all()
        logger.info("Cleared tracker cache for chat %s", self.chat_id)
