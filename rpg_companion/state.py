"""In-memory session state for one chat.

Everything the companion knows about the current chat lives on a
SessionState instance that callers own and pass around. Nothing is kept in
module globals, so several sessions can coexist (one per open chat, or one
per test).

Settings setters come in two flavours:

    set_*     full replace, used when a chat is loaded
    update_*  shallow merge, used for incremental changes; keys missing from
              the fragment keep their in-memory value
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic.alias_generators import to_camel

from rpg_companion.models import DiceRoll, ExtensionSettings, TrackerSnapshot

logger = logging.getLogger(__name__)


class SessionState:
    def __init__(
        self,
        settings: ExtensionSettings | None = None,
        user_name: str = "User",
    ) -> None:
        self.settings = settings or ExtensionSettings()
        self.user_name = user_name
        # What is displayed: changed by parses, edits and swipe navigation
        self.last_generated = TrackerSnapshot()
        # What the next prompt is built from: changed by commits only
        self.committed = TrackerSnapshot()
        self.last_action_was_swipe = False
        self.is_generating = False
        self.is_plot_progression = False
        self.pending_dice_roll: DiceRoll | None = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_settings(self, settings: ExtensionSettings) -> None:
        self.settings = settings

    def update_settings(self, fragment: dict[str, Any]) -> None:
        """Merge top-level keys (snake_case or camelCase) into the settings."""
        merged = self.settings.model_dump(by_alias=True)
        for key, value in fragment.items():
            if key in ExtensionSettings.model_fields:
                key = to_camel(key)
            merged[key] = value
        self.settings = ExtensionSettings.model_validate(merged)

    # ------------------------------------------------------------------
    # Tracker snapshots
    # ------------------------------------------------------------------

    def set_last_generated(self, snapshot: TrackerSnapshot) -> None:
        self.last_generated = snapshot.model_copy()

    def update_last_generated(self, snapshot: TrackerSnapshot) -> None:
        """Overwrite only the sections present in ``snapshot``."""
        self.last_generated = self.last_generated.merged_with(snapshot)

    def set_committed(self, snapshot: TrackerSnapshot) -> None:
        self.committed = snapshot.model_copy()

    def update_committed(self, snapshot: TrackerSnapshot) -> None:
        self.committed = self.committed.merged_with(snapshot)

    def commit(self) -> None:
        """Make the displayed tracker data the prompt baseline."""
        self.committed = self.last_generated.model_copy()
        logger.debug("committed tracker data")

    def reset_trackers(self) -> None:
        self.last_generated = TrackerSnapshot()
        self.committed = TrackerSnapshot()
