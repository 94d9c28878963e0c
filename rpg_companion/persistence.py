"""Mirrors SessionState to storage, validating and repairing on load.

Loading never raises: corrupted data is repaired (or replaced by defaults),
logged as a warning and written back straight away. Saving logs and
swallows storage errors so a failed write never breaks the chat session.
"""

from __future__ import annotations

import logging
import time
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from rpg_companion.models import (
    ChatMetadata,
    ClassicStats,
    ExtensionSettings,
    Quests,
    TrackerSnapshot,
    UserStats,
)
from rpg_companion.state import SessionState
from rpg_companion.storage import Storage
from rpg_companion.swipes import ChatHistory
from rpg_companion.tracker.inventory import migrate_inventory, validate_inventory_structure

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(raw: Any) -> bool:
    """Structural check of saved settings before they are merged."""
    if not isinstance(raw, dict):
        return False
    if not isinstance(raw.get("enabled"), bool) or not isinstance(raw.get("autoUpdate"), bool):
        logger.warning("Settings validation failed: missing required properties")
        return False
    stats = raw.get("userStats")
    if not isinstance(stats, dict):
        logger.warning("Settings validation failed: missing userStats")
        return False
    if not all(_is_number(stats.get(key)) for key in ("health", "satiety", "energy")):
        logger.warning("Settings validation failed: invalid userStats structure")
        return False
    return True


def heal_user_stats(raw: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Migrate and validate the inventory inside a raw userStats dict.

    Returns ``(user_stats, changed)``; ``changed`` means the caller must
    persist the result.
    """
    stats = dict(raw)
    inventory, migrated, source = migrate_inventory(stats.get("inventory"))
    if migrated:
        logger.info("Inventory migrated from %s to v2 format", source)
    inventory, repaired = validate_inventory_structure(inventory)
    stats["inventory"] = inventory
    return stats, migrated or repaired


def salvage_model(model_cls: type[M], raw: dict[str, Any]) -> tuple[M, list[str]]:
    """Validate ``raw`` one field at a time, defaulting the fields that fail.

    Nested models are salvaged the same way, so ``{"userStats": {"health":
    "lots"}}`` only loses ``health``. Returns the model and the dotted keys
    that were dropped.
    """
    data: dict[str, Any] = {}
    dropped: list[str] = []
    known: set[str] = set()
    for name, field in model_cls.model_fields.items():
        key = field.alias or name
        known.update((key, name))
        if key not in raw:
            if name not in raw:
                continue
            key = name
        value = raw[key]
        try:
            model_cls.model_validate({key: value})
        except ValidationError:
            nested = field.annotation
            if isinstance(value, dict) and isinstance(nested, type) and issubclass(nested, BaseModel):
                model, inner = salvage_model(nested, value)
                data[key] = model.model_dump(by_alias=True)
                dropped.extend(f"{key}.{k}" for k in inner)
            else:
                dropped.append(key)
            continue
        data[key] = value

    if model_cls.model_config.get("extra") == "allow":
        data.update({k: v for k, v in raw.items() if k not in known})
    return model_cls.model_validate(data), dropped


def _load_part(model_cls: type[M], value: Any) -> tuple[M, bool]:
    """A saved sub-object, or the model's defaults. The flag means "repaired"."""
    if value is None:
        return model_cls(), False
    if not isinstance(value, dict):
        return model_cls(), True
    model, dropped = salvage_model(model_cls, value)
    if dropped:
        logger.warning("Dropped invalid %s fields: %s", model_cls.__name__, ", ".join(dropped))
    return model, bool(dropped)


class Persistence:
    def __init__(self, storage: Storage, state: SessionState) -> None:
        self._storage = storage
        self._state = state

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def load_settings(self) -> None:
        """Merge saved settings over the defaults.

        Settings missing their required keys are replaced by defaults. Fields
        that fail validation are dropped one by one and the rest is kept.
        Either repair, like inventory migration, triggers a re-save.
        """
        try:
            raw = self._storage.read_settings()
            if raw is None:
                logger.debug("no saved settings, using defaults")
                return

            if not validate_settings(raw):
                logger.warning("Loaded settings failed validation, using defaults")
                self._state.set_settings(ExtensionSettings())
                self.save_settings()
                return

            merged = {**ExtensionSettings().model_dump(by_alias=True), **raw}
            merged["userStats"], changed = heal_user_stats(merged["userStats"])
            settings, dropped = salvage_model(ExtensionSettings, merged)
            if dropped:
                logger.warning("Dropped invalid settings: %s", ", ".join(dropped))
            self._state.set_settings(settings)
            if changed or dropped:
                self.save_settings()
        except Exception:
            logger.exception("Error loading settings, keeping defaults")

    def save_settings(self) -> None:
        try:
            self._storage.write_settings(self._state.settings.model_dump(by_alias=True))
        except Exception:
            logger.exception("Error saving settings")

    # ------------------------------------------------------------------
    # Per-chat data
    # ------------------------------------------------------------------

    def save_chat_data(self, chat_id: str) -> None:
        state = self._state
        metadata = ChatMetadata(
            user_stats=state.settings.user_stats,
            classic_stats=state.settings.classic_stats,
            quests=state.settings.quests,
            last_generated_data=state.last_generated,
            committed_tracker_data=state.committed,
            timestamp=int(time.time() * 1000),
        )
        try:
            self._storage.write_chat_metadata(chat_id, metadata.model_dump(by_alias=True))
        except Exception:
            logger.exception("Error saving chat data for %s", chat_id)

    def load_chat_data(self, chat_id: str) -> None:
        """Restore a chat's stats and tracker snapshots.

        A chat without saved data starts from default stats and empty
        snapshots. Invalid parts fall back to their defaults one by one and
        the repaired data is written back.
        """
        state = self._state
        state.reset_trackers()
        try:
            raw = self._storage.read_chat_metadata(chat_id)
            if not isinstance(raw, dict):
                if raw is not None:
                    logger.warning("Chat metadata for %s is not an object, resetting", chat_id)
                state.settings.user_stats = UserStats()
                return

            repaired = False
            if "userStats" in raw:
                stats = raw["userStats"]
                changed = False
                if isinstance(stats, dict):
                    stats, changed = heal_user_stats(stats)
                state.settings.user_stats, dropped = _load_part(UserStats, stats)
                repaired = changed or dropped
            if "classicStats" in raw:
                state.settings.classic_stats, dropped = _load_part(ClassicStats, raw["classicStats"])
                repaired = repaired or dropped
            if "quests" in raw:
                state.settings.quests, dropped = _load_part(Quests, raw["quests"])
                repaired = repaired or dropped

            last_generated, dropped = _load_part(TrackerSnapshot, raw.get("lastGeneratedData"))
            repaired = repaired or dropped
            committed, dropped = _load_part(TrackerSnapshot, raw.get("committedTrackerData"))
            repaired = repaired or dropped
            state.set_last_generated(last_generated)
            state.set_committed(committed)

            if repaired:
                logger.warning("Repaired chat data for %s", chat_id)
                self.save_chat_data(chat_id)
        except Exception:
            logger.exception("Error loading chat data for %s, using defaults", chat_id)
            state.settings.user_stats = UserStats()
            state.reset_trackers()

    def save_messages(self, chat_id: str, chat: ChatHistory) -> None:
        try:
            self._storage.save_messages(chat_id, chat.messages)
        except Exception:
            logger.exception("Error saving messages for %s", chat_id)

    def update_message_swipe_data(self, chat: ChatHistory) -> None:
        """Store the displayed snapshot on the last assistant message's current swipe."""
        index = chat.last_assistant_index()
        if index is None:
            return
        swipe_id = chat.messages[index].swipe_id or 0
        chat.set_swipe_data(index, swipe_id, self._state.last_generated)
