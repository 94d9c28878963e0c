"""Pure edit functions for user-editable tracker fields.

Each function takes the current settings and returns an edited deep copy;
nothing here touches storage or session state. The companion applies the
result, regenerates the Stats text and persists.
"""

from __future__ import annotations

import re

from rpg_companion.models import CLASSIC_STAT_ALIASES, METER_FIELDS, ExtensionSettings, UserStats
from rpg_companion.security import sanitize_location_name
from rpg_companion.tracker.inventory import build_inventory_summary, normalize_items

STAT_MIN, STAT_MAX = 0, 100
CLASSIC_MIN, CLASSIC_MAX = 1, 20

INVENTORY_BUCKETS = ("on_person", "stored", "assets")

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def parse_stat_value(raw: str) -> int:
    """Leading integer of ``raw`` (``"45%"`` -> 45), 0 if there is none."""
    m = _LEADING_INT_RE.match(raw or "")
    return int(m.group(1)) if m else 0


def render_stats_text(settings: ExtensionSettings, user_name: str = "User") -> str:
    """Stats section text for the current user stats and quests."""
    stats: UserStats = settings.user_stats
    lines = [
        f"{user_name}'s Stats",
        "---",
        f"Health: {stats.health}%",
        f"Satiety: {stats.satiety}%",
        f"Energy: {stats.energy}%",
        f"Hygiene: {stats.hygiene}%",
        f"Arousal: {stats.arousal}%",
        f"Status: {stats.mood}, {stats.conditions}",
        build_inventory_summary(stats.inventory),
    ]
    if settings.show_quests:
        lines.append(f"Main Quest: {settings.quests.main}")
        lines.append("Optional Quests: " + (", ".join(settings.quests.optional) or "None"))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# User stats
# ---------------------------------------------------------------------------

def apply_stat_edit(settings: ExtensionSettings, field: str, raw_value: str) -> ExtensionSettings:
    if field not in METER_FIELDS:
        raise ValueError(f"Unknown stat: {field}")
    edited = settings.model_copy(deep=True)
    setattr(edited.user_stats, field, _clamp(parse_stat_value(raw_value), STAT_MIN, STAT_MAX))
    return edited


def apply_mood_edit(settings: ExtensionSettings, value: str) -> ExtensionSettings:
    edited = settings.model_copy(deep=True)
    edited.user_stats.mood = value.strip() or "😐"
    return edited


def apply_conditions_edit(settings: ExtensionSettings, value: str) -> ExtensionSettings:
    edited = settings.model_copy(deep=True)
    edited.user_stats.conditions = value.strip() or "None"
    return edited


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def apply_inventory_edit(
    settings: ExtensionSettings,
    bucket: str,
    value: str,
    location: str | None = None,
) -> ExtensionSettings:
    """Replace the items of one bucket. ``stored`` needs an existing location."""
    if bucket not in INVENTORY_BUCKETS:
        raise ValueError(f"Unknown inventory bucket: {bucket}")

    edited = settings.model_copy(deep=True)
    inventory = edited.user_stats.inventory
    items = normalize_items(value)
    if bucket == "stored":
        if location is None or location not in inventory.stored:
            raise ValueError(f"Unknown storage location: {location}")
        inventory.stored[location] = items
    else:
        setattr(inventory, bucket, items)
    return edited


def add_storage_location(settings: ExtensionSettings, name: str) -> ExtensionSettings:
    location = sanitize_location_name(name)
    if location is None:
        raise ValueError(f"Invalid location name: {name!r}")
    if location in settings.user_stats.inventory.stored:
        raise ValueError(f"Location already exists: {location}")

    edited = settings.model_copy(deep=True)
    edited.user_stats.inventory.stored[location] = "None"
    return edited


def remove_storage_location(settings: ExtensionSettings, name: str) -> ExtensionSettings:
    if name not in settings.user_stats.inventory.stored:
        raise ValueError(f"Unknown storage location: {name}")

    edited = settings.model_copy(deep=True)
    del edited.user_stats.inventory.stored[name]
    edited.collapsed_inventory_locations = [
        loc for loc in edited.collapsed_inventory_locations if loc != name
    ]
    return edited


def toggle_location_collapsed(settings: ExtensionSettings, name: str) -> ExtensionSettings:
    edited = settings.model_copy(deep=True)
    collapsed = edited.collapsed_inventory_locations
    if name in collapsed:
        collapsed.remove(name)
    else:
        collapsed.append(name)
    return edited


# ---------------------------------------------------------------------------
# Classic stats and quests
# ---------------------------------------------------------------------------

def adjust_classic_stat(settings: ExtensionSettings, stat: str, delta: int) -> ExtensionSettings:
    """Add ``delta`` to one attribute (``"str"`` or ``"strength"``), clamped to 1-20."""
    field = CLASSIC_STAT_ALIASES.get(stat, stat)
    if field not in CLASSIC_STAT_ALIASES.values():
        raise ValueError(f"Unknown attribute: {stat}")

    edited = settings.model_copy(deep=True)
    current = getattr(edited.classic_stats, field)
    setattr(edited.classic_stats, field, _clamp(current + delta, CLASSIC_MIN, CLASSIC_MAX))
    return edited


def set_main_quest(settings: ExtensionSettings, value: str) -> ExtensionSettings:
    edited = settings.model_copy(deep=True)
    edited.quests.main = value.strip() or "None"
    return edited


def add_optional_quest(settings: ExtensionSettings, value: str) -> ExtensionSettings:
    quest = value.strip()
    if not quest or quest.lower() == "none":
        raise ValueError("Quest text is empty")
    edited = settings.model_copy(deep=True)
    edited.quests.optional.append(quest)
    return edited


def remove_optional_quest(settings: ExtensionSettings, index: int) -> ExtensionSettings:
    if not 0 <= index < len(settings.quests.optional):
        raise ValueError(f"No optional quest at index {index}")
    edited = settings.model_copy(deep=True)
    del edited.quests.optional[index]
    return edited
