"""Three-bucket inventory: on person, stored at named locations, assets.

The Stats section carries inventory as labelled lines:

    On Person: Leather armor, Sword
    Stored - Home: Bed, Old books (dusty, torn)
    Stored - Bank: 200 gold
    Assets: Horse, Small farm

Older responses (and older saved settings) use a single ``Inventory:`` line;
it maps to the on-person bucket.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from rpg_companion.items import parse_items, serialize_items
from rpg_companion.models import InventoryV2
from rpg_companion.security import (
    MAX_ITEMS_PER_SECTION,
    sanitize_item_name,
    sanitize_location_name,
    validate_stored_inventory,
)

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.MULTILINE

ON_PERSON_RE = re.compile(r"^[ \t\-*]*On Person:[ \t]*(.*)$", _FLAGS)
STORED_RE = re.compile(
    r"^[ \t\-*]*Stored(?:[ \t]*-[ \t]*|[ \t]+at[ \t]+|[ \t]*\([ \t]*)([^:\n]+?)[ \t]*\)?[ \t]*:[ \t]*(.*)$",
    _FLAGS,
)
ASSETS_RE = re.compile(r"^[ \t\-*]*Assets:[ \t]*(.*)$", _FLAGS)
LEGACY_RE = re.compile(r"^[ \t\-*]*Inventory:[ \t]*(\S.*)$", _FLAGS)


def normalize_items(text: str) -> str:
    """Re-serialise an item string through the item parser and sanitiser."""
    items = []
    for raw in parse_items(text):
        name = sanitize_item_name(raw)
        if name is not None:
            items.append(name)
    if len(items) > MAX_ITEMS_PER_SECTION:
        logger.warning(
            "Inventory section has %d items, keeping the first %d",
            len(items), MAX_ITEMS_PER_SECTION,
        )
        items = items[:MAX_ITEMS_PER_SECTION]
    return serialize_items(items)


def extract_inventory(text: str, current: InventoryV2 | None = None) -> InventoryV2 | None:
    """Build an inventory from stats text, or None if it mentions none.

    Buckets the text does not mention keep their value from ``current``, so a
    turn that only lists carried items never wipes stored ones.
    """
    if not text:
        return None

    on_person_m = ON_PERSON_RE.search(text)
    assets_m = ASSETS_RE.search(text)
    stored_ms = list(STORED_RE.finditer(text))
    legacy_m = LEGACY_RE.search(text) if on_person_m is None else None

    if not (on_person_m or assets_m or stored_ms or legacy_m):
        return None

    result = current.model_copy(deep=True) if current is not None else InventoryV2()

    if on_person_m:
        result.on_person = normalize_items(on_person_m.group(1))
    elif legacy_m:
        result.on_person = normalize_items(legacy_m.group(1))

    if stored_ms:
        stored: dict[str, str] = {}
        for m in stored_ms:
            location = sanitize_location_name(m.group(1))
            if location is None:
                continue
            stored[location] = normalize_items(m.group(2))
        result.stored = stored

    if assets_m:
        result.assets = normalize_items(assets_m.group(1))

    logger.debug(
        "extracted inventory on_person=%r stored=%s assets=%r",
        result.on_person, sorted(result.stored), result.assets,
    )
    return result


def build_inventory_summary(inventory: InventoryV2) -> str:
    """Render an inventory back into the labelled-line form."""
    lines = [f"On Person: {inventory.on_person or 'None'}"]
    for location, items in inventory.stored.items():
        lines.append(f"Stored - {location}: {items or 'None'}")
    lines.append(f"Assets: {inventory.assets or 'None'}")
    return "\n".join(lines)


def is_empty_inventory(inventory: InventoryV2) -> bool:
    return (
        not parse_items(inventory.on_person)
        and not parse_items(inventory.assets)
        and not any(parse_items(v) for v in inventory.stored.values())
    )


# ---------------------------------------------------------------------------
# Persisted-structure migration and repair
# ---------------------------------------------------------------------------

def migrate_inventory(raw: Any) -> tuple[dict[str, Any], bool, str]:
    """Convert a persisted inventory of any vintage to the v2 dict form.

    Returns ``(inventory, migrated, source)`` where source is one of
    ``"v2"``, ``"v1"``, ``"missing"`` or ``"invalid"``. Already-v2 input comes
    back unchanged with ``migrated=False``.
    """
    if isinstance(raw, dict) and raw.get("version") == 2:
        return raw, False, "v2"

    default = InventoryV2().model_dump(by_alias=True)
    if raw is None:
        return default, True, "missing"

    if isinstance(raw, str):
        text = raw.strip()
        default["onPerson"] = normalize_items(text) if text else "None"
        return default, True, "v1"

    logger.warning("Unrecognised inventory structure %r, resetting", type(raw).__name__)
    return default, True, "invalid"


def validate_inventory_structure(raw: Any) -> tuple[dict[str, Any], bool]:
    """Check a v2 inventory dict and repair what is wrong with it.

    Returns ``(inventory, repaired)``.
    """
    if not isinstance(raw, dict):
        logger.warning("Inventory is not an object, resetting to defaults")
        return InventoryV2().model_dump(by_alias=True), True

    repaired = False
    fixed = dict(raw)

    if fixed.get("version") != 2:
        fixed["version"] = 2
        repaired = True

    for key in ("onPerson", "assets"):
        if not isinstance(fixed.get(key), str):
            logger.warning("Inventory %s is not a string, resetting", key)
            fixed[key] = "None"
            repaired = True

    stored = fixed.get("stored")
    if not isinstance(stored, dict):
        logger.warning("Inventory stored is not an object, resetting")
        fixed["stored"] = {}
        repaired = True
    else:
        cleaned = validate_stored_inventory(stored)
        if cleaned != stored:
            logger.warning(
                "Removed %d invalid stored inventory entries",
                len(stored) - len(cleaned),
            )
            fixed["stored"] = cleaned
            repaired = True

    return fixed, repaired
