"""Sanitisation of model- and user-supplied names before they are persisted.

Stored inventory location names become JSON object keys in the host's
settings, which the browser side reads back into plain objects. Names that
shadow object-prototype members are rejected outright.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

BLOCKED_PROPERTY_NAMES = frozenset(
    name.lower()
    for name in (
        "__proto__",
        "constructor",
        "prototype",
        "toString",
        "valueOf",
        "hasOwnProperty",
        "__defineGetter__",
        "__defineSetter__",
        "__lookupGetter__",
        "__lookupSetter__",
    )
)

MAX_LOCATION_LENGTH = 200
MAX_ITEM_LENGTH = 500
MAX_ITEMS_PER_SECTION = 500


def is_blocked_name(name: str) -> bool:
    return name.strip().lower() in BLOCKED_PROPERTY_NAMES


def sanitize_location_name(name: Any) -> str | None:
    """Return a safe location name, or None if it must be dropped.

    >>> sanitize_location_name("  Home ")
    'Home'
    >>> sanitize_location_name("__proto__") is None
    True
    """
    if not name or not isinstance(name, str):
        return None

    trimmed = name.strip()
    if not trimmed:
        return None

    if trimmed.lower() in BLOCKED_PROPERTY_NAMES:
        logger.warning("Blocked dangerous location name: %r", trimmed)
        return None

    if len(trimmed) > MAX_LOCATION_LENGTH:
        logger.warning(
            "Location name too long (%d chars), truncating to %d",
            len(trimmed), MAX_LOCATION_LENGTH,
        )
        return trimmed[:MAX_LOCATION_LENGTH]

    return trimmed


def sanitize_item_name(name: Any) -> str | None:
    """Return a trimmed item name capped in length, or None for empty/"none"."""
    if not name or not isinstance(name, str):
        return None

    trimmed = name.strip()
    if not trimmed or trimmed.lower() == "none":
        return None

    if len(trimmed) > MAX_ITEM_LENGTH:
        logger.warning(
            "Item name too long (%d chars), truncating to %d",
            len(trimmed), MAX_ITEM_LENGTH,
        )
        return trimmed[:MAX_ITEM_LENGTH]

    return trimmed


def validate_stored_inventory(stored: Any) -> dict[str, str]:
    """Return a clean copy of a stored-inventory mapping.

    Unsafe keys and non-string values are dropped. Anything that is not a
    mapping yields an empty dict.
    """
    if not isinstance(stored, dict):
        return {}

    cleaned: dict[str, str] = {}
    for key, value in stored.items():
        safe_key = sanitize_location_name(key)
        if safe_key is None:
            continue
        if not isinstance(value, str):
            logger.warning(
                "Invalid stored inventory value for location %r, skipping", safe_key
            )
            continue
        cleaned[safe_key] = value
    return cleaned
