"""Present Characters section.

One line per character:

    🧝: Lyra, Muddy boots, Wary glance | Neutral | I don't trust this stranger yet.

i.e. ``emoji: name, traits | relationship | thoughts``.
"""

from __future__ import annotations

import logging

from rpg_companion.models import PresentCharacter

logger = logging.getLogger(__name__)

RELATIONSHIP_EMOJIS = {
    "⚔️": "Enemy",
    "⚖️": "Neutral",
    "⭐": "Friend",
    "❤️": "Lover",
}

EDITABLE_FIELDS = frozenset({"emoji", "name", "traits", "relationship", "thoughts"})

HEADER = "Present Characters\n---"


def parse_character_line(line: str) -> PresentCharacter | None:
    """Parse one character line, or None if it is not one."""
    line = line.strip()
    if "|" not in line:
        return None

    parts = [p.strip() for p in line.split("|")]
    identity = parts[0]
    if "unavailable" in identity.lower():
        return None

    emoji = ""
    if ":" in identity:
        emoji, identity = (p.strip() for p in identity.split(":", 1))
    name, _, traits = (p.strip() for p in identity.partition(","))
    if not name:
        return None

    return PresentCharacter(
        emoji=emoji,
        name=name,
        traits=traits,
        relationship=parts[1] if len(parts) > 1 else "",
        thoughts=" | ".join(parts[2:]) if len(parts) > 2 else "",
    )


def parse_present_characters(text: str | None) -> list[PresentCharacter]:
    if not text:
        return []
    characters = []
    for line in text.splitlines():
        if not line.strip() or line.strip().startswith("---"):
            continue
        character = parse_character_line(line)
        if character is not None:
            characters.append(character)
    return characters


def render_character_line(character: PresentCharacter) -> str:
    identity = character.name
    if character.traits:
        identity = f"{identity}, {character.traits}"
    if character.emoji:
        identity = f"{character.emoji}: {identity}"
    return f"{identity} | {character.relationship} | {character.thoughts}"


def update_character_field(text: str | None, name: str, field: str, value: str) -> str:
    """Return section text with one field of the named character replaced.

    A relationship given as one of the relationship emojis is stored as its
    label. Lines that are not character lines are kept as they are.
    Raises ValueError for an unknown field or character.
    """
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Unknown character field: {field}")

    value = value.strip()
    if field == "relationship":
        value = RELATIONSHIP_EMOJIS.get(value, value)

    lines = (text or HEADER).splitlines()
    for i, line in enumerate(lines):
        character = parse_character_line(line)
        if character is None or character.name != name:
            continue
        lines[i] = render_character_line(character.model_copy(update={field: value}))
        logger.debug("character %r %s -> %r", name, field, value)
        return "\n".join(lines)

    raise ValueError(f"Character not found: {name}")
