"""Comma-separated item lists and bracket wrapping.

Models write inventories as ``Sword, Shield, Books (old, dusty)``. Commas
inside parentheses belong to the item, and line breaks the model sometimes
puts inside a parenthetical are folded into spaces.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")

_BRACKET_PAIRS = {"(": ")", "[": "]", "{": "}"}


def _is_none(text: str) -> bool:
    return text == "" or text.lower() == "none"


def _collapse_paren_newlines(text: str) -> str:
    out: list[str] = []
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char in "\r\n" and depth > 0:
            if not out or out[-1] != " ":
                out.append(" ")
            continue
        out.append(char)
    return "".join(out)


def _split_top_level(text: str) -> list[str]:
    items: list[str] = []
    current: list[str] = []
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            items.append("".join(current))
            current = []
            continue
        current.append(char)
    items.append("".join(current))
    return items


def parse_items(text: str | None) -> list[str]:
    """Split an item string into trimmed item names.

    Brackets wrapping the whole list are dropped, so a lone item written as
    ``"[Sword]"`` does not survive ``parse_items(serialize_items(...))``: it
    comes back as ``"Sword"``.

    >>> parse_items("Sword, Books (magical\\ntomes), None")
    ['Sword', 'Books (magical tomes)']
    >>> parse_items("[Sword, Shield]")
    ['Sword', 'Shield']
    """
    if not text or not isinstance(text, str):
        return []

    trimmed = text.strip()
    if _is_none(trimmed):
        return []

    if trimmed.startswith("[") and trimmed.endswith("]"):
        trimmed = trimmed[1:-1].strip()
        if _is_none(trimmed):
            return []

    processed = _WHITESPACE_RE.sub(" ", _collapse_paren_newlines(trimmed))

    items = []
    for raw in _split_top_level(processed):
        item = raw.strip()
        if not _is_none(item):
            items.append(item)
    return items


def serialize_items(items: list[str] | None) -> str:
    """Join item names with ``", "``. An empty list becomes ``"None"``."""
    if not items:
        return "None"
    cleaned = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    if not cleaned:
        return "None"
    return ", ".join(cleaned)


def _matching_close(text: str) -> int:
    """Index of the bracket closing ``text[0]``, or -1."""
    opener = text[0]
    closer = _BRACKET_PAIRS[opener]
    depth = 0
    for i, char in enumerate(text):
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def strip_brackets(text: str) -> str:
    """Remove bracket pairs that wrap the whole text, layer by layer.

    ``"[(Stats)]"`` becomes ``"Stats"``; ``"(a) and (b)"`` is left alone
    because its first parenthesis closes before the end. Idempotent.
    """
    result = text.strip()
    while len(result) >= 2 and result[0] in _BRACKET_PAIRS:
        if _matching_close(result) != len(result) - 1:
            break
        result = result[1:-1].strip()
    return result
