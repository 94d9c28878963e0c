"""Locating tracker sections inside a model response.

The model is asked to open its reply with three fenced blocks:

    ```
    Stats
    ---
    Health: 80%
    ...
    ```

Models drift from the instructed layout, so every section kind has an ordered
list of matchers: the header-plus-divider pattern first, then a keyword
fallback. Some models also put all three sections into one fence; such a
combined block is split at its header lines.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from rpg_companion.items import strip_brackets
from rpg_companion.models import TrackerSnapshot

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```([^`]+)```")
THINK_RE = re.compile(r"<(think|thinking)>.*?</\1>", re.IGNORECASE | re.DOTALL)

# Bare language tags some models put after the opening fence
LANGUAGE_TAGS = frozenset({"text", "txt", "md", "markdown", "yaml", "plaintext"})

_FLAGS = re.IGNORECASE | re.MULTILINE

STATS_HEADER_RE = re.compile(r"^[^\n]*Stats[ \t]*\n\s*---", _FLAGS)
INFO_BOX_HEADER_RE = re.compile(
    r"^[^\n]*(?:Info Box|Scene Info|Information)[ \t]*\n\s*---", _FLAGS
)
CHARACTERS_HEADER_RE = re.compile(
    r"^[^\n]*(?:Characters|Character Thoughts)[ \t]*\n\s*---", _FLAGS
)

_HEALTH_RE = re.compile(r"Health:\s*\d+%", re.IGNORECASE)
_ENERGY_RE = re.compile(r"Energy:\s*\d+%", re.IGNORECASE)
_DATE_RE = re.compile(r"Date:", re.IGNORECASE)
_LOCATION_RE = re.compile(r"Location:", re.IGNORECASE)
_TIME_RE = re.compile(r"Time:", re.IGNORECASE)

_STRAY_DIVIDER_RE = re.compile(r"^\s*---\s*$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")


# ---------------------------------------------------------------------------
# Matcher table: (name, predicate) pairs, tried in order
# ---------------------------------------------------------------------------

Predicate = Callable[[str], bool]
Matcher = tuple[str, Predicate]

STATS_MATCHERS: tuple[Matcher, ...] = (
    ("stats-header", lambda c: bool(STATS_HEADER_RE.search(c))),
    ("stats-keywords", lambda c: bool(_HEALTH_RE.search(c) and _ENERGY_RE.search(c))),
)

INFO_BOX_MATCHERS: tuple[Matcher, ...] = (
    ("info-box-header", lambda c: bool(INFO_BOX_HEADER_RE.search(c))),
    (
        "info-box-keywords",
        lambda c: bool(_DATE_RE.search(c) and _LOCATION_RE.search(c) and _TIME_RE.search(c)),
    ),
)

CHARACTERS_MATCHERS: tuple[Matcher, ...] = (
    ("characters-header", lambda c: bool(CHARACTERS_HEADER_RE.search(c))),
    ("characters-table", lambda c: " | " in c and ("Thoughts" in c or "💭" in c)),
)

# Snapshot field -> matchers, in priority order
SECTION_MATCHERS: tuple[tuple[str, tuple[Matcher, ...]], ...] = (
    ("user_stats", STATS_MATCHERS),
    ("info_box", INFO_BOX_MATCHERS),
    ("character_thoughts", CHARACTERS_MATCHERS),
)

_HEADER_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("user_stats", STATS_HEADER_RE),
    ("info_box", INFO_BOX_HEADER_RE),
    ("character_thoughts", CHARACTERS_HEADER_RE),
)


def matching_rule(content: str, matchers: tuple[Matcher, ...]) -> str | None:
    """Name of the first matcher that accepts ``content``."""
    for name, predicate in matchers:
        if predicate(content):
            return name
    return None


def classify_block(content: str) -> str | None:
    """Return the snapshot field a single block belongs to, if any."""
    for field, matchers in SECTION_MATCHERS:
        if matching_rule(content, matchers) is not None:
            return field
    return None


# ---------------------------------------------------------------------------
# Block extraction
# ---------------------------------------------------------------------------

def strip_reasoning(text: str) -> str:
    """Remove <think>/<thinking> spans."""
    return THINK_RE.sub("", text)


def _drop_language_tag(content: str) -> str:
    first, sep, rest = content.partition("\n")
    if sep and first.strip().lower() in LANGUAGE_TAGS:
        return rest
    return content


def extract_code_blocks(text: str) -> list[str]:
    return [
        _drop_language_tag(m.group(1).strip()).strip()
        for m in CODE_BLOCK_RE.finditer(text)
    ]


def split_combined_block(content: str) -> dict[str, str] | None:
    """Split a block holding Stats plus another section at its header lines.

    Returns None unless the block has a Stats header and at least one of the
    Info Box or Present Characters headers. Sections may appear in any order;
    each one runs up to the next header or the end of the block.
    """
    starts: list[tuple[int, str]] = []
    for field, pattern in _HEADER_PATTERNS:
        m = pattern.search(content)
        if m:
            starts.append((m.start(), field))

    fields = {field for _, field in starts}
    if "user_stats" not in fields or len(fields) < 2:
        return None

    starts.sort()
    sections: dict[str, str] = {}
    for i, (start, field) in enumerate(starts):
        end = starts[i + 1][0] if i + 1 < len(starts) else len(content)
        sections[field] = content[start:end].strip()
    return sections


def parse_response(text: str) -> TrackerSnapshot:
    """Extract the raw Stats, Info Box and Present Characters sections.

    Never raises. On an unexpected error the sections found so far are
    returned.
    """
    found: dict[str, str] = {}
    try:
        blocks = extract_code_blocks(strip_reasoning(text or ""))
        logger.debug("found %d code blocks", len(blocks))

        for content in blocks:
            combined = split_combined_block(content)
            if combined is not None:
                logger.debug("combined block with %s", sorted(combined))
                for field, section in combined.items():
                    found.setdefault(field, section)
                continue

            for field, matchers in SECTION_MATCHERS:
                if field in found:
                    continue
                rule = matching_rule(content, matchers)
                if rule is not None:
                    logger.debug("block matched %s", rule)
                    found[field] = content
                    break
            else:
                logger.debug("ignoring unrelated block: %.60r", content)
    except Exception:
        logger.exception("Error while parsing tracker sections")

    return TrackerSnapshot(**{field: strip_brackets(value) for field, value in found.items()})


def strip_tracker_blocks(text: str) -> str:
    """Remove tracker fences from a message, leaving only the narrative."""

    def _replace(m: re.Match[str]) -> str:
        content = _drop_language_tag(m.group(1).strip())
        if split_combined_block(content) is not None or classify_block(content):
            return ""
        return m.group(0)

    cleaned = CODE_BLOCK_RE.sub(_replace, text)
    cleaned = _STRAY_DIVIDER_RE.sub("", cleaned)
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    return cleaned.strip()
