"""Field-level parsing of the Stats section."""

from __future__ import annotations

import logging
import re

from rpg_companion.items import parse_items
from rpg_companion.models import METER_FIELDS, ExtensionSettings
from rpg_companion.tracker.inventory import extract_inventory

logger = logging.getLogger(__name__)

# Longest label the line-scan fallback accepts as a mood tag
MOOD_LABEL_MAX_LEN = 10

# Lines starting with these never carry the mood
MOOD_SKIP_PREFIXES = (
    "inventory:",
    "status:",
    "mood:",
    "health:",
    "energy:",
    "satiety:",
    "hygiene:",
    "arousal:",
    "on person:",
    "stored",
    "assets:",
    "main quest",
    "optional quest",
)

_EMOJI_CHARS = (
    "\U0001F000-\U0001FAFF"  # pictographs, emoticons, transport, supplemental
    "\u2190-\u21FF"  # arrows
    "\u2300-\u23FF"  # misc technical
    "\u2460-\u24FF"  # enclosed alphanumerics
    "\u25A0-\u27BF"  # geometric shapes, misc symbols, dingbats
    "\u2900-\u297F"
    "\u2B00-\u2BFF"
    "\u3030\u303D\u3297\u3299"
    "\uFE0F\u200D\u20E3"  # variation selector, ZWJ, keycap
    "\U000E0020-\U000E007F"  # tag sequences
)
EMOJI_PREFIX_RE = re.compile(rf"^\s*([{_EMOJI_CHARS}]+)\s*[,:\-]?\s*(.*)$", re.DOTALL)

_METER_RES = {
    field: re.compile(rf"{field}:\s*(\d+)%", re.IGNORECASE) for field in METER_FIELDS
}
_STATUS_RE = re.compile(r"^[ \t\-*]*Status:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
_MOOD_RE = re.compile(r"^[ \t\-*]*Mood:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
_SEPARATOR_SPLIT_RE = re.compile(r"^(.+?)\s*[,\-]\s*(.+)$")
_LABEL_LINE_RE = re.compile(r"^(.+?):\s*(.+)$")

MAIN_QUEST_RE = re.compile(r"^[ \t\-*]*Main Quests?:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
OPTIONAL_QUESTS_RE = re.compile(
    r"^[ \t\-*]*Optional Quests?:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE
)


def split_mood(value: str) -> tuple[str, str] | None:
    """Split ``"😊, Tired"`` style text into (mood, conditions).

    Tries a leading emoji first, then a comma or dash separator. Conditions
    may come back empty when only a mood was given.
    """
    value = value.strip()
    m = EMOJI_PREFIX_RE.match(value)
    if m:
        return m.group(1).strip(), m.group(2).strip()

    m = _SEPARATOR_SPLIT_RE.match(value)
    if m:
        return m.group(1).strip(), m.group(2).strip()
    return None


def _scan_for_mood_line(text: str, max_label_len: int) -> tuple[str, str] | None:
    for raw in text.splitlines():
        line = raw.strip()
        lowered = line.lower()
        if "%" in line or lowered.startswith(MOOD_SKIP_PREFIXES):
            continue
        m = _LABEL_LINE_RE.match(line)
        if m and len(m.group(1)) <= max_label_len:
            return m.group(1).strip(), m.group(2).strip()
    return None


def extract_mood(
    text: str, max_label_len: int = MOOD_LABEL_MAX_LEN
) -> tuple[str, str] | None:
    """Find the mood and conditions in Stats text, or None."""
    for pattern in (_STATUS_RE, _MOOD_RE):
        m = pattern.search(text)
        if m:
            split = split_mood(m.group(1))
            if split is not None:
                return split
    return _scan_for_mood_line(text, max_label_len)


def parse_user_stats(
    settings: ExtensionSettings,
    stats_text: str,
    mood_label_max_len: int = MOOD_LABEL_MAX_LEN,
) -> None:
    """Update ``settings.user_stats`` and ``settings.quests`` from Stats text.

    Fields the text does not mention keep their previous values. Errors are
    logged and swallowed; a malformed section leaves whatever was parsed
    before the failure.
    """
    try:
        stats = settings.user_stats

        for field, pattern in _METER_RES.items():
            m = pattern.search(stats_text)
            if m:
                setattr(stats, field, int(m.group(1)))

        mood = extract_mood(stats_text, mood_label_max_len)
        if mood is not None:
            stats.mood, conditions = mood
            if conditions:
                stats.conditions = conditions
        else:
            logger.debug("no mood line found")

        inventory = extract_inventory(stats_text, stats.inventory)
        if inventory is not None:
            stats.inventory = inventory

        m = MAIN_QUEST_RE.search(stats_text)
        if m:
            settings.quests.main = m.group(1).strip()
        m = OPTIONAL_QUESTS_RE.search(stats_text)
        if m:
            settings.quests.optional = parse_items(m.group(1))

        logger.debug(
            "parsed stats health=%s energy=%s mood=%r conditions=%r",
            stats.health, stats.energy, stats.mood, stats.conditions,
        )
    except Exception:
        logger.exception("Error parsing user stats")
