"""Info Box section: parsing into fields and single-field edits.

Two label conventions are accepted. The current one:

    Info Box
    ---
    Date: Monday, March, 1542
    Weather: 🌧️, Light rain
    Temperature: 12°C
    Time: 14:00 → 15:30
    Location: The Rusty Anchor

and the legacy emoji one (🗓️ 🌡️ 🕒 🗺️, with the weather line keyed by its
own emoji, e.g. ``🌧️: Light rain``).
"""

from __future__ import annotations

import logging
import re

from rpg_companion.models import InfoBox
from rpg_companion.tracker.stats import split_mood

logger = logging.getLogger(__name__)

# Longest label an unlabelled "emoji: forecast" line may have to count as weather
WEATHER_EMOJI_MAX_LEN = 5

TIME_SEPARATOR = "→"

_DATE_LABELS = ("🗓️:", "🗓:", "date:")
_TEMPERATURE_LABELS = ("🌡️:", "🌡:", "temperature:")
_TIME_LABELS = ("🕒:", "time:")
_LOCATION_LABELS = ("🗺️:", "🗺:", "location:")
_WEATHER_LABELS = ("weather:",)

_TEMP_VALUE_RE = re.compile(r"-?\d+")
_GENERIC_LINE_RE = re.compile(r"^\s*([^:]+):\s*(.+)$")

EDITABLE_FIELDS = frozenset({
    "weekday", "month", "year",
    "weather_emoji", "weather_forecast",
    "temperature", "time_start", "time_end", "location",
})


def _strip_label(line: str, labels: tuple[str, ...]) -> str | None:
    lowered = line.lower()
    for label in labels:
        if lowered.startswith(label):
            return line[len(label):].strip()
    return None


def _set_date(info: InfoBox, value: str) -> None:
    info.date = value
    parts = [p.strip() for p in value.split(",")]
    info.weekday = parts[0] if parts else ""
    info.month = parts[1] if len(parts) > 1 else ""
    info.year = ", ".join(parts[2:]) if len(parts) > 2 else ""


def _set_weather(info: InfoBox, value: str) -> None:
    split = split_mood(value)
    if split is not None:
        info.weather_emoji, info.weather_forecast = split
    else:
        info.weather_forecast = value


def _set_time(info: InfoBox, value: str) -> None:
    start, sep, end = value.partition(TIME_SEPARATOR)
    info.time_start = start.strip()
    info.time_end = end.strip() if sep else ""


def _set_temperature(info: InfoBox, value: str) -> None:
    info.temperature = value
    m = _TEMP_VALUE_RE.search(value)
    info.temp_value = int(m.group(0)) if m else None


def _set_location(info: InfoBox, value: str) -> None:
    info.location = value


_LINE_HANDLERS = (
    (_DATE_LABELS, _set_date),
    (_TEMPERATURE_LABELS, _set_temperature),
    (_TIME_LABELS, _set_time),
    (_LOCATION_LABELS, _set_location),
    (_WEATHER_LABELS, _set_weather),
)


def parse_info_box(
    text: str | None, weather_emoji_max_len: int = WEATHER_EMOJI_MAX_LEN
) -> InfoBox:
    """Parse Info Box text into its fields. Unknown lines are ignored."""
    info = InfoBox()
    if not text:
        return info

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("---") or ":" not in line:
            continue

        for labels, handler in _LINE_HANDLERS:
            value = _strip_label(line, labels)
            if value is not None:
                handler(info, value)
                break
        else:
            if info.weather_forecast:
                continue
            m = _GENERIC_LINE_RE.match(line)
            if m and len(m.group(1).strip()) <= weather_emoji_max_len:
                info.weather_emoji = m.group(1).strip()
                info.weather_forecast = m.group(2).strip()

    return info


def render_info_box(info: InfoBox) -> str:
    """Serialise an InfoBox in the current label convention."""
    lines = ["Info Box", "---"]
    date_parts = [p for p in (info.weekday, info.month, info.year) if p]
    if date_parts:
        lines.append("Date: " + ", ".join(date_parts))
    if info.weather_emoji or info.weather_forecast:
        weather = ", ".join(p for p in (info.weather_emoji, info.weather_forecast) if p)
        lines.append(f"Weather: {weather}")
    if info.temperature:
        lines.append(f"Temperature: {info.temperature}")
    if info.time_start:
        end = info.time_end or info.time_start
        lines.append(f"Time: {info.time_start} {TIME_SEPARATOR} {end}")
    if info.location:
        lines.append(f"Location: {info.location}")
    return "\n".join(lines)


def update_info_box_field(text: str | None, field: str, value: str) -> str:
    """Return Info Box text with one field replaced.

    Editing the start time keeps the existing end time. Raises ValueError for
    an unknown field.
    """
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Unknown info box field: {field}")

    info = parse_info_box(text)
    value = value.strip()
    if field == "temperature":
        _set_temperature(info, value)
    else:
        setattr(info, field, value)

    if field in ("weekday", "month", "year"):
        info.date = ", ".join(p for p in (info.weekday, info.month, info.year) if p)

    logger.debug("info box %s -> %r", field, value)
    return render_info_box(info)
