"""Tests for Info Box parsing and field edits."""

import pytest

from rpg_companion.models import InfoBox
from rpg_companion.tracker.info_box import parse_info_box, render_info_box, update_info_box_field

TEXT_LABELS = (
    "Info Box\n---\n"
    "Date: Monday, March, 1542\n"
    "Weather: 🌧️, Light rain\n"
    "Temperature: 12°C\n"
    "Time: 14:00 → 15:30\n"
    "Location: The Rusty Anchor"
)

EMOJI_LABELS = (
    "Info Box\n---\n"
    "🗓️: Tuesday, April, 1542\n"
    "🌧️: Heavy rain\n"
    "🌡️: -3°C\n"
    "🕒: 08:00 → 09:00\n"
    "🗺️: Harbour"
)


def test_parse_text_labels():
    info = parse_info_box(TEXT_LABELS)
    assert info.date == "Monday, March, 1542"
    assert (info.weekday, info.month, info.year) == ("Monday", "March", "1542")
    assert info.weather_emoji == "🌧️"
    assert info.weather_forecast == "Light rain"
    assert info.temperature == "12°C"
    assert info.temp_value == 12
    assert (info.time_start, info.time_end) == ("14:00", "15:30")
    assert info.location == "The Rusty Anchor"


def test_parse_emoji_labels():
    info = parse_info_box(EMOJI_LABELS)
    assert info.weekday == "Tuesday"
    assert info.weather_emoji == "🌧️"
    assert info.weather_forecast == "Heavy rain"
    assert info.temp_value == -3
    assert info.time_start == "08:00"
    assert info.location == "Harbour"


def test_parse_long_label_is_not_weather():
    info = parse_info_box("Info Box\n---\nSomething odd: happened")
    assert info.weather_forecast == ""


def test_parse_empty():
    assert parse_info_box(None) == InfoBox()
    assert parse_info_box("") == InfoBox()


def test_render_round_trip():
    info = parse_info_box(TEXT_LABELS)
    assert render_info_box(info) == TEXT_LABELS


def test_update_location():
    updated = update_info_box_field(TEXT_LABELS, "location", "  The Docks ")
    assert "Location: The Docks" in updated
    assert "Date: Monday, March, 1542" in updated


def test_update_time_start_keeps_end():
    updated = update_info_box_field(TEXT_LABELS, "time_start", "15:00")
    assert "Time: 15:00 → 15:30" in updated


def test_update_date_part_rebuilds_date():
    info = parse_info_box(update_info_box_field(TEXT_LABELS, "month", "April"))
    assert info.date == "Monday, April, 1542"


def test_update_temperature_reparses_value():
    info = parse_info_box(update_info_box_field(TEXT_LABELS, "temperature", "20°C"))
    assert info.temp_value == 20


def test_update_converts_emoji_labels_to_text_labels():
    updated = update_info_box_field(EMOJI_LABELS, "location", "Market")
    assert updated.startswith("Info Box\n---\nDate: Tuesday, April, 1542")
    assert "Location: Market" in updated


def test_update_on_empty_text():
    assert update_info_box_field(None, "location", "Road") == "Info Box\n---\nLocation: Road"


def test_update_unknown_field():
    with pytest.raises(ValueError):
        update_info_box_field(TEXT_LABELS, "mood", "x")
