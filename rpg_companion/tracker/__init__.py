"""Tracker parsing: locating sections in model output and reading their fields."""

from .characters import parse_present_characters, update_character_field
from .info_box import parse_info_box, update_info_box_field
from .inventory import build_inventory_summary, extract_inventory
from .sections import parse_response, strip_tracker_blocks
from .stats import parse_user_stats

__all__ = [
    "build_inventory_summary",
    "extract_inventory",
    "parse_info_box",
    "parse_present_characters",
    "parse_response",
    "parse_user_stats",
    "strip_tracker_blocks",
    "update_character_field",
    "update_info_box_field",
]
