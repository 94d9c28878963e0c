"""Tests for locating tracker sections in model responses."""

from rpg_companion.tracker.sections import (
    classify_block,
    extract_code_blocks,
    parse_response,
    split_combined_block,
    strip_tracker_blocks,
)

STATS = "User's Stats\n---\nHealth: 80%\nEnergy: 50%\nStatus: 😊, Tired"
INFO = "Info Box\n---\nDate: Monday, March, 1542\nTime: 14:00 → 15:00\nLocation: Tavern"
CHARS = "Present Characters\n---\n🧝: Lyra, Muddy boots | Neutral | Who is this?"


def _fenced(*sections: str) -> str:
    return "\n\n".join(f"```\n{s}\n```" for s in sections)


# ── Block extraction ─────────────────────────────────────────


def test_extract_drops_language_tag():
    assert extract_code_blocks("```text\nUser's Stats\n---\n```") == ["User's Stats\n---"]


def test_classify_by_header():
    assert classify_block(STATS) == "user_stats"
    assert classify_block(INFO) == "info_box"
    assert classify_block(CHARS) == "character_thoughts"
    assert classify_block("print('hello')") is None


def test_classify_by_keywords():
    assert classify_block("Health: 90%\nEnergy: 40%") == "user_stats"
    assert classify_block("Date: Today\nLocation: Road\nTime: Noon") == "info_box"
    assert classify_block("Lyra | Friend | Thoughts here") == "character_thoughts"


# ── parse_response ───────────────────────────────────────────


def test_parse_three_separate_blocks():
    snapshot = parse_response(_fenced(STATS, INFO, CHARS) + "\n\nThe story goes on.")
    assert snapshot.user_stats == STATS
    assert snapshot.info_box == INFO
    assert snapshot.character_thoughts == CHARS


def test_parse_missing_sections_are_none():
    snapshot = parse_response(_fenced(STATS))
    assert snapshot.user_stats == STATS
    assert snapshot.info_box is None
    assert snapshot.character_thoughts is None


def test_parse_no_blocks():
    snapshot = parse_response("Just a story, no trackers.")
    assert snapshot.is_empty()


def test_parse_empty_and_none_input():
    assert parse_response("").is_empty()
    assert parse_response(None).is_empty()


def test_parse_ignores_unrelated_blocks():
    text = "```\nprint('hi')\n```\n\n" + _fenced(STATS)
    assert parse_response(text).user_stats == STATS


def test_parse_first_matching_block_wins():
    other = STATS.replace("80%", "10%")
    snapshot = parse_response(_fenced(STATS, other))
    assert "Health: 80%" in snapshot.user_stats


def test_parse_strips_thinking():
    text = "<think>```\n" + STATS.replace("80%", "5%") + "\n```</think>\n" + _fenced(STATS)
    assert "Health: 80%" in parse_response(text).user_stats


def test_parse_strips_wrapping_brackets():
    snapshot = parse_response("```\n[" + STATS + "]\n```")
    assert snapshot.user_stats == STATS


def test_parse_combined_block():
    snapshot = parse_response(f"```\n{STATS}\n{INFO}\n{CHARS}\n```")
    assert snapshot.user_stats == STATS
    assert snapshot.info_box == INFO
    assert snapshot.character_thoughts == CHARS


def test_parse_combined_block_any_order():
    snapshot = parse_response(f"```\n{CHARS}\n\n{INFO}\n\n{STATS}\n```")
    assert snapshot.user_stats == STATS
    assert snapshot.info_box == INFO
    assert snapshot.character_thoughts == CHARS


def test_combined_sections_do_not_bleed():
    sections = split_combined_block(f"{STATS}\n{CHARS}")
    assert sections is not None
    assert "Lyra" not in sections["user_stats"]
    assert "Health" not in sections["character_thoughts"]
    assert "info_box" not in sections


def test_split_requires_stats_and_another_header():
    assert split_combined_block(STATS) is None
    assert split_combined_block(f"{INFO}\n{CHARS}") is None


# ── strip_tracker_blocks ─────────────────────────────────────


def test_strip_removes_tracker_fences():
    text = _fenced(STATS, INFO, CHARS) + "\n\nYou enter the tavern."
    assert strip_tracker_blocks(text) == "You enter the tavern."


def test_strip_keeps_other_code_blocks():
    text = _fenced(STATS) + "\n\nShe hands you a note:\n```\nMeet me at dawn.\n```"
    cleaned = strip_tracker_blocks(text)
    assert "Meet me at dawn." in cleaned
    assert "Health" not in cleaned


def test_strip_removes_combined_block_and_stray_dividers():
    text = f"```\n{STATS}\n{INFO}\n```\n---\n\n\n\nThe rain falls."
    assert strip_tracker_blocks(text) == "The rain falls."
