"""Tests for item list parsing and bracket stripping."""

from rpg_companion.items import parse_items, serialize_items, strip_brackets


# ── parse_items ──────────────────────────────────────────────


def test_parse_simple_list():
    assert parse_items("Sword, Shield, Rope") == ["Sword", "Shield", "Rope"]


def test_parse_none_and_empty():
    assert parse_items("None") == []
    assert parse_items("none") == []
    assert parse_items("") == []
    assert parse_items(None) == []
    assert parse_items("[None]") == []


def test_parse_keeps_commas_inside_parentheses():
    assert parse_items("Sword, Books (old, dusty), Rope") == [
        "Sword", "Books (old, dusty)", "Rope",
    ]


def test_parse_folds_newlines_inside_parentheses():
    assert parse_items("Sword, Books (magical\ntomes)") == ["Sword", "Books (magical tomes)"]


def test_parse_strips_wrapping_square_brackets():
    assert parse_items("[Sword, Shield]") == ["Sword", "Shield"]


def test_parse_drops_empty_and_none_items():
    assert parse_items("Sword,, None ,Shield") == ["Sword", "Shield"]


def test_parse_unbalanced_close_paren():
    assert parse_items("Sword), Shield") == ["Sword)", "Shield"]


# ── serialize_items ──────────────────────────────────────────


def test_serialize_empty():
    assert serialize_items([]) == "None"
    assert serialize_items(None) == "None"
    assert serialize_items(["  ", ""]) == "None"


def test_serialize_joins():
    assert serialize_items(["Sword", " Shield "]) == "Sword, Shield"


def test_serialize_then_parse_keeps_items():
    items = ["Sword", "Books (old, dusty)", "Rope"]
    assert parse_items(serialize_items(items)) == items


def test_serialize_then_parse_unwraps_lone_bracketed_item():
    assert parse_items(serialize_items(["[Sword]"])) == ["Sword"]
    assert parse_items(serialize_items(["[Sword]", "Rope"])) == ["[Sword]", "Rope"]


# ── strip_brackets ───────────────────────────────────────────


def test_strip_nested_brackets():
    assert strip_brackets("[(Stats)]") == "Stats"
    assert strip_brackets("{ [x] }") == "x"


def test_strip_leaves_partial_wrapping_alone():
    assert strip_brackets("(a) and (b)") == "(a) and (b)"
    assert strip_brackets("Health: 80% (bruised)") == "Health: 80% (bruised)"


def test_strip_is_idempotent():
    for text in ("[(Stats)]", "(a) and (b)", "[[x]]", "plain", ""):
        once = strip_brackets(text)
        assert strip_brackets(once) == once
