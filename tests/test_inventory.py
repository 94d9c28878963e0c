"""Tests for the three-bucket inventory: extraction, summary, migration, repair."""

from rpg_companion.models import InventoryV2
from rpg_companion.tracker.inventory import (
    build_inventory_summary,
    extract_inventory,
    is_empty_inventory,
    migrate_inventory,
    validate_inventory_structure,
)


# ── extract_inventory ────────────────────────────────────────


def test_extract_returns_none_without_inventory_lines():
    assert extract_inventory("Health: 80%\nStatus: 😊, Fine") is None
    assert extract_inventory("") is None


def test_extract_all_buckets():
    text = (
        "On Person: Sword, Shield\n"
        "Stored - Home: Bed\n"
        "Stored at The Bank: 200 gold\n"
        "Stored (Cellar): Wine, Cheese\n"
        "Assets: Horse"
    )
    inventory = extract_inventory(text)
    assert inventory.on_person == "Sword, Shield"
    assert inventory.stored == {"Home": "Bed", "The Bank": "200 gold", "Cellar": "Wine, Cheese"}
    assert inventory.assets == "Horse"


def test_extract_unmentioned_buckets_carry_over():
    current = InventoryV2(on_person="Dagger", stored={"Home": "Bed"}, assets="Farm")
    inventory = extract_inventory("On Person: Sword", current)
    assert inventory.on_person == "Sword"
    assert inventory.stored == {"Home": "Bed"}
    assert inventory.assets == "Farm"
    # the input is not mutated
    assert current.on_person == "Dagger"


def test_extract_legacy_line_maps_to_on_person():
    current = InventoryV2(stored={"Home": "Bed"}, assets="Farm")
    inventory = extract_inventory("Inventory: Rope, Torch", current)
    assert inventory.on_person == "Rope, Torch"
    assert inventory.stored == {"Home": "Bed"}
    assert inventory.assets == "Farm"


def test_extract_on_person_wins_over_legacy():
    inventory = extract_inventory("Inventory: Rope\nOn Person: Sword")
    assert inventory.on_person == "Sword"


def test_extract_drops_blocked_locations():
    inventory = extract_inventory("Stored - __proto__: Gold\nStored - Home: Bed")
    assert inventory.stored == {"Home": "Bed"}


def test_extract_none_items():
    inventory = extract_inventory("On Person: none\nAssets:")
    assert inventory.on_person == "None"
    assert inventory.assets == "None"


# ── Summary ──────────────────────────────────────────────────


def test_build_summary():
    inventory = InventoryV2(on_person="Sword", stored={"Home": "Bed"}, assets="")
    assert build_inventory_summary(inventory) == (
        "On Person: Sword\nStored - Home: Bed\nAssets: None"
    )


def test_summary_parses_back():
    inventory = InventoryV2(on_person="Sword, Rope", stored={"Home": "Bed"}, assets="Horse")
    assert extract_inventory(build_inventory_summary(inventory)) == inventory


def test_is_empty_inventory():
    assert is_empty_inventory(InventoryV2())
    assert is_empty_inventory(InventoryV2(stored={"Home": "None"}))
    assert not is_empty_inventory(InventoryV2(stored={"Home": "Bed"}))


# ── Migration ────────────────────────────────────────────────


def test_migrate_v2_unchanged():
    raw = {"version": 2, "onPerson": "Sword", "stored": {}, "assets": "None"}
    inventory, migrated, source = migrate_inventory(raw)
    assert inventory is raw
    assert not migrated
    assert source == "v2"


def test_migrate_v1_string():
    inventory, migrated, source = migrate_inventory("Sword, Shield")
    assert migrated and source == "v1"
    assert inventory == {"version": 2, "onPerson": "Sword, Shield", "stored": {}, "assets": "None"}


def test_migrate_missing_and_invalid():
    assert migrate_inventory(None)[2] == "missing"
    inventory, migrated, source = migrate_inventory(42)
    assert migrated and source == "invalid"
    assert inventory["onPerson"] == "None"


# ── Structure repair ─────────────────────────────────────────


def test_validate_good_structure():
    raw = {"version": 2, "onPerson": "Sword", "stored": {"Home": "Bed"}, "assets": "None"}
    inventory, repaired = validate_inventory_structure(raw)
    assert not repaired
    assert inventory == raw


def test_validate_repairs_fields():
    raw = {"version": 1, "onPerson": 5, "stored": {"__proto__": "x", "Home": "Bed"}}
    inventory, repaired = validate_inventory_structure(raw)
    assert repaired
    assert inventory == {"version": 2, "onPerson": "None", "stored": {"Home": "Bed"}, "assets": "None"}


def test_validate_non_dict():
    inventory, repaired = validate_inventory_structure("junk")
    assert repaired
    assert inventory["version"] == 2
