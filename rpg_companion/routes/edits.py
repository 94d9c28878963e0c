"""Manual edit, dice and plot progression endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from rpg_companion.companion import Companion

from .chats import chat_view, get_companion
from .models import (
    ClassicStatEdit,
    DiceBody,
    FieldEdit,
    InventoryEdit,
    LocationBody,
    StatEdit,
    TextEdit,
)

router = APIRouter()


def _apply(companion: Companion, edit, *args) -> dict:
    """Run an edit and map invalid input to HTTP 400."""
    try:
        edit(*args)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return chat_view(companion)


# ── Stats ──────────────────────────────────────────────


@router.patch("/chats/{chat_id}/stats")
async def edit_stat(body: StatEdit, companion: Companion = Depends(get_companion)):
    """Set a meter (health, satiety, energy, hygiene, arousal) from free text."""
    return _apply(companion, companion.edit_stat, body.field, body.value)


@router.patch("/chats/{chat_id}/mood")
async def edit_mood(body: TextEdit, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.edit_mood, body.value)


@router.patch("/chats/{chat_id}/conditions")
async def edit_conditions(body: TextEdit, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.edit_conditions, body.value)


@router.patch("/chats/{chat_id}/classic-stats")
async def adjust_classic_stat(body: ClassicStatEdit, companion: Companion = Depends(get_companion)):
    """Raise or lower an attribute, clamped to 1-20."""
    return _apply(companion, companion.adjust_classic_stat, body.stat, body.delta)


# ── Inventory ──────────────────────────────────────────


@router.patch("/chats/{chat_id}/inventory")
async def edit_inventory(body: InventoryEdit, companion: Companion = Depends(get_companion)):
    """Replace the items of one inventory bucket."""
    return _apply(companion, companion.edit_inventory, body.bucket, body.value, body.location)


@router.post("/chats/{chat_id}/inventory/locations", status_code=201)
async def add_location(body: LocationBody, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.add_location, body.name)


@router.delete("/chats/{chat_id}/inventory/locations/{name}")
async def remove_location(name: str, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.remove_location, name)


@router.post("/chats/{chat_id}/inventory/locations/{name}/toggle")
async def toggle_location(name: str, companion: Companion = Depends(get_companion)):
    """Collapse or expand a storage location in the panel."""
    return _apply(companion, companion.toggle_location, name)


# ── Quests ─────────────────────────────────────────────


@router.put("/chats/{chat_id}/quests/main")
async def set_main_quest(body: TextEdit, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.set_main_quest, body.value)


@router.post("/chats/{chat_id}/quests/optional", status_code=201)
async def add_optional_quest(body: TextEdit, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.add_optional_quest, body.value)


@router.delete("/chats/{chat_id}/quests/optional/{index}")
async def remove_optional_quest(index: int, companion: Companion = Depends(get_companion)):
    return _apply(companion, companion.remove_optional_quest, index)


# ── Scene ──────────────────────────────────────────────


@router.patch("/chats/{chat_id}/info-box")
async def edit_info_box(body: FieldEdit, companion: Companion = Depends(get_companion)):
    """Edit one Info Box field (date parts, weather, temperature, time, location)."""
    return _apply(companion, companion.edit_info_box, body.field, body.value)


@router.patch("/chats/{chat_id}/characters/{name}")
async def edit_character(name: str, body: FieldEdit, companion: Companion = Depends(get_companion)):
    """Edit one field of a present character."""
    return _apply(companion, companion.edit_character, name, body.field, body.value)


# ── Dice ───────────────────────────────────────────────


@router.post("/chats/{chat_id}/dice/roll")
async def roll_dice(body: DiceBody, companion: Companion = Depends(get_companion)):
    """Roll dice; the result stays pending until saved."""
    try:
        roll = companion.roll(body.formula)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return roll.model_dump(by_alias=True)


@router.post("/chats/{chat_id}/dice/save")
async def save_dice_roll(companion: Companion = Depends(get_companion)):
    """Keep the pending roll so the next prompt reports it."""
    try:
        roll = companion.save_roll()
    except ValueError as e:
        raise HTTPException(409, str(e))
    return roll.model_dump(by_alias=True)


@router.delete("/chats/{chat_id}/dice")
async def clear_dice_roll(companion: Companion = Depends(get_companion)):
    companion.clear_roll()
    return {"ok": True}


# ── Plot progression ───────────────────────────────────


@router.post("/chats/{chat_id}/plot/{kind}")
async def begin_plot_progression(kind: str, companion: Companion = Depends(get_companion)):
    """Inject a plot nudge ("random" or "natural") for the next generation."""
    try:
        prompt = companion.begin_plot_progression(kind)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"prompt": prompt}


@router.delete("/chats/{chat_id}/plot")
async def end_plot_progression(companion: Companion = Depends(get_companion)):
    companion.end_plot_progression()
    return {"ok": True}
