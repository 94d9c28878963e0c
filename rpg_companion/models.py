"""Core domain models.

Tracker snapshots, user stats, inventory and extension settings all live here.
Models persisted to the host serialise with camelCase aliases (``userStats``,
``onPerson``, ...) so saved JSON stays compatible with what the chat client
already stores. Python code always uses the snake_case attribute names.

Dump with ``model_dump(by_alias=True)`` whenever the result is written back
to the host.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GenerationMode = Literal["together", "separate"]
InjectionRole = Literal["system", "user", "assistant"]

# Section texts that count as "nothing generated yet"
PLACEHOLDER_TEXTS = frozenset({"", "Info Box\n---\n", "Present Characters\n---\n"})


class CamelModel(BaseModel):
    """Base for models whose persisted form uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Tracker data
# ---------------------------------------------------------------------------

class TrackerSnapshot(CamelModel):
    """Raw text of the three tracker sections.

    ``None`` means the section was never parsed (or was cleared).
    """

    user_stats: str | None = None
    info_box: str | None = None
    character_thoughts: str | None = None

    def is_empty(self) -> bool:
        return (
            self.user_stats is None
            and self.info_box is None
            and self.character_thoughts is None
        )

    def is_placeholder_only(self) -> bool:
        """True when no section holds anything beyond a bare header."""
        return all(
            value is None or value in PLACEHOLDER_TEXTS
            for value in (self.user_stats, self.info_box, self.character_thoughts)
        )

    def merged_with(self, other: TrackerSnapshot) -> TrackerSnapshot:
        """Return a copy where every non-None field of ``other`` wins."""
        updates = {k: v for k, v in other.model_dump().items() if v is not None}
        return self.model_copy(update=updates)


class InventoryV2(CamelModel):
    """Three-bucket inventory. ``"None"`` denotes an empty bucket."""

    version: Literal[2] = 2
    on_person: str = "None"
    stored: dict[str, str] = Field(default_factory=dict)
    assets: str = "None"


class UserStats(CamelModel):
    health: int = 100
    satiety: int = 100
    energy: int = 100
    hygiene: int = 100
    arousal: int = 0
    mood: str = "😐"
    conditions: str = "None"
    inventory: InventoryV2 = Field(default_factory=InventoryV2)


METER_FIELDS = ("health", "satiety", "energy", "hygiene", "arousal")


class ClassicStats(BaseModel):
    """D&D-style attributes, each 1-20. Persisted under the short names."""

    model_config = ConfigDict(populate_by_name=True)

    strength: int = Field(10, alias="str")
    dexterity: int = Field(10, alias="dex")
    constitution: int = Field(10, alias="con")
    intelligence: int = Field(10, alias="int")
    wisdom: int = Field(10, alias="wis")
    charisma: int = Field(10, alias="cha")


CLASSIC_STAT_ALIASES = {
    "str": "strength",
    "dex": "dexterity",
    "con": "constitution",
    "int": "intelligence",
    "wis": "wisdom",
    "cha": "charisma",
}


class Quests(CamelModel):
    main: str = "None"
    optional: list[str] = Field(default_factory=list)


class DiceRoll(CamelModel):
    formula: str
    total: int
    rolls: list[int]
    timestamp: int  # epoch milliseconds


# ---------------------------------------------------------------------------
# Settings and per-chat metadata
# ---------------------------------------------------------------------------

class ExtensionSettings(CamelModel):
    """Persisted extension settings.

    Keys this package does not know about (theme, panel layout, ...) belong to
    the UI and are carried through untouched.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    enabled: bool = True
    auto_update: bool = True
    update_depth: int = 4
    generation_mode: GenerationMode = "together"
    show_user_stats: bool = True
    show_info_box: bool = True
    show_character_thoughts: bool = True
    show_inventory: bool = True
    show_quests: bool = True
    enable_html_prompt: bool = False
    enable_plot_buttons: bool = True
    debug_mode: bool = False
    user_stats: UserStats = Field(default_factory=UserStats)
    classic_stats: ClassicStats = Field(default_factory=ClassicStats)
    quests: Quests = Field(default_factory=Quests)
    last_dice_roll: DiceRoll | None = None
    collapsed_inventory_locations: list[str] = Field(default_factory=list)


class ChatMetadata(CamelModel):
    """What one chat remembers about the companion."""

    user_stats: UserStats | None = None
    classic_stats: ClassicStats | None = None
    quests: Quests | None = None
    last_generated_data: TrackerSnapshot | None = None
    committed_tracker_data: TrackerSnapshot | None = None
    timestamp: int = 0


# ---------------------------------------------------------------------------
# Host-side objects
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    """A message as the chat client stores it. Field names are the host's."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    is_user: bool = False
    is_system: bool = False
    mes: str = ""
    swipe_id: int | None = None
    swipes: list[str] | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class PromptInjection(BaseModel):
    """One extension-prompt slot. Empty ``text`` clears the slot."""

    key: str
    text: str
    depth: int = 0
    role: InjectionRole = "system"


# ---------------------------------------------------------------------------
# Parsed section views
# ---------------------------------------------------------------------------

class InfoBox(BaseModel):
    date: str = ""
    weekday: str = ""
    month: str = ""
    year: str = ""
    weather_emoji: str = ""
    weather_forecast: str = ""
    temperature: str = ""
    temp_value: int | None = None
    time_start: str = ""
    time_end: str = ""
    location: str = ""


class PresentCharacter(BaseModel):
    emoji: str = ""
    name: str
    traits: str = ""
    relationship: str = ""
    thoughts: str = ""
