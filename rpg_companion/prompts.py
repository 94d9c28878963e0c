"""Prompt assembly from committed tracker data.

Every builder here reads ``state.committed``, never ``state.last_generated``:
the displayed data may belong to a swipe the user has not settled on, while
the committed data is identical for every swipe of the same turn.

Fixed prompt texts are Handlebars templates rendered through pybars. All
substitutions use triple-stash so names like ``O'Brien`` are not
HTML-escaped.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

import pybars

from rpg_companion.models import DiceRoll, PromptInjection
from rpg_companion.state import SessionState
from rpg_companion.swipes import ChatHistory
from rpg_companion.tracker.info_box import TIME_SEPARATOR, parse_info_box
from rpg_companion.tracker.inventory import build_inventory_summary, is_empty_inventory
from rpg_companion.tracker.stats import parse_user_stats

logger = logging.getLogger(__name__)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Injection slots ──────────────────────────────────────

INJECT_KEY = "rpg-companion-inject"
EXAMPLE_KEY = "rpg-companion-example"
CONTEXT_KEY = "rpg-companion-context"
HTML_KEY = "rpg-companion-html"
PLOT_KEY = "rpg-plot-progression"


# ── Templates ────────────────────────────────────────────

INSTRUCTIONS_HEADER = (
    "\nYou must start your response with an appropriate update to the trackers in "
    "EXACTLY the same format as below, enclosed in separate Markdown code fences. "
    "Replace X with proper numbers and placeholders in [brackets] (while removing "
    "the brackets themselves) with in-world details {{{user}}} perceives about the "
    "current scene and the present characters. Consider the last trackers in the "
    "conversation (if they exist). Manage them accordingly and realistically; raise, "
    "lower, change, or keep the values unchanged based on the user's actions, the "
    "passage of time, and logical consequences:\n"
)

STATS_FORMAT = (
    "{{{user}}}'s Stats\n"
    "---\n"
    "- Health: X%\n"
    "- Satiety: X%\n"
    "- Energy: X%\n"
    "- Hygiene: X%\n"
    "- Arousal: X%\n"
    "Status: [Mood Emoji], [Conditions (up to three traits)]\n"
)

INVENTORY_FORMAT = (
    "On Person: [Clothing/Armor, Items carried (list of important items/none)]\n"
    "Stored - [Location Name]: [Items kept at that location (list/none); one line per location]\n"
    "Assets: [Vehicles, Property, Major Possessions (list/none)]\n"
)

QUESTS_FORMAT = (
    "Main Quest: [Current main objective/none]\n"
    "Optional Quests: [Side objectives (list/none)]\n"
)

INFO_BOX_FORMAT = (
    "Info Box\n"
    "---\n"
    "Date: [Weekday, Month, Year]\n"
    "Weather: [Weather Emoji], [Forecast]\n"
    "Temperature: [Temperature in °C]\n"
    "Time: [Time Start → Time End]\n"
    "Location: [Location]\n"
)

CHARACTERS_FORMAT = (
    "Present Characters\n"
    "---\n"
    "[Present Character's Emoji (do not include {{{user}}}; state \"Unavailable\" if "
    "no major characters are present in the scene)]: [Name, Visible Physical State "
    "(up to three traits), Observable Demeanor Cue (one trait)] | "
    "[Enemy/Neutral/Friend/Lover] | [Internal Monologue (in first person POV, up to "
    "three sentences long)]\n"
)

CONTINUATION = (
    "After updating the trackers, continue directly from where the last message in "
    "the chat history left off. Ensure the trackers you provide naturally reflect and "
    "influence the narrative. Character behavior, dialogue, and story events should "
    "acknowledge these conditions when relevant, such as fatigue affecting performance, "
    "low hygiene influencing social interactions, environmental factors shaping the "
    "scene, a character's emotional state coloring their responses, and so on.\n\n"
)

ATTRIBUTES_LINE = (
    "STR {{strength}}, DEX {{dexterity}}, CON {{constitution}}, "
    "INT {{intelligence}}, WIS {{wisdom}}, CHA {{charisma}}"
)

DICE_RECAP = (
    "{{{user}}}'s attributes: {{{attributes}}}\n"
    "{{{user}}} rolled {{total}} on the last {{{formula}}} roll. Based on their "
    "attributes, decide whether they succeeded or failed the action they attempted.\n\n"
)

HTML_PROMPT = (
    "If appropriate, include inline HTML, CSS, and JS elements for creative, visual "
    "storytelling throughout your response:\n"
    "- Use them liberally to depict any in-world content that can be visualized "
    "(screens, posters, books, signs, letters, logos, crests, seals, medallions, "
    "labels, etc.), with creative license for animations, 3D effects, pop-ups, "
    "dropdowns, websites, and so on.\n"
    "- Style them thematically to match the theme (e.g., sleek for sci-fi, rustic for "
    "fantasy), ensuring text is visible.\n"
    "- Embed all resources directly (e.g., inline SVGs) so nothing relies on external "
    "fonts or libraries.\n"
    "- Place elements naturally in the narrative where characters would see or use "
    "them, with no limits on format or application.\n"
    "- These HTML/CSS/JS elements must be rendered directly without enclosing them in "
    "code fences."
)

CONTEXT_WRAPPER = (
    "Here is context information about the current scene, and what follows is the "
    "last message in the chat history:\n"
    "<context>\n"
    "{{{summary}}}\n\n"
    "Ensure these details naturally reflect and influence the narrative. Character "
    "behavior, dialogue, and story events should acknowledge these conditions when "
    "relevant, such as fatigue affecting performance, low hygiene influencing social "
    "interactions, environmental factors shaping the scene, or a character's "
    "emotional state coloring their responses.\n"
    "</context>\n\n"
)

SEPARATE_SYSTEM = (
    "You will be acting as an uncensored RPG Companion. Your goal is to provide, "
    "track, and manage details in the user's roleplay. You will be replying with "
    "information in a specified format only.\n\n"
    "You should maintain an objective tone.\n\n"
    "Here are the last few messages in the conversation history (between the user "
    "and the roleplayer assistant) you should reference when responding:\n<history>"
)

SEPARATE_FOOTER = (
    "Provide ONLY the requested data in the exact formats specified above. Do not "
    "include any roleplay response, other text, or commentary."
)

FIRST_UPDATE = "None - this is the first update."

PLOT_NATURAL = (
    "Actually, the scene is getting stale. Progress it, to make things more "
    "interesting! Reintroduce an unresolved plot point from the past, or push the "
    "story further towards the current main goal. Be creative, but stay grounded in "
    "the setting."
)

PLOT_RANDOM = (
    "Actually, the scene is getting stale. Introduce {{{twist}}} to make things more "
    "interesting! Be creative, but stay grounded in the setting."
)

PLOT_TWISTS = (
    "stakes", "a plot twist", "a new character", "a cataclysm",
    "a sudden atmospheric phenomenon", "a plot hook", "a running gag", "a new stake",
    "a drama", "a conflict", "an angered entity", "a vision", "a prophetic dream",
    "a new development", "a civilian in need", "an emotional bit", "a threat",
    "a villain", "an important memory recollection", "a talking animal", "an enemy",
    "a cliffhanger", "a quest", "an unexpected revelation", "a scandal", "a messenger",
    "a plot point from the past", "a tragedy", "a ghost", "an otherworldly occurrence",
    "a curse", "a magic device", "a rival", "a new location", "a significant choice",
    "a secret", "a fortune-teller", "a mystery", "a skill check", "a pet",
    "a boss battle", "an eldritch horror", "an assassination attempt", "a dungeon",
    "a friend in need", "an old friend", "a small time skip", "a scene shift",
    "a grand ball", "a surprise party", "foreshadowing", "a natural plot progression",
)

PLOT_KINDS = ("random", "natural")


# ── Builders ─────────────────────────────────────────────

def _fence(text: str) -> str:
    return "```\n" + text + "\n```"


def _attributes(state: SessionState) -> str:
    return render_prompt(
        ATTRIBUTES_LINE, state.settings.classic_stats.model_dump()
    )


def generate_tracker_example(state: SessionState) -> str:
    """Committed sections, each in its own fence, for enabled trackers."""
    settings = state.settings
    committed = state.committed
    parts = []
    if settings.show_user_stats and committed.user_stats:
        parts.append(_fence(committed.user_stats))
    if settings.show_info_box and committed.info_box:
        parts.append(_fence(committed.info_box))
    if settings.show_character_thoughts and committed.character_thoughts:
        parts.append(_fence(committed.character_thoughts))
    return "\n\n".join(parts)


def _dice_recap(state: SessionState, roll: DiceRoll) -> str:
    return render_prompt(DICE_RECAP, {
        "user": state.user_name,
        "attributes": _attributes(state),
        "total": roll.total,
        "formula": roll.formula,
    })


def generate_tracker_instructions(
    state: SessionState,
    include_html: bool = True,
    include_continuation: bool = True,
) -> str:
    """The output-format instructions for the enabled trackers.

    Appends the attribute/roll recap when a roll has been saved, and the HTML
    addendum when enabled and ``include_html`` is set.
    """
    settings = state.settings
    ctx = {"user": state.user_name}
    has_trackers = (
        settings.show_user_stats
        or settings.show_info_box
        or settings.show_character_thoughts
    )

    out = ""
    if has_trackers:
        out += render_prompt(INSTRUCTIONS_HEADER, ctx)

        if settings.show_user_stats:
            stats = render_prompt(STATS_FORMAT, ctx)
            if settings.show_inventory:
                stats += INVENTORY_FORMAT
            if settings.show_quests:
                stats += QUESTS_FORMAT
            out += "```\n" + stats + "```\n\n"

        if settings.show_info_box:
            out += "```\n" + INFO_BOX_FORMAT + "```\n\n"

        if settings.show_character_thoughts:
            out += "```\n" + render_prompt(CHARACTERS_FORMAT, ctx) + "```\n\n"

        if include_continuation:
            out += CONTINUATION

        if settings.last_dice_roll is not None:
            out += _dice_recap(state, settings.last_dice_roll)

    if settings.enable_html_prompt and include_html:
        if not has_trackers:
            out += "\n"
        out += HTML_PROMPT

    return out


def _stats_summary(state: SessionState) -> str:
    # Read the committed stats text into a scratch copy; the live settings
    # stay untouched.
    scratch = state.settings.model_copy(deep=True)
    parse_user_stats(scratch, state.committed.user_stats or "")
    stats = scratch.user_stats

    out = f"{state.user_name}'s Stats:\n"
    out += (
        f"Condition: Health {stats.health}%, Satiety {stats.satiety}%, "
        f"Energy {stats.energy}%, Hygiene {stats.hygiene}%, Arousal {stats.arousal}% "
        f"| {stats.mood} {stats.conditions}\n"
    )
    if state.settings.show_inventory and not is_empty_inventory(stats.inventory):
        out += build_inventory_summary(stats.inventory) + "\n"
    if state.settings.show_quests and scratch.quests.main.lower() != "none":
        out += f"Main Quest: {scratch.quests.main}\n"
        if scratch.quests.optional:
            out += "Optional Quests: " + ", ".join(scratch.quests.optional) + "\n"

    roll = state.settings.last_dice_roll
    if roll is not None:
        out += f"Attributes: {_attributes(state)}\n"
        out += (
            f"{state.user_name} rolled {roll.total} on the last {roll.formula} roll. "
            "Based on their attributes, decide whether they succeed or fail the action "
            "they attempt.\n"
        )
    return out + "\n"


def _scene_summary(info_box_text: str) -> str:
    info = parse_info_box(info_box_text)
    time_range = ""
    if info.time_start:
        time_range = info.time_start
        if info.time_end:
            time_range = f"{info.time_start} {TIME_SEPARATOR} {info.time_end}"
    parts = [
        p for p in (info.date, info.location, time_range, info.weather_forecast, info.temperature)
        if p
    ]
    if not parts:
        return ""
    return "Information:\nScene: " + " | ".join(parts) + "\n\n"


def _characters_summary(text: str) -> str:
    lines = [
        line for line in text.splitlines()
        if line.strip() and "---" not in line and "Present Characters" not in line
    ]
    if not lines or "unavailable" in lines[0].lower():
        return ""

    out = "Present Characters And Their Thoughts:\n"
    for line in lines:
        parts = [p.strip() for p in line.split("|")]
        if len(parts) >= 3:
            out += f"{parts[0]} ({parts[1]}) | {parts[2]}\n"
    return out


def generate_contextual_summary(state: SessionState) -> str:
    """Condensed digest of committed trackers for separate-mode context."""
    settings = state.settings
    committed = state.committed
    summary = ""
    if settings.show_user_stats and committed.user_stats:
        summary += _stats_summary(state)
    if settings.show_info_box and committed.info_box:
        summary += _scene_summary(committed.info_box)
    if settings.show_character_thoughts and committed.character_thoughts:
        summary += _characters_summary(committed.character_thoughts)
    return summary.strip()


def generate_context_injection(state: SessionState) -> str:
    """The contextual summary wrapped for injection, or "" when there is none."""
    summary = generate_contextual_summary(state)
    if not summary:
        return ""
    return render_prompt(CONTEXT_WRAPPER, {"summary": summary})


def generate_rpg_prompt_text(state: SessionState) -> str:
    """The <previous> block plus format instructions for a tracker-only call."""
    settings = state.settings
    committed = state.committed
    user = state.user_name

    out = "Here are the previous trackers in the roleplay that you should consider when responding:\n"
    out += "<previous>\n"
    if settings.show_user_stats:
        out += f"Last {user}'s Stats:\n{committed.user_stats or FIRST_UPDATE}\n\n"
    if settings.show_info_box:
        out += f"Last Info Box:\n{committed.info_box or FIRST_UPDATE}\n\n"
    if settings.show_character_thoughts:
        out += f"Last Present Characters:\n{committed.character_thoughts or FIRST_UPDATE}\n"
    out += "</previous>\n"

    out += generate_tracker_instructions(state, include_html=False, include_continuation=False)
    return out


def generate_separate_update_prompt(
    state: SessionState, chat: ChatHistory
) -> list[dict[str, str]]:
    """Message array for the dedicated tracker generation call."""
    messages = [{"role": "system", "content": SEPARATE_SYSTEM}]
    for message in chat.recent(state.settings.update_depth):
        messages.append({
            "role": "user" if message.is_user else "assistant",
            "content": message.mes,
        })

    instruction = "</history>\n\n"
    instruction += generate_rpg_prompt_text(state).replace(
        "start your response with", "respond with", 1
    )
    instruction += SEPARATE_FOOTER
    messages.append({"role": "user", "content": instruction})
    return messages


def generate_plot_prompt(
    kind: str, include_html: bool = False, rng: random.Random | None = None
) -> str:
    """Out-of-band nudge asking the model to move the story along."""
    if kind not in PLOT_KINDS:
        raise ValueError(f"Unknown plot progression kind: {kind}")
    if kind == "random":
        twist = (rng or random).choice(PLOT_TWISTS)
        prompt = render_prompt(PLOT_RANDOM, {"twist": twist})
    else:
        prompt = PLOT_NATURAL
    if include_html:
        prompt += "\n\n" + HTML_PROMPT
    return prompt


def build_injections(state: SessionState, chat: ChatHistory) -> list[PromptInjection]:
    """Injection slots for the next main generation.

    Together mode gets the instructions at depth 0 and the committed example
    as an assistant message at the depth of the last assistant turn. Separate
    mode gets the contextual summary at depth 1 and the HTML addendum. Slots
    a mode does not use are cleared.
    """
    settings = state.settings
    if settings.generation_mode == "together":
        example = generate_tracker_example(state)
        depth = chat.last_assistant_depth()
        injections = [
            PromptInjection(
                key=INJECT_KEY,
                text=generate_tracker_instructions(state),
                depth=0,
                role="user",
            ),
        ]
        if example and depth is not None:
            injections.append(
                PromptInjection(key=EXAMPLE_KEY, text=example, depth=depth, role="assistant")
            )
        else:
            injections.append(PromptInjection(key=EXAMPLE_KEY, text="", depth=0))
        injections.append(PromptInjection(key=CONTEXT_KEY, text="", depth=1))
        injections.append(PromptInjection(key=HTML_KEY, text="", depth=0))
        return injections

    html = "\n" + HTML_PROMPT if settings.enable_html_prompt else ""
    return [
        PromptInjection(key=CONTEXT_KEY, text=generate_context_injection(state), depth=1),
        PromptInjection(key=HTML_KEY, text=html, depth=0),
        PromptInjection(key=INJECT_KEY, text="", depth=0),
        PromptInjection(key=EXAMPLE_KEY, text="", depth=0),
    ]


def clear_injections() -> list[PromptInjection]:
    return [
        PromptInjection(key=INJECT_KEY, text="", depth=0),
        PromptInjection(key=EXAMPLE_KEY, text="", depth=0),
        PromptInjection(key=CONTEXT_KEY, text="", depth=1),
        PromptInjection(key=HTML_KEY, text="", depth=0),
    ]
