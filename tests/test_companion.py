"""Tests for the Companion event handlers and edit operations."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from rpg_companion.companion import UPDATE_STAGE, Companion
from rpg_companion.llm import LLMError
from rpg_companion.models import ChatMessage, PromptInjection, TrackerSnapshot
from rpg_companion.prompts import EXAMPLE_KEY, INJECT_KEY, PLOT_KEY
from rpg_companion.swipes import ChatHistory

STATS_A = "User's Stats\n---\nHealth: 80%\nEnergy: 50%\nStatus: 😊, Tired\nInventory: Sword, Shield"
STATS_B = "User's Stats\n---\nHealth: 30%\nEnergy: 20%\nStatus: 😨, Bleeding"
INFO = "Info Box\n---\nDate: Monday, March, 1542\nTime: 14:00 → 15:00\nLocation: Tavern"
CHARS = "Present Characters\n---\n🧝: Lyra, Muddy boots | Neutral | Who is this?"


def _reply(stats: str, story: str = "The tavern falls silent.") -> str:
    return f"```\n{stats}\n```\n```\n{INFO}\n```\n```\n{CHARS}\n```\n{story}"


@pytest.fixture
def chat() -> ChatHistory:
    return ChatHistory([ChatMessage(name="User", is_user=True, mes="I walk in.")])


@pytest.fixture
def companion(state, persistence, chat) -> Companion:
    return Companion("chat-1", state, persistence, chat)


def _add_reply(chat: ChatHistory, text: str) -> None:
    chat.messages.append(ChatMessage(name="Bot", mes=text, swipe_id=0, swipes=[text]))


# ── Together mode ────────────────────────────────────────────


async def test_message_received_parses_and_cleans(companion, chat, state, storage):
    _add_reply(chat, _reply(STATS_A))
    parsed = await companion.on_message_received()

    assert parsed.user_stats == STATS_A
    assert state.settings.user_stats.health == 80
    assert state.settings.user_stats.mood == "😊"
    assert state.settings.user_stats.inventory.on_person == "Sword, Shield"
    # first parse becomes the baseline straight away
    assert state.committed.user_stats == STATS_A

    message = chat.messages[-1]
    assert message.mes == "The tavern falls silent."
    assert message.swipes == ["The tavern falls silent."]
    assert chat.get_swipe_data(1, 0).info_box == INFO

    saved = storage.get_messages("chat-1")
    assert saved[-1].mes == "The tavern falls silent."
    assert storage.read_chat_metadata("chat-1")["committedTrackerData"]["userStats"] == STATS_A


async def test_message_received_ignores_user_message(companion, state):
    assert await companion.on_message_received() is None
    assert state.last_generated.is_empty()


async def test_disabled_does_nothing(companion, chat, state):
    state.settings.enabled = False
    _add_reply(chat, _reply(STATS_A))
    assert await companion.on_message_received() is None
    assert companion.on_generation_started() == []
    assert "```" in chat.messages[-1].mes


async def test_generation_started_injects(companion, chat, state):
    _add_reply(chat, _reply(STATS_A))
    await companion.on_message_received()
    chat.messages.append(ChatMessage(name="User", is_user=True, mes="I order ale."))
    companion.on_message_sent()

    companion.on_generation_started()
    assert INJECT_KEY in companion.injections
    assert companion.injections[EXAMPLE_KEY].depth == 1
    assert STATS_A in companion.injections[EXAMPLE_KEY].text


async def test_injector_receives_every_slot(state, persistence, chat):
    injector = MagicMock()
    companion = Companion("chat-1", state, persistence, chat, injector=injector)
    companion.on_generation_started()
    keys = {call.args[0].key for call in injector.call_args_list}
    assert INJECT_KEY in keys and EXAMPLE_KEY in keys


async def test_swipes_share_committed_data(companion, chat, state):
    # first turn
    companion.on_message_sent()
    companion.on_generation_started()
    _add_reply(chat, _reply(STATS_A))
    await companion.on_message_received()
    committed = state.committed.model_copy()

    # re-roll the reply twice
    message = chat.messages[-1]
    for swipe_id in (1, 2):
        message.swipes.append("")
        message.swipe_id = swipe_id
        assert companion.on_swipe() is True
        companion.on_generation_started()
        assert state.committed == committed
        message.swipes[swipe_id] = _reply(STATS_B, f"Take {swipe_id}.")
        message.mes = message.swipes[swipe_id]
        await companion.on_message_received()
        assert state.last_generated.user_stats == STATS_B
        assert state.committed == committed

    # navigate back to the first reply
    message.swipe_id = 0
    assert companion.on_swipe() is False
    assert state.last_generated.user_stats == STATS_A


async def test_load_chat_commits_current_swipe(state, persistence, storage):
    messages = [ChatMessage(name="User", is_user=True, mes="Hi")]
    reply = ChatMessage(name="Bot", mes="Hello", swipe_id=1, swipes=["A", "Hello"])
    messages.append(reply)
    chat = ChatHistory(messages)
    chat.set_swipe_data(1, 1, TrackerSnapshot(user_stats=STATS_B))

    companion = Companion("chat-1", state, persistence, chat)
    companion.load_chat()
    assert state.committed.user_stats == STATS_B


def test_sent_message_sets_persona_name(companion, state):
    companion.on_message_sent("Mara")
    assert state.user_name == "Mara"
    companion.edit_stat("health", "40")
    assert state.last_generated.user_stats.startswith("Mara's Stats")
    assert "Mara's Stats" in companion.on_generation_started()[0].text


def test_load_chat_takes_persona_from_history(state, persistence):
    chat = ChatHistory([
        ChatMessage(name="Mara", is_user=True, mes="Hi"),
        ChatMessage(name="Bot", mes="Hello", swipe_id=0, swipes=["Hello"]),
    ])
    Companion("chat-1", state, persistence, chat).load_chat()
    assert state.user_name == "Mara"


# ── Separate mode ────────────────────────────────────────────


@pytest.fixture
def separate(state, persistence, chat) -> Companion:
    state.settings.generation_mode = "separate"
    llm = AsyncMock(return_value=_reply(STATS_A, ""))
    _add_reply(chat, "The tavern falls silent.")
    return Companion("chat-1", state, persistence, chat, llm=llm)


async def test_update_rpg_data(separate, state, chat):
    parsed = await separate.update_rpg_data()
    assert parsed.user_stats == STATS_A
    assert state.settings.user_stats.health == 80
    assert state.committed.user_stats == STATS_A
    assert chat.get_swipe_data(1, 0).user_stats == STATS_A

    stage, messages = separate.llm.call_args.args
    assert stage == UPDATE_STAGE
    assert messages[-1]["role"] == "user"
    assert state.is_generating is False


async def test_update_rpg_data_ignored_while_running(separate, state):
    state.is_generating = True
    assert await separate.update_rpg_data() is None
    separate.llm.assert_not_called()


async def test_update_rpg_data_failure_resets_flags(separate, state):
    separate.llm.side_effect = LLMError("Cannot connect")
    state.last_action_was_swipe = True
    assert await separate.update_rpg_data() is None
    assert state.is_generating is False
    assert state.last_action_was_swipe is False
    assert state.committed.is_empty()


async def test_update_rpg_data_only_in_separate_mode(companion):
    companion.llm = AsyncMock(return_value="")
    companion.state.settings.generation_mode = "together"
    assert await companion.update_rpg_data() is None
    companion.llm.assert_not_called()


async def test_separate_auto_update_on_message_received(separate, chat):
    await separate.on_message_received()
    separate.llm.assert_awaited_once()
    # separate mode leaves the message text alone
    assert chat.messages[-1].mes == "The tavern falls silent."


async def test_separate_without_auto_update(separate, state):
    state.settings.auto_update = False
    await separate.on_message_received()
    separate.llm.assert_not_called()


async def test_separate_generation_started_injects_context(separate, state):
    await separate.update_rpg_data()
    separate.on_generation_started()
    assert "Health 80%" in separate.injections["rpg-companion-context"].text
    assert INJECT_KEY not in separate.injections


# ── Manual edits ─────────────────────────────────────────────


async def test_stat_edit_updates_both_snapshots(companion, chat, state, storage):
    _add_reply(chat, _reply(STATS_A))
    await companion.on_message_received()

    companion.edit_stat("health", "45%")
    assert state.settings.user_stats.health == 45
    assert "Health: 45%" in state.last_generated.user_stats
    assert "Health: 45%" in state.committed.user_stats
    assert "Health: 45%" in chat.get_swipe_data(1, 0).user_stats
    assert storage.read_settings()["userStats"]["health"] == 45
    # other sections are untouched
    assert state.committed.info_box == INFO


def test_invalid_edit_raises(companion):
    with pytest.raises(ValueError):
        companion.edit_stat("mana", "5")


def test_inventory_edits(companion, state):
    companion.add_location("Bank")
    companion.edit_inventory("stored", "200 gold", location="Bank")
    assert state.settings.user_stats.inventory.stored == {"Bank": "200 gold"}
    assert "Stored - Bank: 200 gold" in state.committed.user_stats
    companion.remove_location("Bank")
    assert state.settings.user_stats.inventory.stored == {}


def test_info_box_edit(companion, state):
    state.set_last_generated(TrackerSnapshot(info_box=INFO))
    companion.edit_info_box("location", "Docks")
    assert "Location: Docks" in state.last_generated.info_box
    assert state.committed.info_box == state.last_generated.info_box


def test_character_edit(companion, state):
    state.set_last_generated(TrackerSnapshot(character_thoughts=CHARS))
    companion.edit_character("Lyra", "relationship", "⭐")
    assert "| Friend |" in state.committed.character_thoughts


def test_classic_stat_and_quests(companion, state, storage):
    companion.adjust_classic_stat("dex", 2)
    assert state.settings.classic_stats.dexterity == 12
    assert storage.read_chat_metadata("chat-1")["classicStats"]["dex"] == 12

    companion.set_main_quest("Find the crown")
    companion.add_optional_quest("Feed the cat")
    assert "Main Quest: Find the crown" in state.committed.user_stats
    companion.remove_optional_quest(0)
    assert state.settings.quests.optional == []


# ── Dice, plot progression, cache ────────────────────────────


def test_dice_flow(companion, state, storage):
    roll = companion.roll("2d6")
    assert state.pending_dice_roll == roll
    assert state.settings.last_dice_roll is None

    assert companion.save_roll() == roll
    assert state.pending_dice_roll is None
    assert storage.read_settings()["lastDiceRoll"]["total"] == roll.total

    companion.clear_roll()
    assert state.settings.last_dice_roll is None
    with pytest.raises(ValueError):
        companion.save_roll()


def test_plot_progression_suppresses_tracker_injection(companion, state):
    companion.on_generation_started()
    prompt = companion.begin_plot_progression("natural")
    assert companion.injections[PLOT_KEY] == PromptInjection(
        key=PLOT_KEY, text=prompt, depth=0, role="user"
    )
    assert INJECT_KEY not in companion.injections
    assert companion.on_generation_started() == []

    companion.end_plot_progression()
    assert PLOT_KEY not in companion.injections
    assert state.is_plot_progression is False


async def test_clear_cache(companion, chat, state):
    _add_reply(chat, _reply(STATS_A))
    await companion.on_message_received()
    companion.clear_cache()
    assert state.committed.is_empty()
    assert state.last_generated.is_empty()
    assert state.settings.user_stats.health == 100
    assert chat.get_swipe_data(1, 0) is None


def test_update_settings_disabling_clears_injections(companion, storage):
    companion.on_generation_started()
    assert companion.injections
    companion.update_settings({"enabled": False})
    assert companion.injections == {}
    assert storage.read_settings()["enabled"] is False
