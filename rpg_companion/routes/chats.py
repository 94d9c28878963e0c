"""Chat event endpoints: load, messages, swipes, generation, tracker refresh."""

from fastapi import APIRouter, Depends, HTTPException, Request

from rpg_companion.companion import Companion
from rpg_companion.models import ChatMessage
from rpg_companion.swipes import is_assistant
from rpg_companion.tracker import parse_info_box, parse_present_characters

from .models import ReceivedBody, SentBody, SwipeBody

router = APIRouter()


def get_companion(chat_id: str, request: Request) -> Companion:
    """Open the chat, switching the active chat if it differs."""
    try:
        return request.app.state.sessions.open(chat_id)
    except ValueError as e:
        raise HTTPException(400, str(e))


def chat_view(companion: Companion) -> dict:
    """Everything a tracker panel needs to render the chat."""
    state = companion.state
    displayed = state.last_generated
    return {
        "chatId": companion.chat_id,
        "userStats": state.settings.user_stats.model_dump(by_alias=True),
        "classicStats": state.settings.classic_stats.model_dump(by_alias=True),
        "quests": state.settings.quests.model_dump(by_alias=True),
        "lastGeneratedData": displayed.model_dump(by_alias=True),
        "committedTrackerData": state.committed.model_dump(by_alias=True),
        "infoBox": parse_info_box(displayed.info_box).model_dump(),
        "presentCharacters": [
            c.model_dump() for c in parse_present_characters(displayed.character_thoughts)
        ],
        "pendingDiceRoll": (
            state.pending_dice_roll.model_dump(by_alias=True)
            if state.pending_dice_roll else None
        ),
        "messageCount": len(companion.chat),
    }


@router.get("/chats")
async def list_chats(request: Request):
    """List chats with saved data."""
    return request.app.state.sessions.storage.list_chats()


@router.get("/chats/{chat_id}")
async def get_chat(companion: Companion = Depends(get_companion)):
    """Open a chat and return its tracker state."""
    return chat_view(companion)


@router.get("/chats/{chat_id}/messages")
async def get_messages(companion: Companion = Depends(get_companion)):
    """List the chat's messages, swipe data included."""
    return [m.model_dump() for m in companion.chat.messages]


@router.post("/chats/{chat_id}/messages/sent")
async def message_sent(body: SentBody, companion: Companion = Depends(get_companion)):
    """Record a user message."""
    companion.chat.messages.append(ChatMessage(name=body.name, is_user=True, mes=body.mes))
    companion.on_message_sent(body.name)
    companion.persistence.save_messages(companion.chat_id, companion.chat)
    return chat_view(companion)


@router.post("/chats/{chat_id}/generation/started")
async def generation_started(companion: Companion = Depends(get_companion)):
    """Apply the commit rule and return the prompt injections for this generation."""
    injections = companion.on_generation_started()
    return [i.model_dump() for i in injections]


@router.post("/chats/{chat_id}/messages/received")
async def message_received(body: ReceivedBody, companion: Companion = Depends(get_companion)):
    """Record a finished assistant generation.

    If the last message is an assistant message whose current swipe slot is
    still empty (a swipe is generating), the text fills that slot; otherwise
    a new message is appended.
    """
    chat = companion.chat
    last = chat.last_message()
    swipe_id = (last.swipe_id or 0) if last is not None else 0
    if (
        last is not None
        and is_assistant(last)
        and last.swipes
        and swipe_id < len(last.swipes)
        and not last.swipes[swipe_id]
    ):
        last.swipes[swipe_id] = body.mes
        last.mes = body.mes
    else:
        chat.messages.append(
            ChatMessage(name=body.name, mes=body.mes, swipe_id=0, swipes=[body.mes])
        )

    await companion.on_message_received()
    companion.persistence.save_messages(companion.chat_id, chat)
    return chat_view(companion)


@router.post("/chats/{chat_id}/swipe")
async def swipe(body: SwipeBody, companion: Companion = Depends(get_companion)):
    """Move an assistant message to another swipe slot.

    A slot past the end is created empty; the response's ``generate`` flag
    tells the client to generate text for it.
    """
    chat = companion.chat
    index = body.message_index if body.message_index is not None else len(chat) - 1
    if not 0 <= index < len(chat) or not is_assistant(chat.messages[index]):
        raise HTTPException(400, "Swipes apply to assistant messages only")
    if body.swipe_id < 0:
        raise HTTPException(400, "swipe_id must not be negative")

    message = chat.messages[index]
    swipes = message.swipes or [message.mes]
    while len(swipes) <= body.swipe_id:
        swipes.append("")
    message.swipes = swipes
    message.swipe_id = body.swipe_id
    message.mes = swipes[body.swipe_id]

    generate = companion.on_swipe(index)
    companion.persistence.save_messages(companion.chat_id, chat)
    return {"generate": generate, **chat_view(companion)}


@router.post("/chats/{chat_id}/refresh")
async def refresh_trackers(companion: Companion = Depends(get_companion)):
    """Run the dedicated tracker generation (separate mode)."""
    if companion.settings.generation_mode != "separate":
        raise HTTPException(409, "Tracker refresh is only available in separate mode")
    if companion.state.is_generating:
        raise HTTPException(409, "A tracker update is already running")
    await companion.update_rpg_data()
    return chat_view(companion)


@router.get("/chats/{chat_id}/injections")
async def get_injections(companion: Companion = Depends(get_companion)):
    """Prompt injections currently set by the companion."""
    return [i.model_dump() for i in companion.injections.values()]


@router.post("/chats/{chat_id}/clear-cache")
async def clear_cache(companion: Companion = Depends(get_companion)):
    """Forget all tracker data for the chat."""
    companion.clear_cache()
    return chat_view(companion)
