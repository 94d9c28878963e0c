"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, settings, debug logs), chat events
(load, message sent/received, swipe, generation started, tracker refresh),
manual edits, dice, plot progression and cache. Everything per-chat is
nested under /api/chats/{chat_id}/.
"""

from fastapi import APIRouter

from .chats import router as chats_router
from .edits import router as edits_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(chats_router)
router.include_router(edits_router)
