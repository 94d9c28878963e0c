import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from rpg_companion.companion import Companion
from rpg_companion.debug import set_debug_mode
from rpg_companion.llm import LLM, EchoLLM, HttpLLM
from rpg_companion.models import ExtensionSettings
from rpg_companion.persistence import Persistence
from rpg_companion.routes import router
from rpg_companion.state import SessionState
from rpg_companion.storage import Storage
from rpg_companion.swipes import ChatHistory

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


class ChatSessions:
    """The one open chat, like a chat client's active chat.

    Settings are global and survive chat switches; everything per-chat is
    reloaded from storage when another chat is opened.
    """

    def __init__(self, storage: Storage, llm: LLM | None = None) -> None:
        self.storage = storage
        self.llm = llm
        self.state = SessionState()
        self.persistence = Persistence(storage, self.state)
        self.persistence.load_settings()
        set_debug_mode(self.state.settings.debug_mode)
        self.active: Companion | None = None

    def open(self, chat_id: str) -> Companion:
        """Return the companion for ``chat_id``, switching chats if needed."""
        if self.active is not None and self.active.chat_id == chat_id:
            return self.active

        chat = ChatHistory(self.storage.get_messages(chat_id))
        state = self.state
        state.last_action_was_swipe = False
        state.is_generating = False
        state.is_plot_progression = False
        state.pending_dice_roll = None

        companion = Companion(chat_id, state, self.persistence, chat, llm=self.llm)
        companion.load_chat()
        self.active = companion
        logger.info("Opened chat %s (%d messages)", chat_id, len(chat))
        return companion

    def update_settings(self, fragment: dict[str, Any]) -> ExtensionSettings:
        if self.active is not None:
            return self.active.update_settings(fragment)
        self.state.update_settings(fragment)
        set_debug_mode(self.state.settings.debug_mode)
        self.persistence.save_settings()
        return self.state.settings


def llm_from_env() -> LLM:
    """HttpLLM when LLM_PROVIDER_URL is set, otherwise EchoLLM."""
    provider_url = os.getenv("LLM_PROVIDER_URL", "")
    if not provider_url:
        return EchoLLM()
    return HttpLLM(
        provider_url,
        api_key=os.getenv("LLM_API_KEY", ""),
        provider_format=os.getenv("LLM_PROVIDER_FORMAT", "openai"),
        model=os.getenv("LLM_MODEL", ""),
    )


def create_app(data_dir: Path | None = None, llm: LLM | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage = Storage(resolved)

    app = FastAPI(title="RPG Companion")
    app.state.sessions = ChatSessions(storage, llm or llm_from_env())
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
