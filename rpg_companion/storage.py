"""JSON file storage standing in for the chat client's own stores.

The companion persists two things: the extension settings (global) and a
metadata object per chat. The chat's messages belong to the host; they are
kept here too so the HTTP adapter can serve a self-contained chat.

Directory layout:

    {base}/
      settings.json           ← extension settings (camelCase keys)
      chats/
        {chat_id}/
          metadata.json       ← ChatMetadata for this chat
          messages.json       ← list of ChatMessage objects

Settings and metadata are returned raw (dicts) because the persistence layer
validates and repairs them itself.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from rpg_companion.models import ChatMessage

_CHAT_ID_RE = re.compile(r"^[\w][\w\-. ]*$")


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._chats_root = base_path / "chats"
        self._chats_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _chat_dir(self, chat_id: str) -> Path:
        if not _CHAT_ID_RE.match(chat_id) or ".." in chat_id:
            raise ValueError(f"Invalid chat id: {chat_id!r}")
        return self._chats_root / chat_id

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def read_settings(self) -> Any | None:
        path = self._base / "settings.json"
        if not path.exists():
            return None
        return self._read_json(path)

    def write_settings(self, data: dict[str, Any]) -> None:
        self._write_json(self._base / "settings.json", data)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def list_chats(self) -> list[str]:
        return sorted(p.name for p in self._chats_root.iterdir() if p.is_dir())

    def read_chat_metadata(self, chat_id: str) -> Any | None:
        path = self._chat_dir(chat_id) / "metadata.json"
        if not path.exists():
            return None
        return self._read_json(path)

    def write_chat_metadata(self, chat_id: str, data: dict[str, Any]) -> None:
        self._write_json(self._chat_dir(chat_id) / "metadata.json", data)

    def get_messages(self, chat_id: str) -> list[ChatMessage]:
        path = self._chat_dir(chat_id) / "messages.json"
        if not path.exists():
            return []
        return [ChatMessage.model_validate(m) for m in self._read_json(path)]

    def save_messages(self, chat_id: str, messages: list[ChatMessage]) -> None:
        self._write_json(
            self._chat_dir(chat_id) / "messages.json",
            [m.model_dump() for m in messages],
        )
