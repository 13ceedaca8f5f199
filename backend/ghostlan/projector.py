import logging
from collections import defaultdict
from typing import Iterable
from pydantic import ValidationError as PydanticValidationError
from .errors import StoreError
from .schemas import ChatView, MessageView
from .store import ChatStore

log = logging.getLogger(__name__)


def decode_message(row: dict) -> MessageView:
    data = dict(row)
    data["status"] = "read" if data.get("read_by") else "sent"
    try:
        return MessageView.model_validate(data)
    except PydanticValidationError as exc:
        log.error("stored message %s does not decode: %s", row.get("id"), exc)
        raise StoreError(f"malformed message {row.get('id')}") from exc


def decode_chat(row: dict, messages: list[MessageView]) -> ChatView:
    try:
        return ChatView.model_validate({**row, "messages": messages})
    except PydanticValidationError as exc:
        log.error("stored chat %s does not decode: %s", row.get("id"), exc)
        raise StoreError(f"malformed chat {row.get('id')}") from exc


def project(chat_rows: Iterable[dict], message_rows: Iterable[dict]) -> list[ChatView]:
    """Join messages into their chats, ordered by (timestamp, seq)."""
    by_chat: dict[str, list[dict]] = defaultdict(list)
    for row in message_rows:
        by_chat[row["chat_id"]].append(row)
    views = []
    for chat in chat_rows:
        rows = sorted(by_chat.get(chat["id"], []), key=lambda m: (m["timestamp"], m["seq"]))
        views.append(decode_chat(chat, [decode_message(m) for m in rows]))
    return views


def is_member(chat: ChatView, user_id: str) -> bool:
    return chat.type == "broadcast" or user_id in chat.participants


def visible_to(chats: Iterable[ChatView], user_id: str) -> list[ChatView]:
    """Chats the user belongs to and has not hidden."""
    return [c for c in chats if is_member(c, user_id) and user_id not in c.hidden_by]


class ChatProjector:
    def __init__(self, store: ChatStore):
        self.store = store

    async def project_all(self) -> list[ChatView]:
        chats, messages = await self.store.load_chats_and_messages()
        return project(chats, messages)

    async def project_chat(self, chat_id: str) -> ChatView | None:
        chat = await self.store.get_chat(chat_id)
        if chat is None:
            return None
        return project([chat], await self.store.list_messages(chat_id))[0]
