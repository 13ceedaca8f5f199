"""Intent handlers: validate, mutate the store, then fan out pushes.

Every handler runs to completion or fails before anything is pushed. Failures
are caught in `EventRouter.dispatch` and acknowledged to the requesting
connection only with an ``error`` push. Truncated text is still sent and the
sender gets a ``warning`` push.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable
from pydantic import BaseModel, ValidationError as PydanticValidationError
from .config import settings
from .errors import ChatError, NotFoundError, PolicyError, ValidationError
from .presence import PresenceTracker
from .projector import ChatProjector, decode_message, visible_to
from .registry import Connection, SessionRegistry
from .schemas import (
    AddReactionIn,
    ChatView,
    CreateDirectChatIn,
    CreateGroupIn,
    DeleteChatIn,
    DeleteMessageIn,
    MarkReadIn,
    RegisterIn,
    SendMessageIn,
    Snapshot,
)
from .store import ChatStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Audience:
    everyone: bool = False
    user_ids: tuple[str, ...] = ()


def audience_for(chat: dict) -> Audience:
    if chat["type"] == "broadcast":
        return Audience(everyone=True)
    return Audience(user_ids=tuple(dict.fromkeys(chat["participants"])))


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


class EventRouter:
    def __init__(
        self,
        store: ChatStore,
        registry: SessionRegistry,
        projector: ChatProjector | None = None,
        presence: PresenceTracker | None = None,
        max_message_length: int | None = None,
    ):
        self.store = store
        self.registry = registry
        self.projector = projector or ChatProjector(store)
        self.presence = presence or PresenceTracker(registry)
        self.max_message_length = max_message_length or settings.max_message_length
        self._handlers = {
            "register": self.register,
            "createGroup": self.create_group,
            "createDirectChat": self.create_direct_chat,
            "send_message": self.send_message,
            "mark_messages_read": self.mark_messages_read,
            "add_reaction": self.add_reaction,
            "delete_message": self.delete_message,
            "delete_chat": self.delete_chat,
        }

    @property
    def intents(self) -> list[str]:
        return list(self._handlers)

    async def dispatch(self, connection: Connection, event: str, payload: Any) -> bool:
        handler = self._handlers.get(event)
        if handler is None:
            await self.registry.send_to(connection, "error", {"intent": event, "reason": "unknown intent"})
            return False
        try:
            await handler(connection, payload)
            return True
        except ChatError as exc:
            log.warning("intent %s rejected (%s): %s", event, type(exc).__name__, exc.message)
            await self.registry.send_to(connection, "error", {"intent": event, "reason": exc.message})
        except Exception:
            log.exception("intent %s failed", event)
            await self.registry.send_to(connection, "error", {"intent": event, "reason": "internal error"})
        return False

    def disconnect(self, connection: Connection) -> set[str]:
        identities = self.registry.disconnect(connection)
        if identities:
            log.info("connection closed for %s", ", ".join(sorted(identities)))
        return identities

    # ---------------------- FAN-OUT ----------------------
    async def push(self, audience: Audience, event: str, payload: Any):
        if audience.everyone:
            await self.registry.broadcast(event, payload)
            return
        for user_id in audience.user_ids:
            await self.registry.send(user_id, event, payload)

    async def refresh(self, user_ids: Iterable[str]):
        """Push a fresh initialData snapshot to each user."""
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return
        users = self.presence.annotate(await self.store.list_users())
        chats = await self.projector.project_all()
        for user_id in user_ids:
            snapshot = Snapshot(users=users, chats=visible_to(chats, user_id))
            await self.registry.send(user_id, "initialData", dump(snapshot))

    async def refresh_audience(self, audience: Audience):
        if audience.everyone:
            await self.refresh(self.presence.online_users())
        else:
            await self.refresh(audience.user_ids)

    async def _chat(self, chat_id: str) -> dict:
        chat = await self.store.get_chat(chat_id)
        if chat is None:
            raise NotFoundError(f"chat {chat_id} does not exist")
        return chat

    @staticmethod
    def _parse(model: type[BaseModel], payload: Any):
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            errors = "; ".join(f"{'.'.join(map(str, e['loc'])) or 'payload'}: {e['msg']}" for e in exc.errors())
            raise ValidationError(errors) from exc

    # ---------------------- INTENTS ----------------------
    async def register(self, connection: Connection, payload: Any):
        if isinstance(payload, str):
            payload = {"userId": payload}
        data = self._parse(RegisterIn, payload)
        self.registry.register(connection, data.user_id)
        log.info("user %s registered a connection", data.user_id)
        await self.refresh([data.user_id])

    async def create_group(self, connection: Connection, payload: Any):
        data = self._parse(CreateGroupIn, payload)
        participants = list(dict.fromkeys(data.participants))
        chat = await self.store.create_chat(data.name, "group", participants)
        await self.refresh(participants)
        view = dump(ChatView(**chat))
        for user_id in participants:
            await self.registry.send(user_id, "openChat", view)

    async def create_direct_chat(self, connection: Connection, payload: Any):
        data = self._parse(CreateDirectChatIn, payload)
        if data.sender_id == data.participant_id:
            raise ValidationError("a direct chat needs two different users")
        chat, created = await self.store.get_or_create_direct_chat(data.sender_id, data.participant_id)
        if created:
            log.info("direct chat %s created for %s and %s", chat["id"], data.sender_id, data.participant_id)
            await self.refresh([data.sender_id, data.participant_id])
        elif data.sender_id in chat["hidden_by"]:
            # reopening a hidden chat brings it back into the sender's list
            await self.store.unhide_chat(chat["id"], data.sender_id)
            await self.refresh([data.sender_id])
        view = await self.projector.project_chat(chat["id"])
        if view is None:
            raise NotFoundError(f"chat {chat['id']} disappeared")
        await self.registry.send_to(connection, "openChat", dump(view))

    async def send_message(self, connection: Connection, payload: Any):
        data = self._parse(SendMessageIn, payload)
        chat = await self._chat(data.chat_id)
        content = data.content
        truncated = data.type == "text" and len(content) > self.max_message_length
        if truncated:
            content = content[: self.max_message_length]
        hidden_by = chat["hidden_by"]
        message = await self.store.add_message(
            chat_id=data.chat_id,
            sender_id=data.sender_id,
            content=content,
            type=data.type,
            is_secret=data.is_secret,
            reply_to=data.reply_to.model_dump(by_alias=True) if data.reply_to else None,
        )
        await self.push(audience_for(chat), "receiveMessage", dump(decode_message(message)))
        # the message un-hid the chat; hiders need a snapshot that contains it again
        await self.refresh(hidden_by)
        if truncated:
            log.info("message %s from %s truncated to %d characters", message["id"], data.sender_id, self.max_message_length)
            await self.registry.send_to(
                connection,
                "warning",
                {"intent": "send_message", "messageId": message["id"], "reason": f"content truncated to {self.max_message_length} characters"},
            )

    async def mark_messages_read(self, connection: Connection, payload: Any):
        data = self._parse(MarkReadIn, payload)
        chat = await self._chat(data.chat_id)
        await self.store.mark_read(data.chat_id, data.user_id)
        # no read receipts in broadcast chats
        if chat["type"] == "broadcast":
            return
        await self.push(
            audience_for(chat), "messages_read_update", {"chatId": data.chat_id, "userId": data.user_id}
        )

    async def add_reaction(self, connection: Connection, payload: Any):
        data = self._parse(AddReactionIn, payload)
        message = await self.store.get_message(data.message_id)
        if message is None or message["chat_id"] != data.chat_id:
            raise NotFoundError(f"message {data.message_id} not in chat {data.chat_id}")
        chat = await self._chat(data.chat_id)
        reactions = await self.store.toggle_reaction(data.message_id, data.emoji, data.user_id)
        await self.push(
            audience_for(chat),
            "reactionUpdated",
            {"chatId": data.chat_id, "messageId": data.message_id, "reactions": reactions},
        )

    async def delete_message(self, connection: Connection, payload: Any):
        data = self._parse(DeleteMessageIn, payload)
        chat = await self._chat(data.chat_id)
        message = await self.store.get_message(data.message_id)
        if message is not None and message["chat_id"] != data.chat_id:
            raise NotFoundError(f"message {data.message_id} not in chat {data.chat_id}")
        await self.store.delete_message(data.message_id)
        await self.refresh_audience(audience_for(chat))

    async def delete_chat(self, connection: Connection, payload: Any):
        data = self._parse(DeleteChatIn, payload)
        chat = await self._chat(data.chat_id)
        if chat["type"] == "broadcast" and data.type == "hard":
            raise PolicyError("broadcast chats cannot be deleted")
        audience = audience_for(chat)
        if data.type == "hard":
            await self.store.delete_chat(data.chat_id)
            log.info("chat %s deleted by %s", data.chat_id, data.user_id)
        else:
            await self.store.hide_chat(data.chat_id, data.user_id)
        await self.refresh_audience(audience)
