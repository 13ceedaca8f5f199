"""Durable persistence for users, chats and messages.

Every read hands back freshly built dicts (JSON fields deep-copied) so callers
can never mutate persisted state through a returned value. Read-modify-write
mutations are serialized behind one lock and each runs in its own transaction.
"""
import asyncio
import copy
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from .errors import NotFoundError, StoreError
from .models import Chat, Message, User

log = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def user_row(u: User) -> dict:
    return {"id": u.id, "name": u.name, "role": u.role, "department": u.department}


def chat_row(c: Chat) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "participants": copy.deepcopy(c.participants),
        "hidden_by": copy.deepcopy(c.hidden_by),
    }


def message_row(m: Message) -> dict:
    return {
        "seq": m.seq,
        "id": m.id,
        "chat_id": m.chat_id,
        "sender_id": m.sender_id,
        "content": m.content,
        "type": m.type,
        "timestamp": _aware(m.timestamp),
        "is_secret": m.is_secret,
        "reply_to": copy.deepcopy(m.reply_to),
        "reactions": copy.deepcopy(m.reactions),
        "read_by": copy.deepcopy(m.read_by),
        "status": m.status,
    }


class ChatStore:
    def __init__(self, sessionmaker: async_sessionmaker):
        self._sessionmaker = sessionmaker
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def _transaction(self):
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            log.error("store operation failed: %s", exc)
            raise StoreError(str(exc)) from exc

    @asynccontextmanager
    async def _write(self):
        async with self._write_lock:
            async with self._transaction() as session:
                yield session

    # ---------------------- USERS ----------------------
    async def count_users(self) -> int:
        async with self._transaction() as db:
            return (await db.execute(select(func.count()).select_from(User))).scalar_one()

    async def list_users(self) -> list[dict]:
        async with self._transaction() as db:
            res = await db.execute(select(User).order_by(User.id))
            return [user_row(u) for u in res.scalars()]

    async def get_user(self, user_id: str) -> dict | None:
        async with self._transaction() as db:
            user = await db.get(User, user_id)
            return user_row(user) if user else None

    async def get_password_hash(self, user_id: str) -> str | None:
        async with self._transaction() as db:
            user = await db.get(User, user_id)
            return user.password_hash if user else None

    async def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        async with self._write() as db:
            user = await db.get(User, user_id)
            if not user:
                return False
            user.password_hash = password_hash
            return True

    async def seed(self, users: list[dict], chats: list[dict], messages: list[dict]):
        """Insert users, chats and messages all-or-nothing."""
        async with self._write() as db:
            db.add_all(User(**u) for u in users)
            db.add_all(Chat(**c) for c in chats)
            await db.flush()
            db.add_all(Message(**m) for m in messages)

    # ---------------------- CHATS ----------------------
    async def list_chats(self) -> list[dict]:
        async with self._transaction() as db:
            res = await db.execute(select(Chat).order_by(Chat.id))
            return [chat_row(c) for c in res.scalars()]

    async def get_chat(self, chat_id: str) -> dict | None:
        async with self._transaction() as db:
            chat = await db.get(Chat, chat_id)
            return chat_row(chat) if chat else None

    async def create_chat(self, name: str, type: str, participants: list[str], chat_id: str | None = None) -> dict:
        async with self._write() as db:
            chat = Chat(id=chat_id or new_id(), name=name, type=type, participants=list(participants), hidden_by=[])
            db.add(chat)
            await db.flush()
            return chat_row(chat)

    async def get_or_create_direct_chat(self, user_a: str, user_b: str, name: str = "Direct Message") -> tuple[dict, bool]:
        """Return the direct chat for the unordered pair, creating it if absent."""
        pair = {user_a, user_b}
        async with self._write() as db:
            res = await db.execute(select(Chat).where(Chat.type == "direct"))
            for chat in res.scalars():
                if set(chat.participants) == pair and len(chat.participants) == 2:
                    return chat_row(chat), False
            chat = Chat(id=new_id(), name=name, type="direct", participants=[user_a, user_b], hidden_by=[])
            db.add(chat)
            await db.flush()
            return chat_row(chat), True

    async def hide_chat(self, chat_id: str, user_id: str) -> bool:
        async with self._write() as db:
            chat = (await db.execute(select(Chat).where(Chat.id == chat_id).with_for_update())).scalar_one_or_none()
            if not chat:
                raise NotFoundError(f"chat {chat_id}")
            if user_id in chat.hidden_by:
                return False
            chat.hidden_by = [*chat.hidden_by, user_id]
            return True

    async def unhide_chat(self, chat_id: str, user_id: str) -> bool:
        async with self._write() as db:
            chat = (await db.execute(select(Chat).where(Chat.id == chat_id).with_for_update())).scalar_one_or_none()
            if not chat:
                raise NotFoundError(f"chat {chat_id}")
            if user_id not in chat.hidden_by:
                return False
            chat.hidden_by = [u for u in chat.hidden_by if u != user_id]
            return True

    async def delete_chat(self, chat_id: str) -> bool:
        async with self._write() as db:
            await db.execute(delete(Message).where(Message.chat_id == chat_id))
            res = await db.execute(delete(Chat).where(Chat.id == chat_id))
            return res.rowcount > 0

    # ---------------------- MESSAGES ----------------------
    async def list_messages(self, chat_id: str | None = None) -> list[dict]:
        stmt = select(Message).order_by(Message.timestamp, Message.seq)
        if chat_id is not None:
            stmt = stmt.where(Message.chat_id == chat_id)
        async with self._transaction() as db:
            res = await db.execute(stmt)
            return [message_row(m) for m in res.scalars()]

    async def load_chats_and_messages(self) -> tuple[list[dict], list[dict]]:
        """Every chat and every message, read in one transaction."""
        async with self._transaction() as db:
            chats = await db.execute(select(Chat).order_by(Chat.id))
            chat_rows = [chat_row(c) for c in chats.scalars()]
            messages = await db.execute(select(Message).order_by(Message.timestamp, Message.seq))
            return chat_rows, [message_row(m) for m in messages.scalars()]

    async def get_message(self, message_id: str) -> dict | None:
        async with self._transaction() as db:
            res = await db.execute(select(Message).where(Message.id == message_id))
            m = res.scalar_one_or_none()
            return message_row(m) if m else None

    async def add_message(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        type: str = "text",
        is_secret: bool = False,
        reply_to: dict | None = None,
    ) -> dict:
        """Insert a message and un-hide its chat for everyone in one transaction."""
        async with self._write() as db:
            chat = await db.get(Chat, chat_id)
            if not chat:
                raise NotFoundError(f"chat {chat_id}")
            m = Message(
                id=new_id(),
                chat_id=chat_id,
                sender_id=sender_id,
                content=content,
                type=type,
                timestamp=utcnow(),
                is_secret=bool(is_secret),
                reply_to=copy.deepcopy(reply_to),
                reactions={},
                read_by=[],
                status="sent",
            )
            db.add(m)
            if chat.hidden_by:
                chat.hidden_by = []
            await db.flush()
            return message_row(m)

    async def toggle_reaction(self, message_id: str, emoji: str, user_id: str) -> dict:
        async with self._write() as db:
            res = await db.execute(select(Message).where(Message.id == message_id).with_for_update())
            m = res.scalar_one_or_none()
            if not m:
                raise NotFoundError(f"message {message_id}")
            reactions = copy.deepcopy(m.reactions)
            users = reactions.get(emoji, [])
            if user_id in users:
                users = [u for u in users if u != user_id]
            else:
                users = [*users, user_id]
            if users:
                reactions[emoji] = users
            else:
                reactions.pop(emoji, None)
            m.reactions = reactions
            return copy.deepcopy(reactions)

    async def mark_read(self, chat_id: str, user_id: str) -> list[str]:
        """Add user_id to readBy of every message in the chat not sent by them."""
        updated = []
        async with self._write() as db:
            res = await db.execute(
                select(Message).where(Message.chat_id == chat_id, Message.sender_id != user_id).with_for_update()
            )
            for m in res.scalars():
                if user_id in m.read_by:
                    continue
                m.read_by = [*m.read_by, user_id]
                m.status = "read"
                updated.append(m.id)
        return updated

    async def delete_message(self, message_id: str) -> bool:
        async with self._write() as db:
            res = await db.execute(delete(Message).where(Message.id == message_id))
            return res.rowcount > 0

