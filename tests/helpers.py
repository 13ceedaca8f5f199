"""Shared fixtures: an in-memory store and connections that record pushes."""
import json
import unittest
from ghostlan.db import init_db, make_engine, make_sessionmaker
from ghostlan.registry import SessionRegistry
from ghostlan.router import EventRouter
from ghostlan.store import ChatStore


class FakeConnection:
    def __init__(self, name: str = "conn"):
        self.name = name
        self.frames = []
        self.closed = False

    async def send_text(self, data: str):
        if self.closed:
            raise RuntimeError("socket closed")
        self.frames.append(json.loads(data))

    def events(self, name: str) -> list:
        return [f["data"] for f in self.frames if f["event"] == name]

    def last(self, name: str):
        found = self.events(name)
        return found[-1] if found else None

    def clear(self):
        self.frames.clear()

    def __repr__(self):
        return f"FakeConnection({self.name})"


def user(uid: str, name: str | None = None, role: str = "worker", department: str = "IT") -> dict:
    return {"id": uid, "name": name or uid, "role": role, "department": department, "password_hash": "x"}


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = make_engine("sqlite+aiosqlite://")
        await init_db(self.engine)
        self.store = ChatStore(make_sessionmaker(self.engine))

    async def asyncTearDown(self):
        await self.engine.dispose()


class RouterTestCase(StoreTestCase):
    users = ("U1", "U2", "U3")

    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.store.seed([user(u) for u in self.users], [], [])
        self.registry = SessionRegistry()
        self.router = EventRouter(self.store, self.registry, max_message_length=50)
        self.conns = {}
        for uid in self.users:
            conn = FakeConnection(uid)
            self.conns[uid] = conn
            self.assertTrue(await self.router.dispatch(conn, "register", uid))
            conn.clear()

    async def intent(self, uid: str, event: str, data) -> bool:
        return await self.router.dispatch(self.conns[uid], event, data)

    async def direct_chat(self, a: str, b: str) -> dict:
        await self.intent(a, "createDirectChat", {"senderId": a, "participantId": b})
        chat = self.conns[a].last("openChat")
        for conn in self.conns.values():
            conn.clear()
        return chat

    def snapshot_chat_ids(self, uid: str) -> list:
        snap = self.conns[uid].last("initialData")
        return [c["id"] for c in snap["chats"]]
