"""Tests for the chat projector: joins, ordering, decoding and visibility."""
import unittest
from unittest.mock import AsyncMock, patch
from datetime import datetime, timezone

from ghostlan.errors import StoreError
from ghostlan.projector import ChatProjector, project, visible_to
from helpers import StoreTestCase, user

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
T1 = datetime(2026, 1, 1, 9, 5, tzinfo=timezone.utc)


def row(seq, mid, chat_id="c1", ts=T0, **extra):
    data = {
        "seq": seq,
        "id": mid,
        "chat_id": chat_id,
        "sender_id": "U1",
        "content": mid,
        "type": "text",
        "timestamp": ts,
        "is_secret": 0,
        "reply_to": None,
        "reactions": {},
        "read_by": [],
        "status": "sent",
    }
    data.update(extra)
    return data


CHAT = {"id": "c1", "name": "team", "type": "group", "participants": ["U1", "U2"], "hidden_by": []}


class TestProject(unittest.TestCase):
    def test_orders_by_timestamp_then_sequence(self):
        rows = [row(3, "late", ts=T1), row(2, "tie-b"), row(1, "tie-a")]

        [view] = project([CHAT], rows)

        self.assertEqual([m.id for m in view.messages], ["tie-a", "tie-b", "late"])

    def test_messages_join_their_own_chat(self):
        other = {**CHAT, "id": "c2"}
        views = project([CHAT, other], [row(1, "a"), row(2, "b", chat_id="c2")])

        self.assertEqual([[m.id for m in v.messages] for v in views], [["a"], ["b"]])

    def test_decodes_structured_fields(self):
        reply = {"id": "m0", "senderName": "Bob", "content": "earlier"}
        [view] = project([CHAT], [row(1, "a", is_secret=1, reply_to=reply, reactions={"🔥": ["U2"]}, read_by=["U2"])])
        msg = view.messages[0]

        self.assertIs(msg.is_secret, True)
        self.assertEqual(msg.reply_to.sender_name, "Bob")
        self.assertEqual(msg.reactions, {"🔥": ["U2"]})
        self.assertEqual(msg.read_by, ["U2"])
        self.assertEqual(msg.status, "read")

    def test_status_is_derived_from_read_by(self):
        [view] = project([CHAT], [row(1, "a", status="read", read_by=[])])

        self.assertEqual(view.messages[0].status, "sent")

    def test_wire_format_uses_camel_case(self):
        [view] = project([CHAT], [row(1, "a", reply_to={"id": "m0", "senderName": "Bob", "content": "x"})])
        data = view.model_dump(mode="json", by_alias=True)

        self.assertIn("hiddenBy", data)
        msg = data["messages"][0]
        self.assertEqual(msg["chatId"], "c1")
        self.assertEqual(msg["replyTo"]["senderName"], "Bob")
        self.assertIs(msg["isSecret"], False)

    def test_malformed_stored_data_raises_store_error(self):
        with self.assertRaises(StoreError):
            project([CHAT], [row(1, "a", reactions={"👍": "U1"})])
        with self.assertRaises(StoreError):
            project([{**CHAT, "type": "channel"}], [])

    def test_visible_to(self):
        chats = project(
            [
                CHAT,
                {**CHAT, "id": "hidden", "hidden_by": ["U1"]},
                {**CHAT, "id": "others", "participants": ["U2", "U3"]},
                {"id": "all", "name": "news", "type": "broadcast", "participants": [], "hidden_by": []},
            ],
            [],
        )

        self.assertEqual([c.id for c in visible_to(chats, "U1")], ["c1", "all"])
        self.assertEqual([c.id for c in visible_to(chats, "U2")], ["c1", "hidden", "others", "all"])

    def test_projection_is_pure(self):
        chats, rows = [dict(CHAT)], [row(1, "a")]

        self.assertEqual(project(chats, rows), project(chats, rows))
        self.assertEqual(chats, [CHAT])


class TestChatProjector(StoreTestCase):
    async def test_round_trip_from_store(self):
        await self.store.seed([user("U1"), user("U2")], [], [])
        chat = await self.store.create_chat("team", "group", ["U1", "U2"])
        reply = {"id": "m0", "senderName": "U2", "content": "original"}
        msg = await self.store.add_message(chat["id"], "U1", "secret", "image", True, reply)

        projector = ChatProjector(self.store)
        [view] = await projector.project_all()
        projected = view.messages[0]

        self.assertEqual(projected.id, msg["id"])
        self.assertIs(projected.is_secret, True)
        self.assertEqual(projected.reply_to.model_dump(by_alias=True), reply)
        self.assertEqual(projected.reactions, {})
        self.assertEqual(projected.read_by, [])
        self.assertEqual(projected.type, "image")

    async def test_project_all_reads_store_once(self):
        chat = await self.store.create_chat("team", "group", ["U1"])
        await self.store.add_message(chat["id"], "U1", "hi")
        projector = ChatProjector(self.store)

        with patch.object(self.store, "list_chats", AsyncMock(side_effect=AssertionError("separate read"))), \
                patch.object(self.store, "list_messages", AsyncMock(side_effect=AssertionError("separate read"))):
            [view] = await projector.project_all()

        self.assertEqual([m.content for m in view.messages], ["hi"])

    async def test_project_chat_missing(self):
        self.assertIsNone(await ChatProjector(self.store).project_chat("missing"))


if __name__ == "__main__":
    unittest.main()
