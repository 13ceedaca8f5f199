import logging
import random
from datetime import timedelta
from .accounts import get_password_hash
from .store import ChatStore, utcnow

log = logging.getLogger(__name__)

KEY_USERS = [
    ("11-001", "Vikram Malhotra", "head", "IT"),
    ("90001", "Rajesh Verma", "officer", "HR"),
    ("90002", "Suresh Nair", "head", "Finance"),
    ("10001", "Arjun Mehta", "worker", "Manufacturing"),
    ("10002", "Priya Singh", "worker", "Legal"),
]
DEPARTMENTS = ["IT", "HR", "Sales", "Legal", "Operations", "Finance", "R&D", "Logistics"]
BROADCAST_ID = "broadcast-1"
IT_GROUP_ID = "group-it"


def employee_id(n: int) -> str:
    return f"EMP-{n:04d}"


def demo_data(employees: int, messages: int, password: str, rng: random.Random | None = None):
    """Build (users, chats, messages) rows for an empty database."""
    rng = rng or random.Random()
    # one hash for every seeded account keeps startup fast
    hashed = get_password_hash(password)
    users = [
        {"id": uid, "name": name, "role": role, "department": dept, "password_hash": hashed}
        for uid, name, role, dept in KEY_USERS
    ]
    for i in range(1, employees + 1):
        users.append({
            "id": employee_id(i),
            "name": f"Employee {i}",
            "role": "manager" if i % 10 == 0 else "worker",
            "department": rng.choice(DEPARTMENTS),
            "password_hash": hashed,
        })

    it_members = ["11-001", "90001"] + [employee_id(i) for i in (1, 2) if i <= employees]
    chats = [
        {"id": BROADCAST_ID, "name": "General Announcements", "type": "broadcast", "participants": [], "hidden_by": []},
        {"id": IT_GROUP_ID, "name": "IT Department", "type": "group", "participants": it_members, "hidden_by": []},
    ]

    now = utcnow()
    history = []
    for i in range(messages):
        broadcast = i % 5 == 0
        if broadcast:
            sender = "11-001"
        else:
            sender = "90001" if i % 2 == 0 or employees < 1 else employee_id(1)
        history.append({
            "id": f"msg-{i}",
            "chat_id": BROADCAST_ID if broadcast else IT_GROUP_ID,
            "sender_id": sender,
            "content": f"Enterprise system test message #{i}. System status: OK.",
            "type": "text",
            "timestamp": now - timedelta(minutes=10 * (messages - i)),
            "is_secret": False,
            "reply_to": None,
            "reactions": {},
            "read_by": [],
            "status": "sent",
        })
    return users, chats, history


async def seed_if_empty(store: ChatStore, employees: int = 500, messages: int = 200, password: str = "pass123") -> bool:
    if await store.count_users():
        return False
    log.info("database empty, seeding %d employees and %d messages", employees, messages)
    users, chats, history = demo_data(employees, messages, password)
    await store.seed(users, chats, history)
    log.info("seeded %d users, %d chats, %d messages", len(users), len(chats), len(history))
    return True
