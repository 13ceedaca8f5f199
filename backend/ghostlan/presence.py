from .registry import SessionRegistry
from .schemas import UserView


class PresenceTracker:
    """Online means the registry holds at least one connection for the user.

    Presence is only delivered inside snapshots, so other clients may see a
    stale value until their next snapshot push.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def is_online(self, user_id: str) -> bool:
        return self.registry.is_connected(user_id)

    def online_users(self) -> list[str]:
        return self.registry.identities()

    def annotate(self, users: list[dict]) -> list[UserView]:
        return [UserView(**u, is_online=self.is_online(u["id"])) for u in users]
