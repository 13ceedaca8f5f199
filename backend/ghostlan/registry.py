import json
import logging
from typing import Any, Dict, Protocol
from collections import defaultdict

log = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_text(self, data: str) -> None: ...


def frame(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "data": payload})


class SessionRegistry:
    """Maps identities to live connections. Other components only use the methods below."""

    def __init__(self) -> None:
        self._groups: Dict[str, set[Connection]] = defaultdict(set)
        self._bindings: Dict[Connection, set[str]] = defaultdict(set)

    def register(self, connection: Connection, identity: str):
        self._groups[identity].add(connection)
        self._bindings[connection].add(identity)

    def disconnect(self, connection: Connection) -> set[str]:
        identities = self._bindings.pop(connection, set())
        for identity in identities:
            group = self._groups.get(identity)
            if group is None:
                continue
            group.discard(connection)
            if not group:
                self._groups.pop(identity, None)
        return identities

    def identities(self) -> list[str]:
        return list(self._groups.keys())

    def connections(self, identity: str) -> list[Connection]:
        return list(self._groups.get(identity, ()))

    def is_connected(self, identity: str) -> bool:
        return bool(self._groups.get(identity))

    async def send(self, identity: str, event: str, payload: Any) -> int:
        """Deliver to every connection bound to identity; returns the number reached."""
        return await self._deliver(self.connections(identity), frame(event, payload))

    async def broadcast(self, event: str, payload: Any) -> int:
        return await self._deliver(list(self._bindings.keys()), frame(event, payload))

    async def send_to(self, connection: Connection, event: str, payload: Any) -> int:
        return await self._deliver([connection], frame(event, payload))

    async def _deliver(self, connections: list[Connection], data: str) -> int:
        sent = 0
        for conn in connections:
            try:
                await conn.send_text(data)
                sent += 1
            except Exception as exc:
                # dropped; the socket loop unregisters it when it closes
                log.debug("push to dead connection dropped: %s", exc)
        return sent
