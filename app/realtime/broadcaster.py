import asyncio
import logging
from typing import Any
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def board_topic(board_id: str) -> str:
    return f"board:{board_id}"


class PresenceConnection:
    def __init__(self, websocket: WebSocket, token: str | None = None) -> None:
        self.id = uuid4().hex
        self.websocket = websocket
        self.token = token or ""
        # Identity last verified on this connection; used when the socket drops.
        self.user_id = ""

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})


class PresenceBroadcaster:
    """Topic fan-out for presence events.

    ``publish`` delivers to the subscribers of one topic and, with
    ``global_fanout`` enabled, to every registered connection as well, so a
    client that has not joined the board group yet still sees lock changes.
    Each connection gets a single copy per publish.
    """

    def __init__(self, global_fanout: bool = True) -> None:
        self.global_fanout = global_fanout
        self._connections: dict[str, PresenceConnection] = {}
        self._topics: dict[str, set[str]] = {}
        self._conn_topics: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def register(self, connection: PresenceConnection) -> None:
        async with self._lock:
            self._connections[connection.id] = connection
            self._conn_topics.setdefault(connection.id, set())
        logger.info("presence_connection_registered connection_id=%s total=%s", connection.id, len(self._connections))

    async def unregister(self, connection: PresenceConnection) -> None:
        async with self._lock:
            self._connections.pop(connection.id, None)
            for topic in self._conn_topics.pop(connection.id, set()):
                members = self._topics.get(topic)
                if members is None:
                    continue
                members.discard(connection.id)
                if not members:
                    del self._topics[topic]
        logger.info("presence_connection_unregistered connection_id=%s total=%s", connection.id, len(self._connections))

    async def subscribe(self, connection: PresenceConnection, topic: str) -> None:
        async with self._lock:
            if connection.id not in self._connections:
                logger.info("presence_subscribe_skipped connection_id=%s topic=%s reason=unregistered", connection.id, topic)
                return
            self._topics.setdefault(topic, set()).add(connection.id)
            self._conn_topics[connection.id].add(topic)
        logger.info("presence_subscribed connection_id=%s topic=%s", connection.id, topic)

    async def unsubscribe(self, connection: PresenceConnection, topic: str) -> None:
        async with self._lock:
            members = self._topics.get(topic)
            if members is not None:
                members.discard(connection.id)
                if not members:
                    del self._topics[topic]
            topics = self._conn_topics.get(connection.id)
            if topics is not None:
                topics.discard(topic)
        logger.info("presence_unsubscribed connection_id=%s topic=%s", connection.id, topic)

    def subscribers(self, topic: str) -> set[str]:
        return set(self._topics.get(topic, set()))

    async def send(self, connection: PresenceConnection, event: str, data: dict[str, Any]) -> bool:
        try:
            await connection.send_event(event, data)
        except Exception:
            logger.warning(
                "presence_send_failed connection_id=%s event=%s",
                connection.id,
                event,
                exc_info=True,
            )
            await self.unregister(connection)
            return False
        return True

    async def publish(self, topic: str, event: str, data: dict[str, Any]) -> int:
        async with self._lock:
            recipient_ids = set(self._topics.get(topic, set()))
            if self.global_fanout:
                recipient_ids.update(self._connections)
            recipients = [self._connections[cid] for cid in recipient_ids if cid in self._connections]

        delivered = 0
        for connection in recipients:
            if await self.send(connection, event, data):
                delivered += 1
        logger.info(
            "presence_published topic=%s event=%s recipients=%s delivered=%s",
            topic,
            event,
            len(recipients),
            delivered,
        )
        return delivered
