"""Real-time synchronization: connection registry, rooms and broadcasting.

The hub is owned by the event loop that serves the WebSockets. It is only touched from
that loop (WebSocket handlers and ``async def`` API endpoints), and each connection gets
its events through its own outbox queue, drained by a sender task in the WebSocket
handler. Delivery is fire-and-forget with no replay: a socket that is not in a room when
an event is emitted never sees that event.

Optionally a Redis backplane carries events between processes; in that mode ``emit``
publishes to Redis and every process delivers to its own sockets from the subscription.
"""

import asyncio
import json
import logging
import uuid
from typing import TYPE_CHECKING

import redis
import redis.asyncio as aioredis

from src.config import get_settings
from src.schemas.events import ServerEvent, encode_event
from src.services.auth import Identity

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)
settings = get_settings()


def list_room(list_id: int) -> str:
    """Room shared by everyone who has a list open."""
    return f"list:{list_id}"


def user_room(user_id: int) -> str:
    """Private room of a user, joined by every one of their connections."""
    return f"user:{user_id}"


class Connection:
    """One authenticated socket and the rooms it is in."""

    def __init__(self, identity: Identity, outbox_size: int = 0) -> None:
        self.id = uuid.uuid4().hex
        self.identity = identity
        self.rooms: set[str] = set()
        self.outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=outbox_size)
        self.closed = False

    @property
    def user_id(self) -> int:
        return self.identity.user_id

    def send(self, payload: str) -> bool:
        """Queue a frame for the sender task. Returns False if it was dropped."""
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full, dropping frame for connection {self.id}")
            return False
        return True


class ConnectionHub:
    """Registry of connections and room membership (single process)."""

    def __init__(self, outbox_size: int | None = None) -> None:
        self._outbox_size = settings.ws_outbox_size if outbox_size is None else outbox_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}

    def register(self, identity: Identity) -> Connection:
        """Bind a new connection to an identity and join its private room."""
        connection = Connection(identity, self._outbox_size)
        self._connections[connection.id] = connection
        self.join(connection, user_room(identity.user_id))
        logger.info(f"Connection registered: conn={connection.id}, user={identity.user_id}")
        return connection

    def unregister(self, connection: Connection) -> None:
        """Drop a connection and every membership it holds."""
        connection.closed = True
        for room in list(connection.rooms):
            self.leave(connection, room)
        self._connections.pop(connection.id, None)
        logger.info(f"Connection unregistered: conn={connection.id}, user={connection.user_id}")

    def join(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection.id)
        connection.rooms.add(room)

    def leave(self, connection: Connection, room: str) -> None:
        """Remove a connection from a room. Leaving a room twice is a no-op."""
        connection.rooms.discard(room)
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection.id)
        if not members:
            del self._rooms[room]

    def members(self, room: str) -> list[Connection]:
        return [self._connections[cid] for cid in self._rooms.get(room, ()) if cid in self._connections]

    def is_member(self, connection: Connection, room: str) -> bool:
        return connection.id in self._rooms.get(room, ())

    def connections_for_user(self, user_id: int) -> list[Connection]:
        return [c for c in self._connections.values() if c.user_id == user_id]

    def evict(self, room: str, user_id: int) -> int:
        """Remove all of a user's connections from a room."""
        evicted = 0
        for connection in self.members(room):
            if connection.user_id == user_id:
                self.leave(connection, room)
                evicted += 1
        if evicted:
            logger.info(f"Evicted user={user_id} from {room} ({evicted} connection(s))")
        return evicted

    def close_room(self, room: str) -> None:
        """Remove every member from a room."""
        for connection in self.members(room):
            self.leave(connection, room)

    def deliver(self, room: str, payload: str) -> int:
        """Queue a frame on every connection currently in the room."""
        delivered = 0
        for connection in self.members(room):
            if connection.send(payload):
                delivered += 1
        return delivered

    @property
    def connection_count(self) -> int:
        return len(self._connections)


# Synchronous Redis client for publishing from API endpoints
_sync_redis: redis.Redis | None = None


def get_sync_redis() -> redis.Redis:
    """Get synchronous Redis client for publishing from API endpoints."""
    global _sync_redis
    if _sync_redis is None:
        _sync_redis = redis.from_url(settings.redis_url)
    return _sync_redis


class RedisBackplane:
    """Carries room frames between processes over Redis pub/sub."""

    channel_prefix = "rooms:"

    def __init__(self, hub: ConnectionHub) -> None:
        self.hub = hub
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None

    def publish(self, room: str, payload: str) -> None:
        """Publish a frame; failures are logged, never raised into the request."""
        try:
            message = json.dumps({"room": room, "payload": payload})
            get_sync_redis().publish(f"{self.channel_prefix}{room}", message)
            logger.debug(f"Published frame to {room}")
        except Exception as e:
            logger.error(f"Failed to publish to backplane: {e}")

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.redis_url)
        return self._redis

    async def listen(self) -> None:
        """Deliver every frame published by any process to local sockets."""
        redis_conn = await self._get_redis()
        self._pubsub = redis_conn.pubsub()
        await self._pubsub.psubscribe(f"{self.channel_prefix}*")

        try:
            async for message in self._pubsub.listen():
                if message["type"] != "pmessage":
                    continue
                try:
                    data = json.loads(message["data"])
                    self.hub.deliver(data["room"], data["payload"])
                except (json.JSONDecodeError, KeyError, TypeError):
                    logger.warning(f"Invalid backplane message: {message['data']!r}")
        finally:
            if self._pubsub:
                await self._pubsub.punsubscribe(f"{self.channel_prefix}*")

    async def cleanup(self) -> None:
        """Clean up Redis connections."""
        if self._pubsub:
            await self._pubsub.close()
        if self._redis:
            await self._redis.close()


class Broadcaster:
    """Fans events out to rooms."""

    def __init__(self, hub: ConnectionHub, backplane: RedisBackplane | None = None) -> None:
        self.hub = hub
        self.backplane = backplane

    def emit(self, room: str, event: ServerEvent) -> None:
        payload = encode_event(event)
        if self.backplane is not None:
            self.backplane.publish(room, payload)
            return
        delivered = self.hub.deliver(room, payload)
        logger.debug(f"Emitted {event.type} to {room} ({delivered} connection(s))")

    def evict(self, room: str, user_id: int) -> None:
        self.hub.evict(room, user_id)

    def close_room(self, room: str) -> None:
        self.hub.close_room(room)


_hub: ConnectionHub | None = None
_broadcaster: Broadcaster | None = None


def get_hub() -> ConnectionHub:
    """Get the process-wide connection hub."""
    global _hub
    if _hub is None:
        _hub = ConnectionHub()
    return _hub


def get_broadcaster() -> Broadcaster:
    """Get the process-wide broadcaster, wired to the configured backend."""
    global _broadcaster
    if _broadcaster is None:
        hub = get_hub()
        backplane = RedisBackplane(hub) if settings.realtime_backend == "redis" else None
        _broadcaster = Broadcaster(hub, backplane)
    return _broadcaster


def reset_realtime() -> None:
    """Forget the hub and broadcaster (used on shutdown and between tests)."""
    global _hub, _broadcaster
    _hub = None
    _broadcaster = None
