"""
Real-time notification fan-out.

The connection registry tracks which live connections belong to which user
and which match rooms they have joined. Connections are registered when a
socket opens and purged when it closes; the registry is created once per
application and injected where it is needed.

Delivery is best-effort. A send that fails drops that connection and is
logged; it never propagates to the caller, so notifying can't break team
formation or scoring.
"""
import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Set

logger = logging.getLogger(__name__)

PERMANENT_TEAM_FORMED = "permanent-team-formed"
TEAM_BONUS_AWARDED = "team-bonus-awarded"

SendFn = Callable[[Dict[str, Any]], None]


@dataclass
class Connection:
    connection_id: str
    user_id: int
    send: SendFn


class ConnectionRegistry:
    """user -> connections and match -> connections, safe across threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Dict[str, Connection] = {}
        self._user_connections: Dict[int, Set[str]] = defaultdict(set)
        self._match_rooms: Dict[int, Set[str]] = defaultdict(set)

    def connect(self, user_id: int, send: SendFn) -> str:
        connection_id = uuid.uuid4().hex
        with self._lock:
            self._connections[connection_id] = Connection(connection_id, user_id, send)
            self._user_connections[user_id].add(connection_id)
        logger.info("User %s connected (%s)", user_id, connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return
            user_connections = self._user_connections.get(connection.user_id)
            if user_connections is not None:
                user_connections.discard(connection_id)
                if not user_connections:
                    del self._user_connections[connection.user_id]
            for match_id in list(self._match_rooms):
                room = self._match_rooms[match_id]
                room.discard(connection_id)
                if not room:
                    del self._match_rooms[match_id]
        logger.info("User %s disconnected (%s)", connection.user_id, connection_id)

    def join_match(self, connection_id: str, match_id: int) -> None:
        with self._lock:
            if connection_id in self._connections:
                self._match_rooms[match_id].add(connection_id)

    def leave_match(self, connection_id: str, match_id: int) -> None:
        with self._lock:
            room = self._match_rooms.get(match_id)
            if room is not None:
                room.discard(connection_id)
                if not room:
                    del self._match_rooms[match_id]

    def connections_for_user(self, user_id: int) -> List[Connection]:
        with self._lock:
            ids = self._user_connections.get(user_id, set())
            return [self._connections[cid] for cid in ids]

    def connections_for_match(self, match_id: int) -> List[Connection]:
        with self._lock:
            ids = self._match_rooms.get(match_id, set())
            return [self._connections[cid] for cid in ids]

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


class Notifier:
    """Pushes events to users and match rooms through a connection registry."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def notify_users(self, user_ids: Iterable[int], event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        for user_id in user_ids:
            for connection in self.registry.connections_for_user(user_id):
                self._deliver(connection, message)

    def broadcast_match(self, match_id: int, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        for connection in self.registry.connections_for_match(match_id):
            self._deliver(connection, message)

    def _deliver(self, connection: Connection, message: Dict[str, Any]) -> None:
        try:
            connection.send(message)
        except Exception:
            logger.warning(
                "Dropping connection %s for user %s after failed %s send",
                connection.connection_id, connection.user_id, message["event"],
                exc_info=True,
            )
            self.registry.disconnect(connection.connection_id)


def notify_safely(notifier, user_ids: Iterable[int], event: str, payload: Dict[str, Any]) -> None:
    """Notify users without letting a notifier failure reach the caller."""
    user_ids = list(user_ids)
    try:
        notifier.notify_users(user_ids, event, payload)
    except Exception:
        logger.exception("Failed to send %s to users %s", event, user_ids)


class NullNotifier:
    """Notifier for scripts and jobs that run without live connections."""

    def notify_users(self, user_ids: Iterable[int], event: str, payload: Dict[str, Any]) -> None:
        logger.debug("Skipping %s notification for %s", event, list(user_ids))

    def broadcast_match(self, match_id: int, event: str, payload: Dict[str, Any]) -> None:
        logger.debug("Skipping %s broadcast for match %s", event, match_id)
