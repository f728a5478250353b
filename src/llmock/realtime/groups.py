"""
LLMock WebSocket Groups

In-memory group membership and fan-out over FastAPI WebSocket connections.
This is the real-time transport behind BroadcastGateway.

Wire format of every server frame:
    {"event": "<EventName>", "data": <payload>}
"""

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from ..common.exceptions import TransportError


logger = logging.getLogger("llmock.realtime")


class WebSocketGroups:
    """
    Tracks open WebSocket connections and their group memberships.

    Example:
        groups = WebSocketGroups()
        groups.attach('conn-1', websocket)
        await groups.add_to_group('conn-1', 'weather')
        await groups.send_to_group('weather', 'DataUpdate', {'temp': 21})
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Dict[str, WebSocket] = {}
        self._groups: Dict[str, Set[str]] = {}

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        """Register an accepted connection."""
        with self._lock:
            self._connections[connection_id] = websocket

    def detach(self, connection_id: str) -> None:
        """Forget a connection and drop it from every group."""
        with self._lock:
            self._connections.pop(connection_id, None)
            for group in list(self._groups):
                members = self._groups[group]
                members.discard(connection_id)
                if not members:
                    del self._groups[group]

    def members(self, group: str) -> Set[str]:
        """Snapshot of a group's connection ids."""
        with self._lock:
            return set(self._groups.get(group, ()))

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    async def add_to_group(self, connection_id: str, group: str) -> None:
        with self._lock:
            if connection_id not in self._connections:
                raise TransportError(
                    f"Unknown connection {connection_id}",
                    connection_id=connection_id,
                    group=group
                )
            self._groups.setdefault(group, set()).add(connection_id)

    async def remove_from_group(self, connection_id: str, group: str) -> None:
        with self._lock:
            members = self._groups.get(group)
            if members is None:
                return
            members.discard(connection_id)
            if not members:
                del self._groups[group]

    async def send_to_caller(self, connection_id: str, event_name: str, payload: Any) -> None:
        """
        Send one event to a single connection.

        Raises:
            TransportError: If the connection is unknown or the send fails
        """
        with self._lock:
            websocket = self._connections.get(connection_id)
        if websocket is None:
            raise TransportError(f"Unknown connection {connection_id}", connection_id=connection_id)

        try:
            await websocket.send_json({'event': event_name, 'data': payload})
        except Exception as e:
            raise TransportError(
                f"Send to {connection_id} failed: {e}",
                connection_id=connection_id
            ) from e

    async def send_to_group(self, group: str, event_name: str, payload: Any) -> int:
        """
        Fan an event out to every member of a group.

        Each send is independent: a failing connection is logged and does
        not affect delivery to the others.

        Returns:
            Number of connections the event was delivered to
        """
        targets: List[str] = sorted(self.members(group))
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self.send_to_caller(connection_id, event_name, payload) for connection_id in targets),
            return_exceptions=True
        )

        delivered = 0
        for connection_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Dropped {event_name} for {connection_id} in {group}: {result}")
            else:
                delivered += 1
        return delivered

    def get(self, connection_id: str) -> Optional[WebSocket]:
        with self._lock:
            return self._connections.get(connection_id)
