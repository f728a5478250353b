"""
LLMock Broadcast Gateway

Bridges subscriber lifecycle events from the real-time transport to the
context registry, and pushes named events to context groups.

Events sent to clients:
- Connected          (caller only, on connect)
- Subscribed         (caller only)
- Unsubscribed       (caller only)
- AvailableContexts  (caller only)
- Error              (caller only, bad requests)
- <any>              (whole group, via broadcast)
"""

import asyncio
import logging
import threading
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

from .registry import ContextRegistry


logger = logging.getLogger("llmock.realtime")


class GroupTransport(Protocol):
    """Group membership and send primitives provided by the real-time transport."""

    async def add_to_group(self, connection_id: str, group: str) -> None:
        ...

    async def remove_from_group(self, connection_id: str, group: str) -> None:
        ...

    async def send_to_caller(self, connection_id: str, event_name: str, payload: Any) -> None:
        ...

    async def send_to_group(self, group: str, event_name: str, payload: Any) -> Optional[int]:
        ...


def group_name(context: str) -> str:
    """Transport group for a context (names are case-insensitive)."""
    return context.strip().lower()


class BroadcastGateway:
    """
    One hub implementation for both static and dynamic contexts.

    With ``track_dynamic_contexts`` the gateway keeps registry counts in
    step with subscriptions, creating unknown contexts on first subscribe
    (ensure, then increment). Without it the registry is never touched.

    A connection's subscriptions are tracked so that re-subscribing does
    not double count, and so that ``on_disconnect`` can release every
    subscription when ``cleanup_on_disconnect`` is on.

    Example:
        gateway = BroadcastGateway(registry, groups)
        await gateway.on_subscribe('conn-1', 'weather')
        await gateway.broadcast('weather', 'DataUpdate', {'temp': 21})
    """

    def __init__(
        self,
        registry: ContextRegistry,
        transport: GroupTransport,
        track_dynamic_contexts: bool = True,
        cleanup_on_disconnect: bool = True
    ):
        """
        Initialize gateway.

        Args:
            registry: Context registry shared with the admin API and publisher
            transport: Real-time group transport
            track_dynamic_contexts: Keep registry counts and create contexts on demand
            cleanup_on_disconnect: Release all subscriptions of a dropped connection
        """
        self.registry = registry
        self.transport = transport
        self.track_dynamic_contexts = track_dynamic_contexts
        self.cleanup_on_disconnect = cleanup_on_disconnect

        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Set[str]] = {}
        self._broadcast_locks: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Lock]] = {}
        self._broadcast_users: Dict[str, int] = {}

    def subscriptions(self, connection_id: str) -> FrozenSet[str]:
        """Group names a connection is subscribed to."""
        with self._lock:
            return frozenset(self._subscriptions.get(connection_id, ()))

    def _track(self, connection_id: str, group: str) -> bool:
        """Record a subscription; True if it is new."""
        with self._lock:
            groups = self._subscriptions.setdefault(connection_id, set())
            if group in groups:
                return False
            groups.add(group)
            return True

    def _untrack(self, connection_id: str, group: str) -> bool:
        """Forget a subscription; True if it existed."""
        with self._lock:
            groups = self._subscriptions.get(connection_id)
            if not groups or group not in groups:
                return False
            groups.discard(group)
            return True

    def _acquire_broadcast_lock(self, group: str) -> asyncio.Lock:
        """Lock shared by all in-flight broadcasts to a group on this loop."""
        loop = asyncio.get_running_loop()
        with self._lock:
            slot = self._broadcast_locks.get(group)
            if slot is None or slot[0] is not loop:
                slot = (loop, asyncio.Lock())
                self._broadcast_locks[group] = slot
            self._broadcast_users[group] = self._broadcast_users.get(group, 0) + 1
            return slot[1]

    def _release_broadcast_lock(self, group: str) -> None:
        """Drop a group's lock once no broadcast to it is in flight."""
        with self._lock:
            users = self._broadcast_users.get(group, 1) - 1
            if users > 0:
                self._broadcast_users[group] = users
                return
            self._broadcast_users.pop(group, None)
            self._broadcast_locks.pop(group, None)

    def has_pending_broadcasts(self) -> bool:
        """True while any broadcast holds or waits for a group lock."""
        with self._lock:
            return bool(self._broadcast_locks)

    async def _send_to_caller(self, connection_id: str, event_name: str, payload: Any) -> bool:
        try:
            await self.transport.send_to_caller(connection_id, event_name, payload)
            return True
        except Exception as e:
            logger.warning(f"Could not send {event_name} to {connection_id}: {e}")
            return False

    async def send_error(self, connection_id: str, message: str) -> None:
        """Tell one connection its request was rejected."""
        logger.warning(f"Rejected hub request from {connection_id}: {message}")
        await self._send_to_caller(connection_id, 'Error', {'message': message})

    async def on_connect(self, connection_id: str) -> None:
        logger.info(f"Client connected: {connection_id}")
        await self._send_to_caller(connection_id, 'Connected', {
            'connectionId': connection_id,
            'message': "Connected to LLMock hub. Send {\"action\": \"subscribe\", \"context\": <name>} to receive data."
        })

    async def on_disconnect(self, connection_id: str, cause: Optional[BaseException] = None) -> None:
        """
        Handle a terminated connection.

        Args:
            connection_id: Connection that went away
            cause: Exception that ended the connection, if any
        """
        if cause is not None:
            logger.warning(f"Client disconnected with error: {connection_id} ({cause})")
        else:
            logger.info(f"Client disconnected: {connection_id}")

        with self._lock:
            groups = self._subscriptions.pop(connection_id, set())

        if not self.cleanup_on_disconnect:
            return

        for group in sorted(groups):
            try:
                await self.transport.remove_from_group(connection_id, group)
            except Exception as e:
                logger.warning(f"Could not remove {connection_id} from {group}: {e}")
            finally:
                if self.track_dynamic_contexts:
                    self.registry.decrement(group)

    async def on_subscribe(self, connection_id: str, context: str) -> bool:
        """
        Subscribe a connection to a context.

        Returns:
            True if subscribed, False if the request was rejected or the
            transport failed (the client may simply retry)
        """
        if not isinstance(context, str) or not context.strip():
            await self.send_error(connection_id, 'Context name is required')
            return False

        context = context.strip()
        group = group_name(context)

        try:
            await self.transport.add_to_group(connection_id, group)
        except Exception as e:
            logger.warning(f"Subscribe failed for {connection_id} to {context}: {e}")
            return False

        if self._track(connection_id, group) and self.track_dynamic_contexts:
            self.registry.ensure(context)
            self.registry.increment(context)

        logger.info(f"Client {connection_id} subscribed to context: {context}")
        await self._send_to_caller(connection_id, 'Subscribed', {
            'context': context,
            'message': f"Subscribed to {context}"
        })
        return True

    async def on_unsubscribe(self, connection_id: str, context: str) -> bool:
        """
        Unsubscribe a connection from a context.

        Returns:
            True if the unsubscribe was processed
        """
        if not isinstance(context, str) or not context.strip():
            await self.send_error(connection_id, 'Context name is required')
            return False

        context = context.strip()
        group = group_name(context)

        try:
            await self.transport.remove_from_group(connection_id, group)
        except Exception as e:
            logger.warning(f"Unsubscribe failed for {connection_id} from {context}: {e}")
            return False

        if self._untrack(connection_id, group) and self.track_dynamic_contexts:
            self.registry.decrement(context)

        logger.info(f"Client {connection_id} unsubscribed from context: {context}")
        await self._send_to_caller(connection_id, 'Unsubscribed', {
            'context': context,
            'message': f"Unsubscribed from {context}"
        })
        return True

    async def broadcast(self, context: str, event_name: str, payload: Any) -> int:
        """
        Send an event to every subscriber of a context.

        Sends for the same context go out in call order; different contexts
        are independent.

        Returns:
            Number of connections reached (0 on transport failure)
        """
        group = group_name(context)
        lock = self._acquire_broadcast_lock(group)
        try:
            async with lock:
                delivered = await self.transport.send_to_group(group, event_name, payload)
        except Exception as e:
            logger.warning(f"Broadcast of {event_name} to {context} failed: {e}")
            return 0
        finally:
            self._release_broadcast_lock(group)

        logger.debug(f"Broadcast {event_name} to {context} ({delivered} connections)")
        return delivered or 0

    async def query_contexts(self, connection_id: str) -> List[str]:
        """Send the active context names to one connection and return them."""
        contexts = self.registry.list_active()
        await self._send_to_caller(connection_id, 'AvailableContexts', {'contexts': contexts})
        return contexts
