"""
LLMock Data Push Service

Periodically broadcasts a ``DataUpdate`` event to every active context.

Payload:
    {
        "context": "weather",
        "method": "GET",
        "path": "/weather/current",
        "timestamp": 1700000000000,
        "data": {...}
    }

``data`` comes from the context's JSON shape; no content is generated here.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from ..common.exceptions import ConfigurationError
from ..common.utils import safe_json_parse
from .gateway import BroadcastGateway
from .registry import ContextEntry, ContextRegistry


logger = logging.getLogger("llmock.realtime")

PayloadFactory = Callable[[ContextEntry], Any]


def default_payload(entry: ContextEntry) -> Dict[str, Any]:
    """Build a DataUpdate payload from the context's shape."""
    data = safe_json_parse(entry.shape, default=None)
    return {
        'context': entry.name,
        'method': entry.method,
        'path': entry.path,
        'timestamp': int(time.time() * 1000),
        'data': data if data is not None else {}
    }


class DataPushService:
    """
    Background task pushing data to context subscribers.

    Example:
        service = DataPushService(registry, gateway, interval_ms=1000)
        service.start()      # inside a running event loop
        ...
        await service.stop()
    """

    EVENT_NAME = 'DataUpdate'

    def __init__(
        self,
        registry: ContextRegistry,
        gateway: BroadcastGateway,
        interval_ms: int = 5000,
        payload_factory: Optional[PayloadFactory] = None
    ):
        """
        Initialize push service.

        Args:
            registry: Source of active contexts
            gateway: Gateway used to broadcast
            interval_ms: Delay between pushes in milliseconds
            payload_factory: Builds the payload for a context (default_payload if None)

        Raises:
            ConfigurationError: If interval_ms is not a positive integer
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            raise ConfigurationError(f"Push interval must be a positive integer (ms), got {interval_ms!r}")

        self.registry = registry
        self.gateway = gateway
        self.interval_ms = interval_ms
        self.payload_factory = payload_factory or default_payload
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def push_once(self) -> int:
        """
        Broadcast one DataUpdate to every active context.

        Returns:
            Number of contexts pushed to
        """
        pushed = 0
        for entry in self.registry.list_entries(active_only=True):
            try:
                payload = self.payload_factory(entry)
                await self.gateway.broadcast(entry.name, self.EVENT_NAME, payload)
                pushed += 1
            except Exception as e:
                logger.error(f"Error pushing data for context {entry.name}: {e}")
        return pushed

    async def _run(self) -> None:
        logger.info(f"Data push service started (interval {self.interval_ms}ms)")
        while True:
            await self.push_once()
            await asyncio.sleep(self.interval_ms / 1000)

    def start(self) -> None:
        """Start pushing. Must be called from a running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stop pushing and wait for the task to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Data push service stopped")
