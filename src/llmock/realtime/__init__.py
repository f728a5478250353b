"""
LLMock Real-time Module

Named broadcast contexts and the hub that feeds them.

This module provides:
- Context registry with subscriber counts
- Broadcast gateway bridging hub events to the registry
- WebSocket group transport
- Periodic data push service
"""

from .registry import ContextRegistry, ContextConfig, ContextEntry
from .gateway import BroadcastGateway, GroupTransport, group_name
from .groups import WebSocketGroups
from .publisher import DataPushService, default_payload

__all__ = [
    'ContextRegistry',
    'ContextConfig',
    'ContextEntry',
    'BroadcastGateway',
    'GroupTransport',
    'group_name',
    'WebSocketGroups',
    'DataPushService',
    'default_payload',
]
