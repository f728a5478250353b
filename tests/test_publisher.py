"""
Tests for LLMock Data Push Service

Tests payload building, single pushes and the background task lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from llmock.common.exceptions import ConfigurationError
from llmock.realtime.publisher import DataPushService, default_payload
from llmock.realtime.registry import ContextConfig, ContextEntry, ContextRegistry


@pytest.fixture
def registry():
    registry = ContextRegistry([
        ContextConfig('stocks', path='/stocks/live', shape='{"symbol": "AAPL"}'),
        ContextConfig('paused', active=False)
    ])
    registry.ensure('weather')
    return registry


@pytest.fixture
def gateway():
    gateway = Mock()
    gateway.broadcast = AsyncMock(return_value=1)
    return gateway


class TestDefaultPayload:
    """Test DataUpdate payloads."""

    def test_payload_from_shape(self):
        """Test data comes from the JSON shape."""
        entry = ContextEntry('stocks', method='GET', path='/stocks/live', shape='{"symbol": "AAPL"}')

        payload = default_payload(entry)

        assert payload['context'] == 'stocks'
        assert payload['method'] == 'GET'
        assert payload['path'] == '/stocks/live'
        assert payload['data'] == {'symbol': 'AAPL'}
        assert isinstance(payload['timestamp'], int)

    @pytest.mark.parametrize('shape', [None, '', 'not json'])
    def test_payload_without_usable_shape(self, shape):
        """Test empty data when the shape doesn't parse."""
        assert default_payload(ContextEntry('x', shape=shape))['data'] == {}


class TestPushOnce:
    """Test one push cycle."""

    @pytest.mark.asyncio
    async def test_pushes_active_contexts_only(self, registry, gateway):
        """Test inactive contexts are skipped."""
        service = DataPushService(registry, gateway, interval_ms=100)

        pushed = await service.push_once()

        assert pushed == 2
        contexts = [c.args[0] for c in gateway.broadcast.await_args_list]
        assert contexts == ['stocks', 'weather']
        assert all(c.args[1] == 'DataUpdate' for c in gateway.broadcast.await_args_list)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, registry, gateway):
        """Test a failing payload factory only skips its context."""
        def factory(entry):
            if entry.name == 'stocks':
                raise ValueError('bad shape')
            return {'context': entry.name}

        service = DataPushService(registry, gateway, interval_ms=100, payload_factory=factory)

        pushed = await service.push_once()

        assert pushed == 1
        gateway.broadcast.assert_awaited_once_with('weather', 'DataUpdate', {'context': 'weather'})


class TestLifecycle:
    """Test background task."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, gateway):
        """Test the loop pushes until stopped."""
        service = DataPushService(registry, gateway, interval_ms=10)

        service.start()
        service.start()
        assert service.is_running
        await asyncio.sleep(0.05)
        await service.stop()

        assert service.is_running is False
        assert gateway.broadcast.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self, registry, gateway):
        """Test stop is safe without start."""
        service = DataPushService(registry, gateway)

        await service.stop()

        assert service.is_running is False

    def test_start_requires_running_loop(self, registry, gateway):
        """Test start outside an event loop."""
        service = DataPushService(registry, gateway)

        with pytest.raises(RuntimeError):
            service.start()

    @pytest.mark.parametrize('interval', [0, -5, 1.5, True])
    def test_invalid_interval(self, registry, gateway, interval):
        """Test interval validation."""
        with pytest.raises(ConfigurationError):
            DataPushService(registry, gateway, interval_ms=interval)
