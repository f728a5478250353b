"""
Tests for LLMock WebSocket Groups

Tests group membership and fan-out with AsyncMock WebSocket doubles.
"""

from unittest.mock import AsyncMock

import pytest

from llmock.common.exceptions import TransportError
from llmock.realtime.groups import WebSocketGroups


@pytest.fixture
def groups():
    return WebSocketGroups()


def make_socket(fail=False):
    websocket = AsyncMock()
    if fail:
        websocket.send_json.side_effect = RuntimeError('socket closed')
    return websocket


class TestMembership:
    """Test attaching connections and group membership."""

    @pytest.mark.asyncio
    async def test_attach_and_join(self, groups):
        """Test a connection joining a group."""
        groups.attach('c1', make_socket())

        await groups.add_to_group('c1', 'weather')

        assert groups.members('weather') == {'c1'}
        assert groups.connection_count == 1

    @pytest.mark.asyncio
    async def test_join_unknown_connection(self, groups):
        """Test joining with a connection that was never attached."""
        with pytest.raises(TransportError) as exc_info:
            await groups.add_to_group('ghost', 'weather')

        assert exc_info.value.connection_id == 'ghost'
        assert exc_info.value.group == 'weather'

    @pytest.mark.asyncio
    async def test_leave_group(self, groups):
        """Test leaving a group, and leaving one never joined."""
        groups.attach('c1', make_socket())

        await groups.add_to_group('c1', 'weather')
        await groups.remove_from_group('c1', 'weather')
        await groups.remove_from_group('c1', 'stocks')

        assert groups.members('weather') == set()

    @pytest.mark.asyncio
    async def test_detach_leaves_all_groups(self, groups):
        """Test detaching drops the connection everywhere."""
        groups.attach('c1', make_socket())
        groups.attach('c2', make_socket())
        await groups.add_to_group('c1', 'weather')
        await groups.add_to_group('c1', 'stocks')
        await groups.add_to_group('c2', 'weather')

        groups.detach('c1')

        assert groups.members('weather') == {'c2'}
        assert groups.members('stocks') == set()
        assert groups.get('c1') is None
        assert groups.connection_count == 1


class TestSending:
    """Test sending events."""

    @pytest.mark.asyncio
    async def test_send_to_caller(self, groups):
        """Test frame format."""
        websocket = make_socket()
        groups.attach('c1', websocket)

        await groups.send_to_caller('c1', 'Subscribed', {'context': 'weather'})

        websocket.send_json.assert_awaited_once_with({'event': 'Subscribed', 'data': {'context': 'weather'}})

    @pytest.mark.asyncio
    async def test_send_to_unknown_caller(self, groups):
        """Test sending to a connection that isn't attached."""
        with pytest.raises(TransportError):
            await groups.send_to_caller('ghost', 'Connected', {})

    @pytest.mark.asyncio
    async def test_send_failure_wrapped(self, groups):
        """Test socket errors become TransportError."""
        groups.attach('c1', make_socket(fail=True))

        with pytest.raises(TransportError) as exc_info:
            await groups.send_to_caller('c1', 'Connected', {})

        assert exc_info.value.connection_id == 'c1'

    @pytest.mark.asyncio
    async def test_fan_out_isolates_failures(self, groups):
        """Test one broken subscriber doesn't stop the others."""
        healthy = make_socket()
        other = make_socket()
        groups.attach('a', healthy)
        groups.attach('b', make_socket(fail=True))
        groups.attach('c', other)
        for connection_id in ('a', 'b', 'c'):
            await groups.add_to_group(connection_id, 'weather')

        delivered = await groups.send_to_group('weather', 'DataUpdate', {'temp': 21})

        assert delivered == 2
        healthy.send_json.assert_awaited_once_with({'event': 'DataUpdate', 'data': {'temp': 21}})
        other.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_to_empty_group(self, groups):
        """Test broadcasting to nobody."""
        assert await groups.send_to_group('nobody', 'DataUpdate', {}) == 0
