"""
Tests for LLMock Client Transport

Tests httpx transports and client helpers, using httpx.MockTransport as the
inner transport so no network is involved.
"""

import httpx
import pytest

from llmock.common.exceptions import ConfigurationError
from llmock.mock.rules import EndpointRule
from llmock.mock.transport import (
    AsyncMockLlmTransport,
    MockClientRegistry,
    MockLlmTransport,
    create_async_mock_llm_client,
    create_mock_llm_client
)


@pytest.fixture
def captured():
    """Requests seen by the inner transport."""
    return []


@pytest.fixture
def inner(captured):
    """Inner transport recording every request."""
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={'ok': True})

    return httpx.MockTransport(handler)


class TestMockLlmTransport:
    """Test synchronous transport."""

    def test_rule_applied_with_base_path(self, inner, captured):
        """Test /users request gets base path, shape and cache."""
        client = create_mock_llm_client(
            'http://mock.local',
            configure=lambda t: t.for_endpoint('/users', lambda b: b.with_shape('UserList').with_cache(3)),
            transport=inner
        )

        response = client.get('/users')

        assert response.status_code == 200
        request = captured[0]
        assert request.url.path == '/api/mock/users'
        assert request.url.query == b'shape=UserList&cache=3'

    def test_unmatched_request_passes_through(self, inner, captured):
        """Test request without a matching rule is only prefixed."""
        client = create_mock_llm_client(
            'http://mock.local',
            configure=lambda t: t.for_endpoint('/users', lambda b: b.with_cache(3)),
            transport=inner
        )

        client.get('/orders', params={'page': '2'}, headers={'X-Trace': 'abc'})

        request = captured[0]
        assert request.url.path == '/api/mock/orders'
        assert request.url.query == b'page=2'
        assert request.headers['X-Trace'] == 'abc'
        assert 'X-Error-Code' not in request.headers

    def test_error_headers(self, inner, captured):
        """Test error rule adds its headers."""
        transport = MockLlmTransport(transport=inner)
        transport.for_endpoint('/error*', lambda b: b.with_error(500, 'boom'))

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.post('/error/foo', json={})

        request = captured[0]
        assert request.url.path == '/error/foo'
        assert request.headers['X-Error-Code'] == '500'
        assert request.headers['X-Error-Message'] == 'boom'

    def test_existing_header_not_overwritten(self, inner, captured):
        """Test caller headers win over rule headers."""
        transport = MockLlmTransport(rules=[EndpointRule('/chat', backend='openai')], transport=inner)

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.post('/chat', headers={'X-LLM-Backend': 'ollama'})

        request = captured[0]
        assert request.headers['X-LLM-Backend'] == 'ollama'
        assert request.url.query == b'backend=openai'

    def test_streaming_rule(self, inner, captured):
        """Test streaming rewrite after the base path."""
        transport = MockLlmTransport(base_api_path='/api/mock', transport=inner)
        transport.for_endpoint('/chat', lambda b: b.with_streaming())

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.get('/chat')

        assert captured[0].url.path == '/api/mock/stream/chat'

    def test_escaped_separator_kept(self, inner, captured):
        """Test %2F inside a segment survives the base path prefix."""
        transport = MockLlmTransport(base_api_path='/api/mock', transport=inner)

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.get('/files/a%2Fb', params={'page': '2'})

        assert captured[0].url.raw_path == b'/api/mock/files/a%2Fb?page=2'

    def test_escaped_separator_kept_on_streaming(self, inner, captured):
        """Test streaming rewrite leaves escaped separators alone."""
        transport = MockLlmTransport(base_api_path='/api/mock', transport=inner)
        transport.for_endpoint('/api/mock/files*', lambda b: b.with_streaming())

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.get('/files/a%2Fb')

        assert captured[0].url.raw_path == b'/api/mock/stream/files/a%2Fb'

    def test_clear_endpoints(self, inner, captured):
        """Test removing rules."""
        transport = MockLlmTransport(rules=[EndpointRule('/users', cache_size=3)], transport=inner)
        transport.clear_endpoints()

        with httpx.Client(transport=transport, base_url='http://mock.local') as client:
            client.get('/users')

        assert captured[0].url.query == b''


class TestAsyncMockLlmTransport:
    """Test asynchronous transport."""

    @pytest.mark.asyncio
    async def test_async_client(self, inner, captured):
        """Test async client applies rules."""
        async with create_async_mock_llm_client(
            'http://mock.local',
            configure=lambda t: t.for_endpoint('/users', lambda b: b.with_cache(3)),
            transport=inner
        ) as client:
            response = await client.get('/users')

        assert response.status_code == 200
        assert captured[0].url.path == '/api/mock/users'
        assert captured[0].url.query == b'cache=3'

    @pytest.mark.asyncio
    async def test_add_endpoint(self, inner, captured):
        """Test registering a prebuilt rule."""
        transport = AsyncMockLlmTransport(transport=inner).add_endpoint(EndpointRule('/x', max_items=4))

        async with httpx.AsyncClient(transport=transport, base_url='http://mock.local') as client:
            await client.get('/x')

        assert captured[0].url.query == b'maxItems=4'


class TestMockClientRegistry:
    """Test named client registrations."""

    def test_register_and_build(self, inner, captured):
        """Test building a named client."""
        registry = MockClientRegistry()
        registry.register(
            'users-api',
            'http://mock.local',
            configure=lambda t: t.for_endpoint('/api/mock/users*', lambda b: b.with_cache(1))
        )

        with registry.client('users-api', transport=inner) as client:
            client.get('/users/7')

        assert registry.names() == ['users-api']
        assert captured[0].url.path == '/api/mock/users/7'
        assert captured[0].url.query == b'cache=1'

    def test_clients_are_independent(self, inner, captured):
        """Test each client gets its own transport."""
        registry = MockClientRegistry()
        registry.register('a', 'http://mock.local', base_api_path=None)

        first = registry.client('a', transport=inner)
        second = registry.client('a', transport=inner)

        assert first is not second

    def test_unknown_client(self):
        """Test building an unregistered client."""
        with pytest.raises(KeyError):
            MockClientRegistry().client('missing')

    @pytest.mark.parametrize('name,base_url', [('', 'http://x'), ('  ', 'http://x'), ('ok', '')])
    def test_invalid_registration(self, name, base_url):
        """Test empty names and URLs are rejected."""
        with pytest.raises(ConfigurationError):
            MockClientRegistry().register(name, base_url)
