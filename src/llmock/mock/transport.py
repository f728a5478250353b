"""
LLMock Client Transport

httpx transports that intercept outgoing requests and attach mock
directives before they reach the mock server.

This module provides:
- MockLlmTransport / AsyncMockLlmTransport (wrap any inner httpx transport)
- create_mock_llm_client / create_async_mock_llm_client helpers
- MockClientRegistry for named client configurations
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from ..common.exceptions import ConfigurationError
from ..common.url_utils import URLMatcher
from .engine import MockRoutingEngine
from .rules import EndpointRule, RuleConfigurer


logger = logging.getLogger("llmock.mock")


class HttpxRequestAdapter:
    """Exposes an httpx.Request through the MutableRequest interface."""

    def __init__(self, request: httpx.Request):
        self.request = request

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        """Escaped path as sent on the wire (``%2F`` stays inside its segment)."""
        return self.request.url.raw_path.split(b'?', 1)[0].decode('ascii')

    @path.setter
    def path(self, value: str) -> None:
        query = self.request.url.query
        raw_path = value.encode('ascii') + (b'?' + query if query else b'')
        self.request.url = self.request.url.copy_with(raw_path=raw_path)

    @property
    def query(self) -> str:
        return self.request.url.query.decode('ascii')

    @query.setter
    def query(self, value: str) -> None:
        self.request.url = self.request.url.copy_with(query=value.encode('ascii'))

    def has_header(self, name: str) -> bool:
        return name in self.request.headers

    def add_header(self, name: str, value: str) -> None:
        if name not in self.request.headers:
            self.request.headers[name] = value


class _MockTransportMixin:
    """Rule registration and request preparation shared by both transports."""

    def _init_engine(self, base_api_path: Optional[str], rules: Iterable[EndpointRule]):
        self.base_api_path = base_api_path.rstrip('/') if base_api_path else None
        self.engine = MockRoutingEngine(rules=rules, base_api_path=self.base_api_path)

    def add_endpoint(self, rule: EndpointRule):
        """Register a rule."""
        self.engine.add_rule(rule)
        return self

    def for_endpoint(self, path_pattern: str, configure: Optional[RuleConfigurer] = None):
        """Register a rule built with the fluent builder."""
        self.engine.for_endpoint(path_pattern, configure)
        return self

    def clear_endpoints(self):
        """Remove all registered rules."""
        self.engine.clear_rules()
        return self

    def prepare(self, request: httpx.Request) -> httpx.Request:
        """
        Prefix the base API path and apply the routing engine once.

        Args:
            request: Outgoing httpx request

        Returns:
            The same request, with its URL and headers updated
        """
        adapter = HttpxRequestAdapter(request)

        if self.base_api_path:
            adapter.path = URLMatcher.join_path(self.base_api_path, adapter.path)

        self.engine.handle(adapter)
        logger.debug(f"Outgoing: {request.method} {request.url}")
        return request


class MockLlmTransport(_MockTransportMixin, httpx.BaseTransport):
    """
    Synchronous httpx transport applying mock rules to every request.

    Example:
        transport = MockLlmTransport(base_api_path='/api/mock')
        transport.for_endpoint('/users', lambda b: b.with_shape('{"id": 0}'))

        with httpx.Client(transport=transport, base_url='http://localhost:5116') as client:
            client.get('/users')  # -> GET /api/mock/users?shape=...
    """

    def __init__(
        self,
        base_api_path: Optional[str] = None,
        rules: Iterable[EndpointRule] = (),
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize transport.

        Args:
            base_api_path: Path prepended to every request (e.g. ``/api/mock``)
            rules: Initial rules in precedence order
            transport: Inner transport (defaults to httpx.HTTPTransport)
        """
        self._init_engine(base_api_path, rules)
        self.inner = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.inner.handle_request(self.prepare(request))

    def close(self) -> None:
        self.inner.close()


class AsyncMockLlmTransport(_MockTransportMixin, httpx.AsyncBaseTransport):
    """Asynchronous counterpart of MockLlmTransport."""

    def __init__(
        self,
        base_api_path: Optional[str] = None,
        rules: Iterable[EndpointRule] = (),
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._init_engine(base_api_path, rules)
        self.inner = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.inner.handle_async_request(self.prepare(request))

    async def aclose(self) -> None:
        await self.inner.aclose()


TransportConfigurer = Callable[[_MockTransportMixin], Any]


def create_mock_llm_client(
    base_url: str,
    base_api_path: Optional[str] = "/api/mock",
    configure: Optional[TransportConfigurer] = None,
    transport: Optional[httpx.BaseTransport] = None,
    **client_kwargs
) -> httpx.Client:
    """
    Create an httpx.Client wired to the mock server.

    Args:
        base_url: Mock server address (e.g. ``http://localhost:5116``)
        base_api_path: Base API path of the mock endpoints
        configure: Callback registering rules on the MockLlmTransport
        transport: Inner transport (for tests, e.g. httpx.MockTransport)
        **client_kwargs: Extra httpx.Client arguments

    Returns:
        Configured client

    Example:
        client = create_mock_llm_client(
            'http://localhost:5116',
            configure=lambda t: t.for_endpoint('/users', lambda b: b.with_cache(3))
        )
    """
    mock_transport = MockLlmTransport(base_api_path=base_api_path, transport=transport)
    if configure is not None:
        configure(mock_transport)
    return httpx.Client(transport=mock_transport, base_url=base_url, **client_kwargs)


def create_async_mock_llm_client(
    base_url: str,
    base_api_path: Optional[str] = "/api/mock",
    configure: Optional[TransportConfigurer] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **client_kwargs
) -> httpx.AsyncClient:
    """Async variant of create_mock_llm_client."""
    mock_transport = AsyncMockLlmTransport(base_api_path=base_api_path, transport=transport)
    if configure is not None:
        configure(mock_transport)
    return httpx.AsyncClient(transport=mock_transport, base_url=base_url, **client_kwargs)


class MockClientRegistry:
    """
    Named mock client configurations.

    Each registration stores how to build a client; every call to
    ``client()`` returns a fresh client with its own transport.

    Example:
        registry = MockClientRegistry()
        registry.register('users-api', 'http://localhost:5116',
                          configure=lambda t: t.for_endpoint('/api/mock/users*'))
        with registry.client('users-api') as client:
            client.get('/users/1')
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._registrations: Dict[str, Dict[str, Any]] = {}

    def register(
        self,
        name: str,
        base_url: str,
        base_api_path: Optional[str] = "/api/mock",
        configure: Optional[TransportConfigurer] = None,
        **client_kwargs
    ) -> None:
        """
        Register (or replace) a named client configuration.

        Raises:
            ConfigurationError: If name or base_url is empty
        """
        if not name or not name.strip():
            raise ConfigurationError("Client name must be a non-empty string")
        if not base_url:
            raise ConfigurationError(f"Client '{name}' requires a base_url")

        with self._lock:
            self._registrations[name] = {
                'base_url': base_url,
                'base_api_path': base_api_path,
                'configure': configure,
                'client_kwargs': client_kwargs
            }
        logger.debug(f"Registered mock client: {name} ({base_url})")

    def names(self):
        with self._lock:
            return sorted(self._registrations)

    def _get(self, name: str) -> Dict[str, Any]:
        with self._lock:
            registration = self._registrations.get(name)
        if registration is None:
            raise KeyError(f"No mock client registered as '{name}'")
        return registration

    def client(self, name: str, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
        """Build a synchronous client for a registration."""
        registration = self._get(name)
        return create_mock_llm_client(
            registration['base_url'],
            base_api_path=registration['base_api_path'],
            configure=registration['configure'],
            transport=transport,
            **registration['client_kwargs']
        )

    def async_client(self, name: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
        """Build an asynchronous client for a registration."""
        registration = self._get(name)
        return create_async_mock_llm_client(
            registration['base_url'],
            base_api_path=registration['base_api_path'],
            configure=registration['configure'],
            transport=transport,
            **registration['client_kwargs']
        )
