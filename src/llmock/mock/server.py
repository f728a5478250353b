"""
LLMock Mock Server

FastAPI-based server hosting the mock endpoints, the real-time hub and the
admin API.

Features:
- Catch-all mock route applying endpoint rules to incoming requests
- WebSocket hub with per-context subscriptions
- Periodic DataUpdate pushes to active contexts
- Admin API for contexts, rules and metrics
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from ..common.exceptions import ConfigurationError
from ..common.url_utils import URLMatcher
from ..common.utils import filter_mock_headers, safe_json_parse
from ..config import MockServerConfig
from ..realtime.gateway import BroadcastGateway
from ..realtime.groups import WebSocketGroups
from ..realtime.publisher import DataPushService
from ..realtime.registry import ContextConfig, ContextRegistry
from .engine import MockRoutingEngine
from .mutator import MockRequest
from .rules import EndpointRule, ErrorConfig


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    error_responses: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'error_responses': self.error_responses,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class MockServer:
    """
    FastAPI-based LLM mock server.

    Owns one context registry, gateway and push service per instance.

    Example:
        config = MockServerConfig(
            port=5116,
            rules=[build_rule('/users', lambda b: b.with_shape('{"id": 0}').with_cache(3))],
            hub_contexts=[ContextConfig('stocks')]
        )
        server = MockServer(config)
        server.start()
    """

    def __init__(self, config: Optional[MockServerConfig] = None):
        """
        Initialize mock server.

        Args:
            config: Optional MockServerConfig for server behavior
        """
        self.config = config or MockServerConfig()
        self.metrics = MockMetrics()

        self.logger = logging.getLogger("llmock.mock")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.engine = MockRoutingEngine(
            rules=self.config.rules,
            base_api_path=self.config.effective_base_api_path
        )

        self.registry = ContextRegistry(self.config.hub_contexts)
        self.groups = WebSocketGroups()
        self.gateway = BroadcastGateway(
            self.registry,
            self.groups,
            track_dynamic_contexts=self.config.track_dynamic_contexts,
            cleanup_on_disconnect=self.config.cleanup_on_disconnect
        )
        self.publisher = DataPushService(
            self.registry,
            self.gateway,
            interval_ms=self.config.push_interval_ms
        )

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            if self.config.push_enabled:
                self.publisher.start()
            yield
            await self.publisher.stop()

        app = FastAPI(
            title="LLMock Server",
            description="Mock LLM API server with real-time context broadcasting",
            version="1.0.0",
            lifespan=lifespan
        )

        if self.config.admin_enabled:
            self._add_admin_routes(app)

        @app.websocket(self.config.hub_path)
        async def hub(websocket: WebSocket):
            """Real-time hub: subscribe to contexts and receive their events."""
            await self._serve_hub(websocket)

        # Main catch-all route for mocking
        @app.api_route(
            f"{self.config.api_prefix}/{{path:path}}",
            methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
        )
        async def mock_request(request: Request, path: str):
            """Apply endpoint rules and render the resolved directives."""
            return await self._handle_request(request)

        return app

    def _add_admin_routes(self, app: FastAPI) -> None:
        prefix = self.config.admin_prefix

        @app.get(f"{prefix}/metrics")
        async def get_metrics():
            """Get server metrics."""
            metrics = self.metrics.to_dict()
            metrics['active_contexts'] = len(self.registry.list_active())
            metrics['connections'] = self.groups.connection_count
            return JSONResponse(content=metrics)

        @app.get(f"{prefix}/rules")
        async def list_rules():
            """List endpoint rules in precedence order."""
            rules = [rule.to_dict() for rule in self.engine.rules]
            return JSONResponse(content={'total': len(rules), 'rules': rules})

        @app.get(f"{prefix}/contexts")
        async def list_contexts():
            """List all contexts with their state."""
            contexts = [entry.to_dict() for entry in self.registry.list_entries()]
            return JSONResponse(content={'total': len(contexts), 'contexts': contexts})

        @app.get(f"{prefix}/contexts/{{name}}")
        async def get_context(name: str):
            """Get one context."""
            entry = self.registry.get(name)
            if entry is None:
                return self._not_found(name)
            return JSONResponse(content=entry.to_dict())

        @app.post(f"{prefix}/contexts")
        async def create_context(request: Request):
            """Register a dynamic context."""
            body = safe_json_parse((await request.body()).decode('utf-8', errors='replace'))
            if not isinstance(body, dict):
                return JSONResponse(status_code=400, content={'error': 'Request body must be a JSON object'})

            try:
                context = ContextConfig.from_dict(body)
                created = self.registry.register(context)
            except ConfigurationError as e:
                return JSONResponse(status_code=400, content={'error': str(e)})

            if not created:
                return JSONResponse(status_code=409, content={'error': f"Context {context.name} already exists"})

            entry = self.registry.get(context.name)
            return JSONResponse(status_code=201, content=entry.to_dict())

        @app.delete(f"{prefix}/contexts/{{name}}")
        async def delete_context(name: str):
            """Remove a dynamic context. Static contexts can't be removed."""
            if not self.registry.delete(name):
                return self._not_found(name)
            return JSONResponse(content={'status': 'deleted', 'name': name})

        @app.post(f"{prefix}/contexts/{{name}}/start")
        async def start_context(name: str):
            """Resume pushes to a context."""
            return self._set_context_active(name, True)

        @app.post(f"{prefix}/contexts/{{name}}/stop")
        async def stop_context(name: str):
            """Pause pushes to a context (subscriptions are kept)."""
            return self._set_context_active(name, False)

    @staticmethod
    def _not_found(name: str) -> JSONResponse:
        return JSONResponse(status_code=404, content={'error': f"Context {name} not found"})

    def _set_context_active(self, name: str, active: bool) -> JSONResponse:
        if not self.registry.set_active(name, active):
            return self._not_found(name)
        return JSONResponse(content={
            'status': 'started' if active else 'stopped',
            'context': self.registry.get(name).to_dict()
        })

    async def _serve_hub(self, websocket: WebSocket) -> None:
        """Run one hub connection until the client goes away."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.groups.attach(connection_id, websocket)

        cause: Optional[BaseException] = None
        try:
            await self.gateway.on_connect(connection_id)
            while True:
                message = await websocket.receive_text()
                await self._handle_hub_message(connection_id, message)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            cause = e
        finally:
            try:
                await self.gateway.on_disconnect(connection_id, cause)
            finally:
                self.groups.detach(connection_id)

    async def _handle_hub_message(self, connection_id: str, raw: str) -> None:
        """
        Dispatch one client frame.

        Frames: ``{"action": "subscribe" | "unsubscribe" | "contexts", "context": <name>}``
        """
        message = safe_json_parse(raw)
        if not isinstance(message, dict):
            await self.gateway.send_error(connection_id, 'Frames must be JSON objects')
            return

        action = message.get('action')
        if action == 'subscribe':
            await self.gateway.on_subscribe(connection_id, message.get('context'))
        elif action == 'unsubscribe':
            await self.gateway.on_unsubscribe(connection_id, message.get('context'))
        elif action == 'contexts':
            await self.gateway.query_contexts(connection_id)
        else:
            await self.gateway.send_error(connection_id, f"Unknown action: {action}")

    async def _handle_request(self, request: Request) -> Response:
        """
        Handle incoming mock request.

        Args:
            request: FastAPI Request object

        Returns:
            Error response when error directives are present, otherwise a
            200 echo of the resolved directives
        """
        self.metrics.total_requests += 1

        mock_request = MockRequest(
            method=request.method,
            path=request.url.path,
            query=request.url.query,
            headers=dict(request.headers),
            body=await request.body(),
            scheme=request.url.scheme,
            host=request.url.netloc
        )

        self.logger.debug(f"Incoming: {mock_request.method} {mock_request.url}")

        result = self.engine.match(mock_request.method, mock_request.path)
        if result.matched:
            self.metrics.matched_requests += 1
            self.engine.mutator.mutate(result.rule, mock_request)
            self.logger.debug(result.reason)
        else:
            self.metrics.unmatched_requests += 1

        headers = {'X-LLMock-Matched': 'true' if result.matched else 'false'}

        error = self._error_from_headers(mock_request)
        if error is not None:
            self.metrics.error_responses += 1
            return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)

        return JSONResponse(content=self._describe(mock_request, result.rule), headers=headers)

    def _error_from_headers(self, request: MockRequest) -> Optional[ErrorConfig]:
        code = request.get_header('X-Error-Code')
        if code is None:
            return None

        try:
            return ErrorConfig(
                status_code=int(code),
                message=request.get_header('X-Error-Message'),
                details=request.get_header('X-Error-Details')
            )
        except (ValueError, ConfigurationError) as e:
            self.logger.warning(f"Ignoring invalid X-Error-Code {code!r}: {e}")
            return None

    def _describe(self, request: MockRequest, rule: Optional[EndpointRule]) -> Dict[str, Any]:
        """Directives resolved for a request, as served to the caller."""
        query = URLMatcher.parse_query(request.query)
        shape = query.get('shape', [None])[-1]

        return {
            'method': request.method,
            'path': request.path,
            'streaming': '/stream/' in request.path,
            'query': query,
            'directives': filter_mock_headers(request.headers),
            'shape': safe_json_parse(shape, default=shape),
            'rule': rule.path_pattern if rule is not None else None
        }

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the mock server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"LLMock Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Endpoint rules: {len(self.engine.rules)}")
        print(f"   Mock API: http://{actual_host}:{actual_port}{self.config.api_prefix}/")
        print(f"   Hub: ws://{actual_host}:{actual_port}{self.config.hub_path}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        if self.config.push_enabled:
            print(f"   Data push every {self.config.push_interval_ms}ms to {len(self.registry)} contexts")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    rules: Optional[List[EndpointRule]] = None,
    hub_contexts: Optional[List[ContextConfig]] = None,
    push_enabled: bool = True,
    push_interval_ms: int = 5000,
    admin_enabled: bool = True
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        host: Host to bind to
        port: Port to bind to
        rules: Endpoint rules in precedence order
        hub_contexts: Static hub contexts
        push_enabled: Push DataUpdate events to active contexts
        push_interval_ms: Delay between pushes
        admin_enabled: Expose the admin API

    Returns:
        Configured MockServer instance

    Example:
        server = create_mock_server(
            port=5116,
            rules=[build_rule('/error*', lambda b: b.with_error(500, 'boom'))],
            push_interval_ms=1000
        )
        server.start()
    """
    config = MockServerConfig(
        host=host,
        port=port,
        rules=list(rules or []),
        hub_contexts=list(hub_contexts or []),
        push_enabled=push_enabled,
        push_interval_ms=push_interval_ms,
        admin_enabled=admin_enabled
    )

    return MockServer(config=config)
