"""
LLMock Request Mutator

Carries a matched rule's directives to the mock backend by adding headers
and query parameters to the outgoing (or incoming) request.

Mutation is additive and NOT idempotent: mutating the same request twice
appends the query parameters twice. Transports call it exactly once per
request.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from ..common.url_utils import URLMatcher
from .rules import EndpointRule


class MutableRequest(Protocol):
    """Request descriptor the transports hand to the routing engine."""

    method: str
    path: str
    query: str

    def has_header(self, name: str) -> bool:
        ...

    def add_header(self, name: str, value: str) -> None:
        ...


@dataclass
class MockRequest:
    """
    Plain in-memory request descriptor.

    Useful for driving the engine directly and for transports that don't
    have a richer request object.
    """

    method: str
    path: str
    query: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    scheme: str = "http"
    host: str = "localhost"

    def has_header(self, name: str) -> bool:
        lowered = name.lower()
        return any(key.lower() == lowered for key in self.headers)

    def add_header(self, name: str, value: str) -> None:
        """Add a header unless one with the same name already exists."""
        if not self.has_header(name):
            self.headers[name] = value

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def url(self) -> str:
        query = f"?{self.query}" if self.query else ""
        return f"{self.scheme}://{self.host}{self.path}{query}"


class RequestMutator:
    """
    Applies a rule's directives to a request.

    Steps (each only when the rule field is set):
    1. Rewrite the path to the streaming endpoint (``use_streaming``)
    2. Add rule headers without overwriting existing ones
    3. ``X-LLM-Backend`` for the backend selection
    4. ``X-Error-Code`` / ``X-Error-Message`` / ``X-Error-Details``
    5. Append query parameters in a fixed order, then custom parameters

    Example:
        mutator = RequestMutator(base_api_path='/api/mock')
        mutator.mutate(rule, request)
    """

    STREAM_SEGMENT = '/stream'

    def __init__(self, base_api_path: Optional[str] = None):
        """
        Initialize mutator.

        Args:
            base_api_path: Base path prepended by the transport, used to
                place the ``/stream`` segment for streaming rules
        """
        self.base_api_path = base_api_path.rstrip('/') if base_api_path else None

    def mutate(self, rule: EndpointRule, request: MutableRequest) -> MutableRequest:
        """
        Apply the rule to the request in place.

        Args:
            rule: Matched rule
            request: Request descriptor

        Returns:
            The same request object
        """
        if rule.use_streaming:
            request.path = self.streaming_path(request.path)

        for name, value in rule.headers.items():
            request.add_header(name, value)

        if rule.backend is not None:
            request.add_header('X-LLM-Backend', rule.backend)

        if rule.error is not None:
            request.add_header('X-Error-Code', str(rule.error.status_code))
            if rule.error.message is not None:
                request.add_header('X-Error-Message', rule.error.message)
            if rule.error.details is not None:
                request.add_header('X-Error-Details', rule.error.details)

        fragment = URLMatcher.build_query(self.query_pairs(rule))
        if fragment:
            request.query = URLMatcher.append_query(request.query, fragment)

        return request

    @staticmethod
    def query_pairs(rule: EndpointRule) -> List[Tuple[str, str]]:
        """
        Query parameters for a rule, in wire order.

        Args:
            rule: Rule to render

        Returns:
            Ordered (key, value) pairs, unencoded
        """
        pairs: List[Tuple[str, str]] = []

        if rule.shape is not None:
            pairs.append(('shape', rule.shape))
        if rule.cache_size is not None:
            pairs.append(('cache', str(rule.cache_size)))
        if rule.backend is not None:
            pairs.append(('backend', rule.backend))
        if rule.sse_mode is not None:
            pairs.append(('sseMode', rule.sse_mode))
        if rule.continuous is not None:
            pairs.append(('continuous', 'true' if rule.continuous else 'false'))
        if rule.continuous_interval_ms is not None:
            pairs.append(('interval', str(rule.continuous_interval_ms)))
        if rule.auto_chunk is not None:
            pairs.append(('autoChunk', 'true' if rule.auto_chunk else 'false'))
        if rule.max_items is not None:
            pairs.append(('maxItems', str(rule.max_items)))

        pairs.extend(rule.query_parameters.items())
        return pairs

    def streaming_path(self, path: str) -> str:
        """
        Route a path to the streaming endpoint.

        ``/stream`` goes right after the base API path when the path starts
        with it, otherwise after the first segment. Paths already containing
        ``/stream/`` are left alone.
        """
        if '/stream/' in path:
            return path

        if self.base_api_path and path.startswith(self.base_api_path):
            cut = len(self.base_api_path)
            return f"{path[:cut]}{self.STREAM_SEGMENT}{path[cut:]}"

        segments = [s for s in path.split('/') if s]
        if not segments:
            return path

        return f"/{segments[0]}{self.STREAM_SEGMENT}/{'/'.join(segments[1:])}"
