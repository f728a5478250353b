"""
LLMock Endpoint Rules

Immutable descriptions of mock endpoints and the fluent builder used to
register them.

A rule carries:
- A path pattern (exact, suffix, or ``*`` prefix match)
- An optional HTTP method filter
- Response directives (shape, cache size, backend, streaming options)
- Optional error injection
- Extra headers and query parameters to attach to matched requests
"""

import json
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..common.exceptions import ConfigurationError


DEFAULT_ERROR_MESSAGES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def _check_optional_int(name: str, value: Any) -> None:
    """Reject non-integers and negative integers."""
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"{name} must be non-negative, got {value}")


def _check_optional_bool(name: str, value: Any) -> None:
    if value is not None and not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _check_optional_str(name: str, value: Any) -> None:
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"{name} must be a string, got {value!r}")


def _frozen_str_mapping(name: str, value: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    """Copy a str->str mapping into a read-only view, keeping insertion order."""
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{name} must be a mapping, got {type(value).__name__}")

    copied: Dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"{name} keys must be non-empty strings, got {key!r}")
        if item is None:
            raise ConfigurationError(f"{name}[{key!r}] has no value")
        copied[key] = item if isinstance(item, str) else str(item)
    return MappingProxyType(copied)


@dataclass(frozen=True)
class ErrorConfig:
    """Error injection settings for a rule."""

    status_code: int
    message: Optional[str] = None
    details: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.status_code, bool) or not isinstance(self.status_code, int):
            raise ConfigurationError(f"Error status code must be an integer, got {self.status_code!r}")
        if not 100 <= self.status_code <= 599:
            raise ConfigurationError(f"Error status code must be between 100 and 599, got {self.status_code}")
        _check_optional_str('Error message', self.message)
        _check_optional_str('Error details', self.details)

    def get_default_message(self) -> str:
        """Reason phrase for common status codes."""
        return DEFAULT_ERROR_MESSAGES.get(self.status_code, f"Error {self.status_code}")

    def get_message(self) -> str:
        """Custom message, or the default one for the status code."""
        return self.message if self.message is not None else self.get_default_message()

    def to_dict(self) -> Dict[str, Any]:
        """Render the error body served for this configuration."""
        error: Dict[str, Any] = {
            'code': self.status_code,
            'message': self.get_message()
        }
        if self.details:
            error['details'] = self.details
        return {'error': error}

    @classmethod
    def from_dict(cls, data: Union[int, Mapping[str, Any]]) -> 'ErrorConfig':
        """Create ErrorConfig from a status code or a mapping."""
        if isinstance(data, int) and not isinstance(data, bool):
            return cls(status_code=data)
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Error config must be a mapping or status code, got {data!r}")

        status_code = data.get('statusCode', data.get('status_code', data.get('status')))
        if status_code is None:
            raise ConfigurationError("Error config requires statusCode")

        return cls(
            status_code=status_code,
            message=data.get('message'),
            details=data.get('details')
        )


@dataclass(frozen=True)
class EndpointRule:
    """
    Immutable description of one mock endpoint.

    Validation runs at construction, so a malformed rule can never be
    registered. Matching and mutation never modify a rule.

    Example:
        rule = EndpointRule(path_pattern='/users', shape='{"id": 0}', cache_size=3)
    """

    path_pattern: str
    method: Optional[str] = None
    shape: Optional[str] = None
    backend: Optional[str] = None
    sse_mode: Optional[str] = None
    cache_size: Optional[int] = None
    continuous_interval_ms: Optional[int] = None
    max_items: Optional[int] = None
    continuous: Optional[bool] = None
    auto_chunk: Optional[bool] = None
    use_streaming: bool = False
    error: Optional[ErrorConfig] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    query_parameters: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.path_pattern, str) or not self.path_pattern.strip():
            raise ConfigurationError("path_pattern must be a non-empty string")

        if self.method is not None:
            if not isinstance(self.method, str) or not self.method.strip():
                raise ConfigurationError(f"method must be a non-empty string, got {self.method!r}")
            object.__setattr__(self, 'method', self.method.strip().upper())

        _check_optional_str('shape', self.shape)
        _check_optional_str('backend', self.backend)
        _check_optional_str('sse_mode', self.sse_mode)

        _check_optional_int('cache_size', self.cache_size)
        _check_optional_int('continuous_interval_ms', self.continuous_interval_ms)
        _check_optional_int('max_items', self.max_items)

        _check_optional_bool('continuous', self.continuous)
        _check_optional_bool('auto_chunk', self.auto_chunk)
        if not isinstance(self.use_streaming, bool):
            raise ConfigurationError(f"use_streaming must be a boolean, got {self.use_streaming!r}")

        if self.error is not None and not isinstance(self.error, ErrorConfig):
            raise ConfigurationError(f"error must be an ErrorConfig, got {type(self.error).__name__}")

        object.__setattr__(self, 'headers', _frozen_str_mapping('headers', self.headers))
        object.__setattr__(self, 'query_parameters', _frozen_str_mapping('query_parameters', self.query_parameters))

    def __hash__(self):
        return hash(tuple(
            tuple(value.items()) if isinstance(value, Mapping) else value
            for value in (getattr(self, f.name) for f in fields(self))
        ))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EndpointRule':
        """
        Create a rule from a config mapping.

        Accepts both camelCase keys (``pathPattern``, ``cacheSize``,
        ``sseMode``, ``continuousInterval``, ``autoChunk``, ``maxItems``,
        ``useStreaming``, ``queryParameters``) and snake_case keys.

        Raises:
            ConfigurationError: If required keys are missing or values are invalid
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Rule must be a mapping, got {type(data).__name__}")

        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        path_pattern = pick('pathPattern', 'path_pattern', 'path')
        if path_pattern is None:
            raise ConfigurationError(f"Rule is missing pathPattern: {dict(data)}")

        error_data = pick('error', 'errorConfig', 'error_config')
        shape = pick('shape')
        if shape is not None and not isinstance(shape, str):
            shape = json.dumps(shape)

        return cls(
            path_pattern=path_pattern,
            method=pick('method'),
            shape=shape,
            backend=pick('backend'),
            sse_mode=pick('sseMode', 'sse_mode'),
            cache_size=pick('cacheSize', 'cache_size', 'cache'),
            continuous_interval_ms=pick('continuousInterval', 'continuousIntervalMs',
                                        'continuous_interval_ms', 'interval'),
            max_items=pick('maxItems', 'max_items'),
            continuous=pick('continuous'),
            auto_chunk=pick('autoChunk', 'auto_chunk'),
            use_streaming=pick('useStreaming', 'use_streaming', default=False),
            error=ErrorConfig.from_dict(error_data) if error_data is not None else None,
            headers=pick('headers', default={}),
            query_parameters=pick('queryParameters', 'query_parameters', default={})
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (camelCase, absent fields omitted)."""
        data: Dict[str, Any] = {'pathPattern': self.path_pattern}
        optional = [
            ('method', self.method),
            ('shape', self.shape),
            ('backend', self.backend),
            ('sseMode', self.sse_mode),
            ('cacheSize', self.cache_size),
            ('continuous', self.continuous),
            ('continuousInterval', self.continuous_interval_ms),
            ('autoChunk', self.auto_chunk),
            ('maxItems', self.max_items),
        ]
        for key, value in optional:
            if value is not None:
                data[key] = value

        if self.use_streaming:
            data['useStreaming'] = True
        if self.error is not None:
            data['error'] = {
                'statusCode': self.error.status_code,
                'message': self.error.message,
                'details': self.error.details
            }
        if self.headers:
            data['headers'] = dict(self.headers)
        if self.query_parameters:
            data['queryParameters'] = dict(self.query_parameters)
        return data


class EndpointRuleBuilder:
    """
    Fluent builder for EndpointRule.

    Example:
        rule = (
            EndpointRuleBuilder('/api/users')
            .with_method('GET')
            .with_shape({'id': 0, 'name': ''})
            .with_cache(3)
            .build()
        )
    """

    def __init__(self, path_pattern: str):
        self._path_pattern = path_pattern
        self._fields: Dict[str, Any] = {}
        self._headers: Dict[str, str] = {}
        self._query_parameters: Dict[str, str] = {}

    def with_method(self, method: str) -> 'EndpointRuleBuilder':
        """Only match this HTTP method."""
        self._fields['method'] = method
        return self

    def with_shape(self, shape: Union[str, Dict[str, Any], list]) -> 'EndpointRuleBuilder':
        """Response shape; dicts and lists are serialized to JSON."""
        self._fields['shape'] = shape if isinstance(shape, str) else json.dumps(shape)
        return self

    def with_error(
        self,
        status_code: int,
        message: Optional[str] = None,
        details: Optional[str] = None
    ) -> 'EndpointRuleBuilder':
        """Inject an error response."""
        self._fields['error'] = ErrorConfig(status_code, message, details)
        return self

    def with_cache(self, cache_size: int) -> 'EndpointRuleBuilder':
        self._fields['cache_size'] = cache_size
        return self

    def with_backend(self, backend: str) -> 'EndpointRuleBuilder':
        self._fields['backend'] = backend
        return self

    def with_header(self, name: str, value: str) -> 'EndpointRuleBuilder':
        self._headers[name] = value
        return self

    def with_query_parameter(self, name: str, value: str) -> 'EndpointRuleBuilder':
        self._query_parameters[name] = value
        return self

    def with_streaming(self, enabled: bool = True) -> 'EndpointRuleBuilder':
        self._fields['use_streaming'] = enabled
        return self

    def with_sse_mode(self, mode: str) -> 'EndpointRuleBuilder':
        """SSE mode, e.g. LlmTokens, CompleteObjects, ArrayItems."""
        self._fields['sse_mode'] = mode
        return self

    def with_continuous_streaming(
        self,
        enabled: bool = True,
        interval_ms: Optional[int] = None
    ) -> 'EndpointRuleBuilder':
        self._fields['continuous'] = enabled
        if interval_ms is not None:
            self._fields['continuous_interval_ms'] = interval_ms
        return self

    def with_auto_chunking(self, enabled: bool = True) -> 'EndpointRuleBuilder':
        self._fields['auto_chunk'] = enabled
        return self

    def with_max_items(self, max_items: int) -> 'EndpointRuleBuilder':
        self._fields['max_items'] = max_items
        return self

    def build(self) -> EndpointRule:
        """
        Build the rule.

        Raises:
            ConfigurationError: If any configured value is invalid
        """
        return EndpointRule(
            path_pattern=self._path_pattern,
            headers=self._headers,
            query_parameters=self._query_parameters,
            **self._fields
        )


RuleConfigurer = Callable[[EndpointRuleBuilder], Any]


def build_rule(path_pattern: str, configure: Optional[RuleConfigurer] = None) -> EndpointRule:
    """Run ``configure`` against a fresh builder and return the built rule."""
    builder = EndpointRuleBuilder(path_pattern)
    if configure is not None:
        configure(builder)
    return builder.build()
