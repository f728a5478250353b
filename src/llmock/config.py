"""
LLMock Server Configuration

Configuration for the mock server, loadable from YAML or JSON.

Example YAML:

    llmock:
      host: 0.0.0.0
      port: 5116
      api_prefix: /api/mock
      push_interval_ms: 2000
      hub_contexts:
        - name: stocks
          path: /stocks/live
          shape: {"symbol": "AAPL", "price": 0.0}
      rules:
        - pathPattern: /users
          shape: {"id": 0, "name": ""}
          cacheSize: 3
        - pathPattern: /error*
          error: {statusCode: 500, message: boom}

Environment overrides (applied by ``load_config``):
    LLMOCK_HOST, LLMOCK_PORT, LLMOCK_LOG_LEVEL
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional

from .common.exceptions import ConfigurationError
from .common.utils import ConfigFileLoader
from .mock.rules import EndpointRule
from .realtime.registry import ContextConfig


logger = logging.getLogger("llmock.config")

LOG_LEVELS = ('critical', 'error', 'warning', 'info', 'debug')


@dataclass
class MockServerConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    # Mock endpoints
    api_prefix: str = "/api/mock"
    base_api_path: Optional[str] = None  # Streaming rewrites; defaults to api_prefix

    # Real-time hub
    hub_path: str = "/hub/mock"
    push_enabled: bool = True
    push_interval_ms: int = 5000
    track_dynamic_contexts: bool = True
    cleanup_on_disconnect: bool = True
    hub_contexts: List[ContextConfig] = field(default_factory=list)

    rules: List[EndpointRule] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise ConfigurationError(f"port must be an integer between 0 and 65535, got {self.port!r}")

        if isinstance(self.push_interval_ms, bool) or not isinstance(self.push_interval_ms, int) \
                or self.push_interval_ms <= 0:
            raise ConfigurationError(f"push_interval_ms must be a positive integer, got {self.push_interval_ms!r}")

        if not isinstance(self.log_level, str) or self.log_level.lower() not in LOG_LEVELS:
            raise ConfigurationError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        self.log_level = self.log_level.lower()

        for name in ('admin_prefix', 'api_prefix', 'hub_path'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.startswith('/'):
                raise ConfigurationError(f"{name} must be a path starting with '/', got {value!r}")
            setattr(self, name, value.rstrip('/') or '/')

        if self.base_api_path is not None and not str(self.base_api_path).startswith('/'):
            raise ConfigurationError(f"base_api_path must start with '/', got {self.base_api_path!r}")

    @property
    def effective_base_api_path(self) -> str:
        return self.base_api_path or self.api_prefix

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MockServerConfig':
        """
        Create config from a mapping.

        Args:
            data: Config mapping (snake_case keys)

        Returns:
            MockServerConfig

        Raises:
            ConfigurationError: On invalid values, rules or contexts
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Config must be a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            kwargs[key] = value

        kwargs['rules'] = [
            EndpointRule.from_dict(rule) for rule in cls._list_of(data, 'rules')
        ]
        kwargs['hub_contexts'] = [
            ContextConfig.from_dict(context) for context in cls._list_of(data, 'hub_contexts')
        ]

        return cls(**kwargs)

    @staticmethod
    def _list_of(data: Mapping[str, Any], key: str) -> List[Any]:
        items = data.get(key)
        if items is None:
            return []
        if not isinstance(items, list):
            raise ConfigurationError(f"'{key}' must be a list, got {type(items).__name__}")
        return items

    @classmethod
    def from_yaml(cls, file_path: str) -> 'MockServerConfig':
        """
        Load config from a YAML (or JSON) file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the content is invalid
        """
        return cls.from_dict(ConfigFileLoader(file_path).load())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'port': self.port,
            'log_level': self.log_level,
            'admin_enabled': self.admin_enabled,
            'admin_prefix': self.admin_prefix,
            'api_prefix': self.api_prefix,
            'base_api_path': self.base_api_path,
            'hub_path': self.hub_path,
            'push_enabled': self.push_enabled,
            'push_interval_ms': self.push_interval_ms,
            'track_dynamic_contexts': self.track_dynamic_contexts,
            'cleanup_on_disconnect': self.cleanup_on_disconnect,
            'hub_contexts': [
                {
                    'name': c.name,
                    'description': c.description,
                    'method': c.method,
                    'path': c.path,
                    'shape': c.shape,
                    'active': c.active
                }
                for c in self.hub_contexts
            ],
            'rules': [rule.to_dict() for rule in self.rules]
        }


def apply_env_overrides(config: MockServerConfig, environ: Optional[Mapping[str, str]] = None) -> MockServerConfig:
    """
    Apply LLMOCK_* environment variables on top of a config.

    Raises:
        ConfigurationError: If LLMOCK_PORT is not an integer
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    if environ.get('LLMOCK_HOST'):
        overrides['host'] = environ['LLMOCK_HOST']

    if environ.get('LLMOCK_PORT'):
        try:
            overrides['port'] = int(environ['LLMOCK_PORT'])
        except ValueError as e:
            raise ConfigurationError(f"LLMOCK_PORT must be an integer, got {environ['LLMOCK_PORT']!r}") from e

    if environ.get('LLMOCK_LOG_LEVEL'):
        overrides['log_level'] = environ['LLMOCK_LOG_LEVEL']

    if not overrides:
        return config

    logger.debug(f"Environment overrides: {', '.join(sorted(overrides))}")
    return replace(config, **overrides)


def load_config(file_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> MockServerConfig:
    """
    Load server config from a file (optional) plus environment overrides.

    Args:
        file_path: YAML or JSON config file; defaults only when None
        environ: Environment mapping (os.environ if None)

    Returns:
        MockServerConfig

    Raises:
        FileNotFoundError: If file_path doesn't exist
        ConfigurationError: If the config is invalid
    """
    if file_path:
        config = MockServerConfig.from_yaml(file_path)
        logger.info(f"Loaded config from {file_path}: {len(config.rules)} rules, "
                    f"{len(config.hub_contexts)} hub contexts")
    else:
        config = MockServerConfig()

    return apply_env_overrides(config, environ)
