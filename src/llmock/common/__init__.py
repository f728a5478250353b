"""
LLMock Common Utilities

Shared utilities and helpers used across LLMock modules.
"""

from .exceptions import LLMockError, ConfigurationError, TransportError
from .utils import safe_json_parse, ConfigFileLoader, filter_mock_headers, MOCK_DIRECTIVE_HEADERS
from .url_utils import URLMatcher

__all__ = [
    'LLMockError',
    'ConfigurationError',
    'TransportError',
    'safe_json_parse',
    'ConfigFileLoader',
    'filter_mock_headers',
    'MOCK_DIRECTIVE_HEADERS',
    'URLMatcher'
]
