"""
LLMock

Mock LLM API server: endpoint rules that steer requests to a mock backend,
and a real-time hub broadcasting data to named contexts.
"""

from .config import MockServerConfig, load_config
from .mock.server import MockServer, MockMetrics, create_mock_server

__all__ = [
    'MockServerConfig',
    'load_config',
    'MockServer',
    'MockMetrics',
    'create_mock_server',
]

__version__ = '1.0.0'
