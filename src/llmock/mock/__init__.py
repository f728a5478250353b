"""
LLMock Mock Routing Module

Endpoint rules and the engine that applies them to requests.

This module provides:
- Immutable endpoint rules and a fluent builder
- Rule matching (first registered match wins)
- Request mutation (headers, query parameters, streaming path)
- httpx transports for client-side interception

The FastAPI server lives in ``llmock.mock.server``.
"""

from .rules import EndpointRule, EndpointRuleBuilder, ErrorConfig, build_rule
from .matcher import RuleMatcher, MatchResult
from .mutator import RequestMutator, MockRequest, MutableRequest
from .engine import MockRoutingEngine
from .transport import (
    MockLlmTransport,
    AsyncMockLlmTransport,
    MockClientRegistry,
    create_mock_llm_client,
    create_async_mock_llm_client
)

__all__ = [
    # Rules
    'EndpointRule',
    'EndpointRuleBuilder',
    'ErrorConfig',
    'build_rule',

    # Matching and mutation
    'RuleMatcher',
    'MatchResult',
    'RequestMutator',
    'MockRequest',
    'MutableRequest',
    'MockRoutingEngine',

    # Client transports
    'MockLlmTransport',
    'AsyncMockLlmTransport',
    'MockClientRegistry',
    'create_mock_llm_client',
    'create_async_mock_llm_client',
]
