"""
LLMock Exceptions

Error taxonomy shared by the routing engine, the context registry and the
real-time transport.
"""


class LLMockError(Exception):
    """Base exception for llmock."""


class ConfigurationError(LLMockError, ValueError):
    """Raised when a rule, context or config file is malformed.

    Always raised at registration/load time, never while matching or
    mutating a request.
    """


class TransportError(LLMockError):
    """Raised by the real-time transport when a group send or membership change fails."""

    def __init__(self, message: str, connection_id: str = None, group: str = None):
        super().__init__(message)
        self.connection_id = connection_id
        self.group = group
