"""
LLMock Routing Engine

Single entry point used by the transports: match a request against the
registered rules and, on a match, mutate it.

Unmatched requests pass through untouched (fail-open). Malformed rules are
rejected when they are registered, so ``handle`` itself never fails.
"""

import threading
from typing import Iterable, Optional, Tuple

from ..common.exceptions import ConfigurationError
from .matcher import MatchResult, RuleMatcher
from .mutator import MutableRequest, RequestMutator
from .rules import EndpointRule, RuleConfigurer, build_rule


class MockRoutingEngine:
    """
    Composes RuleMatcher and RequestMutator over an ordered rule set.

    Example:
        engine = MockRoutingEngine(base_api_path='/api/mock')
        engine.for_endpoint('/users', lambda b: b.with_shape('{"id":0}').with_cache(3))

        request = MockRequest('GET', '/api/mock/users')
        engine.handle(request)
        # request.query == 'shape=%7B%22id%22%3A0%7D&cache=3'
    """

    def __init__(
        self,
        rules: Iterable[EndpointRule] = (),
        base_api_path: Optional[str] = None,
        matcher: Optional[RuleMatcher] = None,
        mutator: Optional[RequestMutator] = None
    ):
        """
        Initialize routing engine.

        Args:
            rules: Initial rules in precedence order
            base_api_path: Base API path used for streaming path rewrites
            matcher: Optional RuleMatcher (will create if None)
            mutator: Optional RequestMutator (will create if None)
        """
        self.matcher = matcher or RuleMatcher()
        self.mutator = mutator or RequestMutator(base_api_path=base_api_path)
        self._lock = threading.Lock()
        self._rules: Tuple[EndpointRule, ...] = ()

        for rule in rules:
            self.add_rule(rule)

    @property
    def rules(self) -> Tuple[EndpointRule, ...]:
        """Registered rules in precedence order."""
        return self._rules

    def add_rule(self, rule: EndpointRule) -> 'MockRoutingEngine':
        """
        Register a rule after the existing ones.

        Raises:
            ConfigurationError: If ``rule`` is not an EndpointRule
        """
        if not isinstance(rule, EndpointRule):
            raise ConfigurationError(f"Expected an EndpointRule, got {type(rule).__name__}")

        with self._lock:
            self._rules = self._rules + (rule,)
        return self

    def for_endpoint(self, path_pattern: str, configure: Optional[RuleConfigurer] = None) -> 'MockRoutingEngine':
        """Build a rule with the fluent builder and register it."""
        return self.add_rule(build_rule(path_pattern, configure))

    def clear_rules(self) -> 'MockRoutingEngine':
        """Remove all rules."""
        with self._lock:
            self._rules = ()
        return self

    def match(self, method: str, path: str) -> MatchResult:
        """Match without mutating."""
        return self.matcher.find_match(self._rules, method, path)

    def handle(self, request: MutableRequest) -> MutableRequest:
        """
        Match and mutate a request.

        Args:
            request: Request descriptor (see MutableRequest)

        Returns:
            The same request, mutated if a rule matched
        """
        rule = self.matcher.match(self._rules, request.method, request.path)
        if rule is None:
            return request
        return self.mutator.mutate(rule, request)
