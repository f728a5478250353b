"""
LLMock Rule Matcher

Finds the endpoint rule that applies to a request.

Matching policy:
- Method filter (case-insensitive); rules without a method match any method
- Path pattern ending in ``*``: case-insensitive prefix match
- Otherwise: case-insensitive exact match, or suffix match so that
  ``/users`` also matches ``/api/mock/users``
- First matching rule in registration order wins; there is no specificity
  scoring, so register specific rules before general ones
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from .rules import EndpointRule


@dataclass
class MatchResult:
    """Result of matching a request."""

    matched: bool
    rule: Optional[EndpointRule] = None
    index: Optional[int] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'index': self.index,
            'reason': self.reason,
            'path_pattern': self.rule.path_pattern if self.rule else None
        }


class RuleMatcher:
    """
    Stateless matcher over an ordered rule sequence.

    Safe to share between any number of concurrent request handlers.

    Example:
        matcher = RuleMatcher()
        rule = matcher.match(rules, 'GET', '/api/mock/users')

        if rule is not None:
            print(f"Matched {rule.path_pattern}")
    """

    @staticmethod
    def matches(rule: EndpointRule, method: str, path: str) -> bool:
        """
        Check whether a single rule applies to a method and path.

        Args:
            rule: Rule to test
            method: HTTP method of the request
            path: Request path (no query string)

        Returns:
            True if the rule matches
        """
        if rule.method is not None and rule.method.lower() != (method or '').lower():
            return False

        pattern = rule.path_pattern.lower()
        request_path = (path or '').lower()

        if pattern.endswith('*'):
            return request_path.startswith(pattern[:-1])

        return request_path == pattern or request_path.endswith(pattern)

    def match(self, rules: Iterable[EndpointRule], method: str, path: str) -> Optional[EndpointRule]:
        """
        Find the first rule matching the request.

        Args:
            rules: Rules in registration order
            method: HTTP method
            path: Request path

        Returns:
            The first matching rule, or None to pass the request through
        """
        return self.find_match(rules, method, path).rule

    def find_match(self, rules: Iterable[EndpointRule], method: str, path: str) -> MatchResult:
        """
        Find the first matching rule, with the reason for debugging.

        Args:
            rules: Rules in registration order
            method: HTTP method
            path: Request path

        Returns:
            MatchResult with the matched rule and its position
        """
        for index, rule in enumerate(rules):
            if self.matches(rule, method, path):
                return MatchResult(
                    matched=True,
                    rule=rule,
                    index=index,
                    reason=f"Matched rule #{index} ({rule.method or '*'} {rule.path_pattern})"
                )

        return MatchResult(matched=False, reason=f"No rule matches {method} {path}")
