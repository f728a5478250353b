"""
Tests for LLMock Rule Matcher

Tests path pattern matching, method filtering and rule precedence.
"""

import pytest

from llmock.mock.matcher import MatchResult, RuleMatcher
from llmock.mock.rules import EndpointRule


@pytest.fixture
def matcher():
    return RuleMatcher()


class TestPathMatching:
    """Test single-rule path matching."""

    def test_exact_match(self):
        """Test exact path match."""
        assert RuleMatcher.matches(EndpointRule('/users'), 'GET', '/users')

    def test_suffix_match(self):
        """Test that a pattern matches the tail of a prefixed path."""
        assert RuleMatcher.matches(EndpointRule('/users'), 'GET', '/api/mock/users')

    def test_case_insensitive(self):
        """Test path comparison ignores case."""
        assert RuleMatcher.matches(EndpointRule('/Users'), 'GET', '/api/mock/USERS')

    def test_no_match_on_different_path(self):
        """Test unrelated path."""
        assert not RuleMatcher.matches(EndpointRule('/users'), 'GET', '/users/1')

    def test_wildcard_prefix(self):
        """Test trailing * matches any path starting with the prefix."""
        rule = EndpointRule('/api/*')

        assert RuleMatcher.matches(rule, 'GET', '/api/x/y')
        assert RuleMatcher.matches(rule, 'GET', '/api/')
        assert not RuleMatcher.matches(rule, 'GET', '/other/api/x')

    def test_wildcard_without_slash(self):
        """Test wildcard directly after a name."""
        rule = EndpointRule('/error*')

        assert RuleMatcher.matches(rule, 'POST', '/error/foo')
        assert RuleMatcher.matches(rule, 'POST', '/errors')

    def test_only_one_trailing_star_removed(self):
        """Test a doubled star keeps the first one as a literal character."""
        rule = EndpointRule('/files**')

        assert RuleMatcher.matches(rule, 'GET', '/files*/x')
        assert not RuleMatcher.matches(rule, 'GET', '/files/x')


class TestMethodMatching:
    """Test method filtering."""

    def test_method_agnostic_rule(self):
        """Test rule without a method matches every method."""
        rule = EndpointRule('/users')

        for method in ('GET', 'POST', 'PUT', 'DELETE', 'PATCH'):
            assert RuleMatcher.matches(rule, method, '/users')

    def test_method_filter(self):
        """Test rule with a method only matches that method."""
        rule = EndpointRule('/users', method='POST')

        assert RuleMatcher.matches(rule, 'post', '/users')
        assert not RuleMatcher.matches(rule, 'GET', '/users')


class TestRulePrecedence:
    """Test ordered matching over a rule list."""

    def test_first_registered_wins(self, matcher):
        """Test general rule registered first shadows the specific one."""
        general = EndpointRule('/api/*')
        specific = EndpointRule('/api/users')

        assert matcher.match([general, specific], 'GET', '/api/users') is general

    def test_specific_first(self, matcher):
        """Test specific rule registered first wins for its path."""
        general = EndpointRule('/api/*')
        specific = EndpointRule('/api/users')
        rules = [specific, general]

        assert matcher.match(rules, 'GET', '/api/users') is specific
        assert matcher.match(rules, 'GET', '/api/orders') is general

    def test_no_match_returns_none(self, matcher):
        """Test unmatched request."""
        assert matcher.match([EndpointRule('/users')], 'GET', '/orders') is None

    def test_empty_rules(self, matcher):
        """Test matching against no rules."""
        assert matcher.match([], 'GET', '/users') is None


class TestMatchResult:
    """Test MatchResult details."""

    def test_find_match_reports_index(self, matcher):
        """Test matched result carries rule position and reason."""
        rules = [EndpointRule('/orders'), EndpointRule('/users', method='GET')]

        result = matcher.find_match(rules, 'GET', '/users')

        assert result.matched is True
        assert result.index == 1
        assert result.rule is rules[1]
        assert 'GET /users' in result.reason

    def test_find_match_unmatched(self, matcher):
        """Test unmatched result."""
        result = matcher.find_match([EndpointRule('/orders')], 'GET', '/users')

        assert result.matched is False
        assert result.rule is None
        assert result.reason == 'No rule matches GET /users'

    def test_to_dict(self):
        """Test converting result to dictionary."""
        result = MatchResult(matched=True, rule=EndpointRule('/users'), index=0, reason='ok')

        assert result.to_dict() == {
            'matched': True,
            'index': 0,
            'reason': 'ok',
            'path_pattern': '/users'
        }
