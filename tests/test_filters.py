"""Tests for the filter engine."""

import logging

import pytest

from streamcurator.models.stream import FilterKind, FilterRule, Provider, Stream
from streamcurator.services.filter_service import (
    compile_pattern,
    filter_streams,
    group_rules,
    is_valid_pattern,
    matches_rule,
    should_include,
)


def _stream(name="News 24", uri="http://x/2", group="News", **kw):
    return Stream(id=kw.pop("id", 1), user_id=1, name=name, uri=uri, tvg_group=group, **kw)


def _rule(kind, pattern, active=True, rule_id=1):
    return FilterRule(id=rule_id, user_id=1, kind=int(kind), pattern=pattern, active=active)


def _provider(provider_id=1, should_filter=True, priority=99):
    return Provider(
        id=provider_id, user_id=1, name=f"P{provider_id}", domain="http://p",
        should_filter=should_filter, priority=priority,
    )


class TestMatchesRule:

    def test_exclude_name_is_case_insensitive_substring(self):
        rule = _rule(FilterKind.EXCLUDE_NAME, "adult")
        assert matches_rule(_stream(name="Adult Channel"), rule) is True
        assert matches_rule(_stream(name="ADULT"), rule) is True
        assert matches_rule(_stream(name="Kids"), rule) is False

    def test_exclude_name_is_literal_not_regex(self):
        rule = _rule(FilterKind.EXCLUDE_NAME, "US|")
        assert matches_rule(_stream(name="US| CNN"), rule) is True
        assert matches_rule(_stream(name="UK BBC"), rule) is False

    def test_name_regex(self):
        rule = _rule(FilterKind.EXCLUDE_NAME_REGEX, r"^\[PPV\]")
        assert matches_rule(_stream(name="[PPV] Fight Night"), rule) is True
        assert matches_rule(_stream(name="Fight Night [PPV]"), rule) is False

    def test_regex_is_case_sensitive_as_supplied(self):
        rule = _rule(FilterKind.EXCLUDE_NAME_REGEX, "News")
        assert matches_rule(_stream(name="news"), rule) is False
        rule = _rule(FilterKind.EXCLUDE_NAME_REGEX, "(?i)News")
        assert matches_rule(_stream(name="news"), rule) is True

    def test_stream_regex_targets_uri(self):
        rule = _rule(FilterKind.EXCLUDE_STREAM_REGEX, r"/movie/")
        assert matches_rule(_stream(name="/movie/", uri="http://x/live/1.ts"), rule) is False
        assert matches_rule(_stream(uri="http://x/movie/u/p/1.mp4"), rule) is True

    def test_group_regex_targets_group(self):
        rule = _rule(FilterKind.EXCLUDE_GROUP_REGEX, "^XXX")
        assert matches_rule(_stream(group="XXX Adult"), rule) is True
        assert matches_rule(_stream(group=None), rule) is False

    def test_invalid_regex_never_matches_and_logs(self, caplog):
        compile_pattern.cache_clear()
        rule = _rule(FilterKind.EXCLUDE_NAME_REGEX, "([unclosed")
        with caplog.at_level(logging.WARNING):
            assert matches_rule(_stream(name="([unclosed"), rule) is False
        assert "invalid filter pattern" in caplog.text.lower()

    def test_unknown_kind_never_matches_and_logs(self, caplog):
        rule = FilterRule(id=9, user_id=1, kind=42, pattern="News")
        with caplog.at_level(logging.WARNING):
            assert matches_rule(_stream(), rule) is False
        assert "unknown kind 42" in caplog.text

    def test_empty_pattern_never_matches(self):
        assert matches_rule(_stream(), _rule(FilterKind.EXCLUDE_NAME, "")) is False


class TestShouldInclude:

    def test_no_rules_includes(self):
        assert should_include(_stream(), []) is True

    def test_adult_channel_excluded_by_name(self):
        stream = _stream(name="Adult Channel", uri="http://x/1", group="XXX")
        rules = [_rule(FilterKind.EXCLUDE_NAME, "Adult")]
        assert should_include(stream, rules, should_filter=True) is False

    def test_should_filter_false_bypasses_everything(self):
        stream = _stream(name="Adult Channel", uri="http://x/1", group="XXX")
        rules = [
            _rule(FilterKind.INCLUDE_NAME_REGEX, "^Sports", rule_id=1),
            _rule(FilterKind.EXCLUDE_NAME, "Adult", rule_id=2),
            _rule(FilterKind.EXCLUDE_GROUP_REGEX, "XXX", rule_id=3),
        ]
        assert should_include(stream, rules, should_filter=False) is True

    def test_include_rules_act_as_allow_list(self):
        rules = [
            _rule(FilterKind.INCLUDE_NAME_REGEX, "^Sports", rule_id=1),
            _rule(FilterKind.INCLUDE_NAME_REGEX, "^News", rule_id=2),
        ]
        assert should_include(_stream(name="News 24"), rules) is True
        assert should_include(_stream(name="Sports 1"), rules) is True
        assert should_include(_stream(name="Movies"), rules) is False

    def test_exclude_wins_over_include(self):
        rules = [
            _rule(FilterKind.INCLUDE_NAME_REGEX, "^News", rule_id=1),
            _rule(FilterKind.EXCLUDE_GROUP_REGEX, "^Local", rule_id=2),
        ]
        assert should_include(_stream(name="News 24", group="Local"), rules) is False
        assert should_include(_stream(name="News 24", group="World"), rules) is True

    def test_inactive_rules_are_ignored(self):
        rules = [_rule(FilterKind.EXCLUDE_NAME, "News", active=False)]
        assert should_include(_stream(), rules) is True

    def test_invalid_include_regex_alone_excludes(self):
        # A bad include rule never matches, so the allow-list admits nothing.
        rules = [_rule(FilterKind.INCLUDE_NAME_REGEX, "(")]
        assert should_include(_stream(), rules) is False

    def test_invalid_exclude_regex_does_not_stop_other_rules(self):
        rules = [
            _rule(FilterKind.EXCLUDE_NAME_REGEX, "[", rule_id=1),
            _rule(FilterKind.EXCLUDE_NAME, "news", rule_id=2),
        ]
        assert should_include(_stream(name="News 24"), rules) is False
        assert should_include(_stream(name="Movies"), rules) is True

    @pytest.mark.parametrize("name", ["Adult", "News 24", "", "Sports"])
    def test_bypass_holds_for_any_rule_set(self, name):
        rules = [_rule(kind, ".*", rule_id=i) for i, kind in enumerate(FilterKind, start=1)]
        assert should_include(_stream(name=name), rules, should_filter=False) is True


class TestGroupRules:

    def test_drops_inactive_and_unknown(self):
        rules = [
            _rule(FilterKind.EXCLUDE_NAME, "a", rule_id=1),
            _rule(FilterKind.EXCLUDE_NAME, "b", active=False, rule_id=2),
            FilterRule(id=3, user_id=1, kind=7, pattern="c"),
        ]
        grouped = group_rules(rules)
        assert [r.id for r in grouped[FilterKind.EXCLUDE_NAME]] == [1]
        assert sum(len(v) for v in grouped.values()) == 1


class TestFilterStreams:

    def test_preserves_order_and_respects_provider_flag(self):
        providers = {1: _provider(1, should_filter=True), 2: _provider(2, should_filter=False)}
        streams = [
            _stream(id=1, name="Adult A", provider_id=1),
            _stream(id=2, name="News", provider_id=1),
            _stream(id=3, name="Adult B", provider_id=2),
            _stream(id=4, name="Adult C", provider_id=None),
        ]
        rules = [_rule(FilterKind.EXCLUDE_NAME, "adult")]
        kept = filter_streams(streams, rules, providers)
        assert [s.id for s in kept] == [2, 3]

    def test_empty_rules_keep_everything(self):
        providers = {1: _provider(1)}
        streams = [_stream(id=i, provider_id=1) for i in range(1, 4)]
        assert filter_streams(streams, [], providers) == streams


def test_is_valid_pattern():
    assert is_valid_pattern(r"^\d+$") is True
    assert is_valid_pattern("(") is False
