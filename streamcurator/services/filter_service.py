"""Filter service — pure include/exclude decisions for playlist export.

Rule precedence for a provider that opts into filtering:

  1. Include Name (regex): when any such rule exists, the stream name must
     match at least one of them.
  2. Exclude Name: case-insensitive substring of the name.
  3. Exclude Name (regex): matched against the name.
  4. Exclude Stream (regex): matched against the stream URI.
  5. Exclude Group (regex): matched against the tvg group.

Anything that survives all five gates is included.  A pattern that fails to
compile never matches; an unknown rule kind never matches.  Both are logged.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable, Mapping, Optional, Sequence

from streamcurator.models.stream import FilterKind, FilterRule, Provider, Stream

logger = logging.getLogger(__name__)

_REGEX_TARGETS = {
    FilterKind.EXCLUDE_NAME_REGEX: "name",
    FilterKind.EXCLUDE_STREAM_REGEX: "uri",
    FilterKind.EXCLUDE_GROUP_REGEX: "tvg_group",
}


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> Optional[re.Pattern]:
    """Compile a user-supplied regex verbatim; ``None`` when it is invalid."""
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning(f"Ignoring invalid filter pattern {pattern!r}: {e}")
        return None


def is_valid_pattern(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return True


def _regex_matches(pattern: str, value: Optional[str]) -> bool:
    if not value:
        return False
    compiled = compile_pattern(pattern)
    if compiled is None:
        return False
    return compiled.search(value) is not None


def _rule_kind(rule: FilterRule) -> Optional[FilterKind]:
    try:
        return FilterKind(rule.kind)
    except ValueError:
        logger.warning(f"Filter rule {rule.id} has unknown kind {rule.kind}; treating as non-matching")
        return None


def matches_rule(stream: Stream, rule: FilterRule) -> bool:
    """Check whether a single rule matches the stream field it targets."""
    kind = _rule_kind(rule)
    if kind is None or not rule.pattern:
        return False

    if kind == FilterKind.INCLUDE_NAME_REGEX:
        return _regex_matches(rule.pattern, stream.name)
    if kind == FilterKind.EXCLUDE_NAME:
        return rule.pattern.lower() in (stream.name or "").lower()

    return _regex_matches(rule.pattern, getattr(stream, _REGEX_TARGETS[kind]))


def group_rules(rules: Iterable[FilterRule]) -> dict[FilterKind, list[FilterRule]]:
    """Bucket active rules by kind, dropping inactive and unknown ones."""
    grouped: dict[FilterKind, list[FilterRule]] = {kind: [] for kind in FilterKind}
    for rule in rules:
        if not rule.active:
            continue
        kind = _rule_kind(rule)
        if kind is not None:
            grouped[kind].append(rule)
    return grouped


def should_include(stream: Stream, rules: Sequence[FilterRule], should_filter: bool = True) -> bool:
    """Decide whether *stream* belongs in an export.

    Providers with ``should_filter`` off bypass every rule.
    """
    if not should_filter:
        return True
    return _include_grouped(stream, group_rules(rules))


def _include_grouped(stream: Stream, grouped: Mapping[FilterKind, list[FilterRule]]) -> bool:
    # Include gate: if include rules exist the name must match one.
    include_rules = grouped.get(FilterKind.INCLUDE_NAME_REGEX, [])
    if include_rules and not any(matches_rule(stream, r) for r in include_rules):
        return False

    # Exclude gates, in precedence order.
    for kind in (
        FilterKind.EXCLUDE_NAME,
        FilterKind.EXCLUDE_NAME_REGEX,
        FilterKind.EXCLUDE_STREAM_REGEX,
        FilterKind.EXCLUDE_GROUP_REGEX,
    ):
        for rule in grouped.get(kind, []):
            if matches_rule(stream, rule):
                return False

    return True


def filter_streams(
    streams: Iterable[Stream],
    rules: Sequence[FilterRule],
    providers: Mapping[int, Provider],
) -> list[Stream]:
    """Apply the filter rules to an ordered stream sequence, preserving order.

    Streams without a provider (or whose provider is not in *providers*)
    are filtered, matching the provider default.
    """
    grouped = group_rules(rules)
    kept: list[Stream] = []
    excluded = 0
    for stream in streams:
        provider = providers.get(stream.provider_id) if stream.provider_id is not None else None
        if provider is not None and not provider.should_filter:
            kept.append(stream)
            continue
        if _include_grouped(stream, grouped):
            kept.append(stream)
        else:
            excluded += 1
    if excluded:
        logger.debug(f"Filter excluded {excluded} stream(s), kept {len(kept)}")
    return kept
