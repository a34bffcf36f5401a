"""
Pattern matcher for vulnerability and fix indicators.

A category flag is a disjunction over its rules: one matching rule is enough,
and more matches do not raise the score. The matcher does not know whether a
hit means "vulnerable" or "fixed"; that comes from which side of the change
(before or after) it is applied to.
"""

from __future__ import annotations

from dataclasses import dataclass

from vulnmine.data.categories import FIX, RULE_TABLE, VULNERABILITY, PatternRule
from vulnmine.data.schema import Category


@dataclass(frozen=True)
class PatternMatch:
    category: Category
    vulnerability_hits: tuple[str, ...]
    fix_hits: tuple[str, ...]

    @property
    def has_vulnerability_indicator(self) -> bool:
        return bool(self.vulnerability_hits)

    @property
    def has_fix_indicator(self) -> bool:
        return bool(self.fix_hits)


def matching_rules(code: str, category: Category, kind: str) -> list[PatternRule]:
    rules = RULE_TABLE[category].rules_for(kind)
    return [rule for rule in rules if rule.pattern.search(code)]


def match_patterns(code: str, category: Category, kind: str = VULNERABILITY) -> tuple[str, ...]:
    """Rule ids of `kind` for `category` that match `code`, in rule order."""
    return tuple(rule.rule_id for rule in matching_rules(code, category, kind))


def has_vulnerability_indicator(code: str, category: Category) -> bool:
    return any(rule.pattern.search(code) for rule in RULE_TABLE[category].vulnerability_rules)


def has_fix_indicator(code: str, category: Category) -> bool:
    return any(rule.pattern.search(code) for rule in RULE_TABLE[category].fix_rules)


def analyze_pair(before: str, after: str, category: Category) -> PatternMatch:
    return PatternMatch(
        category=category,
        vulnerability_hits=match_patterns(before, category, VULNERABILITY),
        fix_hits=match_patterns(after, category, FIX),
    )
