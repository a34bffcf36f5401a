from __future__ import annotations

import re
from dataclasses import dataclass

from vulnmine.data.schema import ScoreSignals

DEFAULT_THRESHOLD = 0.6

# "bug: 41970", "issue #12", "fixes #7", "CVE-2021-44228", "LANG-1234"
_REFERENCE_RES = (
    re.compile(r"\b(?:bug|issue|ticket|defect|fix(?:es|ed)?|close[sd]?|resolve[sd]?)\s*[:#]?\s*#?\d+\b", re.IGNORECASE),
    re.compile(r"\bCVE-\d{4}-\d{4,}\b", re.IGNORECASE),
    # encodings and digests look like tracker keys
    re.compile(r"\b(?!(?:UTF|SHA|ISO|MD|AES|RSA|X)-)[A-Z][A-Z0-9]+-\d+\b"),
)

SECURITY_KEYWORDS = (
    "security",
    "vulnerab",
    "exploit",
    "injection",
    "xss",
    "csrf",
    "sanitiz",
    "escap",
    "malicious",
    "attack",
    "unsafe",
    "insecure",
    "cve",
    "cwe",
)

ISSUE_TRACKER_DOMAINS = (
    "bz.apache.org",
    "issues.apache.org",
    "bugzilla",
    "jira.",
    "atlassian.net",
    "github.com/",
    "gitlab.com/",
    "cve.mitre.org",
    "nvd.nist.gov",
    "securityfocus.com",
)


@dataclass(frozen=True)
class ScoreWeights:
    real_change: float = 0.3
    vulnerability_pattern: float = 0.3
    fix_pattern: float = 0.2
    strong_message: float = 0.2


def has_reference(message: str) -> bool:
    return any(regex.search(message) for regex in _REFERENCE_RES)


def has_security_keyword(message: str) -> bool:
    folded = message.casefold()
    return any(keyword in folded for keyword in SECURITY_KEYWORDS)


def has_tracker_domain(message: str) -> bool:
    folded = message.casefold()
    return any(domain in folded for domain in ISSUE_TRACKER_DOMAINS)


def is_strong_message(message: str) -> bool:
    return has_reference(message) or has_security_keyword(message) or has_tracker_domain(message)


def compute_score(signals: ScoreSignals, weights: ScoreWeights | None = None) -> float:
    """Weighted sum of the four boolean signals.

    Each term is either its full weight or zero. Rounded to two decimals so
    0.3 + 0.3 + 0.2 compares equal to 0.8.
    """
    weights = weights or ScoreWeights()
    total = 0.0
    if signals.real_change:
        total += weights.real_change
    if signals.vulnerability_pattern:
        total += weights.vulnerability_pattern
    if signals.fix_pattern:
        total += weights.fix_pattern
    if signals.strong_message:
        total += weights.strong_message
    return round(total, 2)


def passes_threshold(score: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
    return score >= threshold
