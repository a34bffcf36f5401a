"""
Stratified train/val/test splitting.

Rounding rule: inside each category every split first receives
floor(n * ratio) samples. The leftover samples are handed out one at a time
to the split whose running total lags furthest behind its global target
(cumulative samples so far * ratio). Ties go to the later split
(test, then val, then train). Categories are processed in declaration order.
Five categories of 450 samples at 70/15/15 give 1575/337/338.
"""

from __future__ import annotations

import math
from collections import defaultdict
from fractions import Fraction
from hashlib import sha256
from typing import Sequence

from vulnmine.data.schema import CandidateSample, Category
from vulnmine.version import SPLIT_NAMES


def parse_split(split: str) -> tuple[float, float, float]:
    parts = [p.strip() for p in split.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError("Split must have three comma-separated values, e.g. 0.7,0.15,0.15")
    values = [float(p) for p in parts]
    if any(v < 0 for v in values):
        raise ValueError("Split ratios must not be negative")
    total = sum(values)
    if total <= 0:
        raise ValueError("Split ratios must be positive")
    if abs(total - 1.0) > 0.01:
        values = [v / total for v in values]
    return values[0], values[1], values[2]


def _exact_ratios(split: Sequence[float]) -> dict[str, Fraction]:
    fractions = [Fraction(value).limit_denominator(10_000) for value in split]
    total = sum(fractions)
    return {name: value / total for name, value in zip(SPLIT_NAMES, fractions)}


def order_key(sample: CandidateSample, seed: int) -> str:
    raw = f"{seed}:{sample.record.commit}:{sample.content_hash}"
    return sha256(raw.encode("utf-8")).hexdigest()


def allocate_counts(
    n: int,
    ratios: dict[str, Fraction],
    assigned: dict[str, int],
    cumulative: int,
) -> dict[str, int]:
    """Per-split counts for one category of size `n` (see module docstring)."""
    counts = {name: math.floor(n * ratios[name]) for name in SPLIT_NAMES}
    leftover = n - sum(counts.values())
    for _ in range(leftover):

        def deficit(name: str) -> Fraction:
            return cumulative * ratios[name] - (assigned[name] + counts[name])

        # max() keeps the first maximum; iterating in reverse lets the later split win ties.
        best = max(reversed(SPLIT_NAMES), key=deficit)
        counts[best] += 1
    return counts


def stratified_split(
    samples: list[CandidateSample],
    split: Sequence[float],
    seed: int,
) -> dict[str, list[CandidateSample]]:
    ratios = _exact_ratios(split)
    by_category: dict[Category, list[CandidateSample]] = defaultdict(list)
    for sample in samples:
        by_category[sample.category].append(sample)

    buckets: dict[str, list[CandidateSample]] = {name: [] for name in SPLIT_NAMES}
    assigned = {name: 0 for name in SPLIT_NAMES}
    cumulative = 0
    for category in Category:
        members = sorted(by_category.get(category, []), key=lambda item: order_key(item, seed))
        if not members:
            continue
        cumulative += len(members)
        counts = allocate_counts(len(members), ratios, assigned, cumulative)
        start = 0
        for name in SPLIT_NAMES:
            end = start + counts[name]
            buckets[name].extend(members[start:end])
            assigned[name] += counts[name]
            start = end

    for name in SPLIT_NAMES:
        buckets[name].sort(key=lambda item: item.serial_no)
    return buckets
