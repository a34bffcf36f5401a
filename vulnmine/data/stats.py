"""Dataset statistics, always derived from the accepted samples themselves."""

from __future__ import annotations

from collections import Counter
from typing import Any, Mapping, Sequence

from vulnmine.data.schema import ALLOWED_SCORES, CandidateSample, Category, DatasetRecord
from vulnmine.version import SPLIT_NAMES


def summarize_records(splits: Mapping[str, Sequence[DatasetRecord]]) -> dict[str, Any]:
    """Counts that can be recomputed from the split files alone."""
    categories: dict[str, dict[str, int]] = {
        category.value: {name: 0 for name in SPLIT_NAMES} for category in Category
    }
    scores: Counter[str] = Counter({f"{score:.1f}": 0 for score in ALLOWED_SCORES})
    repositories: Counter[str] = Counter()
    for name in SPLIT_NAMES:
        for record in splits.get(name, []):
            categories[record.vulnerability_type.value][name] += 1
            scores[f"{record.confidence_score:.1f}"] += 1
            repositories[record.repo] += 1
    for counts in categories.values():
        counts["total"] = sum(counts[name] for name in SPLIT_NAMES)

    return {
        "total_samples": sum(len(splits.get(name, [])) for name in SPLIT_NAMES),
        "splits": {name: len(splits.get(name, [])) for name in SPLIT_NAMES},
        "categories": categories,
        "confidence_scores": dict(sorted(scores.items())),
        "repositories": dict(sorted(repositories.items())),
    }


def build_statistics(
    splits: Mapping[str, Sequence[CandidateSample]],
    audit: Any | None = None,
    dedupe_by_commit: bool = True,
) -> dict[str, Any]:
    records = {name: [sample.record for sample in splits.get(name, [])] for name in SPLIT_NAMES}
    augmented = sorted(
        sample.serial_no for name in SPLIT_NAMES for sample in splits.get(name, []) if sample.augmented_from is not None
    )
    stats = summarize_records(records)
    stats["mined_samples"] = stats["total_samples"] - len(augmented)
    stats["augmented_samples"] = len(augmented)
    # variants share their source's commit; the validator exempts only these
    stats["augmented_serials"] = augmented
    stats["dedupe_by_commit"] = dedupe_by_commit
    if audit is not None:
        stats["pipeline"] = audit.to_dict()
    return stats
