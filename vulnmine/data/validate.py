from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from vulnmine.data.dedup import content_hash
from vulnmine.data.patterns import has_vulnerability_indicator
from vulnmine.data.schema import DatasetRecord
from vulnmine.data.stats import summarize_records
from vulnmine.data.writer import load_split, load_statistics, split_path
from vulnmine.exceptions import DatasetFormatError
from vulnmine.version import SPLIT_NAMES

LOGGER = logging.getLogger(__name__)

_DERIVED_KEYS = ("total_samples", "splits", "categories", "confidence_scores", "repositories")


@dataclass
class ValidationReport:
    counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, message: str) -> None:
        LOGGER.warning("%s", message)
        self.errors.append(message)


def _check_records(
    splits: dict[str, list[DatasetRecord]],
    report: ValidationReport,
    check_commits: bool,
    augmented: frozenset[int] = frozenset(),
) -> None:
    serials: Counter[int] = Counter()
    hashes: dict[str, str] = {}
    commits: dict[str, str] = {}
    for name in SPLIT_NAMES:
        for record in splits[name]:
            where = f"{name}#{record.serial_no}"
            serials[record.serial_no] += 1
            if not has_vulnerability_indicator(record.vulnerable_code, record.vulnerability_type):
                report.add(f"{where}: no {record.vulnerability_type.value} indicator in vulnerable_code")
            code_hash = content_hash(record.vulnerable_code)
            if code_hash in hashes:
                report.add(f"{where}: duplicate content of {hashes[code_hash]}")
            else:
                hashes[code_hash] = where
            if check_commits and record.serial_no not in augmented:
                if record.commit in commits:
                    report.add(f"{where}: duplicate commit {record.commit} (also {commits[record.commit]})")
                else:
                    commits[record.commit] = where
    for serial, count in sorted(serials.items()):
        if count > 1:
            report.add(f"serial_no {serial} appears in {count} records")


def validate_dataset(out_dir: Path) -> ValidationReport:
    """Check split files and statistics in `out_dir` against the dataset invariants."""
    report = ValidationReport()
    splits: dict[str, list[DatasetRecord]] = {}
    for name in SPLIT_NAMES:
        try:
            splits[name] = load_split(split_path(out_dir, name))
        except (FileNotFoundError, DatasetFormatError) as exc:
            report.add(f"{name}: {exc}")
            splits[name] = []
        report.counts[name] = len(splits[name])

    try:
        statistics = load_statistics(out_dir)
    except (FileNotFoundError, DatasetFormatError) as exc:
        report.add(f"statistics: {exc}")
        statistics = {}

    augmented = frozenset(statistics.get("augmented_serials", []))
    if len(augmented) != statistics.get("augmented_samples", 0):
        report.add("statistics: 'augmented_serials' does not match 'augmented_samples'")
    check_commits = bool(statistics.get("dedupe_by_commit", True))
    _check_records(splits, report, check_commits, augmented)

    if statistics:
        derived = summarize_records(splits)
        for key in _DERIVED_KEYS:
            if statistics.get(key) != derived[key]:
                report.add(f"statistics: '{key}' does not match split files")
    return report
