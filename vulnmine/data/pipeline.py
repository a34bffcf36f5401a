"""
Mining pipeline.

Commit records flow one way through:

    classify -> validate change -> match patterns -> score -> deduplicate
    -> split -> (optional) augment

Every rejection is a counted filtering outcome, not an exception. Only the
dedup store carries state across records, and it belongs to the run.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable

from vulnmine.config import Config
from vulnmine.data.augment import AugmentConfig, balance_split
from vulnmine.data.change import validate_change
from vulnmine.data.classify import classify_message
from vulnmine.data.dedup import DedupStore, content_hash
from vulnmine.data.patterns import analyze_pair
from vulnmine.data.schema import CandidateSample, Category, CommitRecord, DatasetRecord, FileDiff, ScoreSignals
from vulnmine.data.scoring import ScoreWeights, compute_score, is_strong_message, passes_threshold
from vulnmine.data.split import parse_split, stratified_split
from vulnmine.exceptions import ConfigError
from vulnmine.version import SPLIT_NAMES

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    confidence_threshold: float = 0.6
    min_change_chars: int = 50
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    dedupe_by_commit: bool = True
    split: tuple[float, float, float] = (0.7, 0.15, 0.15)
    seed: int = 1337
    augment: bool = False
    augment_splits: tuple[str, ...] = ("train",)
    augment_config: AugmentConfig = field(default_factory=AugmentConfig)

    @classmethod
    def from_config(cls, cfg: Config) -> "PipelineOptions":
        threshold = float(cfg.get("confidence_threshold", 0.6))
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"confidence_threshold must be within [0, 1], got {threshold}")
        min_change = int(cfg.get("min_change_chars", 50))
        if min_change < 0:
            raise ConfigError(f"min_change_chars must not be negative, got {min_change}")
        try:
            split = parse_split(str(cfg.get("split", "0.7,0.15,0.15")))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        augment_splits = tuple(cfg.get("augment_splits") or ("train",))
        unknown = [name for name in augment_splits if name not in SPLIT_NAMES]
        if unknown:
            raise ConfigError(f"Unknown split names in augment_splits: {', '.join(unknown)}")
        return cls(
            confidence_threshold=threshold,
            min_change_chars=min_change,
            dedupe_by_commit=bool(cfg.get("dedupe_by_commit", True)),
            split=split,
            seed=int(cfg.get("seed", 1337)),
            augment=bool(cfg.get("augment", False)),
            augment_splits=augment_splits,
        )


@dataclass
class PipelineAudit:
    """Counters for every filtering decision of a run."""

    commits_seen: int = 0
    commits_malformed: int = 0
    commits_unclassified: int = 0
    files_seen: int = 0
    files_malformed: int = 0
    rejected_identical: int = 0
    rejected_too_small: int = 0
    rejected_no_vulnerability_pattern: int = 0
    rejected_low_confidence: int = 0
    rejected_duplicate_content: int = 0
    rejected_duplicate_commit: int = 0
    accepted: int = 0
    augmented: int = 0
    accepted_by_category: dict[str, int] = field(default_factory=dict)

    def reject(self, reason: str) -> None:
        name = f"rejected_{reason}"
        setattr(self, name, getattr(self, name) + 1)

    @property
    def commits_classified(self) -> int:
        return self.commits_seen - self.commits_unclassified

    @property
    def passed_change(self) -> int:
        return self.files_seen - self.files_malformed - self.rejected_identical - self.rejected_too_small

    @property
    def passed_patterns(self) -> int:
        return self.passed_change - self.rejected_no_vulnerability_pattern

    @property
    def passed_confidence(self) -> int:
        return self.passed_patterns - self.rejected_low_confidence

    def stage_rates(self) -> dict[str, float | None]:
        def rate(numerator: int, denominator: int) -> float | None:
            return round(numerator / denominator, 4) if denominator else None

        return {
            "classification": rate(self.commits_classified, self.commits_seen),
            "change_validation": rate(self.passed_change, self.files_seen - self.files_malformed),
            "pattern_match": rate(self.passed_patterns, self.passed_change),
            "confidence": rate(self.passed_confidence, self.passed_patterns),
            "deduplication": rate(self.accepted, self.passed_confidence),
            "overall_files": rate(self.accepted, self.files_seen),
        }

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["commits_classified"] = self.commits_classified
        data["stage_rates"] = self.stage_rates()
        return data


@dataclass
class PipelineResult:
    samples: list[CandidateSample]
    splits: dict[str, list[CandidateSample]]
    audit: PipelineAudit
    options: PipelineOptions

    def all_samples(self) -> list[CandidateSample]:
        merged = [sample for name in SPLIT_NAMES for sample in self.splits[name]]
        return sorted(merged, key=lambda item: item.serial_no)


class MiningPipeline:
    def __init__(self, options: PipelineOptions | None = None, store: DedupStore | None = None) -> None:
        self.options = options or PipelineOptions()
        self.store = store if store is not None else DedupStore(dedupe_by_commit=self.options.dedupe_by_commit)
        self._next_serial = 1

    def _reject(self, audit: PipelineAudit, reason: str, record: CommitRecord, diff: FileDiff) -> None:
        audit.reject(reason)
        LOGGER.debug("Rejected %s@%s:%s (%s)", record.repo, record.hash[:10], diff.path, reason)

    def process_file(
        self,
        record: CommitRecord,
        diff: FileDiff,
        category: Category,
        strong_message: bool,
        audit: PipelineAudit,
    ) -> CandidateSample | None:
        audit.files_seen += 1
        if not diff.before.strip() or not diff.after.strip():
            audit.files_malformed += 1
            LOGGER.warning("Skipping %s@%s:%s: empty before/after blob", record.repo, record.hash[:10], diff.path)
            return None

        verdict = validate_change(diff.before, diff.after, self.options.min_change_chars)
        if not verdict.accepted:
            self._reject(audit, verdict.reason or "too_small", record, diff)
            return None

        match = analyze_pair(diff.before, diff.after, category)
        signals = ScoreSignals(
            real_change=True,
            vulnerability_pattern=match.has_vulnerability_indicator,
            fix_pattern=match.has_fix_indicator,
            strong_message=strong_message,
        )
        # The stored snippet must show the vulnerability it is labelled with.
        if not match.has_vulnerability_indicator:
            self._reject(audit, "no_vulnerability_pattern", record, diff)
            return None

        score = compute_score(signals, self.options.weights)
        if not passes_threshold(score, self.options.confidence_threshold):
            self._reject(audit, "low_confidence", record, diff)
            return None

        code_hash = content_hash(diff.before)
        duplicate = self.store.check_and_record(code_hash, record.hash)
        if duplicate:
            self._reject(audit, duplicate, record, diff)
            return None

        sample = CandidateSample(
            record=DatasetRecord(
                serial_no=self._next_serial,
                vulnerable_code=diff.before,
                vulnerability_type=category,
                repo=record.repo,
                commit=record.hash,
                commit_msg=record.message,
                original_file=Path(diff.path).name,
                confidence_score=score,
            ),
            signals=signals,
            content_hash=code_hash,
            source_path=diff.path,
            fixed_code=diff.after,
        )
        self._next_serial += 1
        audit.accepted += 1
        audit.accepted_by_category[category.value] = audit.accepted_by_category.get(category.value, 0) + 1
        return sample

    def mine(self, records: Iterable[CommitRecord], audit: PipelineAudit) -> list[CandidateSample]:
        samples: list[CandidateSample] = []
        for record in records:
            audit.commits_seen += 1
            category = classify_message(record.message)
            if category is None:
                audit.commits_unclassified += 1
                LOGGER.debug("No category for %s@%s", record.repo, record.hash[:10])
                continue
            strong = is_strong_message(record.message)
            for diff in record.files:
                sample = self.process_file(record, diff, category, strong, audit)
                if sample is not None:
                    samples.append(sample)
        return samples

    def run(self, records: Iterable[CommitRecord], malformed: int = 0) -> PipelineResult:
        """Mine, split and optionally augment. `malformed` counts records the source already dropped."""
        audit = PipelineAudit(commits_malformed=malformed)
        samples = self.mine(records, audit)
        splits = stratified_split(samples, self.options.split, self.options.seed)

        if self.options.augment:
            for name in self.options.augment_splits:
                variants = balance_split(
                    splits[name],
                    store=self.store,
                    next_serial=self._next_serial,
                    base_seed=self.options.seed,
                    config=self.options.augment_config,
                )
                self._next_serial += len(variants)
                audit.augmented += len(variants)
                splits[name].extend(variants)

        _log_summary(audit, splits)
        return PipelineResult(samples=samples, splits=splits, audit=audit, options=self.options)


def _log_summary(audit: PipelineAudit, splits: dict[str, list[CandidateSample]]) -> None:
    LOGGER.info(
        "Commits: %d seen, %d classified, %d malformed",
        audit.commits_seen,
        audit.commits_classified,
        audit.commits_malformed,
    )
    LOGGER.info(
        "Files: %d seen, %d malformed, %d identical, %d too small, %d without indicator, "
        "%d low confidence, %d duplicate content, %d duplicate commit",
        audit.files_seen,
        audit.files_malformed,
        audit.rejected_identical,
        audit.rejected_too_small,
        audit.rejected_no_vulnerability_pattern,
        audit.rejected_low_confidence,
        audit.rejected_duplicate_content,
        audit.rejected_duplicate_commit,
    )
    LOGGER.info(
        "Accepted %d samples (+%d augmented): %s",
        audit.accepted,
        audit.augmented,
        ", ".join(f"{name}={len(splits[name])}" for name in SPLIT_NAMES),
    )
