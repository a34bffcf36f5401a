"""Exceptions raised by the mining pipeline.

Rejections (no category, no real change, low confidence, duplicates) are
filtering outcomes and never raise. Exceptions are reserved for input that
cannot be processed at all.
"""

from __future__ import annotations

from typing import Any


class VulnMineError(Exception):
    """Base exception for vulnmine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(VulnMineError):
    """Invalid configuration value."""


class CommitSourceError(VulnMineError):
    """The commit source could not be read at all. Fatal for the run."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            message=f"Cannot read commit source {source}: {reason}",
            details={"source": source, "reason": reason},
        )


class MalformedRecordError(VulnMineError):
    """A single commit record is unusable. The record is skipped."""

    def __init__(self, commit: str, reason: str):
        super().__init__(
            message=f"Malformed commit record {commit}: {reason}",
            details={"commit": commit, "reason": reason},
        )


class DatasetFormatError(VulnMineError):
    """A persisted split or statistics file does not follow the dataset format."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Invalid dataset file {path}: {reason}",
            details={"path": path, "reason": reason},
        )
