from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

COMMIT_HASH_PATTERN = r"^[0-9a-f]{40}$"
ALLOWED_SCORES = (0.6, 0.8, 1.0)


class Category(str, Enum):
    """Vulnerability categories. Declaration order is classification priority."""

    SQL_INJECTION = "SQL Injection"
    XSS = "Cross-Site Scripting (XSS)"
    COMMAND_INJECTION = "Command Injection"
    PATH_TRAVERSAL = "Path Traversal"
    INSECURE_DESERIALIZATION = "Insecure Deserialization"


class FileDiff(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(min_length=1)
    before: str
    after: str


class CommitRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    repo: str = Field(min_length=1)
    hash: str = Field(pattern=COMMIT_HASH_PATTERN)
    message: str
    files: tuple[FileDiff, ...] = ()


class ScoreSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    real_change: bool
    vulnerability_pattern: bool
    fix_pattern: bool
    strong_message: bool


class DatasetRecord(BaseModel):
    """One element of a persisted split file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    serial_no: int = Field(gt=0)
    vulnerable_code: str
    vulnerability_type: Category
    repo: str
    commit: str = Field(pattern=COMMIT_HASH_PATTERN)
    commit_msg: str
    original_file: str
    confidence_score: float

    @field_validator("confidence_score")
    @classmethod
    def _quantized_score(cls, value: float) -> float:
        if not any(abs(value - allowed) < 1e-9 for allowed in ALLOWED_SCORES):
            raise ValueError(f"confidence_score must be one of {ALLOWED_SCORES}, got {value}")
        return value

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class CandidateSample:
    """An accepted sample plus the signals it was scored from."""

    record: DatasetRecord
    signals: ScoreSignals
    content_hash: str
    source_path: str
    fixed_code: str = ""
    augmented_from: int | None = None

    @property
    def serial_no(self) -> int:
        return self.record.serial_no

    @property
    def category(self) -> Category:
        return self.record.vulnerability_type

    @property
    def code(self) -> str:
        return self.record.vulnerable_code


def export_schema_json(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    schema = DatasetRecord.model_json_schema()
    path.write_text(json.dumps(schema, indent=2, sort_keys=True), encoding="utf-8")
