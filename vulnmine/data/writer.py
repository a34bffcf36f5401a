from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from vulnmine.data.schema import CandidateSample, DatasetRecord
from vulnmine.exceptions import DatasetFormatError
from vulnmine.version import SPLIT_NAMES, STATISTICS_FILENAME

LOGGER = logging.getLogger(__name__)


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def atomic_write_text(path: Path, text: str) -> None:
    """Write to a temp file in the target directory, then rename over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def split_path(out_dir: Path, name: str) -> Path:
    return out_dir / f"{name}.json"


def write_split(path: Path, samples: Sequence[CandidateSample]) -> None:
    ordered = sorted(samples, key=lambda item: item.serial_no)
    atomic_write_text(path, dump_json([sample.record.to_json_dict() for sample in ordered]))


def write_dataset(
    out_dir: Path,
    splits: Mapping[str, Sequence[CandidateSample]],
    statistics: dict[str, Any],
) -> dict[str, Path]:
    written: dict[str, Path] = {}
    for name in SPLIT_NAMES:
        path = split_path(out_dir, name)
        write_split(path, splits.get(name, []))
        written[name] = path
    stats_path = out_dir / STATISTICS_FILENAME
    atomic_write_text(stats_path, dump_json(statistics))
    written["statistics"] = stats_path
    LOGGER.info("Wrote dataset to %s", out_dir)
    return written


def load_split(path: Path) -> list[DatasetRecord]:
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetFormatError(str(path), f"invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise DatasetFormatError(str(path), "expected a JSON array")
    records: list[DatasetRecord] = []
    for index, item in enumerate(data):
        try:
            records.append(DatasetRecord.model_validate(item))
        except ValidationError as exc:
            raise DatasetFormatError(str(path), f"element {index}: {exc.errors()[0]['msg']}") from exc
    return records


def load_statistics(out_dir: Path) -> dict[str, Any]:
    path = out_dir / STATISTICS_FILENAME
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetFormatError(str(path), f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DatasetFormatError(str(path), "expected a JSON object")
    return data
