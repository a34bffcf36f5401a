"""
Commit sources.

Iteration order is part of the output contract: repositories are visited in
sorted name order, commits oldest first, files in the order git reports them.
Deduplication keeps the first sample it sees, so a different order gives a
different dataset.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Iterable, Iterator

from pydantic import ValidationError

from vulnmine.exceptions import CommitSourceError, MalformedRecordError
from vulnmine.git_utils import get_file_blob, get_modified_files, is_git_repo, iter_log
from vulnmine.data.schema import CommitRecord, FileDiff

LOGGER = logging.getLogger(__name__)

SKIP_DIRS = {
    ".git",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
}


class GitCommitSource:
    """Commits of one local git repository."""

    def __init__(
        self,
        repo_path: Path,
        repo_name: str | None = None,
        extensions: Iterable[str] = (".java",),
        max_commits: int | None = None,
    ) -> None:
        self.repo_path = repo_path
        self.repo_name = repo_name or repo_path.name
        self.extensions = tuple(extensions)
        self.max_commits = max_commits
        self.malformed = 0

    @property
    def name(self) -> str:
        return str(self.repo_path)

    def _decode(self, commit: str, rev: str, file_path: str) -> str:
        try:
            blob = get_file_blob(self.repo_path, rev, file_path)
        except subprocess.CalledProcessError as exc:
            raise MalformedRecordError(commit, f"missing blob {rev}:{file_path}") from exc
        try:
            return blob.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedRecordError(commit, f"{file_path} is not valid UTF-8") from exc

    def _file_diffs(self, commit: str) -> list[FileDiff]:
        diffs: list[FileDiff] = []
        for file_path in get_modified_files(self.repo_path, commit):
            if not file_path.endswith(self.extensions):
                continue
            try:
                before = self._decode(commit, f"{commit}^", file_path)
                after = self._decode(commit, commit, file_path)
            except MalformedRecordError as exc:
                self.malformed += 1
                LOGGER.warning("Skipping %s in %s: %s", file_path, self.repo_name, exc.details["reason"])
                continue
            diffs.append(FileDiff(path=file_path, before=before, after=after))
        return diffs

    def __iter__(self) -> Iterator[CommitRecord]:
        if not is_git_repo(self.repo_path):
            raise CommitSourceError(self.name, "not a git repository")
        try:
            log = iter_log(self.repo_path, self.max_commits)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise CommitSourceError(self.name, str(exc)) from exc

        for commit, message in log:
            files = self._file_diffs(commit)
            try:
                yield CommitRecord(repo=self.repo_name, hash=commit, message=message, files=tuple(files))
            except ValidationError as exc:
                self.malformed += 1
                LOGGER.warning("Skipping commit %s in %s: %s", commit, self.repo_name, exc)


class JsonCommitSource:
    """Commit records exported as a JSON array or as JSON lines.

    Each record: {"repo", "hash", "message", "files": [{"path", "before", "after"}]}.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.malformed = 0

    @property
    def name(self) -> str:
        return str(self.path)

    def _rows(self) -> list[Any]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CommitSourceError(self.name, str(exc)) from exc

        if self.path.suffix == ".jsonl":
            rows: list[Any] = []
            for lineno, line in enumerate(content.splitlines(), start=1):
                if not line.strip():
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError as exc:
                    self.malformed += 1
                    LOGGER.warning("Skipping line %d of %s: %s", lineno, self.path, exc)
            return rows

        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise CommitSourceError(self.name, f"invalid JSON: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("commits")
        if not isinstance(data, list):
            raise CommitSourceError(self.name, "expected a list of commit records")
        return data

    def __iter__(self) -> Iterator[CommitRecord]:
        for index, row in enumerate(self._rows()):
            try:
                yield CommitRecord.model_validate(row)
            except ValidationError as exc:
                self.malformed += 1
                commit = row.get("hash", f"#{index}") if isinstance(row, dict) else f"#{index}"
                LOGGER.warning("Skipping malformed record %s in %s: %s", commit, self.path, exc.errors()[0]["msg"])


def iter_repositories(repos_dir: Path) -> list[Path]:
    """Git repositories directly under `repos_dir`, sorted by name."""
    if not repos_dir.is_dir():
        raise CommitSourceError(str(repos_dir), "directory not found")
    return sorted(
        (path for path in repos_dir.iterdir() if path.is_dir() and path.name not in SKIP_DIRS and (path / ".git").exists()),
        key=lambda path: path.name,
    )


def materialize(sources: Iterable[Iterable[CommitRecord]]) -> list[CommitRecord]:
    """Read every source up front, preserving source order."""
    records: list[CommitRecord] = []
    for source in sources:
        source_records = list(source)
        LOGGER.info("Read %d commits from %s", len(source_records), getattr(source, "name", source))
        records.extend(source_records)
    return records
