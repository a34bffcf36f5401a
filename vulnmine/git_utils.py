from __future__ import annotations

import subprocess
from pathlib import Path

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


def _run(cmd: list[str], check: bool = True) -> str:
    try:
        return subprocess.check_output(cmd, text=True, encoding="utf-8", stderr=subprocess.DEVNULL).strip()
    except subprocess.CalledProcessError:
        if check:
            raise
        return ""


def _run_bytes(cmd: list[str]) -> bytes:
    return subprocess.check_output(cmd, stderr=subprocess.DEVNULL)


def is_git_repo(repo_path: Path) -> bool:
    try:
        return _run(["git", "-C", str(repo_path), "rev-parse", "--is-inside-work-tree"], check=False) == "true"
    except FileNotFoundError:
        return False


def iter_log(repo_path: Path, max_commits: int | None = None) -> list[tuple[str, str]]:
    """(hash, message) pairs, oldest first, merge commits excluded."""
    output = _run(
        [
            "git",
            "-C",
            str(repo_path),
            "log",
            "--reverse",
            "--no-merges",
            f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}",
        ]
    )
    commits: list[tuple[str, str]] = []
    for entry in output.split(_RECORD_SEP):
        entry = entry.strip("\n")
        if not entry:
            continue
        commit, _, message = entry.partition(_FIELD_SEP)
        commits.append((commit.strip(), message.strip()))
        if max_commits and len(commits) >= max_commits:
            break
    return commits


def get_modified_files(repo_path: Path, commit: str) -> list[str]:
    """Files modified (not added or deleted) by `commit` relative to its first parent."""
    output = _run(
        [
            "git",
            "-C",
            str(repo_path),
            "diff-tree",
            "--no-commit-id",
            "--name-only",
            "-r",
            "--diff-filter=M",
            commit,
        ],
        check=False,
    )
    if not output:
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


def get_file_blob(repo_path: Path, rev: str, file_path: str) -> bytes:
    """Raw content of `file_path` at `rev`."""
    return _run_bytes(["git", "-C", str(repo_path), "show", f"{rev}:{file_path}"])
