from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from vulnmine.data.schema import Category
from vulnmine.data.sources import GitCommitSource, JsonCommitSource, iter_repositories, materialize
from vulnmine.exceptions import CommitSourceError

GOOD = {
    "repo": "apache/tomcat",
    "hash": "0123456789abcdef0123456789abcdef01234567",
    "message": "Fix XSS in manager",
    "files": [{"path": "Manager.java", "before": "a", "after": "b"}],
}


def test_json_array_and_object(tmp_path: Path) -> None:
    bad = dict(GOOD, hash="not-a-hash")
    path = tmp_path / "commits.json"
    path.write_text(json.dumps([GOOD, bad]), encoding="utf-8")

    source = JsonCommitSource(path)
    records = list(source)
    assert [record.hash for record in records] == [GOOD["hash"]]
    assert records[0].files[0].path == "Manager.java"
    assert source.malformed == 1

    path.write_text(json.dumps({"commits": [GOOD]}), encoding="utf-8")
    assert len(list(JsonCommitSource(path))) == 1


def test_jsonl_skips_broken_lines(tmp_path: Path) -> None:
    path = tmp_path / "commits.jsonl"
    path.write_text(json.dumps(GOOD) + "\n{broken\n\n" + json.dumps(dict(GOOD, repo="")) + "\n", encoding="utf-8")

    source = JsonCommitSource(path)
    assert len(list(source)) == 1
    assert source.malformed == 2


def test_unreadable_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "commits.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CommitSourceError):
        list(JsonCommitSource(path))
    with pytest.raises(CommitSourceError):
        list(JsonCommitSource(tmp_path / "missing.json"))


def test_iter_repositories(tmp_path: Path) -> None:
    for name in ("zeta", "alpha", "plain"):
        (tmp_path / name).mkdir()
    (tmp_path / "zeta" / ".git").mkdir()
    (tmp_path / "alpha" / ".git").mkdir()

    assert [path.name for path in iter_repositories(tmp_path)] == ["alpha", "zeta"]
    with pytest.raises(CommitSourceError):
        iter_repositories(tmp_path / "nope")


def test_git_source_rejects_plain_directory(tmp_path: Path) -> None:
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    with pytest.raises(CommitSourceError):
        list(GitCommitSource(tmp_path))


def _git(repo: Path, *args: str) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=repo,
        check=True,
        capture_output=True,
    )


def test_git_source_reads_modified_files(tmp_path: Path, java_fixes) -> None:
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    message, before, after, _ = java_fixes[Category.XSS]
    repo = tmp_path / "webapp"
    java_file = repo / "src" / "GreetingServlet.java"
    java_file.parent.mkdir(parents=True)
    _git(tmp_path, "init", "-q", str(repo))

    java_file.write_text(before, encoding="utf-8")
    (repo / "README.md").write_text("demo\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "Initial import")

    java_file.write_text(after, encoding="utf-8")
    (repo / "README.md").write_text("demo app\n", encoding="utf-8")
    (repo / "src" / "New.java").write_text("class New {}\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", message)

    source = GitCommitSource(repo)
    records = materialize([source])

    assert [record.message for record in records] == ["Initial import", message]
    assert records[0].files == ()
    assert records[1].repo == "webapp"
    assert len(records[1].files) == 1
    diff = records[1].files[0]
    assert diff.path == "src/GreetingServlet.java"
    assert diff.before == before
    assert diff.after == after
    assert source.malformed == 0

    assert len(list(GitCommitSource(repo, max_commits=1))) == 1
