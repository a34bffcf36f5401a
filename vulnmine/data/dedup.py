from __future__ import annotations

import threading
from dataclasses import dataclass, field
from hashlib import sha256

from vulnmine.data.change import normalize_code

DUPLICATE_CONTENT = "duplicate_content"
DUPLICATE_COMMIT = "duplicate_commit"


def content_hash(code: str) -> str:
    """SHA-256 of the normalized code; insensitive to comments and whitespace layout."""
    return sha256(normalize_code(code).encode("utf-8")).hexdigest()


@dataclass
class DedupStore:
    """Seen content and commit hashes for one pipeline run.

    First seen wins, so the result depends on the order records are fed in.
    All mutation goes through `check_and_record`, which holds a lock.
    """

    dedupe_by_commit: bool = True
    content_hashes: set[str] = field(default_factory=set)
    commit_hashes: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def check(self, code_hash: str, commit: str) -> str | None:
        if code_hash in self.content_hashes:
            return DUPLICATE_CONTENT
        if self.dedupe_by_commit and commit in self.commit_hashes:
            return DUPLICATE_COMMIT
        return None

    def check_and_record(self, code_hash: str, commit: str) -> str | None:
        """Return the rejection reason, or record both hashes and return None."""
        with self._lock:
            reason = self.check(code_hash, commit)
            if reason is None:
                self.content_hashes.add(code_hash)
                self.commit_hashes.add(commit)
            return reason

    def record_content(self, code_hash: str) -> bool:
        """Record a content hash only. False if it was already present."""
        with self._lock:
            if code_hash in self.content_hashes:
                return False
            self.content_hashes.add(code_hash)
            return True

    def __len__(self) -> int:
        return len(self.content_hashes)
