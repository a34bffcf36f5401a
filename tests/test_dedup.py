from vulnmine.data.dedup import DUPLICATE_COMMIT, DUPLICATE_CONTENT, DedupStore, content_hash

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


def test_content_hash_ignores_comments_and_layout() -> None:
    code = "int x = 1;\nreturn x;"
    assert content_hash(code) == content_hash("// counter\nint   x = 1;\n\n  return x;  /* done */")
    assert content_hash(code) != content_hash("int x = 2;\nreturn x;")


def test_first_seen_wins() -> None:
    store = DedupStore()
    code_hash = content_hash("int x = 1;")
    assert store.check_and_record(code_hash, COMMIT_A) is None
    assert store.check_and_record(code_hash, COMMIT_B) == DUPLICATE_CONTENT
    assert len(store) == 1


def test_commit_dedup_can_be_disabled() -> None:
    first = content_hash("int x = 1;")
    second = content_hash("int y = 2;")

    store = DedupStore()
    assert store.check_and_record(first, COMMIT_A) is None
    assert store.check_and_record(second, COMMIT_A) == DUPLICATE_COMMIT

    store = DedupStore(dedupe_by_commit=False)
    assert store.check_and_record(first, COMMIT_A) is None
    assert store.check_and_record(second, COMMIT_A) is None
    assert len(store) == 2


def test_rejected_sample_does_not_record() -> None:
    store = DedupStore()
    first = content_hash("int x = 1;")
    store.check_and_record(first, COMMIT_A)
    assert store.check_and_record(first, COMMIT_B) == DUPLICATE_CONTENT
    assert COMMIT_B not in store.commit_hashes


def test_record_content() -> None:
    store = DedupStore()
    code_hash = content_hash("int x = 1;")
    assert store.record_content(code_hash)
    assert not store.record_content(code_hash)
    assert store.check(code_hash, COMMIT_A) == DUPLICATE_CONTENT
