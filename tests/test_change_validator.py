from vulnmine.data.change import normalize_code, strip_comments, validate_change


def test_comments_are_stripped_outside_literals() -> None:
    code = 'String url = "http://example.org/*path*/"; // remote\n/* block */ int x = 1;'
    stripped = strip_comments(code)
    assert '"http://example.org/*path*/"' in stripped
    assert "remote" not in stripped
    assert "block" not in stripped


def test_text_block_keeps_comment_markers() -> None:
    code = 'String query = """\n    GET http://example.org/items // not a comment\n    """; // trailing\n'
    normalized = normalize_code(code)
    assert "http://example.org/items // not a comment" in normalized
    assert "trailing" not in normalized


def test_normalize_collapses_whitespace() -> None:
    assert normalize_code("int  a =\n\t1;\n\n") == "int a = 1;"


def test_whitespace_only_change_is_identical() -> None:
    before = "public class A {\n    int x = 1;\n}\n"
    after = "public class A\n{\n\n        int x = 1;   // counter\n}\n"
    verdict = validate_change(before, after)
    assert not verdict.accepted
    assert verdict.reason == "identical"
    assert verdict.delta == 0


def test_small_change_is_rejected() -> None:
    before = "int total = compute(a, b);"
    after = "int total = compute(a, b, c);"
    verdict = validate_change(before, after)
    assert not verdict.accepted
    assert verdict.reason == "too_small"
    assert verdict.delta == 3


def test_equal_length_rewrite_is_rejected() -> None:
    verdict = validate_change("int alpha = 1;", "int gamma = 2;")
    assert verdict.reason == "too_small"


def test_substantial_change_is_accepted(java_fixes) -> None:
    for _, before, after, _ in java_fixes.values():
        verdict = validate_change(before, after)
        assert verdict.accepted
        assert verdict.reason is None
        assert verdict.delta >= 50


def test_threshold_is_inclusive() -> None:
    before = "x();"
    after = "x();" + "y" * 50
    assert validate_change(before, after, min_delta=50).accepted
    assert not validate_change(before, after, min_delta=51).accepted
