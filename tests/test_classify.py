from vulnmine.data.classify import classify_message, matching_keywords
from vulnmine.data.schema import Category


def test_keyword_per_category() -> None:
    assert classify_message("Use prepared statements for user lookup") == Category.SQL_INJECTION
    assert classify_message("Escape HTML in comment preview") == Category.XSS
    assert classify_message("Avoid OS command built from request") == Category.COMMAND_INJECTION
    assert classify_message("Reject ../ in upload names") == Category.PATH_TRAVERSAL
    assert classify_message("Harden ObjectInputStream usage") == Category.INSECURE_DESERIALIZATION


def test_classification_is_case_insensitive() -> None:
    assert classify_message("FIX PATH TRAVERSAL IN EXPORT") == Category.PATH_TRAVERSAL


def test_substring_match_counts() -> None:
    # "sql" inside "sqlite" is enough
    assert classify_message("bug: 41970 convert all x IN (y) clauses to x = y for sqlite perf") == Category.SQL_INJECTION


def test_first_category_wins_on_overlap() -> None:
    message = "Fix XSS and SQL injection in search page"
    assert classify_message(message) == Category.SQL_INJECTION
    assert matching_keywords(message, Category.XSS) == ["xss"]


def test_unrelated_message_has_no_category() -> None:
    assert classify_message("Update README and bump version") is None
    assert classify_message("") is None
