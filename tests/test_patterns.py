from vulnmine.data.categories import FIX, VULNERABILITY, all_rules, get_rules
from vulnmine.data.patterns import analyze_pair, has_fix_indicator, has_vulnerability_indicator, match_patterns
from vulnmine.data.schema import Category


def test_every_category_has_rules() -> None:
    for category in Category:
        rules = get_rules(category)
        assert rules.keywords
        assert rules.rules_for(VULNERABILITY)
        assert rules.rules_for(FIX)


def test_rule_ids_are_unique() -> None:
    ids = [rule.rule_id for rule in all_rules()]
    assert len(ids) == len(set(ids))


def test_sql_vulnerability_hits_in_rule_order(java_fixes) -> None:
    _, before, _, _ = java_fixes[Category.SQL_INJECTION]
    assert match_patterns(before, Category.SQL_INJECTION) == ("SQLI-V-002", "SQLI-V-003", "SQLI-V-004")


def test_fixture_pairs_show_expected_indicators(java_fixes) -> None:
    for category, (_, before, after, score) in java_fixes.items():
        match = analyze_pair(before, after, category)
        assert match.has_vulnerability_indicator, category
        # the SQL fixture batches the statement instead of binding parameters
        expected_fix = category != Category.SQL_INJECTION
        assert match.has_fix_indicator == expected_fix, category


def test_prepared_statement_is_a_fix_indicator() -> None:
    code = 'PreparedStatement ps = conn.prepareStatement("SELECT * FROM t WHERE id = ?");\nps.setLong(1, id);'
    assert match_patterns(code, Category.SQL_INJECTION, FIX) == ("SQLI-F-001", "SQLI-F-002", "SQLI-F-003")
    assert not has_vulnerability_indicator(code, Category.SQL_INJECTION)


def test_indicators_are_category_specific(java_fixes) -> None:
    _, before, _, _ = java_fixes[Category.INSECURE_DESERIALIZATION]
    assert has_vulnerability_indicator(before, Category.INSECURE_DESERIALIZATION)
    assert not has_vulnerability_indicator(before, Category.XSS)
    assert not has_fix_indicator(before, Category.INSECURE_DESERIALIZATION)


def test_jsp_expression_echo() -> None:
    code = '<div>Welcome <%= request.getParameter("user") %></div>'
    assert match_patterns(code, Category.XSS) == ("XSS-V-002",)
