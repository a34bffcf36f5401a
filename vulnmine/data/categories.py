"""
Rule table for the five vulnerability categories.

Each category owns:
- commit-message keyword phrases (case-folded substring match)
- vulnerability-indicator patterns, matched against the pre-fix code
- fix-indicator patterns, matched against the post-fix code

Rules are kept in declaration order. Adding or tuning a category only touches
this table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from vulnmine.data.schema import Category

VULNERABILITY = "vulnerability"
FIX = "fix"


@dataclass(frozen=True)
class PatternRule:
    """A regex-based indicator rule."""

    rule_id: str
    name: str
    pattern: re.Pattern[str]
    kind: str
    cwe: str


@dataclass(frozen=True)
class CategoryRules:
    category: Category
    keywords: tuple[str, ...]
    vulnerability_rules: tuple[PatternRule, ...]
    fix_rules: tuple[PatternRule, ...]

    def rules_for(self, kind: str) -> tuple[PatternRule, ...]:
        if kind == VULNERABILITY:
            return self.vulnerability_rules
        if kind == FIX:
            return self.fix_rules
        raise ValueError(f"Unknown rule kind: {kind}")


def _rule(rule_id: str, name: str, pattern: str, kind: str, cwe: str, flags: int = 0) -> PatternRule:
    return PatternRule(
        rule_id=rule_id,
        name=name,
        pattern=re.compile(pattern, flags),
        kind=kind,
        cwe=cwe,
    )


SQL_INJECTION_RULES = CategoryRules(
    category=Category.SQL_INJECTION,
    keywords=(
        "sql injection",
        "sqli",
        "sql",
        "prepared statement",
        "preparedstatement",
        "query injection",
        "hql",
    ),
    vulnerability_rules=(
        _rule(
            "SQLI-V-001",
            "Statement.execute call",
            r"\bStatement\s*\.\s*execute\w*\s*\(",
            VULNERABILITY,
            "CWE-89",
        ),
        _rule(
            "SQLI-V-002",
            "Concatenated string passed to execute",
            r"\.\s*(?:execute|executeQuery|executeUpdate|executeLargeUpdate|addBatch)\s*\(\s*\"[^\"]*\"\s*\+",
            VULNERABILITY,
            "CWE-89",
        ),
        _rule(
            "SQLI-V-003",
            "SQL literal concatenated with a value",
            r"\"\s*(?:SELECT|INSERT|UPDATE|DELETE|MERGE)\b[^\"]*\"\s*\+",
            VULNERABILITY,
            "CWE-89",
            re.IGNORECASE,
        ),
        _rule(
            "SQLI-V-004",
            "createStatement call",
            r"\bcreateStatement\s*\(",
            VULNERABILITY,
            "CWE-89",
        ),
        _rule(
            "SQLI-V-005",
            "Concatenated JPA/Hibernate query",
            r"\bcreate(?:Native)?Query\s*\(\s*\"[^\"]*\"\s*\+",
            VULNERABILITY,
            "CWE-89",
        ),
    ),
    fix_rules=(
        _rule("SQLI-F-001", "PreparedStatement type", r"\bPreparedStatement\b", FIX, "CWE-89"),
        _rule("SQLI-F-002", "prepareStatement call", r"\bprepare(?:Statement|Call)\s*\(", FIX, "CWE-89"),
        _rule(
            "SQLI-F-003",
            "Positional parameter binding",
            r"\.\s*set(?:String|Int|Long|Object|Date|Timestamp|Boolean)\s*\(\s*\d+\s*,",
            FIX,
            "CWE-89",
        ),
        _rule(
            "SQLI-F-004",
            "Named parameter binding",
            r"\.\s*setParameter\s*\(",
            FIX,
            "CWE-89",
        ),
    ),
)

XSS_RULES = CategoryRules(
    category=Category.XSS,
    keywords=(
        "xss",
        "cross-site scripting",
        "cross site scripting",
        "escape html",
        "html escape",
        "html-escape",
        "htmlescape",
        "encode output",
        "output encoding",
        "script injection",
    ),
    vulnerability_rules=(
        _rule(
            "XSS-V-001",
            "Direct write to response writer",
            r"\.\s*getWriter\s*\(\s*\)\s*\.\s*(?:print|println|write|append)\s*\(",
            VULNERABILITY,
            "CWE-79",
        ),
        _rule(
            "XSS-V-002",
            "Request parameter echoed in JSP expression",
            r"<%=\s*request\s*\.\s*get(?:Parameter|Header|QueryString)\s*\(",
            VULNERABILITY,
            "CWE-79",
        ),
        _rule(
            "XSS-V-003",
            "HTML literal concatenated with a value",
            r"\"[^\"]*<[a-zA-Z/][^\"]*\"\s*\+",
            VULNERABILITY,
            "CWE-79",
        ),
        _rule(
            "XSS-V-004",
            "Unescaped innerHTML assignment",
            r"\.\s*innerHTML\s*=",
            VULNERABILITY,
            "CWE-79",
        ),
        _rule(
            "XSS-V-005",
            "Escaping disabled in template tag",
            r"escape(?:Xml)?\s*=\s*\"false\"",
            VULNERABILITY,
            "CWE-79",
        ),
    ),
    fix_rules=(
        _rule(
            "XSS-F-001",
            "HTML escaping utility",
            r"\b(?:escapeHtml[34]?|htmlEscape|escapeXml1[01]?|escapeEcmaScript)\s*\(",
            FIX,
            "CWE-79",
        ),
        _rule(
            "XSS-F-002",
            "OWASP encoder",
            r"\b(?:Encode\s*\.\s*for\w+|ESAPI\s*\.\s*encoder\s*\(\s*\))",
            FIX,
            "CWE-79",
        ),
        _rule("XSS-F-003", "Sanitizer call", r"\bsanitiz\w*\s*\(", FIX, "CWE-79", re.IGNORECASE),
        _rule(
            "XSS-F-004",
            "Content-Security-Policy header",
            r"Content-Security-Policy",
            FIX,
            "CWE-79",
        ),
    ),
)

COMMAND_INJECTION_RULES = CategoryRules(
    category=Category.COMMAND_INJECTION,
    keywords=(
        "command injection",
        "os command",
        "shell injection",
        "runtime.exec",
        "runtime exec",
        "processbuilder",
        "remote code execution",
    ),
    vulnerability_rules=(
        _rule(
            "CMDI-V-001",
            "Runtime.exec call",
            r"\bRuntime\s*\.\s*getRuntime\s*\(\s*\)\s*\.\s*exec\s*\(",
            VULNERABILITY,
            "CWE-78",
        ),
        _rule(
            "CMDI-V-002",
            "Concatenated command passed to exec",
            r"\.\s*exec\s*\(\s*\"[^\"]*\"\s*\+",
            VULNERABILITY,
            "CWE-78",
        ),
        _rule(
            "CMDI-V-003",
            "ProcessBuilder construction",
            r"\bnew\s+ProcessBuilder\s*\(",
            VULNERABILITY,
            "CWE-78",
        ),
        _rule(
            "CMDI-V-004",
            "Shell interpreter invocation",
            r"\"(?:/bin/)?(?:sh|bash|cmd(?:\.exe)?)\"\s*,\s*\"(?:-c|/c)\"",
            VULNERABILITY,
            "CWE-78",
        ),
    ),
    fix_rules=(
        _rule(
            "CMDI-F-001",
            "Argument list instead of command string",
            r"\bProcessBuilder\s*\(\s*(?:Arrays\s*\.\s*asList|List\s*\.\s*of)\s*\(",
            FIX,
            "CWE-78",
        ),
        _rule("CMDI-F-002", "String array command", r"\bnew\s+String\s*\[\s*\]\s*\{", FIX, "CWE-78"),
        _rule(
            "CMDI-F-003",
            "Input validation against an allow list",
            r"\b(?:validate|whitelist|allowlist|isAllowed)\w*\s*\(",
            FIX,
            "CWE-78",
            re.IGNORECASE,
        ),
        _rule("CMDI-F-004", "Shell argument escaping", r"\bescape\w*(?:Shell|Arg)\w*\s*\(", FIX, "CWE-78"),
    ),
)

PATH_TRAVERSAL_RULES = CategoryRules(
    category=Category.PATH_TRAVERSAL,
    keywords=(
        "path traversal",
        "directory traversal",
        "path manipulation",
        "zip slip",
        "zipslip",
        "../",
        "..\\",
        "canonical path",
    ),
    vulnerability_rules=(
        _rule(
            "PATH-V-001",
            "File built from concatenated path",
            r"\bnew\s+File\s*\([^;)]*\+",
            VULNERABILITY,
            "CWE-22",
        ),
        _rule(
            "PATH-V-002",
            "Path resolved from concatenated string",
            r"\b(?:Paths\s*\.\s*get|Path\s*\.\s*of)\s*\([^;)]*\+",
            VULNERABILITY,
            "CWE-22",
        ),
        _rule(
            "PATH-V-003",
            "Stream opened on a request-derived name",
            r"\bnew\s+File(?:Input|Output)Stream\s*\([^;]*get(?:Parameter|Name|OriginalFilename)\s*\(",
            VULNERABILITY,
            "CWE-22",
        ),
        _rule(
            "PATH-V-004",
            "Archive entry name used as a path",
            r"\b(?:ZipEntry|JarEntry|TarArchiveEntry)\b[\s\S]*?\.\s*getName\s*\(\s*\)",
            VULNERABILITY,
            "CWE-22",
        ),
    ),
    fix_rules=(
        _rule("PATH-F-001", "Canonical path resolution", r"\bgetCanonical(?:Path|File)\s*\(", FIX, "CWE-22"),
        _rule("PATH-F-002", "Path normalization", r"\.\s*normalize\s*\(\s*\)", FIX, "CWE-22"),
        _rule("PATH-F-003", "Base directory containment check", r"\.\s*startsWith\s*\(", FIX, "CWE-22"),
        _rule(
            "PATH-F-004",
            "FilenameUtils sanitizing",
            r"\bFilenameUtils\s*\.\s*(?:normalize|getName)\s*\(",
            FIX,
            "CWE-22",
        ),
        _rule("PATH-F-005", "Explicit parent reference check", r"\"\.\.(?:/|\\\\)?\"", FIX, "CWE-22"),
    ),
)

INSECURE_DESERIALIZATION_RULES = CategoryRules(
    category=Category.INSECURE_DESERIALIZATION,
    keywords=(
        "deserialization",
        "deserialisation",
        "deserialize",
        "unserialize",
        "objectinputstream",
        "readobject",
        "gadget",
        "xstream",
        "default typing",
    ),
    vulnerability_rules=(
        _rule(
            "DESER-V-001",
            "ObjectInputStream construction",
            r"\bnew\s+ObjectInputStream\s*\(",
            VULNERABILITY,
            "CWE-502",
        ),
        _rule("DESER-V-002", "readObject call", r"\.\s*readObject\s*\(\s*\)", VULNERABILITY, "CWE-502"),
        _rule("DESER-V-003", "XMLDecoder usage", r"\bnew\s+XMLDecoder\s*\(", VULNERABILITY, "CWE-502"),
        _rule("DESER-V-004", "XStream construction", r"\bnew\s+XStream\s*\(", VULNERABILITY, "CWE-502"),
        _rule(
            "DESER-V-005",
            "Jackson default typing",
            r"\b(?:enableDefaultTyping|activateDefaultTyping)\s*\(",
            VULNERABILITY,
            "CWE-502",
        ),
        _rule(
            "DESER-V-006",
            "SnakeYAML unrestricted constructor",
            r"\bnew\s+Yaml\s*\(\s*\)",
            VULNERABILITY,
            "CWE-502",
        ),
    ),
    fix_rules=(
        _rule(
            "DESER-F-001",
            "Validating object stream",
            r"\bValidatingObjectInputStream\b",
            FIX,
            "CWE-502",
        ),
        _rule("DESER-F-002", "resolveClass override", r"\bresolveClass\s*\(", FIX, "CWE-502"),
        _rule(
            "DESER-F-003",
            "Serialization filter",
            r"\b(?:ObjectInputFilter|setObjectInputFilter)\b",
            FIX,
            "CWE-502",
        ),
        _rule(
            "DESER-F-004",
            "XStream type allow list",
            r"\.\s*(?:allowTypes\w*|addPermission|setupDefaultSecurity)\s*\(",
            FIX,
            "CWE-502",
        ),
        _rule("DESER-F-005", "SafeConstructor", r"\bSafeConstructor\b", FIX, "CWE-502"),
        _rule("DESER-F-006", "Class allow list check", r"\.\s*accept\s*\(\s*\w+\s*\.\s*class", FIX, "CWE-502"),
    ),
)

RULE_TABLE: dict[Category, CategoryRules] = {
    rules.category: rules
    for rules in (
        SQL_INJECTION_RULES,
        XSS_RULES,
        COMMAND_INJECTION_RULES,
        PATH_TRAVERSAL_RULES,
        INSECURE_DESERIALIZATION_RULES,
    )
}


def get_rules(category: Category) -> CategoryRules:
    return RULE_TABLE[category]


def all_rules() -> list[PatternRule]:
    """Every rule in the table, in category then declaration order."""
    rules: list[PatternRule] = []
    for category in Category:
        entry = RULE_TABLE[category]
        rules.extend(entry.vulnerability_rules)
        rules.extend(entry.fix_rules)
    return rules
