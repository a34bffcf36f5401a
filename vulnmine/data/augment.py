"""
Deterministic, label-preserving augmentation for Java snippets.

Transforms:
1. Consistent renaming of one local identifier to a fresh name
2. Comment insertion/removal
3. Whitespace and brace-style reformatting

Every variant is re-checked with the pattern matcher. A variant whose
vulnerability-indicator hits differ from its source is discarded, as is one
whose normalized content already exists in the dataset.
"""

from __future__ import annotations

import bisect
import hashlib
import logging
import random
import re
from collections import defaultdict
from dataclasses import dataclass, field

from vulnmine.data.dedup import DedupStore, content_hash
from vulnmine.data.patterns import match_patterns
from vulnmine.data.schema import CandidateSample, Category, DatasetRecord

LOGGER = logging.getLogger(__name__)

_PROTECTED_RE = re.compile(
    r"^[ \t]*(?:import|package)\b[^\n]*|"  # import and package lines
    r'"""[\s\S]*?"""|'  # text block
    r'"(?:[^"\\\n]|\\.)*"|'  # string literal
    r"'(?:[^'\\\n]|\\.)*'|"  # char literal
    r"//[^\n]*|"  # line comment
    r"/\*[\s\S]*?\*/",  # block comment
    re.MULTILINE,
)
_COMMENT_RE = re.compile(r'"(?:[^"\\\n]|\\.)*"|' r"'(?:[^'\\\n]|\\.)*'|" r"//[^\n]*|" r"/\*[\s\S]*?\*/")
_IDENTIFIER_RE = re.compile(r"\b([a-z_][A-Za-z0-9_]*)\b")
_BLOCK_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<code>\S.*?)[ \t]*\{[ \t]*$")
_LEADING_SPACES_RE = re.compile(r"^((?:    )+)", re.MULTILINE)

JAVA_KEYWORDS = frozenset([
    "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char",
    "class", "const", "continue", "default", "do", "double", "else", "enum",
    "extends", "final", "finally", "float", "for", "goto", "if", "implements",
    "import", "instanceof", "int", "interface", "long", "native", "new",
    "package", "private", "protected", "public", "return", "short", "static",
    "strictfp", "super", "switch", "synchronized", "this", "throw", "throws",
    "transient", "try", "void", "volatile", "while", "var", "record", "yield",
    "sealed", "permits", "true", "false", "null",
])

_COMMENT_VARIANTS = (
    "// reviewed",
    "// keep in sync with caller",
    "/* see below */",
    "// note: legacy path",
)


@dataclass
class AugmentConfig:
    """Configuration for augmentation."""

    enable_rename: bool = True
    rename_probability: float = 1.0

    enable_comment: bool = True
    comment_probability: float = 0.5

    enable_whitespace: bool = True
    whitespace_probability: float = 0.5

    # Upper bound on variants tried per source sample when balancing
    max_variants_per_sample: int = 5


@dataclass
class AugmentResult:
    """Result of augmentation."""

    original: str
    augmented: str
    transformations: list[str] = field(default_factory=list)
    seed: int = 0


def _stable_seed(text: str, sample_id: str, aug_index: int, base_seed: int) -> int:
    """Generate a deterministic seed from text, sample_id, aug_index, and base_seed."""
    payload = f"{base_seed}:{sample_id}:{aug_index}:{text[:100]}"
    hash_val = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return int(hash_val[:8], 16)


def _protected_spans(text: str) -> list[tuple[int, int]]:
    return [(match.start(), match.end()) for match in _PROTECTED_RE.finditer(text)]


def _is_protected(pos: int, spans: list[tuple[int, int]]) -> bool:
    # spans are sorted and non-overlapping
    index = bisect.bisect_right(spans, (pos, float("inf"))) - 1
    return index >= 0 and spans[index][0] <= pos < spans[index][1]


def _neighbour(text: str, pos: int, step: int) -> str:
    """First non-whitespace character from `pos` walking by `step`."""
    while 0 <= pos < len(text) and text[pos].isspace():
        pos += step
    return text[pos] if 0 <= pos < len(text) else ""


_TYPE_KEYWORDS = frozenset(["boolean", "byte", "char", "double", "float", "int", "long", "short", "var"])


def _follows_type(text: str, pos: int) -> bool:
    """True when the token before `pos` can be the type of a declaration."""
    index = pos - 1
    while index >= 0 and text[index].isspace():
        index -= 1
    if index < 0:
        return False
    # List<String> names, byte[] data; but not `a > b` or `x -> x`
    if text[index] == "]":
        return True
    if text[index] == ">":
        return index > 0 and not text[index - 1].isspace() and text[index - 1] not in "-="
    end = index + 1
    while index >= 0 and (text[index].isalnum() or text[index] == "_"):
        index -= 1
    word = text[index + 1 : end]
    return bool(word) and (word[0].isupper() or word in _TYPE_KEYWORDS)


def _rename_candidates(text: str, spans: list[tuple[int, int]]) -> list[str]:
    counts: dict[str, int] = defaultdict(int)
    excluded: set[str] = set()
    declared: set[str] = set()
    for match in _IDENTIFIER_RE.finditer(text):
        ident = match.group(1)
        if _is_protected(match.start(), spans):
            continue
        if ident in JAVA_KEYWORDS or len(ident) < 2:
            excluded.add(ident)
            continue
        # member access, method names and annotations stay untouched
        if _neighbour(text, match.start() - 1, -1) in (".", "@", ":") or _neighbour(text, match.end(), 1) == "(":
            excluded.add(ident)
            continue
        counts[ident] += 1
        if _follows_type(text, match.start()):
            declared.add(ident)
    # declared in the snippet and used at least once more
    return sorted(
        ident for ident, count in counts.items() if count >= 2 and ident in declared and ident not in excluded
    )


def _fresh_name(ident: str, text: str, rng: random.Random) -> str:
    stems = ("value", "item", "arg", "tmp", "ref")
    stem = rng.choice(stems)
    index = 1
    while True:
        candidate = f"{stem}{index}"
        if candidate != ident and not re.search(rf"\b{candidate}\b", text):
            return candidate
        index += 1


def rename_identifier(
    text: str,
    rng: random.Random,
    probability: float = 1.0,
) -> tuple[str, bool]:
    """
    Consistently rename one local identifier outside literals and comments.

    Only identifiers declared in the snippet (preceded by a type somewhere)
    are renamed. Keywords, upper-case names, names after a `.` and names
    called as methods anywhere in the snippet are never renamed.
    Returns (new_text, was_modified).
    """
    if rng.random() > probability:
        return text, False

    spans = _protected_spans(text)
    candidates = _rename_candidates(text, spans)
    if not candidates:
        return text, False

    target = rng.choice(candidates)
    replacement = _fresh_name(target, text, rng)

    def replace_ident(match: re.Match[str]) -> str:
        if match.group(1) != target or _is_protected(match.start(), spans):
            return match.group(0)
        return replacement

    new_text = _IDENTIFIER_RE.sub(replace_ident, text)
    return new_text, new_text != text


def toggle_comments(
    text: str,
    rng: random.Random,
    probability: float = 0.5,
) -> tuple[str, bool]:
    """
    Remove existing comments, or insert a neutral comment line.

    Removal is chosen only when the snippet has comments (50% chance).
    """
    if rng.random() > probability or '"""' in text:
        return text, False

    has_comments = any(m.group(0).startswith(("//", "/*")) for m in _COMMENT_RE.finditer(text))
    if has_comments and rng.random() < 0.5:
        def drop(match: re.Match[str]) -> str:
            token = match.group(0)
            return "" if token.startswith(("//", "/*")) else token

        stripped = _COMMENT_RE.sub(drop, text)
        # Clean up any resulting empty lines
        lines = [line.rstrip() for line in stripped.split("\n") if line.strip()]
        new_text = "\n".join(lines)
        return new_text, new_text != text

    lines = text.split("\n")
    spans = _protected_spans(text)
    offsets: list[int] = []
    offset = 0
    for line in lines:
        offsets.append(offset)
        offset += len(line) + 1
    # never start a comment inside a block comment or a multi-line literal
    positions = [i for i, start in enumerate(offsets) if not _is_protected(start, spans)]
    if not positions:
        return text, False
    insert_pos = rng.choice(positions)
    anchor = lines[insert_pos]
    indent = anchor[: len(anchor) - len(anchor.lstrip())]
    lines.insert(insert_pos, indent + rng.choice(_COMMENT_VARIANTS))
    return "\n".join(lines), True


def reformat_braces(
    text: str,
    rng: random.Random,
    probability: float = 0.5,
) -> tuple[str, bool]:
    """
    Reformat layout without touching tokens.

    Either moves end-of-line opening braces onto their own line (Allman
    style) or re-indents four-space indentation as two spaces.
    """
    if rng.random() > probability or '"""' in text:
        return text, False

    if rng.random() < 0.5:
        new_lines: list[str] = []
        for line in text.split("\n"):
            match = _BLOCK_OPEN_RE.match(line)
            if match and "//" not in line and not match.group("code").endswith(("{", "=", ",")):
                new_lines.append(f"{match.group('indent')}{match.group('code')}")
                new_lines.append(f"{match.group('indent')}{{")
            else:
                new_lines.append(line)
        new_text = "\n".join(new_lines)
    else:
        new_text = _LEADING_SPACES_RE.sub(lambda m: "  " * (len(m.group(1)) // 4), text)
    return new_text, new_text != text


def augment_text(
    text: str,
    sample_id: str,
    aug_index: int = 0,
    base_seed: int = 1337,
    config: AugmentConfig | None = None,
) -> AugmentResult:
    """
    Apply deterministic augmentations to a snippet.

    Args:
        text: The input code
        sample_id: Unique identifier for this sample
        aug_index: Index of this augmentation (for generating K variants)
        base_seed: Base random seed for determinism
        config: Augmentation configuration

    Returns:
        AugmentResult with original, augmented text, and applied transformations
    """
    if config is None:
        config = AugmentConfig()

    seed = _stable_seed(text, sample_id, aug_index, base_seed)
    rng = random.Random(seed)

    result = text
    transformations: list[str] = []

    if config.enable_rename:
        result, modified = rename_identifier(result, rng, probability=config.rename_probability)
        if modified:
            transformations.append("rename")

    if config.enable_comment:
        result, modified = toggle_comments(result, rng, probability=config.comment_probability)
        if modified:
            transformations.append("comment")

    if config.enable_whitespace:
        result, modified = reformat_braces(result, rng, probability=config.whitespace_probability)
        if modified:
            transformations.append("whitespace")

    return AugmentResult(
        original=text,
        augmented=result,
        transformations=transformations,
        seed=seed,
    )


def preserves_indicators(original: str, augmented: str, category: Category) -> bool:
    return match_patterns(original, category) == match_patterns(augmented, category)


def augment_sample(
    sample: CandidateSample,
    serial_no: int,
    store: DedupStore,
    aug_index: int = 0,
    base_seed: int = 1337,
    config: AugmentConfig | None = None,
) -> CandidateSample | None:
    """Build one variant of `sample`, or None if it breaks an invariant."""
    sample_id = f"{sample.record.commit}:{sample.serial_no}"
    result = augment_text(sample.code, sample_id, aug_index=aug_index, base_seed=base_seed, config=config)
    if result.augmented == sample.code:
        return None
    if not preserves_indicators(sample.code, result.augmented, sample.category):
        LOGGER.debug(
            "Discarding variant %d of sample %d: indicator hits changed (%s)",
            aug_index,
            sample.serial_no,
            ",".join(result.transformations),
        )
        return None
    variant_hash = content_hash(result.augmented)
    if not store.record_content(variant_hash):
        return None

    data = sample.record.model_dump()
    data.update(serial_no=serial_no, vulnerable_code=result.augmented)
    return CandidateSample(
        record=DatasetRecord.model_validate(data),
        signals=sample.signals,
        content_hash=variant_hash,
        source_path=sample.source_path,
        fixed_code=sample.fixed_code,
        augmented_from=sample.serial_no,
    )


def balance_split(
    samples: list[CandidateSample],
    store: DedupStore,
    next_serial: int,
    base_seed: int = 1337,
    config: AugmentConfig | None = None,
    target: int | None = None,
) -> list[CandidateSample]:
    """Generate variants so every category present reaches `target` samples.

    `target` defaults to the size of the largest category. Returns only the
    new variants, numbered from `next_serial`.
    """
    config = config or AugmentConfig()
    by_category: dict[Category, list[CandidateSample]] = defaultdict(list)
    for sample in samples:
        by_category[sample.category].append(sample)
    if not by_category:
        return []
    target = target if target is not None else max(len(items) for items in by_category.values())

    variants: list[CandidateSample] = []
    for category in Category:
        members = sorted(by_category.get(category, []), key=lambda item: item.serial_no)
        if not members:
            continue
        needed = target - len(members)
        budget = len(members) * config.max_variants_per_sample
        attempt = 0
        while needed > 0 and attempt < budget:
            source = members[attempt % len(members)]
            aug_index = attempt // len(members)
            attempt += 1
            variant = augment_sample(
                source,
                serial_no=next_serial,
                store=store,
                aug_index=aug_index,
                base_seed=base_seed,
                config=config,
            )
            if variant is None:
                continue
            variants.append(variant)
            next_serial += 1
            needed -= 1
        if needed > 0:
            LOGGER.info("Could not fully balance %s: %d variants short", category.value, needed)
    return variants
