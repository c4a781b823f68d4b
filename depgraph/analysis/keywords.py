"""Keyword extraction and dependency pattern matching.

Task text is reduced to a set of keywords, which is then matched against an
ordered table of software-delivery patterns ("api work depends on database
work"). The table is a priority list: the first pattern that matches wins,
even when a later one would match more keywords.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "this", "that", "these", "those", "it", "its", "which", "who", "whom",
    "what", "when", "where", "why", "how", "all", "each", "every", "both",
    "few", "more", "most", "other", "some", "such", "no", "nor", "not",
    "only", "own", "same", "so", "than", "too", "very",
})

MIN_KEYWORD_LENGTH = 3


@dataclass(frozen=True)
class DependencyPattern:
    """A category of work and the categories it usually waits on."""

    name: str
    keywords: tuple[str, ...]
    depends_on: tuple[str, ...]
    confidence: float


@dataclass(frozen=True)
class KeywordMatch:
    """Outcome of comparing two keyword sets."""

    likely: bool
    confidence: float
    reason: str


# Priority order matters: find_matching_pattern returns the first hit.
DEPENDENCY_PATTERNS: tuple[DependencyPattern, ...] = (
    DependencyPattern(
        name="setup",
        keywords=("setup", "infrastructure", "init", "configure", "scaffold"),
        depends_on=(),
        confidence=0.9,
    ),
    DependencyPattern(
        name="database",
        keywords=("database", "schema", "model", "migration", "db"),
        depends_on=("setup", "infrastructure"),
        confidence=0.85,
    ),
    DependencyPattern(
        name="api",
        keywords=("api", "endpoint", "route", "controller", "service", "backend"),
        depends_on=("database", "schema", "model"),
        confidence=0.8,
    ),
    DependencyPattern(
        name="ui",
        keywords=("ui", "frontend", "component", "page", "view", "interface"),
        depends_on=("api", "endpoint"),
        confidence=0.75,
    ),
    DependencyPattern(
        name="integration",
        keywords=("integration", "connect", "wire", "link"),
        depends_on=("api", "ui", "frontend", "backend"),
        confidence=0.7,
    ),
    DependencyPattern(
        name="testing",
        keywords=("test", "testing", "unit", "integration", "e2e", "spec"),
        depends_on=("implement", "create", "build"),
        confidence=0.85,
    ),
    DependencyPattern(
        name="documentation",
        keywords=("document", "docs", "readme", "documentation"),
        depends_on=("implement", "create", "test"),
        confidence=0.7,
    ),
    DependencyPattern(
        name="deployment",
        keywords=("deploy", "release", "publish", "ship"),
        depends_on=("test", "testing", "documentation"),
        confidence=0.9,
    ),
)


def extract_keywords(text: Optional[str]) -> set[str]:
    """Extract meaningful keywords from free text.

    Args:
        text: Task title, description or both

    Returns:
        Lower-case keywords longer than two characters, stop words removed
    """
    if not text:
        return set()

    normalized = _NON_ALNUM.sub(" ", text.lower())
    return {
        word
        for word in normalized.split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    }


def keywords_overlap(a: str, b: str) -> bool:
    """Bidirectional substring test ("endpoints" matches "endpoint")."""
    return a in b or b in a


def _matches_any(term: str, keywords: Iterable[str]) -> bool:
    return any(keywords_overlap(keyword, term) for keyword in keywords)


def find_matching_pattern(keywords: Iterable[str]) -> Optional[DependencyPattern]:
    """Find the first pattern whose trigger keywords match.

    Args:
        keywords: Keywords of a single task

    Returns:
        First matching pattern in priority order, or None
    """
    keywords = list(keywords)
    for pattern in DEPENDENCY_PATTERNS:
        match_count = sum(1 for trigger in pattern.keywords if _matches_any(trigger, keywords))
        if match_count > 0:
            return pattern
    return None


def check_keyword_dependency(
    keywords_a: Iterable[str],
    keywords_b: Iterable[str],
) -> KeywordMatch:
    """Check whether task B likely depends on task A.

    Args:
        keywords_a: Keywords of the candidate prerequisite
        keywords_b: Keywords of the candidate dependent

    Returns:
        KeywordMatch with confidence scaled by the share of B's
        prerequisite groups found in A
    """
    keywords_a = list(keywords_a)
    pattern = find_matching_pattern(keywords_b)

    if pattern is None:
        return KeywordMatch(likely=False, confidence=0.0, reason="No pattern match")

    matching = [dep for dep in pattern.depends_on if _matches_any(dep, keywords_a)]

    if matching:
        confidence = pattern.confidence * (len(matching) / max(len(pattern.depends_on), 1))
        return KeywordMatch(
            likely=True,
            confidence=confidence,
            reason=f"Task matches dependency pattern: {', '.join(matching)}",
        )

    return KeywordMatch(
        likely=False,
        confidence=0.0,
        reason="Keywords do not suggest dependency",
    )


def get_dependency_patterns() -> list[DependencyPattern]:
    """Return the pattern table in priority order."""
    return list(DEPENDENCY_PATTERNS)
