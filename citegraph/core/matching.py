from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Set

from citegraph.core.identifiers import normalize_title

STOPWORDS: Set[str] = {
    "the", "and", "for", "with", "from", "that", "this", "these", "those", "into",
    "onto", "over", "under", "using", "based", "via", "towards", "toward", "are",
    "was", "were", "been", "being", "have", "has", "had", "their", "there", "which",
    "while", "when", "where", "what", "who", "whom", "whose", "than", "then", "them",
    "they", "its", "our", "your", "can", "could", "should", "would", "will", "not",
    "but", "also", "such", "more", "most", "less", "between", "about", "through",
    "without", "within", "other", "some", "each", "only", "all", "any", "both", "very",
    "new", "approach", "method", "methods", "paper", "study", "results", "show",
}

_TOKEN_SPLIT = re.compile(r"[\W_]+")


def title_tokens(title: str | None) -> Set[str]:
    """Tokenize a title into a normalized set of lowercase terms."""

    if not title:
        return set()

    normalized = normalize_title(title)
    return {token for token in _TOKEN_SPLIT.split(normalized) if token}


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Compute the Jaccard similarity between two collections of tokens."""

    set_a = set(a)
    set_b = set(b)

    if not set_a and not set_b:
        return 1.0

    union = set_a | set_b
    if not union:
        return 0.0

    return len(set_a & set_b) / len(union)


def keywords(text: str | None, *, min_length: int = 4) -> Set[str]:
    """Content words of ``text``: lowercase tokens of ``min_length`` or more, minus stopwords."""

    return {
        token
        for token in title_tokens(text)
        if len(token) >= min_length and token not in STOPWORDS and not token.isdigit()
    }


def significant_words(title: str | None, limit: int = 5) -> List[str]:
    """First ``limit`` significant words of a title, preserving order."""

    if not title:
        return []
    words = [token for token in _TOKEN_SPLIT.split(normalize_title(title)) if token]
    return [word for word in words if len(word) > 2 and word not in STOPWORDS][:limit]


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def _plain(title: str | None) -> str:
    """Normalized title with punctuation replaced by spaces."""

    return " ".join(_TOKEN_SPLIT.split(normalize_title(title))).strip()


def title_similarity(a: str | None, b: str | None) -> float:
    """Similarity in [0, 1] between two titles.

    1.0 for equal titles, the length ratio when one contains the other, otherwise
    one minus the normalized edit distance.
    """

    left = _plain(a)
    right = _plain(b)
    if left == right:
        return 1.0 if left else 0.0
    if not left or not right:
        return 0.0

    shorter, longer = sorted((left, right), key=len)
    if shorter in longer:
        return len(shorter) / len(longer)
    return 1.0 - levenshtein(left, right) / len(longer)


def is_similar_title(
    a: str | None,
    b: str | None,
    *,
    containment_ratio: float = 0.6,
    overlap_ratio: float = 0.5,
) -> bool:
    """Loose title equivalence used to tie a citation to a known paper.

    Titles match when they are equal after normalization, or when one contains the
    other and the shorter is at least ``containment_ratio`` of the longer.
    Otherwise the words longer than three characters are compared: the titles
    match when the shared words exceed ``overlap_ratio`` of the shorter title's
    words. Empty titles never match.
    """

    left = _plain(a)
    right = _plain(b)
    if not left or not right:
        return False
    if left == right:
        return True

    shorter, longer = sorted((left, right), key=len)
    if shorter in longer:
        return len(shorter) / len(longer) >= containment_ratio

    words_left = {word for word in left.split() if len(word) > 3}
    words_right = {word for word in right.split() if len(word) > 3}
    if not words_left or not words_right:
        return False
    shared = len(words_left & words_right)
    return shared / min(len(words_left), len(words_right)) > overlap_ratio


def surname(name: str | None) -> str:
    """Lowercase surname of an author name (``"Smith, J."`` and ``"J. Smith"`` both give ``smith``)."""

    if not name:
        return ""
    cleaned = name.strip()
    if "," in cleaned:
        cleaned = cleaned.split(",", 1)[0]
    else:
        parts = cleaned.split()
        cleaned = parts[-1] if parts else ""
    return re.sub(r"[^\w-]", "", cleaned.lower())


def surnames(names: Sequence[str]) -> Set[str]:
    return {value for value in (surname(name) for name in names) if value}


def author_overlap(a: Sequence[str], b: Sequence[str]) -> float:
    """Shared surnames relative to the smaller author list; 0.0 when either is empty."""

    left = surnames(a)
    right = surnames(b)
    if not left or not right:
        return 0.0
    return len(left & right) / min(len(left), len(right))
