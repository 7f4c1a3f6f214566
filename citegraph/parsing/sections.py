"""Classify section headers as introduction-like or related-work-like.

Matching runs an ordered list of strategies and stops at the first one that
recognises the header: exact header patterns first, then a keyword containment
fallback that refuses headers also naming another major section (``"Related Work
and Conclusion"`` is not a related-work section).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

INTRODUCTION = "introduction"
RELATED_WORK = "related_work"
SECTION_KINDS = (INTRODUCTION, RELATED_WORK)

_NUMBERING = re.compile(r"^\s*(?:\d+(?:\.\d+)*[.)]?|[ivxlc]+[.)]|[a-z][.)])\s+", re.IGNORECASE)

INTRODUCTION_PATTERNS = (
    r"introduction",
    r"introduction\s+and\s+motivation",
    r"introduction\s+and\s+overview",
    r"introduction\s+and\s+background",
    r"overview",
    r"motivation",
    r"motivation\s+and\s+introduction",
    r"background\s+and\s+motivation",
)

RELATED_WORK_PATTERNS = (
    r"background",
    r"related\s+works?",
    r"literature\s+reviews?",
    r"literature",
    r"previous\s+works?",
    r"prior\s+works?",
    r"existing\s+works?",
    r"related\s+research",
    r"related\s+studies",
    r"state\s+of\s+the\s+art",
    r"state-of-the-art",
    r"sota",
    r"related\s+work\s+and\s+background",
    r"background\s+and\s+related\s+works?",
    r"related\s+work\s+and\s+motivation",
    r"related\s+work\s+and\s+literature\s+review",
    r"literature\s+review\s+and\s+related\s+work",
    r"survey",
    r"survey\s+of\s+related\s+work",
    r"review\s+of\s+related\s+work",
    r"review",
    r"discussion\s+of\s+related\s+work",
    r"comparison\s+with\s+related\s+work",
    r"comparison",
    r"related\s+approaches",
    r"alternative\s+approaches",
    r"other\s+approaches",
    r"related\s+methods",
    r"related\s+techniques",
)

INTRODUCTION_KEYWORDS = ("introduction", "motivation", "overview")
RELATED_WORK_KEYWORDS = (
    "related work",
    "literature review",
    "background",
    "previous work",
    "prior work",
    "survey",
    "review",
    "state of the art",
    "sota",
)
CONFLICTING_KEYWORDS = ("conclusion", "discussion", "methodology", "method", "experiment", "result")


def normalize_header(header: str) -> str:
    """Lowercase a header, collapse whitespace and drop leading numbering (``"2.1 "``, ``"II. "``)."""
    collapsed = " ".join(header.split()).lower()
    return _NUMBERING.sub("", collapsed, count=1).strip()


class SectionStrategy:
    """A single way of recognising a section header."""

    name = "base"

    def classify(self, header: str) -> Optional[str]:
        raise NotImplementedError


class PatternStrategy(SectionStrategy):
    name = "pattern"

    def __init__(self, patterns: Sequence[Tuple[str, Sequence[str]]]) -> None:
        self._patterns = [
            (kind, [re.compile(rf"^{pattern}$", re.IGNORECASE) for pattern in kind_patterns])
            for kind, kind_patterns in patterns
        ]

    def classify(self, header: str) -> Optional[str]:
        for kind, compiled in self._patterns:
            if any(pattern.match(header) for pattern in compiled):
                return kind
        return None


class KeywordStrategy(SectionStrategy):
    name = "keyword"

    def __init__(
        self,
        keywords: Sequence[Tuple[str, Sequence[str]]],
        conflicting: Sequence[str] = CONFLICTING_KEYWORDS,
    ) -> None:
        self._keywords = keywords
        self._conflicting = conflicting

    def classify(self, header: str) -> Optional[str]:
        for kind, kind_keywords in self._keywords:
            for keyword in kind_keywords:
                index = header.find(keyword)
                if index < 0:
                    continue
                remainder = header[:index] + " " + header[index + len(keyword):]
                if any(conflict in remainder for conflict in self._conflicting):
                    continue
                return kind
        return None


DEFAULT_STRATEGIES: Tuple[SectionStrategy, ...] = (
    PatternStrategy(
        [(INTRODUCTION, INTRODUCTION_PATTERNS), (RELATED_WORK, RELATED_WORK_PATTERNS)]
    ),
    KeywordStrategy(
        [(INTRODUCTION, INTRODUCTION_KEYWORDS), (RELATED_WORK, RELATED_WORK_KEYWORDS)]
    ),
)


@dataclass
class SectionFilter:
    """Applies :data:`DEFAULT_STRATEGIES` (or custom ones) to section headers."""

    strategies: Sequence[SectionStrategy] = DEFAULT_STRATEGIES

    def classify(self, header: str) -> Optional[str]:
        normalized = normalize_header(header or "")
        if not normalized:
            return None
        for strategy in self.strategies:
            kind = strategy.classify(normalized)
            if kind is not None:
                return kind
        return None

    def filter(self, headers: Iterable[str], kinds: Iterable[str] = SECTION_KINDS) -> List[str]:
        """Return the headers whose kind is in ``kinds``, in input order.

        An empty result means no header matched; callers then scan the whole
        document instead.
        """
        wanted = set(kinds)
        return [header for header in headers if self.classify(header) in wanted]


_default_filter = SectionFilter()


def classify_section(header: str) -> Optional[str]:
    return _default_filter.classify(header)


def filter_sections(headers: Iterable[str], kinds: Iterable[str] = SECTION_KINDS) -> List[str]:
    return _default_filter.filter(headers, kinds)
