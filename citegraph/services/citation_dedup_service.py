from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from citegraph.core.identifiers import normalize_title
from citegraph.core.matching import surname
from citegraph.core.models import CitationOccurrence

logger = logging.getLogger(__name__)


def _normalized_authors(authors: Sequence[str]) -> List[str]:
    return [" ".join(name.lower().split()) for name in authors if name and name.strip()]


def _years_compatible(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return True
    return a.strip() == b.strip()


def authors_similar(a: Sequence[str], b: Sequence[str]) -> bool:
    """Author lists refer to the same paper.

    True when they match exactly in order, when they share at least two surnames,
    or when one surname set is contained in the other. An empty list is contained
    in any list, so an entry parsed without authors matches its richer twin.
    """

    left = _normalized_authors(a)
    right = _normalized_authors(b)
    if left == right:
        return True

    left_surnames = {value for value in (surname(name) for name in left) if value}
    right_surnames = {value for value in (surname(name) for name in right) if value}
    if len(left_surnames & right_surnames) >= 2:
        return True
    return left_surnames <= right_surnames or right_surnames <= left_surnames


def is_duplicate(a: CitationOccurrence, b: CitationOccurrence) -> bool:
    title_a = normalize_title(a.title)
    title_b = normalize_title(b.title)
    if not title_a or not title_b or title_a != title_b:
        return False
    return _years_compatible(a.year, b.year) and authors_similar(a.authors, b.authors)


def _informativeness(occurrence: CitationOccurrence) -> Tuple[int, int, int]:
    return (
        len(occurrence.authors),
        1 if occurrence.year else 0,
        len(occurrence.context),
    )


class CitationDedupService:
    """Collapse citation occurrences that refer to the same cited paper.

    The most informative occurrence of each group survives (more authors, then a
    known year, then a longer context) and takes the position of the group's first
    member, so the order of non-duplicates is unchanged. Occurrences without a
    title are never merged.
    """

    def dedupe(self, occurrences: Sequence[CitationOccurrence]) -> List[CitationOccurrence]:
        current = list(occurrences)
        # Replacing a kept entry can make it match a later one it did not match before.
        while True:
            reduced = self._single_pass(current)
            if len(reduced) == len(current):
                return reduced
            current = reduced

    def _single_pass(self, occurrences: Sequence[CitationOccurrence]) -> List[CitationOccurrence]:
        kept: List[CitationOccurrence] = []
        for occurrence in occurrences:
            for index, existing in enumerate(kept):
                if is_duplicate(existing, occurrence):
                    if _informativeness(occurrence) > _informativeness(existing):
                        kept[index] = occurrence
                    break
            else:
                kept.append(occurrence)

        removed = len(occurrences) - len(kept)
        if removed:
            logger.debug("Merged %d duplicate citation occurrences", removed)
        return kept


def dedupe_citations(occurrences: Sequence[CitationOccurrence]) -> List[CitationOccurrence]:
    return CitationDedupService().dedupe(occurrences)
