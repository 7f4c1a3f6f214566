from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from citegraph.core.identifiers import parse_year
from citegraph.core.matching import author_overlap, is_similar_title, jaccard, keywords, title_similarity
from citegraph.core.models import CitationOccurrence, PaperMetadata

logger = logging.getLogger(__name__)

CITATION_WEIGHT = 0.4
KEYWORD_WEIGHT = 0.3
AUTHOR_WEIGHT = 0.2
YEAR_WEIGHT = 0.1
TITLE_BONUS_WEIGHT = 0.2
ABSTRACT_WEIGHT = 0.15

KEYWORD_MIN_SIMILARITY = 0.2
AUTHOR_MAX_OVERLAP = 0.5
YEAR_MIN_RELEVANCE = 0.3
TITLE_MIN_SIMILARITY = 0.5
ABSTRACT_MIN_OVERLAP = 0.2
UNKNOWN_YEAR_RELEVANCE = 0.5


@dataclass
class PairScore:
    source: PaperMetadata
    target: PaperMetadata
    confidence: float
    reasons: List[str] = field(default_factory=list)


def year_relevance(a: object, b: object) -> float:
    """1.0 for the same year, decaying with distance to 0.1 beyond ten years."""

    year_a = parse_year(a)
    year_b = parse_year(b)
    if year_a is None or year_b is None:
        return UNKNOWN_YEAR_RELEVANCE

    diff = abs(year_a - year_b)
    if diff == 0:
        return 1.0
    if diff <= 1:
        return 0.8
    if diff <= 2:
        return 0.6
    if diff <= 5:
        return 0.4
    if diff <= 10:
        return 0.2
    return 0.1


def cites(
    source: PaperMetadata,
    target: PaperMetadata,
    *,
    containment_ratio: float = 0.6,
    overlap_ratio: float = 0.5,
) -> Optional[CitationOccurrence]:
    """First citation occurrence of ``source`` whose title matches ``target``."""

    for occurrence in source.citations:
        if is_similar_title(
            occurrence.title,
            target.title,
            containment_ratio=containment_ratio,
            overlap_ratio=overlap_ratio,
        ):
            return occurrence
    return None


def _abstract_overlap(a: Optional[str], b: Optional[str]) -> float:
    words_a = keywords(a)
    words_b = keywords(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


class PairFilterService:
    """Cheap pre-scoring of paper pairs before any classification call.

    The confidence of a pair is a weighted sum, capped at 1.0, of: a direct
    citation from source to target, title+abstract keyword Jaccard similarity,
    author surname overlap, year proximity, a bonus for similar titles and
    abstract keyword overlap. Pairs below ``confidence_floor`` are dropped.
    Threshold values are empirical.
    """

    def __init__(
        self,
        *,
        confidence_floor: float = 0.3,
        containment_ratio: float = 0.6,
        overlap_ratio: float = 0.5,
    ) -> None:
        self.confidence_floor = confidence_floor
        self.containment_ratio = containment_ratio
        self.overlap_ratio = overlap_ratio

    def score(self, source: PaperMetadata, target: PaperMetadata) -> PairScore:
        confidence = 0.0
        reasons: List[str] = []

        occurrence = cites(
            source,
            target,
            containment_ratio=self.containment_ratio,
            overlap_ratio=self.overlap_ratio,
        )
        if occurrence is not None:
            confidence += CITATION_WEIGHT
            reasons.append(f"source cites target: {occurrence.title!r}")

        source_keywords = keywords(f"{source.title} {source.abstract or ''}")
        target_keywords = keywords(f"{target.title} {target.abstract or ''}")
        keyword_score = 0.0
        if source_keywords and target_keywords:
            keyword_score = jaccard(source_keywords, target_keywords)
        if keyword_score > KEYWORD_MIN_SIMILARITY:
            confidence += keyword_score * KEYWORD_WEIGHT
            reasons.append(f"keyword similarity {keyword_score:.2f}")

        overlap = author_overlap(source.authors, target.authors)
        if overlap > 0:
            confidence += min(overlap, AUTHOR_MAX_OVERLAP) * AUTHOR_WEIGHT
            reasons.append(f"author overlap {overlap:.2f}")

        relevance = year_relevance(source.year, target.year)
        if relevance > YEAR_MIN_RELEVANCE:
            confidence += relevance * YEAR_WEIGHT

        similarity = title_similarity(source.title, target.title)
        if similarity > TITLE_MIN_SIMILARITY:
            confidence += (similarity - TITLE_MIN_SIMILARITY) * TITLE_BONUS_WEIGHT
            reasons.append(f"title similarity {similarity:.2f}")

        abstract_score = _abstract_overlap(source.abstract, target.abstract)
        if abstract_score > ABSTRACT_MIN_OVERLAP:
            confidence += abstract_score * ABSTRACT_WEIGHT
            reasons.append(f"abstract overlap {abstract_score:.2f}")

        return PairScore(
            source=source,
            target=target,
            confidence=min(confidence, 1.0),
            reasons=reasons,
        )

    def filter_pairs(self, papers: Sequence[PaperMetadata]) -> List[PairScore]:
        """Score every ordered pair of distinct papers and keep those at or above the floor.

        The result is sorted by descending confidence.
        """

        kept: List[PairScore] = []
        total = 0
        for source in papers:
            for target in papers:
                if source is target or source.id == target.id:
                    continue
                total += 1
                result = self.score(source, target)
                if result.confidence >= self.confidence_floor:
                    kept.append(result)

        kept.sort(key=lambda item: item.confidence, reverse=True)
        logger.info("Pair filter kept %d of %d candidate pairs", len(kept), total)
        return kept
