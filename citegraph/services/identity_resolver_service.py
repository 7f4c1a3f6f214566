from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from citegraph.core.identifiers import normalize_title, parse_year
from citegraph.core.matching import jaccard, significant_words, surname, surnames, title_tokens
from citegraph.providers.clients.base import ClientError
from citegraph.providers.clients.semanticscholar import SemanticScholarClient, SemanticScholarPaper

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 0.15
DEFAULT_SINGLE_CANDIDATE_SCORE = 0.08
AUTHOR_BONUS = 0.2
YEAR_BONUS = 0.1


@dataclass
class IdentityQuery:
    title: str
    authors: Sequence[str] = ()
    year: Optional[int] = None


@dataclass
class SearchStrategy:
    """One query variant: the text sent to the search endpoint plus an optional year filter."""

    name: str
    build: Callable[[IdentityQuery], Optional[str]]
    use_year: bool = False


@dataclass
class IdentityMatch:
    paper: SemanticScholarPaper
    score: float
    strategy: str


def _first_surname(query: IdentityQuery) -> Optional[str]:
    for name in query.authors:
        value = surname(name)
        if value:
            return value
    return None


def _title_with_author(query: IdentityQuery) -> Optional[str]:
    author = _first_surname(query)
    return f"{query.title} {author}" if author else None


def _significant(query: IdentityQuery) -> Optional[str]:
    words = significant_words(query.title, limit=5)
    return " ".join(words) if words else None


DEFAULT_STRATEGIES = (
    SearchStrategy("title_author_year", _title_with_author, use_year=True),
    SearchStrategy("title_author", _title_with_author),
    SearchStrategy("title_year", lambda query: query.title, use_year=True),
    SearchStrategy("significant_words", _significant),
    SearchStrategy("title_only", lambda query: query.title),
)


def score_candidate(query: IdentityQuery, candidate: SemanticScholarPaper) -> float:
    """Title similarity plus author and year bonuses.

    The title part is 1.0 when one normalized title equals or contains the other,
    otherwise the word-level Jaccard similarity. A query author surname found in a
    candidate author surname adds 0.2; an equal year adds 0.1.
    """

    query_title = normalize_title(query.title)
    candidate_title = normalize_title(candidate.title)
    if not query_title or not candidate_title:
        return 0.0

    if query_title == candidate_title or query_title in candidate_title or candidate_title in query_title:
        score = 1.0
    else:
        score = jaccard(title_tokens(query_title), title_tokens(candidate_title))

    query_surnames = surnames(query.authors)
    candidate_surnames = surnames(candidate.authors)
    if any(
        wanted in found for wanted in query_surnames for found in candidate_surnames
    ):
        score += AUTHOR_BONUS

    if query.year is not None and candidate.year == query.year:
        score += YEAR_BONUS

    return score


class IdentityResolverService:
    """Resolve a bare title/authors/year triple to a Semantic Scholar paper.

    Query variants are tried in order. Each non-empty result set is scored and the
    best candidate accepted when it clears ``min_score``, or
    ``single_candidate_score`` when it was the only result. The first accepted
    candidate wins, so on equal scores the earlier strategy is preferred. A failing
    search call counts as an empty result set.
    """

    def __init__(
        self,
        client: Optional[SemanticScholarClient] = None,
        *,
        strategies: Sequence[SearchStrategy] = DEFAULT_STRATEGIES,
        min_score: float = DEFAULT_MIN_SCORE,
        single_candidate_score: float = DEFAULT_SINGLE_CANDIDATE_SCORE,
        search_limit: int = 10,
    ) -> None:
        self.client = client or SemanticScholarClient()
        self.strategies = list(strategies)
        self.min_score = min_score
        self.single_candidate_score = single_candidate_score
        self.search_limit = search_limit

    def resolve(
        self,
        title: Optional[str],
        authors: Optional[Sequence[str]] = None,
        year: object = None,
    ) -> Optional[IdentityMatch]:
        if not title or not normalize_title(title):
            return None

        query = IdentityQuery(title=" ".join(title.split()), authors=list(authors or []), year=parse_year(year))
        tried: set[tuple[str, Optional[int]]] = set()

        for strategy in self.strategies:
            text = strategy.build(query)
            year_filter = query.year if strategy.use_year else None
            if not text or (strategy.use_year and year_filter is None):
                continue
            key = (text, year_filter)
            if key in tried:
                continue
            tried.add(key)

            candidates = self._search(text, year_filter)
            if not candidates:
                continue

            match = self._best_match(query, candidates, strategy.name)
            if match is not None:
                logger.debug(
                    "Resolved %r via %s (score %.2f)", query.title, strategy.name, match.score
                )
                return match

        logger.debug("No identity match for %r", query.title)
        return None

    def _search(self, text: str, year: Optional[int]) -> List[SemanticScholarPaper]:
        try:
            return self.client.search_papers(
                text, limit=self.search_limit, min_year=year, max_year=year
            )
        except ClientError as exc:
            logger.warning("Identity search for %r failed: %s", text, exc)
            return []

    def _best_match(
        self,
        query: IdentityQuery,
        candidates: Sequence[SemanticScholarPaper],
        strategy: str,
    ) -> Optional[IdentityMatch]:
        best: Optional[IdentityMatch] = None
        for candidate in candidates:
            score = score_candidate(query, candidate)
            if best is None or score > best.score:
                best = IdentityMatch(paper=candidate, score=score, strategy=strategy)

        if best is None:
            return None
        threshold = self.single_candidate_score if len(candidates) == 1 else self.min_score
        return best if best.score > threshold else None
