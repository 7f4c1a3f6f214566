from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from citegraph.providers.clients.semanticscholar import SemanticScholarClient, SemanticScholarPaper

logger = logging.getLogger(__name__)

MIN_PLAUSIBLE_YEAR = 1900
MAX_YEAR_BUCKETS = 15


def _count(paper: SemanticScholarPaper) -> int:
    return paper.citation_count or 0


def _dedupe(papers: Iterable[SemanticScholarPaper]) -> List[SemanticScholarPaper]:
    unique: Dict[str, SemanticScholarPaper] = {}
    for paper in papers:
        if not paper.paper_id:
            continue
        existing = unique.get(paper.paper_id)
        if existing is None:
            unique[paper.paper_id] = paper
        elif _count(paper) > _count(existing):
            unique[paper.paper_id] = paper
    return list(unique.values())


def distribute_by_year(
    candidates: Iterable[SemanticScholarPaper],
    *,
    cap: int,
    source_year: Optional[int] = None,
    current_year: Optional[int] = None,
    max_year_buckets: int = MAX_YEAR_BUCKETS,
) -> List[SemanticScholarPaper]:
    """Pick up to ``cap`` citing papers spread across publication years.

    Candidates are deduplicated by paper id and those dated before 1900 or after
    ``current_year`` dropped. Papers from ``source_year`` to ``current_year`` are
    bucketed per year; each year, newest first, contributes up to
    ``cap // min(years, max_year_buckets)`` of its most cited papers. Remaining
    slots are filled with the most cited leftovers, including undated papers. The
    result is ordered by year, newest first, undated last.
    """

    if cap < 1:
        return []

    current_year = current_year or date.today().year
    eligible = [
        paper
        for paper in _dedupe(candidates)
        if paper.year is None or MIN_PLAUSIBLE_YEAR <= paper.year <= current_year
    ]

    dated_years = [paper.year for paper in eligible if paper.year is not None]
    start_year = source_year if source_year and source_year <= current_year else None
    if start_year is None and dated_years:
        start_year = min(dated_years)

    buckets: Dict[int, List[SemanticScholarPaper]] = {}
    if start_year is not None:
        for paper in eligible:
            if paper.year is not None and start_year <= paper.year <= current_year:
                buckets.setdefault(paper.year, []).append(paper)

    selected: List[SemanticScholarPaper] = []
    chosen: set[str] = set()
    if buckets:
        quota = max(1, cap // min(len(buckets), max_year_buckets))
        for year in sorted(buckets, reverse=True):
            ranked = sorted(buckets[year], key=_count, reverse=True)
            for paper in ranked[:quota]:
                if len(selected) >= cap:
                    break
                selected.append(paper)
                chosen.add(paper.paper_id)

    if len(selected) < cap:
        leftovers = sorted(
            (paper for paper in eligible if paper.paper_id not in chosen),
            key=_count,
            reverse=True,
        )
        selected.extend(leftovers[: cap - len(selected)])

    return sorted(
        selected,
        key=lambda paper: (paper.year is not None, paper.year or 0, _count(paper)),
        reverse=True,
    )


class CitingPaperSampler:
    """Collect a year-balanced sample of papers citing a given paper.

    Two passes feed the sample: a preferred pass over the first pages keeping
    only papers that are themselves cited, and a broad pass over the following
    pages for year coverage. Papers of both passes with a missing or zero
    citation count are refreshed with one batch lookup before the preferred pass
    is narrowed, so a count the listing omitted does not drop a paper.
    """

    def __init__(
        self,
        client: Optional[SemanticScholarClient] = None,
        *,
        cap: int = 50,
        page_size: int = 100,
        pages: int = 2,
        result_cap: int = 1000,
    ) -> None:
        self.client = client or SemanticScholarClient()
        self.cap = cap
        self.page_size = max(1, page_size)
        self.pages = max(1, pages)
        self.result_cap = max(1, result_cap)

    def sample(
        self,
        paper_id: str,
        *,
        source_year: Optional[int] = None,
        current_year: Optional[int] = None,
    ) -> List[SemanticScholarPaper]:
        if not paper_id or self.cap < 1:
            return []

        window = self.page_size * self.pages
        limit = min(window, self.result_cap)
        first = self.client.get_citations(
            paper_id, cap=limit, page_size=self.page_size, offset=0
        )
        broad = self.client.get_citations(
            paper_id, cap=limit, page_size=self.page_size, offset=window
        )

        # Counts are refreshed before the first pass is narrowed to cited papers.
        refreshed = self.backfill_citation_counts(_dedupe([*first, *broad]))
        first_ids = {paper.paper_id for paper in first}
        broad_ids = {paper.paper_id for paper in broad}
        preferred = sorted(
            (paper for paper in refreshed if paper.paper_id in first_ids and _count(paper) > 0),
            key=_count,
            reverse=True,
        )
        preferred_ids = {paper.paper_id for paper in preferred}
        candidates = [
            *preferred,
            *(
                paper
                for paper in refreshed
                if paper.paper_id in broad_ids and paper.paper_id not in preferred_ids
            ),
        ]
        sampled = distribute_by_year(
            candidates, cap=self.cap, source_year=source_year, current_year=current_year
        )
        logger.info(
            "Sampled %d of %d citing papers for %s", len(sampled), len(candidates), paper_id
        )
        return sampled

    def backfill_citation_counts(
        self, papers: Sequence[SemanticScholarPaper]
    ) -> List[SemanticScholarPaper]:
        missing = [paper.paper_id for paper in papers if not paper.citation_count]
        if not missing:
            return list(papers)

        refreshed = self.client.batch_get_papers(missing)
        updated: List[SemanticScholarPaper] = []
        for paper in papers:
            fresh = refreshed.get(paper.paper_id)
            if fresh is not None and fresh.citation_count is not None and not paper.citation_count:
                paper = replace(paper, citation_count=fresh.citation_count)
            updated.append(paper)
        return updated
