"""End-to-end construction of a relationship graph from paper URLs.

Each stage recovers from failures at the smallest scope it can: a paper that
cannot be extracted is skipped, a pair whose classification fails produces no
edge, and a paper whose citing works cannot be fetched contributes no derivative
edges. The run always ends in a :class:`GraphBuildResult`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from citegraph.core.identifiers import citation_node_id
from citegraph.core.matching import is_similar_title
from citegraph.core.models import (
    CitationOccurrence,
    GraphBuildResult,
    PaperGraph,
    PaperMetadata,
    SkippedUnit,
)
from citegraph.exceptions import ExtractionError
from citegraph.services.derivative_works_service import DerivativeWorksService
from citegraph.services.graph_merge_service import GraphMergeService
from citegraph.services.pair_filter_service import PairFilterService
from citegraph.services.paper_extraction_service import PaperExtractionService
from citegraph.services.relationship_service import RelationshipClassifier

logger = logging.getLogger(__name__)

HealthCheck = Callable[[], Dict[str, bool]]


def cited_paper(occurrence: CitationOccurrence) -> PaperMetadata:
    """Basic metadata for a paper known only from a bibliography entry."""

    return PaperMetadata(
        id=citation_node_id(occurrence.title, occurrence.bibliography_id),
        title=occurrence.title or "Unknown Title",
        authors=list(occurrence.authors),
        year=occurrence.year or "Unknown",
    )


class GraphBuilderService:
    """Run extraction, expansion, filtering, classification and merging in order."""

    def __init__(
        self,
        *,
        extraction: PaperExtractionService,
        classifier: RelationshipClassifier,
        pair_filter: Optional[PairFilterService] = None,
        derivative_works: Optional[DerivativeWorksService] = None,
        merger: Optional[GraphMergeService] = None,
        health_check: Optional[HealthCheck] = None,
        max_citations_per_paper: int = 20,
        expand_citations: bool = True,
        containment_ratio: float = 0.6,
        overlap_ratio: float = 0.5,
    ) -> None:
        self.extraction = extraction
        self.classifier = classifier
        self.pair_filter = pair_filter
        self.derivative_works = derivative_works
        self.merger = merger or GraphMergeService()
        self.health_check = health_check
        self.max_citations_per_paper = max_citations_per_paper
        self.expand_citations = expand_citations
        self.containment_ratio = containment_ratio
        self.overlap_ratio = overlap_ratio

    def extract_papers(self, urls: Sequence[str], skipped: List[SkippedUnit]) -> List[PaperMetadata]:
        papers: List[PaperMetadata] = []
        seen: set[str] = set()
        for url in urls:
            try:
                paper = self.extraction.extract_from_url(url)
            except ExtractionError as exc:
                logger.warning("Skipping %s: %s", url, exc)
                skipped.append(SkippedUnit("extraction", url, str(exc)))
                continue
            if paper.id in seen:
                logger.info("Skipping duplicate paper %s from %s", paper.id, url)
                continue
            seen.add(paper.id)
            papers.append(paper)

        skipped.extend(self.extraction.skipped)
        self.extraction.skipped = []
        return papers

    def expand(self, papers: Sequence[PaperMetadata]) -> List[PaperMetadata]:
        """Input papers followed by the papers they cite, one level deep.

        A cited title that matches an input paper reuses the input paper instead of
        creating a new node.
        """

        expanded: List[PaperMetadata] = list(papers)
        known: Dict[str, PaperMetadata] = {paper.id: paper for paper in papers}

        for paper in papers:
            added = 0
            for occurrence in paper.citations:
                if added >= self.max_citations_per_paper:
                    break
                if not occurrence.title:
                    continue
                if any(self._same_title(occurrence.title, other.title) for other in papers):
                    continue
                candidate = cited_paper(occurrence)
                if candidate.id in known:
                    continue
                known[candidate.id] = candidate
                expanded.append(candidate)
                added += 1

        logger.info("Expanded %d input papers to %d papers", len(papers), len(expanded))
        return expanded

    def _same_title(self, a: Optional[str], b: Optional[str]) -> bool:
        return is_similar_title(
            a,
            b,
            containment_ratio=self.containment_ratio,
            overlap_ratio=self.overlap_ratio,
        )

    def build_from_urls(self, urls: Sequence[str], *, current_year: Optional[int] = None) -> GraphBuildResult:
        if not urls:
            return GraphBuildResult(success=False, error="No paper URLs given")

        if self.health_check is not None:
            status = self.health_check()
            down = sorted(name for name, alive in status.items() if not alive)
            if down:
                logger.warning("Services unavailable: %s", ", ".join(down))
                return GraphBuildResult(
                    success=False,
                    error=f"Services unavailable: {', '.join(down)}",
                    stats={"input_urls": len(urls)},
                )

        skipped: List[SkippedUnit] = []
        papers = self.extract_papers(urls, skipped)
        if not papers:
            return GraphBuildResult(
                success=False,
                skipped=skipped,
                error="No paper could be extracted",
                stats={"input_urls": len(urls), "papers": 0, "skipped": len(skipped)},
            )

        result = self.build_from_papers(papers, current_year=current_year)
        result.skipped = skipped + result.skipped
        result.stats["input_urls"] = len(urls)
        result.stats["skipped"] = len(result.skipped)
        return result

    def build_from_papers(
        self,
        papers: Sequence[PaperMetadata],
        *,
        current_year: Optional[int] = None,
    ) -> GraphBuildResult:
        return asyncio.run(self.abuild_from_papers(papers, current_year=current_year))

    async def abuild_from_papers(
        self,
        papers: Sequence[PaperMetadata],
        *,
        current_year: Optional[int] = None,
    ) -> GraphBuildResult:
        skipped: List[SkippedUnit] = []
        stats: Dict[str, int] = {"papers": len(papers)}

        candidates = self.expand(papers) if self.expand_citations else list(papers)
        stats["cited_papers"] = len(candidates) - len(papers)

        if self.pair_filter is not None:
            scored = self.pair_filter.filter_pairs(candidates)
            pairs = [(item.source, item.target) for item in scored]
        else:
            pairs = [
                (source, target)
                for source in candidates
                for target in candidates
                if source.id != target.id
            ]
        stats["candidate_pairs"] = len(pairs)

        classified, outcome = await self.classifier.abuild_graph(candidates, pairs)
        skipped.extend(outcome.skipped)
        stats["oracle_calls"] = outcome.calls
        stats["pairs_without_evidence"] = outcome.pairs_without_evidence
        stats["classified_edges"] = len(classified.edges)

        derivative = PaperGraph()
        if self.derivative_works is not None:
            found = await asyncio.to_thread(
                self.derivative_works.collect, papers, current_year=current_year
            )
            derivative = found.graph
            skipped.extend(found.skipped)
        stats["derivative_edges"] = len(derivative.edges)

        graph = self.merger.merge(classified, derivative)
        stats["nodes"] = len(graph.nodes)
        stats["edges"] = len(graph.edges)
        stats["skipped"] = len(skipped)

        logger.info(
            "Built graph with %d nodes and %d edges (%d units skipped)",
            len(graph.nodes),
            len(graph.edges),
            len(skipped),
        )
        return GraphBuildResult(
            success=True,
            graph=graph,
            papers=list(papers),
            skipped=skipped,
            stats=stats,
        )
