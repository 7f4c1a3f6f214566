from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from citegraph.core.identifiers import format_year, parse_year
from citegraph.core.models import GraphNode, PaperGraph, PaperMetadata, RelationshipEdge, SkippedUnit
from citegraph.providers.clients.base import ClientError
from citegraph.providers.clients.semanticscholar import SemanticScholarPaper
from citegraph.services.citing_sampler_service import CitingPaperSampler
from citegraph.services.graph_merge_service import citation_strength

logger = logging.getLogger(__name__)


@dataclass
class DerivativeWorksOutcome:
    graph: PaperGraph = field(default_factory=PaperGraph)
    skipped: List[SkippedUnit] = field(default_factory=list)


def external_lookup_id(paper: PaperMetadata) -> Optional[str]:
    """Identifier accepted by the scholarly database for ``paper``, if one is known."""

    if paper.external_id:
        return paper.external_id
    if paper.arxiv_id:
        return f"arXiv:{paper.arxiv_id}"
    return None


def derivative_node(citing: SemanticScholarPaper) -> GraphNode:
    return GraphNode(
        id=f"s2_{citing.paper_id}",
        title=citing.title or "Unknown Title",
        authors=list(citing.authors),
        year=format_year(citing.year),
        abstract=citing.abstract,
        venue=citing.venue,
        citation_count=citing.citation_count,
        url=citing.url,
        role="derivative",
    )


def derivative_edge(citing: GraphNode, source_id: str) -> RelationshipEdge:
    count = citing.citation_count
    return RelationshipEdge(
        source=citing.id,
        target=source_id,
        relationship="builds_on",
        strength=citation_strength(count),
        evidence=f"Citation from Semantic Scholar ({count if count is not None else 0} citations)",
        description="Cites source paper",
    )


class DerivativeWorksService:
    """Find papers citing the input papers and express them as graph edges.

    Each citing paper becomes a ``derivative`` node with a ``builds_on`` edge to
    the paper it cites, weighted by its own citation count. Papers without a
    known external identifier are skipped.
    """

    def __init__(self, sampler: CitingPaperSampler) -> None:
        self.sampler = sampler

    def collect(
        self,
        papers: Sequence[PaperMetadata],
        *,
        current_year: Optional[int] = None,
    ) -> DerivativeWorksOutcome:
        outcome = DerivativeWorksOutcome()

        for paper in papers:
            lookup_id = external_lookup_id(paper)
            if lookup_id is None:
                outcome.skipped.append(
                    SkippedUnit("derivative_works", paper.id, "no external identifier")
                )
                continue

            try:
                citing = self.sampler.sample(
                    lookup_id, source_year=parse_year(paper.year), current_year=current_year
                )
            except ClientError as exc:
                logger.warning("Fetching papers citing %s failed: %s", paper.id, exc)
                outcome.skipped.append(SkippedUnit("derivative_works", paper.id, str(exc)))
                continue

            outcome.graph.add_node(paper.to_node())
            for item in citing:
                node = derivative_node(item)
                outcome.graph.add_node(node)
                outcome.graph.add_edge(derivative_edge(node, paper.id))

            logger.info("Found %d derivative works for %s", len(citing), paper.id)

        return outcome
