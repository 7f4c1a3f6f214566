from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from citegraph.core.identifiers import UNKNOWN_TITLE, UNKNOWN_YEAR

RELATIONSHIP_TYPES = (
    "builds_on",
    "extends",
    "applies",
    "compares",
    "surveys",
    "critiques",
)


@dataclass
class BibliographyEntry:
    """A reference list entry local to one parsed document."""

    id: str
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    year: Optional[str] = None


@dataclass
class CitationOccurrence:
    """One in-text mention of a bibliography entry with its surrounding sentences.

    ``title``, ``authors`` and ``year`` are inherited from the bibliography entry the
    marker points to. ``context`` is always ``context_before + marker + context_after``.
    """

    bibliography_id: str
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    year: Optional[str] = None
    context: str = ""
    context_before: str = ""
    context_after: str = ""
    section: str = ""
    marker: str = ""


@dataclass
class GraphNode:
    """Projection of :class:`PaperMetadata` stored in a :class:`PaperGraph`."""

    id: str
    title: str
    authors: List[str] = field(default_factory=list)
    year: str = UNKNOWN_YEAR
    abstract: Optional[str] = None
    venue: Optional[str] = None
    citation_count: Optional[int] = None
    url: Optional[str] = None
    role: str = "input"


@dataclass
class PaperMetadata:
    """Per-paper metadata assembled from the document and external sources.

    Fields are only ever backfilled: once a value is present it is kept, except for
    ``authors`` where the longer of the two lists wins.
    """

    id: str
    title: str = UNKNOWN_TITLE
    authors: List[str] = field(default_factory=list)
    year: str = UNKNOWN_YEAR
    abstract: Optional[str] = None
    venue: Optional[str] = None
    citation_count: Optional[int] = None
    citations: List[CitationOccurrence] = field(default_factory=list)
    url: Optional[str] = None
    arxiv_id: Optional[str] = None
    doi: Optional[str] = None
    external_id: Optional[str] = None

    def backfill(
        self,
        *,
        title: Optional[str] = None,
        authors: Optional[List[str]] = None,
        year: Optional[str] = None,
        abstract: Optional[str] = None,
        venue: Optional[str] = None,
        citation_count: Optional[int] = None,
        external_id: Optional[str] = None,
    ) -> None:
        if title and (not self.title or self.title == UNKNOWN_TITLE):
            self.title = title
        if authors and len(authors) > len(self.authors):
            self.authors = list(authors)
        if year and year != UNKNOWN_YEAR and (not self.year or self.year == UNKNOWN_YEAR):
            self.year = year
        if abstract and not self.abstract:
            self.abstract = abstract
        if venue and not self.venue:
            self.venue = venue
        if citation_count is not None and self.citation_count is None:
            self.citation_count = citation_count
        if external_id and not self.external_id:
            self.external_id = external_id

    def to_node(self, role: str = "input") -> GraphNode:
        return GraphNode(
            id=self.id,
            title=self.title,
            authors=list(self.authors),
            year=self.year,
            abstract=self.abstract,
            venue=self.venue,
            citation_count=self.citation_count,
            url=self.url,
            role=role,
        )


@dataclass
class RelationshipEdge:
    source: str
    target: str
    relationship: str
    strength: float
    evidence: str = ""
    description: str = ""


@dataclass
class PaperGraph:
    """Directed relationship graph over papers.

    Node ids are unique and keep insertion order. Every edge connects two known
    nodes, never a node to itself, and at most one edge is kept per ordered
    ``(source, target)`` pair; adding another replaces the earlier one.
    """

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[RelationshipEdge] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def add_node(self, node: GraphNode) -> bool:
        """Append ``node`` unless its id is already present. Returns whether it was added."""

        if self.get_node(node.id) is not None:
            return False
        self.nodes.append(node)
        return True

    def add_edge(self, edge: RelationshipEdge) -> bool:
        if edge.source == edge.target:
            return False
        known = set(self.node_ids())
        if edge.source not in known or edge.target not in known:
            return False

        for index, existing in enumerate(self.edges):
            if existing.source == edge.source and existing.target == edge.target:
                self.edges[index] = edge
                return True
        self.edges.append(edge)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [asdict(node) for node in self.nodes],
            "edges": [asdict(edge) for edge in self.edges],
        }


@dataclass
class SkippedUnit:
    """A unit of work that was skipped after a recoverable failure."""

    stage: str
    identifier: str
    reason: str


@dataclass
class GraphBuildResult:
    """Outcome of one pipeline run: always a best-effort graph plus what was skipped."""

    success: bool
    graph: PaperGraph = field(default_factory=PaperGraph)
    papers: List[PaperMetadata] = field(default_factory=list)
    skipped: List[SkippedUnit] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None


__all__ = [
    "RELATIONSHIP_TYPES",
    "BibliographyEntry",
    "CitationOccurrence",
    "GraphNode",
    "PaperMetadata",
    "RelationshipEdge",
    "PaperGraph",
    "SkippedUnit",
    "GraphBuildResult",
]
