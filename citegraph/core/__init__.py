"""Core data models, identifiers, and matching helpers."""

from .identifiers import (
    UNKNOWN_TITLE,
    UNKNOWN_YEAR,
    arxiv_pdf_url,
    citation_node_id,
    extract_arxiv_id,
    normalize_doi,
    normalize_title,
    paper_id_from_url,
    year_from_url,
)
from .matching import is_similar_title, jaccard, title_similarity, title_tokens
from .models import (
    RELATIONSHIP_TYPES,
    BibliographyEntry,
    CitationOccurrence,
    GraphBuildResult,
    GraphNode,
    PaperGraph,
    PaperMetadata,
    RelationshipEdge,
    SkippedUnit,
)

__all__ = [
    "RELATIONSHIP_TYPES",
    "UNKNOWN_TITLE",
    "UNKNOWN_YEAR",
    "BibliographyEntry",
    "CitationOccurrence",
    "GraphBuildResult",
    "GraphNode",
    "PaperGraph",
    "PaperMetadata",
    "RelationshipEdge",
    "SkippedUnit",
    "arxiv_pdf_url",
    "citation_node_id",
    "extract_arxiv_id",
    "is_similar_title",
    "jaccard",
    "normalize_doi",
    "normalize_title",
    "paper_id_from_url",
    "title_similarity",
    "title_tokens",
    "year_from_url",
]
