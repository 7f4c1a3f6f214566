"""Service layer for the citation graph builder."""

from .citation_dedup_service import CitationDedupService, dedupe_citations
from .citing_sampler_service import CitingPaperSampler, distribute_by_year
from .derivative_works_service import DerivativeWorksService
from .graph_builder_service import GraphBuilderService
from .graph_merge_service import GraphMergeService, citation_strength
from .identity_resolver_service import IdentityMatch, IdentityResolverService
from .pair_filter_service import PairFilterService, PairScore
from .paper_extraction_service import PaperExtractionService
from .relationship_service import ClassificationOutcome, RelationshipClassifier
