"""High-level API for building citation relationship graphs.

This module exposes the :class:`CitationGraphClient` facade and the functional
helpers defined in :mod:`citegraph.__init__`. Papers are given by URL (arXiv
abstract/PDF links or direct PDF links); they are structured by a GROBID
service, enriched from Semantic Scholar and related to each other by an
OpenAI-compatible chat completion endpoint.

Example: build a graph from two arXiv papers
--------------------------------------------
```python
from citegraph.api import CitationGraphClient

client = CitationGraphClient()
result = client.build_graph_from_urls([
    "https://arxiv.org/abs/1706.03762",
    "https://arxiv.org/abs/1810.04805",
])
for edge in result.graph.edges:
    print(edge.source, edge.relationship, edge.target, edge.strength)
```
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Union

import requests
from pydantic import ValidationError

from .acquisition.downloader import PDFDownloader
from .config import GraphSettings
from .core.models import GraphBuildResult, PaperMetadata
from .exceptions import ConfigError
from .providers.clients.grobid import GrobidClient
from .providers.clients.llm import ChatCompletionClient, ClassificationOracle
from .providers.clients.rate_limiter import RateLimiter
from .providers.clients.semanticscholar import SemanticScholarClient
from .services.citing_sampler_service import CitingPaperSampler
from .services.derivative_works_service import DerivativeWorksService
from .services.graph_builder_service import GraphBuilderService
from .services.graph_merge_service import GraphMergeService
from .services.identity_resolver_service import IdentityResolverService
from .services.pair_filter_service import PairFilterService
from .services.paper_extraction_service import PaperExtractionService
from .services.relationship_service import RelationshipClassifier


class CitationGraphClient:
    """Facade wiring the extraction, resolution and classification services.

    All Semantic Scholar traffic goes through one :class:`RateLimiter` owned by
    the client. Any collaborator can be injected, which is how tests replace the
    remote services.
    """

    def __init__(
        self,
        settings: Optional[GraphSettings] = None,
        *,
        session: Optional[requests.Session] = None,
        grobid_client: Optional[GrobidClient] = None,
        semanticscholar_client: Optional[SemanticScholarClient] = None,
        oracle: Optional[ClassificationOracle] = None,
        downloader: Optional[PDFDownloader] = None,
        rate_limiter: Optional[RateLimiter] = None,
        include_derivative_works: bool = True,
        use_pair_filter: bool = True,
    ) -> None:
        if settings is None:
            try:
                settings = GraphSettings()
            except ValidationError as exc:
                raise ConfigError(f"Invalid citegraph settings: {exc}") from exc
        self.settings = settings
        self.session = session or requests.Session()

        self.rate_limiter = rate_limiter or RateLimiter(
            min_interval=settings.min_request_interval_s,
            window=settings.rate_window_s,
            max_requests_per_window=settings.rate_window_max_requests,
            cooldown=settings.rate_window_cooldown_s,
        )

        self._semanticscholar_client = semanticscholar_client or SemanticScholarClient(
            session=self.session,
            base_url=settings.semanticscholar_base_url,
            api_key=settings.semanticscholar_api_key,
            timeout=settings.request_timeout_s,
            rate_limiter=self.rate_limiter,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base_s,
            backoff_max=settings.backoff_max_s,
            batch_size=settings.batch_size,
        )

        self._grobid_client = grobid_client or GrobidClient(
            session=self.session,
            base_url=settings.grobid_url,
            timeout=settings.grobid_timeout_s,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base_s,
            backoff_max=settings.backoff_max_s,
        )

        self._oracle = oracle or ChatCompletionClient(
            session=self.session,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout_s,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base_s,
            backoff_max=settings.backoff_max_s,
        )

        self._resolver = IdentityResolverService(
            self._semanticscholar_client,
            min_score=settings.identity_min_score,
            single_candidate_score=settings.identity_single_candidate_score,
        )

        self._extraction = PaperExtractionService(
            grobid=self._grobid_client,
            downloader=downloader
            or PDFDownloader(
                session=self.session,
                timeout=settings.request_timeout_s,
                max_retries=settings.max_retries,
            ),
            semanticscholar=self._semanticscholar_client,
            resolver=self._resolver,
            context_radius=settings.context_radius,
        )

        self._classifier = RelationshipClassifier(
            self._oracle,
            concurrency=settings.classifier_concurrency,
            pacing=settings.batch_pacing_s,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            containment_ratio=settings.title_containment_ratio,
            overlap_ratio=settings.keyword_overlap_ratio,
        )

        pair_filter = (
            PairFilterService(
                confidence_floor=settings.pair_confidence_floor,
                containment_ratio=settings.title_containment_ratio,
                overlap_ratio=settings.keyword_overlap_ratio,
            )
            if use_pair_filter
            else None
        )

        derivative_works = (
            DerivativeWorksService(
                CitingPaperSampler(
                    self._semanticscholar_client,
                    cap=settings.derivative_works_cap,
                    page_size=settings.page_size,
                    pages=settings.derivative_pages,
                    result_cap=settings.citation_result_cap,
                )
            )
            if include_derivative_works
            else None
        )

        self._builder = GraphBuilderService(
            extraction=self._extraction,
            classifier=self._classifier,
            pair_filter=pair_filter,
            derivative_works=derivative_works,
            merger=GraphMergeService(title_threshold=settings.node_title_similarity),
            health_check=self.check_services,
            max_citations_per_paper=settings.max_citations_per_paper,
            containment_ratio=settings.title_containment_ratio,
            overlap_ratio=settings.keyword_overlap_ratio,
        )

    def check_services(self) -> Dict[str, bool]:
        """Report whether GROBID and the classification endpoint answer."""

        oracle_alive = getattr(self._oracle, "is_alive", None)
        return {
            "grobid": self._grobid_client.is_alive(),
            "llm": oracle_alive() if callable(oracle_alive) else True,
        }

    def build_graph_from_urls(
        self,
        urls: Sequence[str],
        *,
        current_year: Optional[int] = None,
    ) -> GraphBuildResult:
        """Download, parse and relate the papers behind ``urls``."""

        return self._builder.build_from_urls(urls, current_year=current_year)

    def build_graph_from_papers(
        self,
        papers: Sequence[PaperMetadata],
        *,
        current_year: Optional[int] = None,
    ) -> GraphBuildResult:
        """Relate already extracted papers without touching GROBID."""

        return self._builder.build_from_papers(papers, current_year=current_year)

    def extract_paper_from_tei(
        self,
        tei_xml: Union[str, bytes],
        url: str = "",
        *,
        enrich: bool = False,
    ) -> PaperMetadata:
        """Turn a GROBID TEI document into :class:`PaperMetadata`."""

        paper = self._extraction.extract_from_tei(tei_xml, url)
        if enrich:
            self._extraction.enrich(paper)
        return paper

    def extract_paper(self, url: str) -> PaperMetadata:
        return self._extraction.extract_from_url(url)
