from __future__ import annotations

import logging
import re
from typing import List, Optional, Union

from citegraph.acquisition.downloader import PDFDownloader
from citegraph.core.identifiers import UNKNOWN_TITLE, format_year, normalize_title, paper_id_from_url
from citegraph.core.models import PaperMetadata, SkippedUnit
from citegraph.exceptions import AcquisitionError, ExtractionError, ParseError
from citegraph.parsing.context import DEFAULT_CONTEXT_RADIUS
from citegraph.parsing.structure import DocumentStructure, extract_document_structure
from citegraph.providers.clients.base import ClientError
from citegraph.providers.clients.grobid import GrobidClient
from citegraph.providers.clients.semanticscholar import SemanticScholarClient, SemanticScholarPaper
from citegraph.services.citation_dedup_service import CitationDedupService
from citegraph.services.identity_resolver_service import IdentityResolverService

logger = logging.getLogger(__name__)


def _paper_id(structure: DocumentStructure, url: str) -> str:
    if url:
        return paper_id_from_url(url)
    slug = re.sub(r"\W+", "_", normalize_title(structure.title)).strip("_")[:50]
    return f"paper_{slug or 'unknown'}"


class PaperExtractionService:
    """Turn a paper URL into :class:`PaperMetadata`.

    The PDF is downloaded, structured by GROBID and parsed into metadata and
    deduplicated citation occurrences, then enriched from Semantic Scholar. Any
    failure before parsing completes raises :class:`ExtractionError` for that one
    paper; enrichment failures only leave fields unfilled and are recorded in
    :attr:`skipped`.
    """

    def __init__(
        self,
        *,
        grobid: Optional[GrobidClient] = None,
        downloader: Optional[PDFDownloader] = None,
        semanticscholar: Optional[SemanticScholarClient] = None,
        resolver: Optional[IdentityResolverService] = None,
        dedup: Optional[CitationDedupService] = None,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
    ) -> None:
        self.grobid = grobid or GrobidClient()
        self.downloader = downloader or PDFDownloader()
        self.semanticscholar = semanticscholar
        self.resolver = resolver
        self.dedup = dedup or CitationDedupService()
        self.context_radius = context_radius
        self.skipped: List[SkippedUnit] = []

    def extract_from_url(self, url: str) -> PaperMetadata:
        try:
            pdf = self.downloader.download(url)
        except AcquisitionError as exc:
            raise ExtractionError(f"Could not download {url}: {exc}") from exc

        try:
            tei_xml = self.grobid.process_fulltext(pdf.content)
        except ClientError as exc:
            raise ExtractionError(f"GROBID failed for {url}: {exc}") from exc

        paper = self.extract_from_tei(tei_xml, url)
        self.enrich(paper)
        return paper

    def extract_from_tei(self, tei_xml: Union[str, bytes], url: str = "") -> PaperMetadata:
        """Build metadata from an already structured document, without enrichment."""

        try:
            structure = extract_document_structure(tei_xml, url, radius=self.context_radius)
        except ParseError as exc:
            raise ExtractionError(f"Could not parse document for {url or 'input'}: {exc}") from exc

        return self._to_metadata(structure, url)

    def _to_metadata(self, structure: DocumentStructure, url: str) -> PaperMetadata:
        citations = self.dedup.dedupe(structure.citations)
        logger.info(
            "Paper %r: %d citation occurrences (%d after dedup)",
            structure.title,
            len(structure.citations),
            len(citations),
        )
        return PaperMetadata(
            id=_paper_id(structure, url),
            title=structure.title,
            authors=list(structure.authors),
            year=structure.year,
            abstract=structure.abstract,
            venue=structure.venue,
            citations=citations,
            url=url or None,
            arxiv_id=structure.arxiv_id,
            doi=structure.doi,
        )

    def lookup(self, paper: PaperMetadata) -> Optional[SemanticScholarPaper]:
        if self.semanticscholar is not None and paper.arxiv_id:
            found = self.semanticscholar.get_by_arxiv_id(paper.arxiv_id)
            if found is not None:
                return found
        if self.semanticscholar is not None and paper.doi:
            found = self.semanticscholar.get_by_doi(paper.doi)
            if found is not None:
                return found
        if self.resolver is not None and paper.title and paper.title != UNKNOWN_TITLE:
            match = self.resolver.resolve(paper.title, paper.authors, paper.year)
            if match is not None:
                return match.paper
        return None

    def enrich(self, paper: PaperMetadata) -> PaperMetadata:
        """Backfill missing fields from Semantic Scholar; never overwrites present ones."""

        if self.semanticscholar is None and self.resolver is None:
            return paper

        try:
            external = self.lookup(paper)
        except ClientError as exc:
            logger.warning("Enrichment of %s failed: %s", paper.id, exc)
            self.skipped.append(SkippedUnit("enrichment", paper.id, str(exc)))
            return paper

        if external is None:
            logger.info("No external record found for %s", paper.id)
            return paper

        paper.backfill(
            title=external.title,
            authors=external.authors,
            year=format_year(external.year) if external.year else None,
            abstract=external.abstract,
            venue=external.venue,
            citation_count=external.citation_count,
            external_id=external.paper_id,
        )
        return paper
