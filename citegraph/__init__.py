"""Citation-context extraction and relationship graph building for academic papers."""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Union

import atexit

from .api import CitationGraphClient
from .core.models import GraphBuildResult, PaperGraph, PaperMetadata

_default_client: Optional[CitationGraphClient] = None
_close_callback_registered = False


def get_default_client() -> CitationGraphClient:
    """Return the default ``CitationGraphClient`` instance, creating it lazily."""

    global _default_client, _close_callback_registered
    if _default_client is None:
        _default_client = CitationGraphClient()
    if not _close_callback_registered:
        atexit.register(_default_client.session.close)
        _close_callback_registered = True
    return _default_client


def build_graph(urls: Sequence[str], current_year: Optional[int] = None) -> GraphBuildResult:
    """Build a relationship graph for the papers behind ``urls``.

    The result always carries a graph; papers and pairs that could not be
    processed are listed in ``result.skipped``.
    """

    return get_default_client().build_graph_from_urls(urls, current_year=current_year)


def build_graph_from_papers(
    papers: Sequence[PaperMetadata],
    current_year: Optional[int] = None,
) -> GraphBuildResult:
    """Build a relationship graph for papers that were already extracted."""

    return get_default_client().build_graph_from_papers(papers, current_year=current_year)


def extract_paper(url: str) -> PaperMetadata:
    """Download and parse a single paper."""

    return get_default_client().extract_paper(url)


def extract_paper_from_tei(tei_xml: Union[str, bytes], url: str = "") -> PaperMetadata:
    """Parse a GROBID TEI document into paper metadata."""

    return get_default_client().extract_paper_from_tei(tei_xml, url)


def check_services() -> Dict[str, bool]:
    """Report which remote services are reachable."""

    return get_default_client().check_services()


__all__ = [
    "CitationGraphClient",
    "GraphBuildResult",
    "PaperGraph",
    "PaperMetadata",
    "build_graph",
    "build_graph_from_papers",
    "check_services",
    "extract_paper",
    "extract_paper_from_tei",
    "get_default_client",
]
