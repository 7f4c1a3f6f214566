"""Parsing utilities for GROBID TEI documents."""

from .bibliography import extract_bibliography_entries, resolve_bibliography_id
from .citations import extract_citations, strip_citation_markers
from .context import ContextWindow, build_context_window
from .sections import SectionFilter, classify_section, filter_sections
from .structure import DocumentStructure, extract_document_structure
from .tei_header import TEIMetadata, extract_tei_metadata

__all__ = [
    "ContextWindow",
    "DocumentStructure",
    "SectionFilter",
    "TEIMetadata",
    "build_context_window",
    "classify_section",
    "extract_bibliography_entries",
    "extract_citations",
    "extract_document_structure",
    "extract_tei_metadata",
    "filter_sections",
    "resolve_bibliography_id",
    "strip_citation_markers",
]
