"""Utilities for extracting metadata from GROBID TEI XML headers.

This module parses the teiHeader section of GROBID-generated TEI documents
to extract the paper's own metadata: title, authors, abstract, venue, year and
identifiers. Bibliography entries in ``<back>`` are never consulted here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from lxml import etree

from citegraph.parsing.citations import strip_citation_markers

NSMAP = {"tei": "http://www.tei-c.org/ns/1.0"}

# Organisations GROBID sometimes parses as an author.
_ORGANIZATION_PATTERN = re.compile(
    r"^(Google|Facebook|Meta|Microsoft|Apple|Amazon|OpenAI|DeepMind)\s+(Brain|Research|AI|Lab)",
    re.IGNORECASE,
)

# Most specific first; the first selector that yields a valid name wins.
AUTHOR_SELECTORS = (
    "tei:teiHeader/tei:fileDesc/tei:sourceDesc/tei:biblStruct/tei:analytic/tei:author",
    "tei:teiHeader//tei:sourceDesc//tei:analytic/tei:author",
    "tei:teiHeader//tei:titleStmt/tei:author",
    "tei:teiHeader//tei:author",
)


def _get_text(element: etree._Element | None) -> str:
    """Extract normalized text from an element."""
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


@dataclass
class TEIMetadata:
    """Metadata extracted from TEI header."""

    title: Optional[str] = None
    abstract: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    venue: Optional[str] = None
    year: Optional[str] = None
    doi: Optional[str] = None
    arxiv_id: Optional[str] = None


def is_valid_author_name(name: str) -> bool:
    """Reject single-token names and organisation names mis-parsed as authors."""
    if not name:
        return False
    if len(name.split()) < 2:
        return False
    if _ORGANIZATION_PATTERN.match(name):
        return False
    return True


def _extract_author_name(author_elem: etree._Element) -> str:
    """Extract author name from an author element."""
    persname = author_elem.find("tei:persName", namespaces=NSMAP)
    if persname is None:
        return _get_text(author_elem)

    forenames = [
        _get_text(forename)
        for forename in persname.findall("tei:forename", namespaces=NSMAP)
    ]
    surname = persname.find("tei:surname", namespaces=NSMAP)

    parts = [name for name in forenames if name]
    if surname is not None and _get_text(surname):
        parts.append(_get_text(surname))

    return " ".join(parts) if parts else _get_text(persname)


def _extract_authors(root: etree._Element) -> List[str]:
    for selector in AUTHOR_SELECTORS:
        authors: List[str] = []
        for author_elem in root.findall(selector, namespaces=NSMAP):
            name = _extract_author_name(author_elem)
            if is_valid_author_name(name) and name not in authors:
                authors.append(name)
        if authors:
            return authors
    return []


def _extract_title(header: etree._Element) -> Optional[str]:
    """Extract paper title from TEI header."""
    # Title is in sourceDesc/biblStruct/analytic/title[@type='main']
    # or just sourceDesc/biblStruct/analytic/title
    title_elem = header.find(
        ".//tei:sourceDesc/tei:biblStruct/tei:analytic/tei:title[@type='main']",
        namespaces=NSMAP,
    )
    if title_elem is None:
        title_elem = header.find(
            ".//tei:sourceDesc/tei:biblStruct/tei:analytic/tei:title",
            namespaces=NSMAP,
        )

    if title_elem is not None:
        title = _get_text(title_elem)
        if title:
            return title

    title_elem = header.find(".//tei:titleStmt/tei:title", namespaces=NSMAP)
    if title_elem is not None:
        title = _get_text(title_elem)
        if title:
            return title

    return None


def _extract_abstract(header: etree._Element) -> Optional[str]:
    """Extract the abstract with inline citation markers removed.

    The abstract in GROBID TEI is typically at /TEI/teiHeader/profileDesc/abstract,
    either as direct ``<p>`` children or wrapped in ``<div>`` elements.
    """
    abstract_elem = header.find(".//tei:profileDesc/tei:abstract", namespaces=NSMAP)
    if abstract_elem is None:
        return None

    paragraphs = abstract_elem.findall(".//tei:p", namespaces=NSMAP)
    if paragraphs:
        text = " ".join(_get_text(p) for p in paragraphs if _get_text(p))
    else:
        text = _get_text(abstract_elem)

    cleaned = strip_citation_markers(text)
    return cleaned or None


def _extract_venue(header: etree._Element) -> Optional[str]:
    venue = _get_text(
        header.find(
            ".//tei:sourceDesc/tei:biblStruct/tei:monogr/tei:title", namespaces=NSMAP
        )
    )
    if venue:
        return venue

    publisher = _get_text(header.find(".//tei:publicationStmt/tei:publisher", namespaces=NSMAP))
    return publisher or None


def _year_of(date_elem: etree._Element | None) -> Optional[str]:
    if date_elem is None:
        return None
    for candidate in (date_elem.get("when", ""), _get_text(date_elem)):
        match = re.search(r"\d{4}", candidate)
        if match:
            return match.group(0)
    return None


def _extract_year(header: etree._Element) -> Optional[str]:
    for selector in (
        ".//tei:publicationStmt/tei:date",
        ".//tei:sourceDesc//tei:imprint/tei:date",
    ):
        year = _year_of(header.find(selector, namespaces=NSMAP))
        if year:
            return year

    for date_elem in header.iterfind(".//tei:date", namespaces=NSMAP):
        year = _year_of(date_elem)
        if year:
            return year
    return None


def _extract_idno(header: etree._Element, idno_type: str) -> Optional[str]:
    for idno in header.iterfind(".//tei:idno", namespaces=NSMAP):
        if (idno.get("type") or "").lower() == idno_type.lower():
            value = _get_text(idno)
            if value:
                return value
    return None


def metadata_from_root(root: etree._Element) -> TEIMetadata:
    """Extract header metadata from an already parsed TEI document."""
    header = root.find("tei:teiHeader", namespaces=NSMAP)
    if header is None:
        return TEIMetadata()

    arxiv_id = _extract_idno(header, "arXiv")
    if arxiv_id and arxiv_id.lower().startswith("arxiv:"):
        arxiv_id = arxiv_id.split(":", 1)[1]

    return TEIMetadata(
        title=_extract_title(header),
        abstract=_extract_abstract(header),
        authors=_extract_authors(root),
        venue=_extract_venue(header),
        year=_extract_year(header),
        doi=_extract_idno(header, "DOI"),
        arxiv_id=arxiv_id,
    )


def extract_tei_metadata(tei_xml: str) -> TEIMetadata:
    """Extract metadata from a GROBID TEI XML document.

    Malformed XML yields an empty :class:`TEIMetadata` rather than raising; use
    :func:`citegraph.parsing.structure.extract_document_structure` when the caller
    needs to distinguish unparsable input.

    Args:
        tei_xml: The complete TEI XML document as a string.

    Returns:
        TEIMetadata object containing extracted metadata.
    """
    try:
        root = etree.fromstring(tei_xml.encode("utf-8"))
    except (etree.XMLSyntaxError, ValueError):
        return TEIMetadata()

    return metadata_from_root(root)
