"""Turn a GROBID TEI document into paper metadata plus citation occurrences.

Citations are collected from introduction-like and related-work-like sections.
When no header matches, or the matching sections contain no resolvable
citation, every section of the body is scanned instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from lxml import etree

from citegraph.core.identifiers import (
    UNKNOWN_TITLE,
    UNKNOWN_YEAR,
    extract_arxiv_id,
    year_from_url,
)
from citegraph.core.models import BibliographyEntry, CitationOccurrence
from citegraph.exceptions import ParseError
from citegraph.parsing.bibliography import (
    NSMAP,
    extract_bibliography_entries,
    resolve_bibliography_id,
)
from citegraph.parsing.context import DEFAULT_CONTEXT_RADIUS, build_context_window
from citegraph.parsing.sections import SectionFilter
from citegraph.parsing.tei_header import metadata_from_root

logger = logging.getLogger(__name__)

FALLBACK_SECTION = "Unknown"

_WHITESPACE = re.compile(r"\s+")
_BLOCK_TAGS = {"p", "div", "formula", "figure", "note", "list", "item", "table"}


@dataclass
class DocumentStructure:
    title: str = UNKNOWN_TITLE
    authors: List[str] = field(default_factory=list)
    abstract: Optional[str] = None
    venue: Optional[str] = None
    year: str = UNKNOWN_YEAR
    doi: Optional[str] = None
    arxiv_id: Optional[str] = None
    bibliography: Dict[str, BibliographyEntry] = field(default_factory=dict)
    citations: List[CitationOccurrence] = field(default_factory=list)
    all_section_titles: List[str] = field(default_factory=list)
    target_sections: List[str] = field(default_factory=list)
    used_fallback: bool = False


@dataclass
class _RefSpan:
    marker: str
    target: Optional[str]
    offset: int


class _TextBuilder:
    """Accumulates whitespace-collapsed text while tracking character offsets."""

    def __init__(self) -> None:
        self._parts: List[str] = []
        self.length = 0
        self._ends_with_space = True

    def append(self, raw: Optional[str]) -> None:
        if not raw:
            return
        piece = _WHITESPACE.sub(" ", raw)
        if self._ends_with_space:
            piece = piece.lstrip(" ")
        if not piece:
            return
        self._parts.append(piece)
        self.length += len(piece)
        self._ends_with_space = piece.endswith(" ")

    def text(self) -> str:
        return "".join(self._parts).rstrip()


def _localname(element: etree._Element) -> Optional[str]:
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname


def _head_text(div: etree._Element) -> str:
    head = div.find("tei:head", namespaces=NSMAP)
    if head is None:
        return ""
    return " ".join("".join(head.itertext()).split())


def _walk(element: etree._Element, builder: _TextBuilder, refs: List[_RefSpan]) -> None:
    tag = _localname(element)
    if tag is None or tag == "head":
        return

    if tag == "ref" and element.get("type") == "bibr":
        marker = " ".join("".join(element.itertext()).split())
        if marker:
            refs.append(_RefSpan(marker=marker, target=element.get("target"), offset=builder.length))
            builder.append(marker)
        return

    builder.append(element.text)
    for child in element:
        _walk(child, builder, refs)
        builder.append(child.tail)
    if tag in _BLOCK_TAGS:
        builder.append(" ")


def flatten_section(element: etree._Element) -> Tuple[str, List[_RefSpan]]:
    """Section text (header excluded) and the offset of every bibliographic ref in it."""
    builder = _TextBuilder()
    refs: List[_RefSpan] = []
    _walk(element, builder, refs)
    return builder.text(), refs


def _body_sections(root: etree._Element) -> List[Tuple[str, etree._Element]]:
    body = root.find(".//tei:text/tei:body", namespaces=NSMAP)
    if body is None:
        return []
    divs = body.findall("tei:div", namespaces=NSMAP)
    if not divs:
        return [("", body)]
    return [(_head_text(div), div) for div in divs]


def _occurrences_for_section(
    label: str,
    element: etree._Element,
    bibliography: Dict[str, BibliographyEntry],
    radius: int,
) -> List[CitationOccurrence]:
    text, refs = flatten_section(element)
    occurrences: List[CitationOccurrence] = []

    for ref in refs:
        bib_id = resolve_bibliography_id(ref.target, ref.marker, bibliography)
        if bib_id is None:
            logger.debug("No bibliography entry for marker %r (target=%s)", ref.marker, ref.target)
            continue

        entry = bibliography[bib_id]
        window = build_context_window(text, ref.marker, ref.offset, radius=radius)
        occurrences.append(
            CitationOccurrence(
                bibliography_id=bib_id,
                title=entry.title,
                authors=list(entry.authors),
                year=entry.year,
                context=window.context,
                context_before=window.before,
                context_after=window.after,
                section=label or FALLBACK_SECTION,
                marker=ref.marker,
            )
        )

    return occurrences


def _parse(tei_xml: Union[str, bytes]) -> etree._Element:
    if not tei_xml:
        raise ParseError("Empty TEI document")
    data = tei_xml.encode("utf-8") if isinstance(tei_xml, str) else tei_xml
    try:
        return etree.fromstring(data)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise ParseError(f"Unparsable TEI document: {exc}") from exc


def extract_document_structure(
    tei_xml: Union[str, bytes],
    source_url: str = "",
    *,
    radius: int = DEFAULT_CONTEXT_RADIUS,
    section_filter: Optional[SectionFilter] = None,
) -> DocumentStructure:
    """Extract metadata, bibliography and citation occurrences from a TEI document.

    Missing fields fall back to ``"Unknown Title"``/``"Unknown"``; the year falls
    back to what the source URL implies (arXiv ``YYMM`` ids).

    Raises:
        ParseError: when ``tei_xml`` is empty or not well-formed XML.
    """
    root = _parse(tei_xml)
    section_filter = section_filter or SectionFilter()

    header = metadata_from_root(root)
    bibliography = extract_bibliography_entries(root)
    sections = _body_sections(root)
    all_titles = [label for label, _ in sections if label]

    target_titles = section_filter.filter(all_titles)
    wanted = set(target_titles)
    citations: List[CitationOccurrence] = []
    for label, element in sections:
        if label and label in wanted:
            citations.extend(_occurrences_for_section(label, element, bibliography, radius))

    used_fallback = False
    if not citations:
        if target_titles:
            logger.info("No citations in target sections %s; scanning whole document", target_titles)
        else:
            logger.info("No introduction or related-work section found; scanning whole document")
        used_fallback = True
        for label, element in sections:
            citations.extend(_occurrences_for_section(label, element, bibliography, radius))

    year = header.year or year_from_url(source_url) or UNKNOWN_YEAR
    arxiv_id = header.arxiv_id or extract_arxiv_id(source_url)

    logger.info(
        "Extracted %d citation occurrences from %d bibliography entries",
        len(citations),
        len(bibliography),
    )

    return DocumentStructure(
        title=header.title or UNKNOWN_TITLE,
        authors=header.authors,
        abstract=header.abstract,
        venue=header.venue,
        year=year,
        doi=header.doi,
        arxiv_id=arxiv_id,
        bibliography=bibliography,
        citations=citations,
        all_section_titles=all_titles,
        target_sections=target_titles,
        used_fallback=used_fallback,
    )
