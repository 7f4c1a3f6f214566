"""Utilities for extracting bibliography entries from GROBID TEI XML."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from lxml import etree

from citegraph.core.models import BibliographyEntry
from citegraph.parsing.citations import extract_citations

logger = logging.getLogger(__name__)

NSMAP = {"tei": "http://www.tei-c.org/ns/1.0"}
XML_ID = "{http://www.w3.org/XML/1998/namespace}id"


def _get_text(element: etree._Element | None) -> str:
    """Extract normalized text from an element."""
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def _format_author(author_elem: etree._Element) -> str:
    """Format an author element as a name string."""
    persname = author_elem.find(".//tei:persName", namespaces=NSMAP)
    if persname is None:
        return _get_text(author_elem)

    # GROBID emits one forename element per given/middle name
    forenames = [
        _get_text(forename)
        for forename in persname.findall("tei:forename", namespaces=NSMAP)
    ]
    surname = persname.find("tei:surname", namespaces=NSMAP)

    parts = [name for name in forenames if name]
    if surname is not None and _get_text(surname):
        parts.append(_get_text(surname))

    return " ".join(parts) if parts else _get_text(persname)


def _entry_authors(bib_elem: etree._Element) -> List[str]:
    authors: List[str] = []
    for container in ["tei:analytic", "tei:monogr"]:
        for author in bib_elem.findall(f".//{container}/tei:author", namespaces=NSMAP):
            name = _format_author(author)
            if name and name not in authors:
                authors.append(name)
    return authors


def _entry_title(bib_elem: etree._Element) -> Optional[str]:
    """Extract the title from a biblStruct element."""
    # Article title first, then anything else (book/journal title)
    title = bib_elem.find(".//tei:title[@level='a']", namespaces=NSMAP)
    if title is not None and _get_text(title):
        return _get_text(title)

    title = bib_elem.find(".//tei:analytic/tei:title", namespaces=NSMAP)
    if title is not None and _get_text(title):
        return _get_text(title)

    title = bib_elem.find(".//tei:title", namespaces=NSMAP)
    text = _get_text(title)
    return text or None


def _entry_year(bib_elem: etree._Element) -> Optional[str]:
    """Extract the publication year from a biblStruct element."""
    date = bib_elem.find(".//tei:date", namespaces=NSMAP)
    if date is None:
        return None

    for candidate in (date.get("when", ""), _get_text(date)):
        match = re.search(r"\d{4}", candidate)
        if match:
            return match.group(0)
    return None


def extract_bibliography_entries(root: etree._Element) -> Dict[str, BibliographyEntry]:
    """Map each ``biblStruct`` xml:id (``b0``, ``b1``, ...) to a :class:`BibliographyEntry`.

    Entries without an id are skipped. All ``listBibl`` sections of the document
    are considered.
    """
    entries: Dict[str, BibliographyEntry] = {}

    for bib in root.iterfind(".//tei:listBibl/tei:biblStruct", namespaces=NSMAP):
        bib_id = bib.get(XML_ID)
        if not bib_id:
            continue
        entries[bib_id] = BibliographyEntry(
            id=bib_id,
            title=_entry_title(bib),
            authors=_entry_authors(bib),
            year=_entry_year(bib),
        )

    return entries


def resolve_bibliography_id(
    target: Optional[str],
    marker: str,
    entries: Dict[str, BibliographyEntry],
) -> Optional[str]:
    """Resolve a ``<ref type="bibr">`` to a bibliography id.

    A ``#bN`` target is looked up directly, then by id containment when GROBID
    emitted a truncated or decorated id. Refs without a target fall back to their
    numeric marker: ``[3]`` is tried as ``b2`` and then ``b3``.
    """
    if target:
        bib_id = target.lstrip("#").strip()
        if bib_id in entries:
            return bib_id
        if bib_id:
            for candidate in entries:
                if bib_id in candidate or candidate in bib_id:
                    logger.debug("Using fuzzy bibliography match %s -> %s", bib_id, candidate)
                    return candidate

    for number in extract_citations(marker):
        for bib_id in (f"b{int(number) - 1}", f"b{number}"):
            if bib_id in entries:
                return bib_id
    return None
