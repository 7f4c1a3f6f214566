from __future__ import annotations

import re
import unicodedata
from typing import Optional

_DOI_PREFIX_PATTERN = re.compile(r"^(https?://)?(dx\.)?doi\.org/", re.IGNORECASE)
_ARXIV_URL_PATTERN = re.compile(r"arxiv\.org/(?:abs|pdf|html)/([^?#\s]+)", re.IGNORECASE)
_ARXIV_BARE_PATTERN = re.compile(r"^(?:arxiv:)?(\d{4}\.\d{4,5}(?:v\d+)?)", re.IGNORECASE)
_ARXIV_VERSION_PATTERN = re.compile(r"v\d+$")
_ARXIV_YEAR_PATTERN = re.compile(r"arxiv\.org/(?:abs|pdf|html)/(\d{2})(\d{2})\.", re.IGNORECASE)
_YEAR_PATTERN = re.compile(r"(?<!\d)(\d{4})(?!\d)")

UNKNOWN_YEAR = "Unknown"
UNKNOWN_TITLE = "Unknown Title"


def normalize_doi(doi: str | None) -> str | None:
    """Normalize a DOI string into a canonical lowercase form.

    The normalization removes leading DOI prefixes (e.g., ``https://doi.org/`` or
    ``doi:``), trims whitespace, and lowercases the remaining identifier. Empty
    or missing values return ``None``.
    """

    if not doi:
        return None

    cleaned = doi.strip()
    cleaned = _DOI_PREFIX_PATTERN.sub("", cleaned)
    if cleaned.lower().startswith("doi:"):
        cleaned = cleaned.split(":", 1)[1]
    cleaned = cleaned.strip().lower()

    return cleaned or None


def normalize_title(title: str | None) -> str:
    """Normalize a title by collapsing whitespace and normalizing unicode."""

    if not title:
        return ""

    normalized = unicodedata.normalize("NFKC", title)
    collapsed = " ".join(normalized.split())
    return collapsed.lower()


def extract_arxiv_id(value: str | None, *, keep_version: bool = False) -> Optional[str]:
    """Return the arXiv identifier embedded in a URL or raw identifier string.

    Supports ``/abs/``, ``/pdf/`` and ``/html/`` URLs as well as bare identifiers such
    as ``2411.00154v1`` or ``arXiv:1706.03762``.
    """

    if not value:
        return None

    candidate: Optional[str] = None
    match = _ARXIV_URL_PATTERN.search(value)
    if match:
        candidate = match.group(1)
        if candidate.lower().endswith(".pdf"):
            candidate = candidate[:-4]
        candidate = candidate.rstrip("/")
    else:
        match = _ARXIV_BARE_PATTERN.match(value.strip())
        if match:
            candidate = match.group(1)

    if not candidate:
        return None
    if not keep_version:
        candidate = _ARXIV_VERSION_PATTERN.sub("", candidate)
    return candidate


def arxiv_pdf_url(url: str) -> str:
    """Normalize an arXiv page URL to its PDF URL; other URLs are returned unchanged."""

    arxiv_id = extract_arxiv_id(url, keep_version=True)
    if arxiv_id is None:
        return url
    return f"https://arxiv.org/pdf/{arxiv_id}.pdf"


def paper_id_from_url(url: str) -> str:
    """Derive a stable paper id from its source URL."""

    arxiv_id = extract_arxiv_id(url, keep_version=True)
    if arxiv_id:
        slug = re.sub(r"[^\w.-]", "_", arxiv_id)
        return f"arxiv_{slug}"

    last_segment = url.rstrip("/").split("/")[-1] if url else ""
    slug = re.sub(r"[^\w.-]", "_", last_segment)
    return f"paper_{slug or 'unknown'}"


def year_from_url(url: str, *, min_year: int = 1990, max_year: int = 2030) -> Optional[str]:
    """Infer a publication year from an arXiv id (``YYMM.NNNNN``) or a 4-digit year in the URL."""

    if not url:
        return None

    match = _ARXIV_YEAR_PATTERN.search(url)
    if match:
        two_digit = int(match.group(1))
        # arXiv ids use 2-digit years: 92-99 map to the 1990s.
        return f"19{two_digit:02d}" if two_digit >= 92 else f"20{two_digit:02d}"

    for candidate in _YEAR_PATTERN.findall(url):
        year = int(candidate)
        if min_year <= year <= max_year:
            return candidate
    return None


def parse_year(value: object) -> Optional[int]:
    """Return the first plausible 4-digit year found in ``value``."""

    if value is None:
        return None
    if isinstance(value, int):
        return value if 1000 <= value <= 9999 else None
    match = _YEAR_PATTERN.search(str(value))
    return int(match.group(1)) if match else None


def format_year(value: object) -> str:
    """Format a year-like value as a 4-digit string or the ``Unknown`` sentinel."""

    year = parse_year(value)
    return str(year) if year is not None else UNKNOWN_YEAR


def citation_node_id(title: str | None, bibliography_id: str | None = None) -> str:
    """Stable id for a cited paper known only from a bibliography entry."""

    if title:
        slug = re.sub(r"[^a-z0-9]", "_", title.lower())[:50]
        return f"cite_{slug}"
    if bibliography_id:
        return f"cite_{bibliography_id}"
    return "cite_unknown"
