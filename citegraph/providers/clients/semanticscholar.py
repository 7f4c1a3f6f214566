"""Semantic Scholar client for identity lookup and citation traversal."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests

from citegraph.core.identifiers import normalize_doi
from citegraph.providers.clients.base import BaseHttpClient, ClientError, NotFoundError
from citegraph.providers.clients.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_FIELDS = "paperId,externalIds,title,abstract,year,venue,authors.name,url,citationCount"

MAX_PAGE_SIZE = 1000
MAX_BATCH_SIZE = 500


@dataclass
class SemanticScholarPaper:
    """Normalized representation of a Semantic Scholar paper."""

    paper_id: str
    title: Optional[str]
    abstract: Optional[str] = None
    year: Optional[int] = None
    venue: Optional[str] = None
    url: Optional[str] = None
    citation_count: Optional[int] = None
    doi: Optional[str] = None
    arxiv_id: Optional[str] = None
    authors: List[str] = field(default_factory=list)


def _prefixed(fields: str, prefix: str) -> str:
    return ",".join(f"{prefix}.{name}" for name in fields.split(","))


class SemanticScholarClient(BaseHttpClient):
    """Wrapper around the Semantic Scholar Graph API v1.

    All requests go through the shared :class:`RateLimiter` passed at construction
    time. Paginated queries stop at the first empty page, at ``cap`` results, or
    at the first failed page, and always return what was accumulated so far.
    """

    BASE_URL = "https://api.semanticscholar.org/graph/v1"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        debug_logging: bool = False,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        batch_size: int = MAX_BATCH_SIZE,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            session=session,
            base_url=base_url,
            timeout=timeout,
            debug_logging=debug_logging,
            rate_limiter=rate_limiter,
            max_retries=max_retries,
            backoff_base=backoff_base,
            backoff_max=backoff_max,
            **kwargs,
        )
        self.api_key = api_key
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))

    def _auth_headers(self) -> Optional[Dict[str, str]]:
        if not self.api_key:
            return None
        return {"x-api-key": self.api_key}

    def get_paper(self, paper_id: str, *, fields: str = DEFAULT_FIELDS) -> Optional[SemanticScholarPaper]:
        """Look up a paper by Semantic Scholar id or prefixed id (``arXiv:...``, ``DOI:...``).

        Returns ``None`` when the paper does not exist.
        """
        if not paper_id:
            return None

        try:
            response = self._request(
                "GET",
                f"/paper/{paper_id}",
                params={"fields": fields},
                headers=self._auth_headers(),
            )
        except NotFoundError:
            return None

        data = self._json(response)
        if not isinstance(data, dict):
            return None
        return self._normalize_paper(data)

    def get_by_arxiv_id(self, arxiv_id: str, *, fields: str = DEFAULT_FIELDS) -> Optional[SemanticScholarPaper]:
        if not arxiv_id:
            return None
        return self.get_paper(f"arXiv:{arxiv_id}", fields=fields)

    def get_by_doi(self, doi: str, *, fields: str = DEFAULT_FIELDS) -> Optional[SemanticScholarPaper]:
        normalized_doi = normalize_doi(doi)
        if not normalized_doi:
            return None
        return self.get_paper(f"DOI:{normalized_doi}", fields=fields)

    def search_papers(
        self,
        query: str,
        *,
        limit: int = 10,
        min_year: Optional[int] = None,
        max_year: Optional[int] = None,
        fields: str = DEFAULT_FIELDS,
    ) -> List[SemanticScholarPaper]:
        params: Dict[str, Any] = {
            "query": query,
            "limit": limit,
            "fields": fields,
        }

        if min_year is not None or max_year is not None:
            low = str(min_year) if min_year is not None else ""
            high = str(max_year) if max_year is not None else ""
            params["year"] = low if low == high else f"{low}-{high}"

        response = self._request(
            "GET", "/paper/search", params=params, headers=self._auth_headers()
        )
        payload = self._json(response)
        if not isinstance(payload, dict):
            return []
        return [self._normalize_paper(item) for item in payload.get("data", []) or [] if isinstance(item, dict)]

    def get_citations(
        self,
        paper_id: str,
        *,
        cap: int = 1000,
        page_size: int = 100,
        offset: int = 0,
        fields: str = DEFAULT_FIELDS,
    ) -> List[SemanticScholarPaper]:
        """Papers citing ``paper_id``, fetched page by page."""
        return self._paginate(
            f"/paper/{paper_id}/citations",
            "citingPaper",
            cap=cap,
            page_size=page_size,
            offset=offset,
            fields=fields,
        )

    def get_references(
        self,
        paper_id: str,
        *,
        cap: int = 1000,
        page_size: int = 100,
        offset: int = 0,
        fields: str = DEFAULT_FIELDS,
    ) -> List[SemanticScholarPaper]:
        """Papers referenced by ``paper_id``, fetched page by page."""
        return self._paginate(
            f"/paper/{paper_id}/references",
            "citedPaper",
            cap=cap,
            page_size=page_size,
            offset=offset,
            fields=fields,
        )

    def _paginate(
        self,
        path: str,
        key: str,
        *,
        cap: int,
        page_size: int,
        offset: int,
        fields: str,
    ) -> List[SemanticScholarPaper]:
        if not path or cap < 1:
            return []

        results: List[SemanticScholarPaper] = []
        seen: set[str] = set()
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))

        while len(results) < cap:
            try:
                response = self._request(
                    "GET",
                    path,
                    params={
                        "fields": _prefixed(fields, key),
                        "limit": page_size,
                        "offset": offset,
                    },
                    headers=self._auth_headers(),
                )
                payload = self._json(response)
            except ClientError as exc:
                logger.warning(
                    "Stopping pagination of %s at offset %d after error: %s", path, offset, exc
                )
                break

            batch = payload.get("data", []) if isinstance(payload, dict) else []
            if not batch:
                break

            for item in batch:
                if not isinstance(item, dict):
                    continue
                paper = item.get(key)
                if not isinstance(paper, dict) or not paper.get("paperId"):
                    continue
                normalized = self._normalize_paper(paper)
                if normalized.paper_id in seen:
                    continue
                seen.add(normalized.paper_id)
                results.append(normalized)
                if len(results) >= cap:
                    break

            offset += len(batch)

        return results

    def batch_get_papers(
        self,
        paper_ids: Iterable[str],
        *,
        fields: str = DEFAULT_FIELDS,
    ) -> Dict[str, SemanticScholarPaper]:
        """Look up many papers at once, ``batch_size`` ids per request.

        Returns a mapping from requested id to paper; unknown ids are omitted. A
        failed chunk is logged and skipped so the remaining chunks still resolve.
        """
        ids = [paper_id for paper_id in dict.fromkeys(paper_ids) if paper_id]
        found: Dict[str, SemanticScholarPaper] = {}

        for start in range(0, len(ids), self.batch_size):
            chunk = ids[start : start + self.batch_size]
            try:
                response = self._request(
                    "POST",
                    "/paper/batch",
                    params={"fields": fields},
                    json={"ids": chunk},
                    headers=self._auth_headers(),
                )
                payload = self._json(response)
            except ClientError as exc:
                logger.warning("Batch lookup of %d papers failed: %s", len(chunk), exc)
                continue

            if not isinstance(payload, list):
                continue
            # The batch endpoint answers positionally, with null for unknown ids.
            for requested, item in zip(chunk, payload):
                if isinstance(item, dict):
                    found[requested] = self._normalize_paper(item)

        return found

    def _normalize_paper(self, data: Dict[str, Any]) -> SemanticScholarPaper:
        external_ids = data.get("externalIds") or {}
        if not isinstance(external_ids, dict):
            external_ids = {}
        doi = normalize_doi(data.get("doi") or external_ids.get("DOI"))
        authors: List[str] = []
        for author in data.get("authors", []) or []:
            if not isinstance(author, dict):
                continue
            name = author.get("name")
            if name:
                authors.append(name)

        year = data.get("year")
        citation_count = data.get("citationCount")

        return SemanticScholarPaper(
            paper_id=str(
                data.get("paperId")
                or external_ids.get("CorpusId")
                or doi
                or data.get("title")
                or ""
            ),
            title=data.get("title"),
            abstract=data.get("abstract"),
            year=year if isinstance(year, int) else None,
            venue=data.get("venue") or None,
            url=data.get("url"),
            citation_count=citation_count if isinstance(citation_count, int) else None,
            doi=doi,
            arxiv_id=external_ids.get("ArXiv"),
            authors=authors,
        )
