"""Client wrapper for interacting with a GROBID service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

from .base import BaseHttpClient, ClientError, UpstreamError

logger = logging.getLogger(__name__)


class GrobidClient(BaseHttpClient):
    """Minimal client for submitting PDFs to GROBID.

    The client exposes a :meth:`process_fulltext` helper that submits a PDF to the
    ``/api/processFulltextDocument`` endpoint and returns the TEI XML response as a
    string, plus an :meth:`is_alive` health probe. The base URL is configurable to
    support remote or containerized deployments.
    """

    BASE_URL = "http://localhost:8070"

    def process_fulltext(
        self,
        pdf: Union[bytes, str, Path],
        *,
        consolidate_header: bool = False,
        consolidate_citations: bool = False,
        tei_coordinates: bool = False,
    ) -> str:
        """Process a PDF and return TEI XML.

        Args:
            pdf: Raw PDF bytes or a filesystem path to the PDF.
            consolidate_header: Whether to consolidate header metadata.
            consolidate_citations: Whether to consolidate citation metadata.
            tei_coordinates: Whether to include TEI coordinates in the response.

        Returns:
            The TEI XML string returned by GROBID.

        Raises:
            UpstreamError: if GROBID answers successfully but with an empty body.
        """

        filename, pdf_bytes = self._normalize_pdf_input(pdf)
        data: Dict[str, Any] = {
            "consolidateHeader": "1" if consolidate_header else "0",
            "consolidateCitations": "1" if consolidate_citations else "0",
            "teiCoordinates": "1" if tei_coordinates else "0",
        }
        files = {"input": (filename, pdf_bytes, "application/pdf")}

        response = self._request(
            "POST",
            "/api/processFulltextDocument",
            data=data,
            files=files,
            headers={"Accept": "application/xml"},
        )
        if not response.text or not response.text.strip():
            raise UpstreamError("GROBID returned an empty document")
        return response.text

    def is_alive(self) -> bool:
        """Return ``True`` when the GROBID ``isalive`` endpoint answers ``true``."""

        try:
            response = self._request("GET", "/api/isalive", headers={"Accept": "text/plain"})
        except ClientError as exc:
            logger.warning("GROBID health check failed: %s", exc)
            return False
        return response.text.strip().lower() == "true"

    @staticmethod
    def _normalize_pdf_input(pdf: Union[bytes, str, Path]) -> tuple[str, bytes]:
        if isinstance(pdf, (str, Path)):
            pdf_path = Path(pdf)
            return pdf_path.name, pdf_path.read_bytes()
        return "document.pdf", pdf
