"""HTTP clients used by the citation graph service layer."""

from .base import (
    BaseHttpClient,
    ClientError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    UnauthorizedError,
    UpstreamError,
)
from .grobid import GrobidClient
from .llm import ChatCompletionClient, ClassificationOracle, extract_json_object
from .rate_limiter import RateLimiter
from .semanticscholar import DEFAULT_FIELDS as SEMANTICSCHOLAR_DEFAULT_FIELDS
from .semanticscholar import SemanticScholarClient, SemanticScholarPaper

__all__ = [
    "BaseHttpClient",
    "ChatCompletionClient",
    "ClassificationOracle",
    "ClientError",
    "ForbiddenError",
    "GrobidClient",
    "NotFoundError",
    "RateLimitedError",
    "RateLimiter",
    "RequestRejectedError",
    "SEMANTICSCHOLAR_DEFAULT_FIELDS",
    "SemanticScholarClient",
    "SemanticScholarPaper",
    "UnauthorizedError",
    "UpstreamError",
    "extract_json_object",
]
