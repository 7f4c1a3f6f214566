"""Application configuration for the citation graph builder."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraphSettings(BaseSettings):  # type: ignore[misc]
    """Settings controlling service endpoints, rate limits and matching thresholds.

    Every field can be overridden through a ``CITEGRAPH_``-prefixed environment
    variable or a ``.env`` file. The matching thresholds are empirically chosen
    and kept configurable rather than derived.
    """

    grobid_url: str = Field(
        "http://localhost:8070", description="HTTP endpoint for the GROBID service"
    )
    semanticscholar_base_url: str = Field(
        "https://api.semanticscholar.org/graph/v1",
        description="Base URL of the Semantic Scholar Graph API",
    )
    semanticscholar_api_key: Optional[str] = Field(
        None, description="Optional Semantic Scholar API key (sent as x-api-key)"
    )
    llm_base_url: str = Field(
        "http://localhost:1234", description="OpenAI-compatible chat completion endpoint"
    )
    llm_model: str = Field("local-model", description="Model name sent to the chat endpoint")
    llm_api_key: Optional[str] = Field(None, description="Optional bearer token for the LLM")

    request_timeout_s: float = Field(
        30.0, description="Default timeout (in seconds) for outbound HTTP requests"
    )
    grobid_timeout_s: float = Field(120.0, description="Timeout for GROBID processing")
    llm_timeout_s: float = Field(120.0, description="Timeout for one classification call")

    min_request_interval_s: float = Field(
        1.0, description="Minimum delay between two Semantic Scholar requests"
    )
    rate_window_s: float = Field(60.0, description="Length of the rolling request window")
    rate_window_max_requests: int = Field(
        100, description="Requests allowed per window before a cooldown is forced"
    )
    rate_window_cooldown_s: float = Field(5.0, description="Cooldown once the window cap is hit")
    max_retries: int = Field(3, description="Attempts per request, including the first one")
    backoff_base_s: float = Field(1.0, description="Base delay for exponential backoff")
    backoff_max_s: float = Field(30.0, description="Upper bound for a single backoff delay")
    page_size: int = Field(100, description="Page size for paginated citation queries")
    citation_result_cap: int = Field(1000, description="Maximum results per paginated fetch")
    batch_size: int = Field(500, description="Identifiers per batch lookup request")

    classifier_concurrency: int = Field(3, description="Concurrent classification calls per batch")
    batch_pacing_s: float = Field(0.5, description="Pause between classification batches")
    llm_max_tokens: int = Field(1000, description="Response length limit for the oracle")
    llm_temperature: float = Field(0.3, description="Sampling temperature for the oracle")

    title_containment_ratio: float = Field(0.6, description="Length ratio for title containment")
    keyword_overlap_ratio: float = Field(0.5, description="Word overlap ratio for similar titles")
    identity_min_score: float = Field(0.15, description="Minimum identity match score")
    identity_single_candidate_score: float = Field(
        0.08, description="Minimum score when the search returned a single candidate"
    )
    pair_confidence_floor: float = Field(0.3, description="Heuristic pair filter floor")
    node_title_similarity: float = Field(0.9, description="Title similarity to merge nodes")
    context_radius: int = Field(300, description="Nominal context radius in characters")

    max_citations_per_paper: int = Field(20, description="Cited papers expanded per input paper")
    derivative_works_cap: int = Field(50, description="Citing papers sampled per input paper")
    derivative_pages: int = Field(2, description="Pages fetched for the broad sampling pass")

    model_config = SettingsConfigDict(env_prefix="CITEGRAPH_", env_file=".env", extra="ignore")

    @field_validator(
        "request_timeout_s",
        "grobid_timeout_s",
        "llm_timeout_s",
        "rate_window_s",
        "backoff_base_s",
        "backoff_max_s",
    )
    @classmethod
    def validate_positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator(
        "max_retries",
        "rate_window_max_requests",
        "page_size",
        "citation_result_cap",
        "batch_size",
        "classifier_concurrency",
        "llm_max_tokens",
        "context_radius",
    )
    @classmethod
    def validate_positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator(
        "min_request_interval_s",
        "rate_window_cooldown_s",
        "batch_pacing_s",
        "max_citations_per_paper",
        "derivative_works_cap",
        "derivative_pages",
    )
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator(
        "title_containment_ratio",
        "keyword_overlap_ratio",
        "identity_min_score",
        "identity_single_candidate_score",
        "pair_confidence_floor",
        "node_title_similarity",
    )
    @classmethod
    def validate_ratio(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("must be between 0 and 1")
        return value

    @field_validator("grobid_url", "semanticscholar_base_url", "llm_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")
