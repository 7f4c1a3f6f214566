"""Chat-completion client used as the relationship classification oracle."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from .base import BaseHttpClient, ClientError, UpstreamError

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class ClassificationOracle(Protocol):
    """Anything that turns role-tagged messages into free-text content."""

    def complete(
        self,
        messages: List[Message],
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        ...


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``text``.

    Decoding is attempted at every ``{`` in turn, so prose, markdown fences or a
    stray brace before the payload do not prevent finding it. Returns ``None``
    when no position decodes to a JSON object.
    """

    if not text:
        return None

    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1)
            continue
        if isinstance(value, dict):
            return value
        index = text.find("{", index + 1)
    return None


class ChatCompletionClient(BaseHttpClient):
    """Client for an OpenAI-compatible ``/v1/chat/completions`` endpoint.

    Works with local servers (LM Studio, llama.cpp, vLLM) as well as hosted ones;
    an ``api_key`` is sent as a bearer token when configured.
    """

    BASE_URL = "http://localhost:1234"

    def __init__(
        self,
        *,
        model: str = "local-model",
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        **kwargs: Any,
    ) -> None:
        super().__init__(session=session, base_url=base_url, timeout=timeout, **kwargs)
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _auth_headers(self) -> Optional[Dict[str, str]]:
        if not self.api_key:
            return None
        return {"Authorization": f"Bearer {self.api_key}"}

    def complete(
        self,
        messages: List[Message],
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        response = self._request(
            "POST", "/v1/chat/completions", json=payload, headers=self._auth_headers()
        )
        data = self._json(response)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Chat completion response has no message content") from exc
        return content or ""

    def is_alive(self) -> bool:
        """Return ``True`` when the endpoint lists its models."""

        try:
            self._request("GET", "/v1/models", headers=self._auth_headers())
        except ClientError as exc:
            logger.warning("LLM health check failed: %s", exc)
            return False
        return True
