"""Classify how pairs of papers relate, with bounded-concurrency oracle calls.

Pairs are only sent to the oracle when the source paper has a citation whose
title matches the target. Calls run concurrently inside fixed-size batches and
batches run one after another with a short pause in between. Blocking oracle
clients are run in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError, field_validator

from citegraph.core.matching import is_similar_title
from citegraph.core.models import (
    RELATIONSHIP_TYPES,
    CitationOccurrence,
    PaperGraph,
    PaperMetadata,
    RelationshipEdge,
    SkippedUnit,
)
from citegraph.providers.clients.base import ClientError
from citegraph.providers.clients.llm import ClassificationOracle, Message, extract_json_object

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert academic researcher skilled in literature reviews and citation "
    "analysis. Your task is to analyze the relationship between two academic papers based "
    "on citation context. Provide clear, concise analysis in English with structured JSON "
    "output."
)

DEFAULT_STRENGTH = 0.5

_TERMINAL = re.compile(r"[.!?]$")
_UP_TO_TERMINAL = re.compile(r"[^.!?]*[.!?]")
_SENTENCE_BREAK = re.compile(r"[.!?]\s+")

Pair = Tuple[PaperMetadata, PaperMetadata]


class RelationshipClassification(BaseModel):
    """Schema of the JSON object expected in the oracle's answer."""

    relationship: Optional[str] = None
    strength: float = DEFAULT_STRENGTH
    evidence: str = ""
    description: str = ""

    @field_validator("relationship", mode="before")
    @classmethod
    def normalize_relationship(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        return text if text in RELATIONSHIP_TYPES else None

    @field_validator("strength", mode="before")
    @classmethod
    def clamp_strength(cls, value: object) -> float:
        if value is None or isinstance(value, bool):
            return DEFAULT_STRENGTH
        try:
            strength = float(value)
        except (TypeError, ValueError):
            return DEFAULT_STRENGTH
        return max(0.0, min(1.0, strength))

    @field_validator("evidence", "description", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> str:
        return "" if value is None else str(value).strip()


@dataclass
class ClassificationOutcome:
    edges: List[RelationshipEdge] = field(default_factory=list)
    skipped: List[SkippedUnit] = field(default_factory=list)
    calls: int = 0
    pairs_without_evidence: int = 0


def fix_incomplete_evidence(evidence: str, context: str) -> str:
    """Extend a quote that stops mid-sentence to the end of its sentence in ``context``.

    The quote is first extended forward to the next ``.``, ``!`` or ``?``. If the
    context has no terminal punctuation after it, the quote is widened backward
    to the start of its sentence and runs to the end of the context instead. A
    quote that cannot be found in the context is returned unchanged.
    """

    if not evidence or not context:
        return evidence

    quote = evidence.strip()
    if _TERMINAL.search(quote):
        return quote

    index = context.find(quote)
    if index == -1:
        return quote

    match = _UP_TO_TERMINAL.match(context, index + len(quote))
    if match:
        return quote + match.group(0)

    start = 0
    for boundary in _SENTENCE_BREAK.finditer(context, 0, index):
        start = boundary.end()
    return context[start:].strip()


def short_label(paper: PaperMetadata) -> str:
    """``"Vaswani et al. (2017)"``-style label used inside prompts."""

    if paper.authors:
        surname = paper.authors[0].split()[-1]
        suffix = " et al." if len(paper.authors) > 1 else ""
        label = f"{surname}{suffix}"
    else:
        label = paper.title[:40]
    if paper.year and paper.year != "Unknown":
        label = f"{label} ({paper.year})"
    return label


def build_prompt(source: PaperMetadata, target: PaperMetadata, contexts: str) -> str:
    src = short_label(source)
    tgt = short_label(target)
    return f"""Summarize the relationship between two research papers based on a specific citation context.

**Citing Paper ({src}):**
- Title: "{source.title}"

**Cited Paper ({tgt}):**
- Title: "{target.title}"

**Citation Context from {src}:**
\"\"\"
{contexts}
\"\"\" ({len(contexts)} chars)

Based ONLY on the citation context above, analyze how {src} cites {tgt} and provide:

1. **Relationship Type** - choose one:
   - builds_on: {src} directly builds upon {tgt}'s work
   - extends: {src} extends or improves {tgt}'s methods
   - applies: {src} applies {tgt}'s methods to a new domain
   - compares: {src} compares itself with {tgt}
   - surveys: {src} reviews or summarizes {tgt} among related work
   - critiques: {src} points out limitations of {tgt}
   Use null when the context shows no meaningful relationship.

2. **Strength** - from 0.0 to 1.0, how strongly {src} relies on {tgt}

3. **Description** - one concise sentence on why {src} cites {tgt}

Respond in JSON:
{{
  "relationship": "relationship_type",
  "strength": 0.8,
  "evidence": "exact quote from the citation context, as complete sentences",
  "description": "concise description of why {src} cites {tgt}"
}}

The evidence must preserve the original wording and must not cut sentences off."""


def parse_classification(
    text: Optional[str],
    source_id: str,
    target_id: str,
    context: str = "",
) -> Optional[RelationshipEdge]:
    """Turn an oracle answer into an edge, or ``None`` when it carries no relationship."""

    payload = extract_json_object(text)
    if payload is None:
        logger.debug("No JSON object in oracle answer for %s -> %s", source_id, target_id)
        return None

    try:
        parsed = RelationshipClassification.model_validate(payload)
    except ValidationError as exc:
        logger.debug("Oracle answer for %s -> %s failed validation: %s", source_id, target_id, exc)
        return None

    if parsed.relationship is None:
        return None

    return RelationshipEdge(
        source=source_id,
        target=target_id,
        relationship=parsed.relationship,
        strength=parsed.strength,
        evidence=fix_incomplete_evidence(parsed.evidence, context),
        description=parsed.description,
    )


class RelationshipClassifier:
    """Bounded-concurrency orchestrator around a :class:`ClassificationOracle`."""

    def __init__(
        self,
        oracle: ClassificationOracle,
        *,
        concurrency: int = 3,
        pacing: float = 0.5,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        call_timeout: Optional[float] = None,
        containment_ratio: float = 0.6,
        overlap_ratio: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.oracle = oracle
        self.concurrency = concurrency
        self.pacing = pacing
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.call_timeout = call_timeout
        self.containment_ratio = containment_ratio
        self.overlap_ratio = overlap_ratio
        self._sleep = sleep

    def relevant_citations(
        self, source: PaperMetadata, target: PaperMetadata
    ) -> List[CitationOccurrence]:
        return [
            occurrence
            for occurrence in source.citations
            if is_similar_title(
                occurrence.title,
                target.title,
                containment_ratio=self.containment_ratio,
                overlap_ratio=self.overlap_ratio,
            )
        ]

    def build_messages(
        self, source: PaperMetadata, target: PaperMetadata, contexts: str
    ) -> List[Message]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(source, target, contexts)},
        ]

    async def _complete(self, messages: List[Message]) -> str:
        call = asyncio.to_thread(
            self.oracle.complete,
            messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if self.call_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.call_timeout)

    async def classify_pair(
        self,
        source: PaperMetadata,
        target: PaperMetadata,
        citations: Sequence[CitationOccurrence],
        outcome: ClassificationOutcome,
    ) -> Optional[RelationshipEdge]:
        contexts = "\n\n".join(occurrence.context for occurrence in citations if occurrence.context)
        messages = self.build_messages(source, target, contexts)
        identifier = f"{source.id}->{target.id}"

        outcome.calls += 1
        try:
            answer = await self._complete(messages)
        except asyncio.TimeoutError:
            logger.warning("Classification of %s timed out", identifier)
            outcome.skipped.append(SkippedUnit("classification", identifier, "timeout"))
            return None
        except ClientError as exc:
            logger.warning("Classification of %s failed: %s", identifier, exc)
            outcome.skipped.append(SkippedUnit("classification", identifier, str(exc)))
            return None

        return parse_classification(answer, source.id, target.id, contexts)

    async def classify_pairs(self, pairs: Sequence[Pair]) -> ClassificationOutcome:
        outcome = ClassificationOutcome()

        eligible: List[Tuple[PaperMetadata, PaperMetadata, List[CitationOccurrence]]] = []
        for source, target in pairs:
            if source.id == target.id:
                continue
            citations = self.relevant_citations(source, target)
            if not citations:
                outcome.pairs_without_evidence += 1
                continue
            eligible.append((source, target, citations))

        batches = [
            eligible[start : start + self.concurrency]
            for start in range(0, len(eligible), self.concurrency)
        ]
        for index, batch in enumerate(batches):
            results = await asyncio.gather(
                *(self.classify_pair(source, target, citations, outcome) for source, target, citations in batch)
            )
            outcome.edges.extend(edge for edge in results if edge is not None)
            logger.info(
                "Classified batch %d/%d (%d pairs, %d edges so far)",
                index + 1,
                len(batches),
                len(batch),
                len(outcome.edges),
            )
            if index < len(batches) - 1 and self.pacing > 0:
                await self._sleep(self.pacing)

        return outcome

    async def abuild_graph(
        self,
        papers: Sequence[PaperMetadata],
        pairs: Optional[Sequence[Pair]] = None,
    ) -> Tuple[PaperGraph, ClassificationOutcome]:
        """Classify ``pairs`` (default: every ordered pair of ``papers``) into a graph."""

        if pairs is None:
            pairs = [(source, target) for source in papers for target in papers if source.id != target.id]

        graph = PaperGraph()
        for paper in papers:
            graph.add_node(paper.to_node())

        outcome = await self.classify_pairs(pairs)
        for edge in outcome.edges:
            graph.add_edge(edge)

        logger.info(
            "Relationship graph has %d nodes and %d edges (%d oracle calls, %d pairs without evidence)",
            len(graph.nodes),
            len(graph.edges),
            outcome.calls,
            outcome.pairs_without_evidence,
        )
        return graph, outcome

    def build_graph(
        self,
        papers: Sequence[PaperMetadata],
        pairs: Optional[Sequence[Pair]] = None,
    ) -> PaperGraph:
        graph, _ = asyncio.run(self.abuild_graph(papers, pairs))
        return graph
