from __future__ import annotations

import logging
import math
from typing import Dict, Optional

from citegraph.core.identifiers import UNKNOWN_TITLE
from citegraph.core.matching import title_similarity
from citegraph.core.models import GraphNode, PaperGraph, RelationshipEdge

logger = logging.getLogger(__name__)

DEFAULT_EXTERNAL_STRENGTH = 0.5
CITATION_COUNT_SCALE = 100000


def citation_strength(citation_count: Optional[int]) -> float:
    """Edge strength for an externally sourced edge from the citing paper's citation count.

    ``0.3 + 0.7 * log(1 + count) / log(1 + 100000)``, capped at 1.0; an unknown
    count gives 0.5.
    """

    if citation_count is None:
        return DEFAULT_EXTERNAL_STRENGTH
    count = max(citation_count, 0)
    strength = 0.3 + 0.7 * math.log1p(count) / math.log1p(CITATION_COUNT_SCALE)
    return min(1.0, strength)


def _has_title(title: Optional[str]) -> bool:
    return bool(title and title.strip()) and title.strip() != UNKNOWN_TITLE


class GraphMergeService:
    """Union several graphs into one, collapsing nodes that describe the same paper.

    A node matches an existing one when the ids are equal or the titles are at
    least ``title_threshold`` similar. Empty or placeholder titles only match by
    id. Edges of the merged-in graph are rewritten onto the surviving node ids.
    The first edge kept for an ordered pair wins, so classified edges take
    precedence over externally sourced ones merged later.
    """

    def __init__(self, *, title_threshold: float = 0.9) -> None:
        self.title_threshold = title_threshold

    def find_node(self, graph: PaperGraph, node: GraphNode) -> Optional[GraphNode]:
        existing = graph.get_node(node.id)
        if existing is not None:
            return existing
        if not _has_title(node.title):
            return None
        for candidate in graph.nodes:
            if not _has_title(candidate.title):
                continue
            if title_similarity(candidate.title, node.title) >= self.title_threshold:
                return candidate
        return None

    def merge_into(self, graph: PaperGraph, other: PaperGraph) -> Dict[str, int]:
        """Merge ``other`` into ``graph`` in place and return what was added."""

        id_map: Dict[str, str] = {}
        added_nodes = 0
        for node in other.nodes:
            existing = self.find_node(graph, node)
            if existing is None:
                graph.add_node(node)
                id_map[node.id] = node.id
                added_nodes += 1
            else:
                id_map[node.id] = existing.id

        present = {(edge.source, edge.target) for edge in graph.edges}
        added_edges = 0
        for edge in other.edges:
            source = id_map.get(edge.source, edge.source)
            target = id_map.get(edge.target, edge.target)
            if source == target or (source, target) in present:
                continue
            remapped = RelationshipEdge(
                source=source,
                target=target,
                relationship=edge.relationship,
                strength=edge.strength,
                evidence=edge.evidence,
                description=edge.description,
            )
            if graph.add_edge(remapped):
                present.add((source, target))
                added_edges += 1

        logger.debug("Merged %d nodes and %d edges", added_nodes, added_edges)
        return {"nodes": added_nodes, "edges": added_edges}

    def merge(self, *graphs: PaperGraph) -> PaperGraph:
        merged = PaperGraph()
        for graph in graphs:
            self.merge_into(merged, graph)
        return merged
