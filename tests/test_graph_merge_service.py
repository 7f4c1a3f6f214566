import pytest

from citegraph.core.models import GraphNode, PaperGraph, RelationshipEdge
from citegraph.services.graph_merge_service import GraphMergeService, citation_strength


def _graph(nodes, edges=()):
    graph = PaperGraph()
    for node_id, title in nodes:
        graph.add_node(GraphNode(id=node_id, title=title))
    for source, target, relationship in edges:
        graph.add_edge(RelationshipEdge(source=source, target=target, relationship=relationship, strength=0.5))
    return graph


def test_citation_strength_scale():
    assert citation_strength(None) == 0.5
    assert citation_strength(0) == pytest.approx(0.3)
    assert citation_strength(100000) == pytest.approx(1.0)
    assert citation_strength(10**9) == 1.0
    assert citation_strength(-5) == pytest.approx(0.3)
    assert 0.3 < citation_strength(100) < citation_strength(1000) < 1.0


def test_title_similar_nodes_collapse_and_edges_are_remapped():
    classified = _graph([("a", "Attention Is All You Need"), ("b", "Sequence to Sequence Learning")])
    derivative = _graph(
        [("s2_x", "Attention is all you need."), ("s2_y", "Vision Transformers at Scale")],
        [("s2_y", "s2_x", "builds_on")],
    )

    merged = GraphMergeService().merge(classified, derivative)

    assert merged.node_ids() == ["a", "b", "s2_y"]
    assert [(edge.source, edge.target) for edge in merged.edges] == [("s2_y", "a")]


def test_first_edge_for_a_pair_wins():
    classified = _graph([("a", "Paper A"), ("b", "Paper B")], [("a", "b", "extends")])
    external = _graph([("a", "Paper A"), ("b", "Paper B")], [("a", "b", "builds_on"), ("b", "a", "compares")])

    merged = GraphMergeService().merge(classified, external)

    assert [(edge.source, edge.target, edge.relationship) for edge in merged.edges] == [
        ("a", "b", "extends"),
        ("b", "a", "compares"),
    ]


def test_edges_collapsing_to_a_self_loop_are_dropped():
    graph = _graph([("a", "Deep Residual Learning for Image Recognition")])
    other = _graph(
        [("x", "Deep Residual Learning for Image Recognition"), ("y", "deep residual learning for image recognition")],
        [("x", "y", "builds_on")],
    )

    counts = GraphMergeService().merge_into(graph, other)

    assert counts == {"nodes": 0, "edges": 0}
    assert graph.edges == []


def test_find_node_respects_threshold():
    graph = _graph([("a", "Graph Attention Networks")])
    service = GraphMergeService(title_threshold=0.97)

    assert service.find_node(graph, GraphNode(id="a", title="Other")).id == "a"
    assert service.find_node(graph, GraphNode(id="z", title="Graph Attention Network")) is None
    assert GraphMergeService(title_threshold=0.9).find_node(
        graph, GraphNode(id="z", title="Graph Attention Network")
    ).id == "a"


def test_untitled_nodes_only_collapse_by_id():
    source = _graph([("src", "Attention Is All You Need")])
    derivative = PaperGraph()
    derivative.add_node(GraphNode(id="src", title="Attention Is All You Need"))
    for citing_id in ("s2_p1", "s2_p2", "s2_p3"):
        derivative.add_node(GraphNode(id=citing_id, title="Unknown Title", role="derivative"))
        derivative.add_edge(
            RelationshipEdge(source=citing_id, target="src", relationship="builds_on", strength=0.5)
        )

    merged = GraphMergeService().merge(source, derivative)

    assert merged.node_ids() == ["src", "s2_p1", "s2_p2", "s2_p3"]
    assert sorted(edge.source for edge in merged.edges) == ["s2_p1", "s2_p2", "s2_p3"]


def test_placeholder_title_does_not_absorb_titled_nodes():
    graph = _graph([("unparsed", "Unknown Title"), ("blank", "")])

    assert GraphMergeService().find_node(graph, GraphNode(id="x", title="Unknown Title")) is None
    assert GraphMergeService().find_node(graph, GraphNode(id="y", title="")) is None
    assert GraphMergeService().find_node(graph, GraphNode(id="blank", title="")).id == "blank"
