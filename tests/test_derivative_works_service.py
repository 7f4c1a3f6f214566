import pytest

from citegraph.core.models import PaperMetadata
from citegraph.providers.clients.base import UpstreamError
from citegraph.providers.clients.semanticscholar import SemanticScholarPaper
from citegraph.services.derivative_works_service import DerivativeWorksService, external_lookup_id
from citegraph.services.graph_merge_service import GraphMergeService


class _StubSampler:
    def __init__(self, results):
        self.results = results
        self.calls = []

    def sample(self, paper_id, *, source_year=None, current_year=None):
        self.calls.append((paper_id, source_year, current_year))
        result = self.results[paper_id]
        if isinstance(result, Exception):
            raise result
        return result


def _citing(paper_id, citations):
    return SemanticScholarPaper(
        paper_id=paper_id, title=f"Follow-up {paper_id}", year=2020, citation_count=citations
    )


def test_external_lookup_id_prefers_resolved_id():
    assert external_lookup_id(PaperMetadata(id="p", external_id="abc", arxiv_id="1706.03762")) == "abc"
    assert external_lookup_id(PaperMetadata(id="p", arxiv_id="1706.03762")) == "arXiv:1706.03762"
    assert external_lookup_id(PaperMetadata(id="p")) is None


def test_citing_papers_become_weighted_builds_on_edges():
    sampler = _StubSampler({"S2A": [_citing("c1", 100000), _citing("c2", None)]})
    paper = PaperMetadata(id="a", title="Attention Is All You Need", year="2017", external_id="S2A")

    outcome = DerivativeWorksService(sampler).collect([paper], current_year=2024)

    assert sampler.calls == [("S2A", 2017, 2024)]
    assert outcome.graph.node_ids() == ["a", "s2_c1", "s2_c2"]
    assert [node.role for node in outcome.graph.nodes] == ["input", "derivative", "derivative"]
    edges = {edge.source: edge for edge in outcome.graph.edges}
    assert edges["s2_c1"].target == "a"
    assert edges["s2_c1"].relationship == "builds_on"
    assert edges["s2_c1"].strength == pytest.approx(1.0)
    assert edges["s2_c1"].evidence == "Citation from Semantic Scholar (100000 citations)"
    assert edges["s2_c2"].strength == 0.5
    assert outcome.skipped == []


def test_papers_without_identifier_or_with_failed_lookup_are_skipped():
    sampler = _StubSampler({"arXiv:2001.00001": UpstreamError("rate limited")})
    papers = [
        PaperMetadata(id="anonymous", title="No Identifier"),
        PaperMetadata(id="broken", title="Lookup Fails", arxiv_id="2001.00001"),
    ]

    outcome = DerivativeWorksService(sampler).collect(papers)

    assert outcome.graph.nodes == []
    assert [(unit.stage, unit.identifier) for unit in outcome.skipped] == [
        ("derivative_works", "anonymous"),
        ("derivative_works", "broken"),
    ]


def test_untitled_citing_papers_each_keep_their_edge():
    untitled = [
        SemanticScholarPaper(paper_id=paper_id, title=None, year=2021, citation_count=3)
        for paper_id in ("p1", "p2", "p3")
    ]
    sampler = _StubSampler({"S2A": untitled})
    paper = PaperMetadata(id="a", title="Attention Is All You Need", year="2017", external_id="S2A")

    outcome = DerivativeWorksService(sampler).collect([paper], current_year=2024)
    merged = GraphMergeService().merge(outcome.graph)

    assert [node.id for node in merged.nodes if node.role == "derivative"] == ["s2_p1", "s2_p2", "s2_p3"]
    assert len(merged.edges) == 3
