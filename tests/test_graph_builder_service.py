import json

from citegraph.core.models import (
    CitationOccurrence,
    GraphNode,
    PaperGraph,
    PaperMetadata,
    RelationshipEdge,
    SkippedUnit,
)
from citegraph.exceptions import ExtractionError
from citegraph.services.derivative_works_service import DerivativeWorksOutcome
from citegraph.services.graph_builder_service import GraphBuilderService, cited_paper
from citegraph.services.pair_filter_service import PairFilterService
from citegraph.services.relationship_service import RelationshipClassifier

NMT_TITLE = "Neural Machine Translation by Jointly Learning to Align and Translate"
ADAM_TITLE = "Adam: A Method for Stochastic Optimization"
ANSWER = json.dumps({"relationship": "builds_on", "strength": 0.8, "evidence": "", "description": "uses it"})


def _occurrence(bib_id, title, year=None):
    return CitationOccurrence(
        bibliography_id=bib_id,
        title=title,
        authors=["Some Author"],
        year=year,
        context=f"We rely on [{bib_id}].",
    )


def _attention():
    return PaperMetadata(
        id="arxiv_1706.03762",
        title="Attention Is All You Need",
        authors=["Ashish Vaswani"],
        year="2017",
        citations=[_occurrence("b0", NMT_TITLE, "2015"), _occurrence("b1", ADAM_TITLE, "2015"), _occurrence("b2", None)],
    )


def _nmt():
    return PaperMetadata(id="arxiv_1409.0473", title=NMT_TITLE, authors=["Dzmitry Bahdanau"], year="2015")


class _StubExtraction:
    def __init__(self, papers, skipped=()):
        self.papers = papers
        self.skipped = list(skipped)
        self.urls = []

    def extract_from_url(self, url):
        self.urls.append(url)
        paper = self.papers.get(url)
        if paper is None:
            raise ExtractionError(f"Could not download {url}")
        return paper


class _StubOracle:
    def __init__(self):
        self.calls = 0

    def complete(self, messages, *, max_tokens=None, temperature=None):
        self.calls += 1
        return ANSWER


class _StubDerivativeWorks:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def collect(self, papers, *, current_year=None):
        self.calls.append(([paper.id for paper in papers], current_year))
        return self.outcome


def _builder(extraction, **kwargs):
    kwargs.setdefault("classifier", RelationshipClassifier(_StubOracle(), pacing=0))
    return GraphBuilderService(extraction=extraction, **kwargs)


def test_cited_paper_uses_bibliography_fields():
    paper = cited_paper(_occurrence("b1", ADAM_TITLE, "2015"))

    assert paper.id.startswith("cite_adam")
    assert paper.title == ADAM_TITLE
    assert paper.year == "2015"
    assert cited_paper(_occurrence("b9", None)).title == "Unknown Title"


def test_expand_adds_cited_papers_not_among_inputs():
    builder = _builder(_StubExtraction({}))

    expanded = builder.expand([_attention(), _nmt()])

    assert [paper.title for paper in expanded] == ["Attention Is All You Need", NMT_TITLE, ADAM_TITLE]


def test_expand_respects_per_paper_cap():
    paper = _attention()
    paper.citations = [_occurrence(f"b{i}", f"Distinct Cited Work Number {i}") for i in range(5)]

    expanded = _builder(_StubExtraction({}), max_citations_per_paper=2).expand([paper])

    assert len(expanded) == 3


def test_build_from_urls_end_to_end():
    extraction = _StubExtraction(
        {"https://arxiv.org/abs/1706.03762": _attention(), "https://arxiv.org/abs/1409.0473": _nmt()},
        skipped=[SkippedUnit("enrichment", "arxiv_1409.0473", "rate limited")],
    )
    oracle = _StubOracle()
    builder = _builder(extraction, classifier=RelationshipClassifier(oracle, pacing=0))

    result = builder.build_from_urls(
        [
            "https://arxiv.org/abs/1706.03762",
            "https://arxiv.org/abs/1409.0473",
            "https://example.org/missing.pdf",
        ]
    )

    assert result.success is True
    assert [paper.id for paper in result.papers] == ["arxiv_1706.03762", "arxiv_1409.0473"]
    assert len(result.graph.nodes) == 3
    assert {(edge.source, edge.target) for edge in result.graph.edges} == {
        ("arxiv_1706.03762", "arxiv_1409.0473"),
        ("arxiv_1706.03762", result.graph.nodes[2].id),
    }
    assert oracle.calls == 2
    assert [(unit.stage, unit.identifier) for unit in result.skipped] == [
        ("extraction", "https://example.org/missing.pdf"),
        ("enrichment", "arxiv_1409.0473"),
    ]
    assert result.stats["input_urls"] == 3
    assert result.stats["papers"] == 2
    assert result.stats["cited_papers"] == 1
    assert result.stats["candidate_pairs"] == 6
    assert result.stats["pairs_without_evidence"] == 4
    assert result.stats["skipped"] == 2
    assert extraction.skipped == []


def test_duplicate_urls_yield_one_paper():
    paper = _attention()
    extraction = _StubExtraction({"a": paper, "b": paper})

    papers = _builder(extraction).extract_papers(["a", "b"], [])

    assert len(papers) == 1


def test_pair_filter_limits_classified_pairs():
    builder = _builder(_StubExtraction({}), pair_filter=PairFilterService())

    result = builder.build_from_papers([_attention(), _nmt()])

    assert result.stats["candidate_pairs"] < 6
    assert ("arxiv_1706.03762", "arxiv_1409.0473") in {
        (edge.source, edge.target) for edge in result.graph.edges
    }


def test_derivative_edges_are_merged_after_classified_ones():
    derivative_graph = PaperGraph()
    derivative_graph.add_node(GraphNode(id="arxiv_1706.03762", title="Attention Is All You Need"))
    derivative_graph.add_node(GraphNode(id="s2_bert", title="BERT", role="derivative"))
    derivative_graph.add_edge(
        RelationshipEdge(source="s2_bert", target="arxiv_1706.03762", relationship="builds_on", strength=0.9)
    )
    derivative = _StubDerivativeWorks(
        DerivativeWorksOutcome(
            graph=derivative_graph,
            skipped=[SkippedUnit("derivative_works", "arxiv_1409.0473", "no external identifier")],
        )
    )
    builder = _builder(_StubExtraction({}), derivative_works=derivative, expand_citations=False)

    result = builder.build_from_papers([_attention(), _nmt()], current_year=2024)

    assert derivative.calls == [(["arxiv_1706.03762", "arxiv_1409.0473"], 2024)]
    assert result.graph.node_ids() == ["arxiv_1706.03762", "arxiv_1409.0473", "s2_bert"]
    assert result.stats["derivative_edges"] == 1
    assert result.stats["edges"] == 2
    assert [unit.stage for unit in result.skipped] == ["derivative_works"]


def test_unavailable_services_stop_the_run():
    extraction = _StubExtraction({"a": _attention()})
    builder = _builder(extraction, health_check=lambda: {"grobid": False, "llm": True})

    result = builder.build_from_urls(["a"])

    assert result.success is False
    assert result.error == "Services unavailable: grobid"
    assert extraction.urls == []


def test_no_extracted_paper_is_an_unsuccessful_result():
    result = _builder(_StubExtraction({})).build_from_urls(["x", "y"])

    assert result.success is False
    assert result.error == "No paper could be extracted"
    assert len(result.skipped) == 2
    assert result.graph.nodes == []


def test_empty_input_is_an_unsuccessful_result():
    result = _builder(_StubExtraction({})).build_from_urls([])

    assert result.success is False
    assert result.error
