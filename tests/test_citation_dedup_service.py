from citegraph.core.models import CitationOccurrence
from citegraph.services.citation_dedup_service import (
    CitationDedupService,
    authors_similar,
    dedupe_citations,
    is_duplicate,
)


def _occurrence(bib_id, title, authors=(), year=None, context="ctx"):
    return CitationOccurrence(
        bibliography_id=bib_id,
        title=title,
        authors=list(authors),
        year=year,
        context=context,
    )


def test_authors_similar_rules():
    assert authors_similar([], [])
    assert authors_similar(["A. Smith"], [])
    assert authors_similar([], ["A. Smith", "B. Jones"])
    assert authors_similar(["Alice Smith", "Bob Jones"], ["alice  smith", "bob jones"])
    assert authors_similar(["A. Smith", "B. Jones", "C. Lee"], ["Smith, A.", "Jones, B."])
    assert authors_similar(["A. Smith"], ["Alice Smith", "Carl Brown"])
    assert not authors_similar(["A. Smith", "D. Wu"], ["B. Jones", "D. Wu", "E. Kim"])


def test_is_duplicate_requires_same_title_and_compatible_year():
    base = _occurrence("b0", "Attention Is All You Need", ["A. Vaswani"], "2017")

    assert is_duplicate(base, _occurrence("b5", "attention is  all you need", ["Ashish Vaswani"], None))
    assert not is_duplicate(base, _occurrence("b5", "Attention Is All You Need", ["A. Vaswani"], "2018"))
    assert not is_duplicate(base, _occurrence("b5", "Another Paper", ["A. Vaswani"], "2017"))
    assert not is_duplicate(_occurrence("b1", None), _occurrence("b2", None))


def test_dedupe_keeps_most_informative_variant_in_first_position():
    sparse = _occurrence("b0", "Attention Is All You Need", ["A. Vaswani"], None, "short")
    other = _occurrence("b1", "BERT", ["J. Devlin"], "2019")
    rich = _occurrence(
        "b7", "Attention Is All You Need", ["A. Vaswani", "N. Shazeer"], "2017", "much longer context"
    )

    result = dedupe_citations([sparse, other, rich])

    assert result == [rich, other]


def test_dedupe_prefers_known_year_then_longer_context():
    undated = _occurrence("b0", "Same Title", ["A. Smith"], None, "a much longer context here")
    dated = _occurrence("b1", "Same Title", ["A. Smith"], "2020", "short")

    assert dedupe_citations([undated, dated]) == [dated]


def test_dedupe_never_merges_untitled_occurrences():
    first = _occurrence("b0", None)
    second = _occurrence("b1", None)

    assert dedupe_citations([first, second]) == [first, second]


def test_dedupe_is_idempotent():
    occurrences = [
        _occurrence("b0", "Paper One", ["A. Smith"], None),
        _occurrence("b1", "Paper One", ["A. Smith", "B. Jones"], "2020"),
        _occurrence("b2", "Paper One", ["B. Jones", "A. Smith", "C. Lee"], "2020"),
        _occurrence("b3", "Paper Two", [], None),
        _occurrence("b4", "Paper Two", [], "2018"),
        _occurrence("b5", "Paper Three", ["D. Wu"], "2015"),
    ]
    service = CitationDedupService()

    once = service.dedupe(occurrences)
    twice = service.dedupe(once)

    assert once == twice
    assert [occurrence.bibliography_id for occurrence in once] == ["b2", "b4", "b5"]


def test_entry_without_authors_merges_with_its_richer_twin():
    with_authors = _occurrence("b0", "Attention Is All You Need", ["A. Vaswani"], "2017")
    without_authors = _occurrence("b9", "Attention Is All You Need", [], "2017")

    assert dedupe_citations([without_authors, with_authors]) == [with_authors]
    assert dedupe_citations([with_authors, without_authors]) == [with_authors]
