from citegraph.parsing.citations import extract_citations, strip_citation_markers


def test_extract_citations_handles_ranges_and_duplicates() -> None:
    text = "Memory types that balance persistence with dynamism [2, 3-5; 3]."

    assert extract_citations(text) == ["2", "3", "4", "5"]


def test_extract_citations_ignores_non_numeric_markers() -> None:
    text = "See discussion in [A1] and [beta]; compare with [10]."

    assert extract_citations(text) == ["10"]


def test_extract_citations_accepts_en_dash_ranges() -> None:
    assert extract_citations("as in [7–9]") == ["7", "8", "9"]


def test_strip_citation_markers_removes_numeric_and_author_year_markers() -> None:
    text = "Transformers [1, 2] outperform RNNs (Graves, 2013) on long inputs (2017) ."

    assert strip_citation_markers(text) == "Transformers outperform RNNs on long inputs."


def test_strip_citation_markers_handles_empty_input() -> None:
    assert strip_citation_markers(None) == ""
    assert strip_citation_markers("") == ""
