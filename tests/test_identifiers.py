import pytest

from citegraph.core.identifiers import (
    arxiv_pdf_url,
    citation_node_id,
    extract_arxiv_id,
    format_year,
    normalize_doi,
    normalize_title,
    paper_id_from_url,
    parse_year,
    year_from_url,
)


def test_normalize_doi_strips_prefixes_and_lowercases():
    assert normalize_doi("https://doi.org/10.1000/ABC") == "10.1000/abc"
    assert normalize_doi("DOI:10.1000/XYZ") == "10.1000/xyz"


def test_normalize_doi_handles_dx_prefix_and_spacing():
    assert normalize_doi("  HTTPS://DX.DOI.ORG/10.5555/ABC  ") == "10.5555/abc"


def test_normalize_doi_trims_whitespace_and_handles_none():
    assert normalize_doi("  https://doi.org/10.1000/12345  ") == "10.1000/12345"
    assert normalize_doi("") is None
    assert normalize_doi(None) is None


def test_normalize_title_collapses_whitespace_and_lowercases():
    assert normalize_title("  The   Quick Brown   Fox  ") == "the quick brown fox"


def test_normalize_title_handles_unicode():
    assert normalize_title("Ｔｅｓｔ　Ｔｉｔｌｅ") == "test title"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("https://arxiv.org/abs/1706.03762", "1706.03762"),
        ("https://arxiv.org/pdf/1706.03762v5.pdf", "1706.03762"),
        ("https://arxiv.org/html/2411.00154v1", "2411.00154"),
        ("arXiv:1810.04805", "1810.04805"),
        ("https://example.org/paper.pdf", None),
        (None, None),
    ],
)
def test_extract_arxiv_id(value, expected):
    assert extract_arxiv_id(value) == expected


def test_extract_arxiv_id_can_keep_version():
    assert extract_arxiv_id("https://arxiv.org/abs/1706.03762v5", keep_version=True) == "1706.03762v5"


def test_arxiv_pdf_url_normalizes_arxiv_pages_only():
    assert arxiv_pdf_url("https://arxiv.org/abs/1706.03762") == "https://arxiv.org/pdf/1706.03762.pdf"
    assert arxiv_pdf_url("https://arxiv.org/html/2411.00154v1") == "https://arxiv.org/pdf/2411.00154v1.pdf"
    assert arxiv_pdf_url("https://example.org/paper.pdf") == "https://example.org/paper.pdf"


def test_paper_id_from_url():
    assert paper_id_from_url("https://arxiv.org/abs/1706.03762") == "arxiv_1706.03762"
    assert paper_id_from_url("https://arxiv.org/pdf/1706.03762v5") == "arxiv_1706.03762v5"
    assert paper_id_from_url("https://example.org/files/my paper.pdf") == "paper_my_paper.pdf"
    assert paper_id_from_url("") == "paper_unknown"


def test_year_from_url():
    assert year_from_url("https://arxiv.org/abs/1706.03762") == "2017"
    assert year_from_url("https://arxiv.org/pdf/9912.12345") == "1999"
    assert year_from_url("https://example.org/proceedings/2019/paper.pdf") == "2019"
    assert year_from_url("https://example.org/item/1234/paper.pdf") is None
    assert year_from_url("") is None


def test_parse_and_format_year():
    assert parse_year("May 2020") == 2020
    assert parse_year(2018) == 2018
    assert parse_year("Unknown") is None
    assert format_year(2018) == "2018"
    assert format_year(None) == "Unknown"


def test_citation_node_id_is_stable_slug():
    assert citation_node_id("Attention Is All You Need") == "cite_attention_is_all_you_need"
    assert citation_node_id(None, "b3") == "cite_b3"
    assert citation_node_id(None) == "cite_unknown"
    assert len(citation_node_id("x" * 200)) == len("cite_") + 50
