"""Tests for bibliography and citation occurrence extraction from TEI documents."""

import pytest
from lxml import etree

from citegraph.exceptions import ParseError
from citegraph.parsing.bibliography import extract_bibliography_entries, resolve_bibliography_id
from citegraph.parsing.structure import FALLBACK_SECTION, extract_document_structure


def _tei(body: str, header_extra: str = "") -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<TEI xmlns="http://www.tei-c.org/ns/1.0">
  <teiHeader>
    <fileDesc>
      <titleStmt><title>Attention Based Translation</title></titleStmt>
      <sourceDesc>
        <biblStruct>
          <analytic>
            <author><persName><forename>Jane</forename><surname>Doe</surname></persName></author>
          </analytic>
          {header_extra}
        </biblStruct>
      </sourceDesc>
    </fileDesc>
  </teiHeader>
  <text>
    <body>
{body}
    </body>
    <back>
      <div type="references">
        <listBibl>
          <biblStruct xml:id="b0">
            <analytic>
              <title level="a" type="main">Neural Machine Translation by Jointly Learning to Align and Translate</title>
              <author><persName><forename type="first">Dzmitry</forename><surname>Bahdanau</surname></persName></author>
              <author><persName><forename type="first">Kyunghyun</forename><surname>Cho</surname></persName></author>
            </analytic>
            <monogr>
              <title level="m">ICLR</title>
              <imprint><date type="published" when="2015">2015</date></imprint>
            </monogr>
          </biblStruct>
          <biblStruct xml:id="b1">
            <analytic>
              <title level="a" type="main">Convolutional Sequence to Sequence Learning</title>
              <author><persName><forename>Jonas</forename><surname>Gehring</surname></persName></author>
            </analytic>
            <monogr><imprint><date>2017</date></imprint></monogr>
          </biblStruct>
          <biblStruct xml:id="b2">
            <monogr>
              <title level="m">Adam: A Method for Stochastic Optimization</title>
            </monogr>
          </biblStruct>
        </listBibl>
      </div>
    </back>
  </text>
</TEI>
"""


SECTIONED_BODY = """
      <div>
        <head n="1">Introduction</head>
        <p>Sequence models are widely used. As shown by <ref type="bibr" target="#b0">[1]</ref>, attention
        mechanisms improve translation. Convolutional models <ref type="bibr" target="#b1">[2]</ref> are also strong.</p>
      </div>
      <div>
        <head n="3">Method</head>
        <p>We optimise with <ref type="bibr" target="#b2">[3]</ref> throughout.</p>
      </div>
      <div>
        <head n="2">Related Work</head>
        <p>Prior convolutional work <ref type="bibr">[2]</ref> inspired this design.</p>
      </div>
"""


class TestBibliography:
    def test_entries_carry_title_authors_and_year(self):
        root = etree.fromstring(_tei(SECTIONED_BODY).encode("utf-8"))

        entries = extract_bibliography_entries(root)

        assert set(entries) == {"b0", "b1", "b2"}
        assert entries["b0"].title.startswith("Neural Machine Translation")
        assert entries["b0"].authors == ["Dzmitry Bahdanau", "Kyunghyun Cho"]
        assert entries["b0"].year == "2015"
        assert entries["b1"].year == "2017"
        assert entries["b2"].title == "Adam: A Method for Stochastic Optimization"
        assert entries["b2"].authors == []
        assert entries["b2"].year is None

    def test_resolve_prefers_direct_target(self):
        root = etree.fromstring(_tei(SECTIONED_BODY).encode("utf-8"))
        entries = extract_bibliography_entries(root)

        assert resolve_bibliography_id("#b1", "[9]", entries) == "b1"

    def test_resolve_falls_back_to_fuzzy_target_and_numeric_marker(self):
        root = etree.fromstring(_tei(SECTIONED_BODY).encode("utf-8"))
        entries = extract_bibliography_entries(root)

        assert resolve_bibliography_id("#b0x", "", entries) == "b0"
        assert resolve_bibliography_id(None, "[3]", entries) == "b2"
        assert resolve_bibliography_id(None, "[1, 2]", entries) == "b0"
        assert resolve_bibliography_id(None, "(Smith, 2020)", entries) is None


class TestExtractDocumentStructure:
    def test_collects_citations_from_target_sections_only(self):
        structure = extract_document_structure(_tei(SECTIONED_BODY))

        assert structure.title == "Attention Based Translation"
        assert structure.authors == ["Jane Doe"]
        assert structure.all_section_titles == ["Introduction", "Method", "Related Work"]
        assert structure.target_sections == ["Introduction", "Related Work"]
        assert structure.used_fallback is False
        assert [c.bibliography_id for c in structure.citations] == ["b0", "b1", "b1"]
        assert {c.section for c in structure.citations} == {"Introduction", "Related Work"}

    def test_occurrences_inherit_bibliography_fields_and_context(self):
        structure = extract_document_structure(_tei(SECTIONED_BODY))
        first = structure.citations[0]

        assert first.marker == "[1]"
        assert first.title.startswith("Neural Machine Translation")
        assert first.authors == ["Dzmitry Bahdanau", "Kyunghyun Cho"]
        assert first.year == "2015"
        assert "attention mechanisms improve translation." in first.context
        assert first.context == first.context_before + first.marker + first.context_after

    def test_context_is_sentence_aligned_with_small_radius(self):
        structure = extract_document_structure(_tei(SECTIONED_BODY), radius=10)
        first = structure.citations[0]

        assert first.context_before == "As shown by "
        assert first.context_after == ", attention mechanisms improve translation."

    def test_falls_back_to_all_sections_without_target_headers(self):
        body = """
      <div>
        <head>Experiments</head>
        <p>We compare against <ref type="bibr" target="#b1">[2]</ref> on WMT.</p>
      </div>
"""
        structure = extract_document_structure(_tei(body))

        assert structure.used_fallback is True
        assert structure.target_sections == []
        assert [(c.bibliography_id, c.section) for c in structure.citations] == [("b1", "Experiments")]

    def test_falls_back_when_target_sections_have_no_citations(self):
        body = """
      <div>
        <head>Introduction</head>
        <p>No references here.</p>
      </div>
      <div>
        <head>Evaluation</head>
        <p>Results match <ref type="bibr" target="#b0">[1]</ref>.</p>
      </div>
"""
        structure = extract_document_structure(_tei(body))

        assert structure.used_fallback is True
        assert [c.section for c in structure.citations] == ["Evaluation"]

    def test_body_without_sections_uses_fallback_label(self):
        body = '<p>Plain text citing <ref type="bibr" target="#b2">[3]</ref> directly.</p>'

        structure = extract_document_structure(_tei(body))

        assert [c.section for c in structure.citations] == [FALLBACK_SECTION]

    def test_unresolvable_refs_are_skipped(self):
        body = """
      <div>
        <head>Introduction</head>
        <p>Unknown work <ref type="bibr">[42]</ref> and known work <ref type="bibr" target="#b0">[1]</ref>.</p>
      </div>
"""
        structure = extract_document_structure(_tei(body))

        assert [c.bibliography_id for c in structure.citations] == ["b0"]

    def test_year_and_arxiv_id_fall_back_to_source_url(self):
        structure = extract_document_structure(
            _tei(SECTIONED_BODY), "https://arxiv.org/abs/1706.03762v5"
        )

        assert structure.year == "2017"
        assert structure.arxiv_id == "1706.03762"

    def test_header_values_win_over_url(self):
        header = '<monogr><imprint><date when="2016">2016</date></imprint></monogr><idno type="DOI">10.1/x</idno>'
        structure = extract_document_structure(
            _tei(SECTIONED_BODY, header_extra=header), "https://arxiv.org/abs/1706.03762"
        )

        assert structure.year == "2016"
        assert structure.doi == "10.1/x"

    def test_missing_metadata_uses_sentinels(self):
        tei = '<TEI xmlns="http://www.tei-c.org/ns/1.0"><text><body/></text></TEI>'

        structure = extract_document_structure(tei)

        assert structure.title == "Unknown Title"
        assert structure.year == "Unknown"
        assert structure.citations == []

    @pytest.mark.parametrize("payload", ["", "<TEI><unclosed>", b"\x00not xml"])
    def test_unparsable_input_raises_parse_error(self, payload):
        with pytest.raises(ParseError):
            extract_document_structure(payload)
