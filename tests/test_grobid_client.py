import pytest
import responses

from citegraph.providers.clients import GrobidClient, UpstreamError


@responses.activate
def test_process_fulltext_with_bytes():
    client = GrobidClient(base_url="http://grobid.test")
    responses.add(
        responses.POST,
        "http://grobid.test/api/processFulltextDocument",
        body="<TEI>ok</TEI>",
        status=200,
        content_type="application/xml",
    )

    tei = client.process_fulltext(b"%PDF-1.4 test")

    assert tei == "<TEI>ok</TEI>"
    request = responses.calls[0].request
    assert request.headers.get("Accept") == "application/xml"


@responses.activate
def test_process_fulltext_with_path(tmp_path):
    pdf_path = tmp_path / "sample.pdf"
    pdf_path.write_bytes(b"%PDF-1.4 test")

    client = GrobidClient(base_url="http://grobid.test")
    responses.add(
        responses.POST,
        "http://grobid.test/api/processFulltextDocument",
        body="<TEI>ok</TEI>",
        status=200,
        content_type="application/xml",
    )

    tei = client.process_fulltext(pdf_path, consolidate_header=True)

    assert tei == "<TEI>ok</TEI>"
    request_body = responses.calls[0].request.body
    assert pdf_path.name.encode() in request_body


@responses.activate
def test_process_fulltext_rejects_empty_document():
    client = GrobidClient(base_url="http://grobid.test")
    responses.add(
        responses.POST,
        "http://grobid.test/api/processFulltextDocument",
        body="   ",
        status=200,
        content_type="application/xml",
    )

    with pytest.raises(UpstreamError):
        client.process_fulltext(b"%PDF-1.4 test")


@responses.activate
def test_process_fulltext_surfaces_server_errors_after_retries():
    client = GrobidClient(base_url="http://grobid.test", max_retries=2, sleep=lambda _: None)
    responses.add(
        responses.POST,
        "http://grobid.test/api/processFulltextDocument",
        status=503,
    )

    with pytest.raises(UpstreamError):
        client.process_fulltext(b"%PDF-1.4 test")

    assert len(responses.calls) == 2


@responses.activate
def test_is_alive_reads_health_endpoint():
    client = GrobidClient(base_url="http://grobid.test")
    responses.add(responses.GET, "http://grobid.test/api/isalive", body="true", status=200)

    assert client.is_alive() is True


@responses.activate
def test_is_alive_is_false_when_service_errors():
    client = GrobidClient(base_url="http://grobid.test", max_retries=1)
    responses.add(responses.GET, "http://grobid.test/api/isalive", status=404)

    assert client.is_alive() is False
