"""
Tests for OaiPmhClient using an httpx mock transport.
"""

from datetime import datetime, timezone

import httpx
import pytest

from conftest import build_list_identifiers, build_oai_error, build_record

from studyindexer.config import Repository
from studyindexer.exceptions import MalformedRecordError, ProtocolError, TransportError
from studyindexer.harvester.oaipmh import (
    OaiPmhClient,
    build_get_record_url,
    filter_headers_since,
    list_identifiers_params,
)
from studyindexer.models import RecordHeader
from studyindexer.parser import RecordParser


def client_for(handler) -> OaiPmhClient:
    return OaiPmhClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestUrls:
    """Test request URL and parameter construction."""

    def test_get_record_url_encodes_identifier(self, repository):
        """Test the identifier is percent-encoded."""
        url = build_get_record_url(repository, "oai:example.org:study/1234 a")

        assert url == (
            "https://oai.example.org/provider?verb=GetRecord"
            "&identifier=oai%3Aexample.org%3Astudy%2F1234%20a&metadataPrefix=ddi"
        )

    def test_get_record_url_appends_to_existing_query(self):
        """Test parameters append to an existing query string."""
        repository = Repository(
            url="https://oai.example.org/provider?service=oai", code="X", name="X"
        )

        url = build_get_record_url(repository, "1")

        assert url.startswith("https://oai.example.org/provider?service=oai&verb=GetRecord&")

    def test_list_params_include_set(self):
        """Test the set spec is sent when configured."""
        repository = Repository(
            url="https://oai.example.org", code="FSD", name="FSD", set_spec="data_kind:quantitative"
        )

        assert list_identifiers_params(repository) == {
            "verb": "ListIdentifiers",
            "metadataPrefix": "ddi",
            "set": "data_kind:quantitative",
        }


class TestFilterHeadersSince:
    """Test incremental header filtering."""

    def test_strictly_after_cutoff(self):
        """Test only headers strictly after the cut-off are kept."""
        headers = [
            RecordHeader("old", "2018-01-01T00:00:00Z"),
            RecordHeader("same", "2018-02-01T00:00:00Z"),
            RecordHeader("new", "2018-03-01"),
            RecordHeader("bad", "yesterday"),
            RecordHeader("none", None),
        ]

        kept = filter_headers_since(headers, datetime(2018, 2, 1, tzinfo=timezone.utc))

        assert [h.identifier for h in kept] == ["new"]


class TestListRecordHeaders:
    """Test ListIdentifiers paging and error handling."""

    @pytest.mark.asyncio
    async def test_follows_resumption_tokens(self, repository):
        """Test follow-up requests send only verb and resumptionToken."""
        requests = []
        pages = {
            None: build_list_identifiers(
                [("1", "2018-01-01T00:00:00Z"), ("2", "2018-01-02T00:00:00Z")], token="page2"
            ),
            "page2": build_list_identifiers([("3", "2018-01-03T00:00:00Z", "deleted")]),
        }

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(dict(request.url.params))
            return httpx.Response(200, content=pages[request.url.params.get("resumptionToken")])

        headers = await client_for(handler).list_record_headers(repository)

        assert [h.identifier for h in headers] == ["1", "2", "3"]
        assert headers[2].deleted is True
        assert requests == [
            {"verb": "ListIdentifiers", "metadataPrefix": "ddi"},
            {"verb": "ListIdentifiers", "resumptionToken": "page2"},
        ]

    @pytest.mark.asyncio
    async def test_repeated_token_stops_listing(self, repository):
        """Test a repeated resumption token ends the listing."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(
                200, content=build_list_identifiers([(str(calls), "2018-01-01")], token="same")
            )

        headers = await client_for(handler).list_record_headers(repository)

        assert calls == 2
        assert len(headers) == 2

    @pytest.mark.asyncio
    async def test_no_records_match_is_empty(self, repository):
        """Test noRecordsMatch yields an empty listing."""
        def handler(request):
            return httpx.Response(200, content=build_oai_error("noRecordsMatch", "Nothing"))

        assert await client_for(handler).list_record_headers(repository) == []

    @pytest.mark.asyncio
    async def test_other_oai_error_raises(self, repository):
        """Test other OAI-PMH errors raise ProtocolError."""
        def handler(request):
            return httpx.Response(
                200, content=build_oai_error("cannotDisseminateFormat", "No ddi here")
            )

        with pytest.raises(ProtocolError) as exc_info:
            await client_for(handler).list_record_headers(repository)

        assert exc_info.value.code == "cannotDisseminateFormat"

    @pytest.mark.asyncio
    async def test_http_error_raises_transport_error(self, repository):
        """Test an HTTP error status maps to TransportError."""
        def handler(request):
            return httpx.Response(500, content=b"boom")

        with pytest.raises(TransportError) as exc_info:
            await client_for(handler).list_record_headers(repository)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self, repository):
        """Test a connection failure maps to TransportError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await client_for(handler).list_record_headers(repository)

    @pytest.mark.asyncio
    async def test_invalid_repository_url_raises_transport_error(self):
        """Test an unusable repository URL maps to TransportError."""

        def handler(request):
            raise AssertionError("no request expected")

        broken = Repository(url="http://exa mple.org:abc/oai", code="BRK", name="Broken")

        with pytest.raises(TransportError) as exc_info:
            await client_for(handler).list_record_headers(broken)

        assert exc_info.value.url == "http://exa mple.org:abc/oai"

    @pytest.mark.asyncio
    async def test_malformed_listing_raises(self, repository):
        """Test an unparseable listing raises MalformedRecordError."""
        def handler(request):
            return httpx.Response(200, content=b"<html><body>Maintenance")

        with pytest.raises(MalformedRecordError):
            await client_for(handler).list_record_headers(repository)

    @pytest.mark.asyncio
    async def test_since_filters_headers(self, repository):
        """Test listing with since drops older headers."""
        def handler(request):
            return httpx.Response(
                200,
                content=build_list_identifiers(
                    [("old", "2017-12-31T23:59:59Z"), ("new", "2018-06-01T00:00:00Z")]
                ),
            )

        headers = await client_for(handler).list_record_headers(
            repository, since=datetime(2018, 1, 1, tzinfo=timezone.utc)
        )

        assert [h.identifier for h in headers] == ["new"]


class TestFetchStudy:
    """Test GetRecord retrieval and parsing."""

    @pytest.mark.asyncio
    async def test_parses_record_with_source_url(self, repository):
        """Test fetch_study parses the record and keeps its source URL."""
        seen = []

        def handler(request):
            seen.append(request.url.params["identifier"])
            return httpx.Response(200, content=build_record())

        parsed = await client_for(handler).fetch_study(
            repository, RecordHeader("1234", "2018-02-01T07:48:38Z"), RecordParser()
        )

        assert seen == ["1234"]
        assert parsed.study.study_number == "1234"
        assert parsed.study.study_xml_source_url == build_get_record_url(repository, "1234")

    @pytest.mark.asyncio
    async def test_deleted_header_needs_no_request(self, repository):
        """Test a deleted header becomes a tombstone without a request."""
        def handler(request):
            raise AssertionError("no request expected")

        parsed = await client_for(handler).fetch_study(
            repository,
            RecordHeader("99", "2018-02-01T07:48:38Z", deleted=True),
            RecordParser(),
        )

        assert parsed.study.active is False
        assert parsed.study.study_number == "99"
        assert parsed.study.last_modified == "2018-02-01T07:48:38Z"

    @pytest.mark.asyncio
    async def test_get_record_returns_raw_payload(self, repository):
        """Test get_record returns the payload bytes."""
        def handler(request):
            return httpx.Response(200, content=b"<raw/>")

        assert await client_for(handler).get_record(repository, "1") == b"<raw/>"
