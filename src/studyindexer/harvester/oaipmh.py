"""
OAI-PMH client: record header listing and single record retrieval.

Usage:
    async with httpx.AsyncClient(timeout=30.0) as http:
        client = OaiPmhClient(http)
        headers = await client.list_record_headers(repository)
        raw = await client.get_record(repository, headers[0].identifier)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx
from lxml import etree

from ..config import Repository
from ..exceptions import ProtocolError, TransportError
from ..models import RecordHeader, Study
from ..parser.record import OAI_NAMESPACES, ParsedRecord, RecordParser, parse_xml
from ..timeutils import parse_datetime, to_utc

logger = logging.getLogger(__name__)

NO_RECORDS_MATCH = "noRecordsMatch"


def build_get_record_url(repository: Repository, identifier: str) -> str:
    """GetRecord URL with percent-encoded identifier and metadata prefix."""
    separator = "&" if "?" in repository.url else "?"
    return (
        f"{repository.url}{separator}verb=GetRecord"
        f"&identifier={quote(identifier, safe='')}"
        f"&metadataPrefix={quote(repository.metadata_prefix, safe='')}"
    )


def list_identifiers_params(repository: Repository) -> Dict[str, str]:
    params = {"verb": "ListIdentifiers", "metadataPrefix": repository.metadata_prefix}
    if repository.set_spec:
        params["set"] = repository.set_spec
    return params


def filter_headers_since(
    headers: List[RecordHeader], since: datetime
) -> List[RecordHeader]:
    """Headers whose datestamp parses and is strictly after ``since``."""
    cutoff = to_utc(since)
    kept = []
    for header in headers:
        last_modified = parse_datetime(header.last_modified)
        if last_modified is not None and last_modified > cutoff:
            kept.append(header)
    return kept


def _parse_headers(doc: etree._Element) -> List[RecordHeader]:
    headers = []
    for element in doc.xpath("//oai:ListIdentifiers/oai:header", namespaces=OAI_NAMESPACES):
        identifier = element.findtext("oai:identifier", namespaces=OAI_NAMESPACES)
        if not identifier or not identifier.strip():
            continue
        datestamp = element.findtext("oai:datestamp", namespaces=OAI_NAMESPACES)
        status = element.get("status") or ""
        headers.append(
            RecordHeader(
                identifier=identifier.strip(),
                last_modified=datestamp.strip() if datestamp else None,
                deleted=status.strip().lower() == "deleted",
            )
        )
    return headers


def _resumption_token(doc: etree._Element) -> Optional[str]:
    tokens = doc.xpath("//oai:resumptionToken", namespaces=OAI_NAMESPACES)
    if not tokens:
        return None
    token = (tokens[0].text or "").strip()
    return token or None


class OaiPmhClient:
    """Talks OAI-PMH to the repositories over a shared httpx client."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> bytes:
        try:
            response = await self.http.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP {e.response.status_code} from {e.request.url}",
                url=str(e.request.url),
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Request to {url} failed: {e}", url=url) from e
        return response.content

    async def list_record_headers(
        self, repository: Repository, since: Optional[datetime] = None
    ) -> List[RecordHeader]:
        """All record headers of a repository, following resumption tokens.

        With ``since``, only headers modified strictly after it are returned.

        Raises:
            TransportError: a listing request failed.
            ProtocolError: the repository returned an OAI-PMH error other
                than noRecordsMatch.
        """
        headers: List[RecordHeader] = []
        params = list_identifiers_params(repository)
        seen_tokens = set()

        while True:
            doc = parse_xml(await self._get(repository.url, params=params))

            errors = doc.xpath("//oai:error", namespaces=OAI_NAMESPACES)
            if errors:
                code = errors[0].get("code")
                if code == NO_RECORDS_MATCH:
                    break
                message = "".join(errors[0].itertext()).strip()
                raise ProtocolError(f"{code}: {message}", code=code)

            headers.extend(_parse_headers(doc))

            token = _resumption_token(doc)
            if token is None:
                break
            if token in seen_tokens:
                logger.warning(
                    f"[{repository.code}] Resumption token {token} repeated, stopping listing"
                )
                break
            seen_tokens.add(token)
            params = {"verb": "ListIdentifiers", "resumptionToken": token}

        logger.info(f"[{repository.code}] Listed {len(headers)} record headers")

        if since is not None:
            headers = filter_headers_since(headers, since)
            logger.info(
                f"[{repository.code}] {len(headers)} record headers modified "
                f"after {since.isoformat()}"
            )
        return headers

    async def get_record(self, repository: Repository, identifier: str) -> bytes:
        """Raw GetRecord payload.

        Raises:
            TransportError: the request failed.
        """
        return await self._get(build_get_record_url(repository, identifier))

    async def fetch_study(
        self, repository: Repository, header: RecordHeader, parser: RecordParser
    ) -> ParsedRecord:
        """Fetch and parse the record behind a header.

        Headers already marked deleted become tombstones without a request.
        """
        url = build_get_record_url(repository, header.identifier)
        if header.deleted:
            return ParsedRecord(
                study=Study.tombstone(
                    header.identifier,
                    last_modified=header.last_modified,
                    study_xml_source_url=url,
                )
            )
        raw = await self._get(url)
        return parser.parse(raw, repository, source_url=url)


__all__ = [
    "OaiPmhClient",
    "build_get_record_url",
    "list_identifiers_params",
    "filter_headers_since",
]
