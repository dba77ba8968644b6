"""
Search engine interface and its Elasticsearch implementation.

Documents live in one index per language, named ``<index_prefix>_<lang>``,
and are keyed by StudyOfLanguage.id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx

from ..config import SearchConfig
from ..exceptions import SearchDecodeError, TransportError
from ..models import StudyOfLanguage
from ..timeutils import parse_datetime

logger = logging.getLogger(__name__)


@dataclass
class ScrollPage:
    """One page of a scrolled query: the raw ``_source`` of each hit."""

    scroll_id: Optional[str]
    hits: List[Dict[str, Any]] = field(default_factory=list)


class SearchIndex(Protocol):
    """Operations the harvester needs from the search engine."""

    async def get_study(self, study_id: str, language: str) -> Optional[StudyOfLanguage]:
        ...

    async def bulk_index(self, documents: List[StudyOfLanguage], language: str) -> bool:
        ...

    async def count(self, language: str, query: str = "*") -> int:
        ...

    async def most_recent_last_modified(self) -> Optional[datetime]:
        ...

    async def open_scroll(
        self, language: str, query: str, page_size: int, scroll_timeout: str
    ) -> ScrollPage:
        ...

    async def next_scroll_page(self, scroll_id: str, scroll_timeout: str) -> ScrollPage:
        ...

    async def clear_scroll(self, scroll_id: str) -> None:
        ...


def decode_study(source: Dict[str, Any], language: str) -> StudyOfLanguage:
    """Decode a stored document.

    Raises:
        SearchDecodeError: the document does not have the StudyOfLanguage shape.
    """
    try:
        return StudyOfLanguage.from_dict(source, language)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SearchDecodeError(f"Cannot decode study document: {e!r}") from e


def _query(query: str) -> Dict[str, Any]:
    if query in ("", "*"):
        return {"match_all": {}}
    return {"query_string": {"query": query}}


class ElasticsearchIndex:
    """SearchIndex over the Elasticsearch REST API."""

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or SearchConfig()
        self._http = http
        self._owns_http = http is None

    def _get_http(self) -> httpx.AsyncClient:
        """Lazy HTTP client."""
        if self._http is None:
            auth = None
            if self.config.username:
                auth = (self.config.username, self.config.password or "")
            self._http = httpx.AsyncClient(
                base_url=self.config.url,
                timeout=self.config.request_timeout,
                auth=auth,
            )
        return self._http

    def index_name(self, language: str) -> str:
        return f"{self.config.index_prefix}_{language}"

    async def _request(
        self, method: str, path: str, allow_not_found: bool = False, **kwargs
    ) -> Optional[httpx.Response]:
        try:
            response = await self._get_http().request(method, path, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {path} failed: {e}", url=path) from e

        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            raise TransportError(
                f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}",
                url=path,
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        """Response body as a JSON object, or TransportError."""
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{response.request.method} {response.request.url.path} "
                f"returned a non-JSON body: {response.text[:200]}",
                url=str(response.request.url),
                status_code=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise TransportError(
                f"{response.request.method} {response.request.url.path} "
                f"returned {type(body).__name__}, expected an object",
                url=str(response.request.url),
                status_code=response.status_code,
            )
        return body

    async def get_study(self, study_id: str, language: str) -> Optional[StudyOfLanguage]:
        path = f"/{self.index_name(language)}/_doc/{quote(study_id, safe='')}"
        response = await self._request("GET", path, allow_not_found=True)
        if response is None:
            return None
        body = self._json(response)
        if not body.get("found", False):
            return None
        return decode_study(body["_source"], language)

    async def bulk_index(self, documents: List[StudyOfLanguage], language: str) -> bool:
        """Index every document, tombstones included, in one request."""
        if not documents:
            return True

        index = self.index_name(language)
        lines = []
        for document in documents:
            lines.append(json.dumps({"index": {"_index": index, "_id": document.id}}))
            lines.append(json.dumps(document.to_dict()))
        payload = "\n".join(lines) + "\n"

        response = await self._request(
            "POST",
            "/_bulk",
            content=payload.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
        )
        body = self._json(response)
        if body.get("errors"):
            failed = [
                item["index"]
                for item in body.get("items", [])
                if "error" in item.get("index", {})
            ]
            first_error = failed[0].get("error") if failed else None
            logger.error(
                f"Bulk indexing into {index} failed for {len(failed)} of "
                f"{len(documents)} documents, first error: {first_error}"
            )
            return False
        return True

    async def count(self, language: str, query: str = "*") -> int:
        response = await self._request(
            "POST",
            f"/{self.index_name(language)}/_count",
            allow_not_found=True,
            json={"query": _query(query)},
        )
        if response is None:
            return 0
        return int(self._json(response).get("count", 0))

    async def most_recent_last_modified(self) -> Optional[datetime]:
        """Latest lastModified across all language indices."""
        response = await self._request(
            "POST",
            f"/{self.config.index_prefix}_*/_search",
            allow_not_found=True,
            json={
                "size": 1,
                "_source": ["lastModified"],
                "sort": [{"lastModified": {"order": "desc", "unmapped_type": "date"}}],
            },
        )
        if response is None:
            return None
        hits = self._json(response).get("hits", {}).get("hits", [])
        if not hits:
            return None
        return parse_datetime(hits[0].get("_source", {}).get("lastModified"))

    @staticmethod
    def _page(body: Dict[str, Any]) -> ScrollPage:
        hits = body.get("hits", {}).get("hits", [])
        return ScrollPage(
            scroll_id=body.get("_scroll_id"),
            hits=[hit.get("_source", {}) for hit in hits],
        )

    async def open_scroll(
        self, language: str, query: str, page_size: int, scroll_timeout: str
    ) -> ScrollPage:
        response = await self._request(
            "POST",
            f"/{self.index_name(language)}/_search",
            allow_not_found=True,
            params={"scroll": scroll_timeout},
            json={"size": page_size, "query": _query(query), "sort": ["_doc"]},
        )
        if response is None:
            return ScrollPage(scroll_id=None)
        return self._page(self._json(response))

    async def next_scroll_page(self, scroll_id: str, scroll_timeout: str) -> ScrollPage:
        response = await self._request(
            "POST",
            "/_search/scroll",
            json={"scroll": scroll_timeout, "scroll_id": scroll_id},
        )
        return self._page(self._json(response))

    async def clear_scroll(self, scroll_id: str) -> None:
        await self._request(
            "DELETE",
            "/_search/scroll",
            allow_not_found=True,
            json={"scroll_id": scroll_id},
        )

    async def close(self) -> None:
        """Close the HTTP client if this index created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None


__all__ = ["ScrollPage", "SearchIndex", "ElasticsearchIndex", "decode_study"]
