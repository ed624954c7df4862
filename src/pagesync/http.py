"""httpx-backed page fetchers for the knowledge-base REST API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

import httpx

from .config import Settings
from .coordinator import Page
from .cursor import Cursor, OffsetCursor, PaginationStyle, TokenCursor
from .errors import BackendError, NetworkError
from .query import QuerySpec

logger = logging.getLogger(__name__)


class PageDialect(str, Enum):
    """Request/response shapes used by the list endpoints."""

    PAGE = "page"  # ?page=&pagesize= -> {data, total}
    LIMIT = "limit"  # ?limit=&offset= -> {<items>, total, has_more}
    SCROLL = "scroll"  # ?scroll_id=&limit= -> {<items>, scroll_id, has_more}

    @property
    def pagination(self) -> PaginationStyle:
        return PaginationStyle.TOKEN if self is PageDialect.SCROLL else PaginationStyle.OFFSET


class KnowledgeBaseClient:
    """Thin async JSON client that maps failures onto the fetch error taxonomy."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "KnowledgeBaseClient":
        return cls(
            settings.api_base_url,
            token=settings.api_token,
            timeout=settings.http_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "KnowledgeBaseClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params)

    async def delete_json(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self._request("DELETE", path, params)

    async def remove_documents(self, document_ids: list[str]) -> int:
        """Delete documents and return how many the backend actually removed."""

        if not document_ids:
            return 0
        payload = await self.delete_json("/kb/documents", {"document_ids": ",".join(document_ids)})
        if not isinstance(payload, Mapping):
            return 0
        try:
            return int(payload.get("deleted_count") or 0)
        except (TypeError, ValueError):
            return 0

    async def _request(self, method: str, path: str, params: Mapping[str, Any] | None) -> Any:
        try:
            response = await self._client.request(method, path, params=dict(params or {}))
        except httpx.TransportError as exc:
            raise NetworkError(f"Request to {path} failed: {exc}") from exc
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        status_line = f"HTTP {response.status_code}: {response.reason_phrase}"

        if "application/json" not in content_type:
            if response.is_success:
                raise BackendError("parse_error", f"Expected JSON but received '{content_type or 'no content type'}'")
            raise BackendError("http_error", response.text or status_line, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise BackendError("parse_error", f"Failed to parse response: {exc}") from exc

        if response.is_success:
            return payload
        if isinstance(payload, Mapping) and payload.get("error"):
            raise BackendError(
                str(payload["error"]),
                payload.get("error_description"),
                status_code=response.status_code,
            )
        raise BackendError("http_error", status_line, status_code=response.status_code)


class HttpPageFetcher:
    """``FetchPage`` implementation for one list endpoint."""

    def __init__(
        self,
        client: KnowledgeBaseClient,
        path: str,
        *,
        dialect: PageDialect = PageDialect.PAGE,
        items_field: str = "data",
        extra_params: Mapping[str, Any] | None = None,
    ) -> None:
        self._client = client
        self._path = path
        self._dialect = dialect
        self._items_field = items_field
        self._extra_params = dict(extra_params or {})

    @property
    def pagination(self) -> PaginationStyle:
        return self._dialect.pagination

    @property
    def path(self) -> str:
        return self._path

    async def __call__(self, query: QuerySpec, cursor: Cursor, session: int) -> Page:
        params = {**self._extra_params, **self.build_params(query, cursor)}
        logger.debug("list.http.fetch path=%s session=%s params=%s", self._path, session, params)
        payload = await self._client.get_json(self._path, params)
        if not isinstance(payload, Mapping):
            raise BackendError("parse_error", f"Unexpected list payload from {self._path}")
        return self.parse_page(payload, cursor)

    def build_params(self, query: QuerySpec, cursor: Cursor) -> dict[str, Any]:
        params = query.to_params()
        if self._dialect is PageDialect.SCROLL:
            if not isinstance(cursor, TokenCursor):
                raise TypeError("scroll endpoints need a TokenCursor")
            params["limit"] = query.page_size
            if cursor.token is not None:
                params["scroll_id"] = cursor.token
            return params

        if not isinstance(cursor, OffsetCursor):
            raise TypeError("offset endpoints need an OffsetCursor")
        if self._dialect is PageDialect.PAGE:
            params["page"] = cursor.page
            params["pagesize"] = cursor.page_size
        else:
            # Segment listings name the sort parameter differently.
            if "sort" in params:
                params["order_by"] = params.pop("sort")
            params["limit"] = cursor.page_size
            params["offset"] = cursor.offset
        return params

    def parse_page(self, payload: Mapping[str, Any], cursor: Cursor) -> Page:
        records = list(payload.get(self._items_field) or [])
        total = self._optional_int(payload.get("total"))

        if self._dialect is PageDialect.SCROLL:
            token = payload.get("scroll_id") or payload.get("next_scroll_id") or None
            has_more = bool(payload.get("has_more")) and token is not None
            return Page(records=records, cursor=TokenCursor(token=token), total=total, has_more=has_more)

        if self._dialect is PageDialect.LIMIT:
            has_more = bool(payload.get("has_more"))
        else:
            loaded = getattr(cursor, "offset", 0) + len(records)
            has_more = total is not None and loaded < total
        return Page(records=records, cursor=cursor, total=total or 0, has_more=has_more)

    @staticmethod
    def _optional_int(value: Any) -> int | None:
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


def documents_fetcher(client: KnowledgeBaseClient, collection_id: str) -> HttpPageFetcher:
    return HttpPageFetcher(
        client,
        f"/kb/collections/{collection_id}/documents",
        dialect=PageDialect.PAGE,
        items_field="data",
    )


def segments_fetcher(client: KnowledgeBaseClient, doc_id: str) -> HttpPageFetcher:
    return HttpPageFetcher(
        client,
        f"/kb/documents/{doc_id}/segments",
        dialect=PageDialect.LIMIT,
        items_field="segments",
        extra_params={"include_metadata": "true"},
    )


def segment_scroll_fetcher(client: KnowledgeBaseClient, doc_id: str) -> HttpPageFetcher:
    return HttpPageFetcher(
        client,
        f"/kb/documents/{doc_id}/segments/scroll",
        dialect=PageDialect.SCROLL,
        items_field="segments",
    )


def hits_fetcher(client: KnowledgeBaseClient, doc_id: str, segment_id: str) -> HttpPageFetcher:
    return HttpPageFetcher(
        client,
        f"/kb/documents/{doc_id}/segments/{segment_id}/hits",
        dialect=PageDialect.PAGE,
        items_field="data",
    )


__all__ = [
    "HttpPageFetcher",
    "KnowledgeBaseClient",
    "PageDialect",
    "documents_fetcher",
    "hits_fetcher",
    "segment_scroll_fetcher",
    "segments_fetcher",
]
