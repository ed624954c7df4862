"""Ready-made coordinators for the knowledge-base list views."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .config import Settings
from .coordinator import FetchCoordinator, ListEvents
from .http import (
    HttpPageFetcher,
    KnowledgeBaseClient,
    documents_fetcher,
    hits_fetcher,
    segment_scroll_fetcher,
    segments_fetcher,
)
from .observability import MetricsRecorder
from .query import QuerySpec
from .statuses import is_transient_document

logger = logging.getLogger(__name__)

# Sort keys offered by the collection detail view.
DOCUMENT_SORTS: tuple[str, ...] = (
    "created_at desc",
    "created_at asc",
    "updated_at desc",
    "updated_at asc",
    "name asc",
    "name desc",
    "size desc",
    "size asc",
    "segment_count desc",
    "segment_count asc",
)
SEGMENT_SORTS: dict[str, str] = {
    "recall": "recall_count desc",
    "weight": "weight desc",
    "votes": "vote desc",
}


def document_key(record: Mapping[str, Any]) -> str:
    return str(record.get("document_id") or record.get("id") or "")


def record_id(record: Mapping[str, Any]) -> str:
    return str(record.get("id") or "")


def _never_transient(_record: Any) -> bool:
    return False


def _build(
    fetcher: HttpPageFetcher,
    settings: Settings,
    *,
    key_of,
    is_transient,
    events: ListEvents | None,
    metrics: MetricsRecorder | None,
    name: str,
) -> FetchCoordinator:
    return FetchCoordinator(
        fetch_page=fetcher,
        key_of=key_of,
        is_transient=is_transient,
        pagination=fetcher.pagination,
        poll_interval=settings.poll_interval_seconds,
        events=events,
        metrics=metrics,
        name=name,
    )


def document_list(
    client: KnowledgeBaseClient,
    collection_id: str,
    settings: Settings,
    *,
    events: ListEvents | None = None,
    metrics: MetricsRecorder | None = None,
) -> FetchCoordinator:
    """Coordinator for a collection's documents, polling while any is processing."""

    return _build(
        documents_fetcher(client, collection_id),
        settings,
        key_of=document_key,
        is_transient=is_transient_document,
        events=events,
        metrics=metrics,
        name="documents",
    )


def segment_list(
    client: KnowledgeBaseClient,
    doc_id: str,
    settings: Settings,
    *,
    scroll: bool = False,
    events: ListEvents | None = None,
    metrics: MetricsRecorder | None = None,
) -> FetchCoordinator:
    fetcher = segment_scroll_fetcher(client, doc_id) if scroll else segments_fetcher(client, doc_id)
    return _build(
        fetcher,
        settings,
        key_of=record_id,
        is_transient=is_transient_document,
        events=events,
        metrics=metrics,
        name="segments",
    )


def hit_list(
    client: KnowledgeBaseClient,
    doc_id: str,
    segment_id: str,
    settings: Settings,
    *,
    events: ListEvents | None = None,
    metrics: MetricsRecorder | None = None,
) -> FetchCoordinator:
    # Hits never change state after they are recorded.
    return _build(
        hits_fetcher(client, doc_id, segment_id),
        settings,
        key_of=record_id,
        is_transient=_never_transient,
        events=events,
        metrics=metrics,
        name="hits",
    )


def default_query(settings: Settings, *, keywords: str = "", sort: str | None = None) -> QuerySpec:
    return QuerySpec(keywords=keywords, sort=sort or settings.default_sort, page_size=settings.page_size)


def segment_query(settings: Settings, sort_key: str = "default") -> QuerySpec:
    """Translate the segment view's sort selector into a query."""

    return QuerySpec(sort=SEGMENT_SORTS.get(sort_key), page_size=settings.page_size)


def hit_query(
    settings: Settings,
    *,
    keywords: str = "",
    scenario: str | None = None,
    source: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort: str | None = None,
) -> QuerySpec:
    """Build the hit list query; unset filters are left out of the request."""

    filters = {"scenario": scenario, "source": source, "date_from": date_from, "date_to": date_to}
    return QuerySpec(keywords=keywords, sort=sort, filters=filters, page_size=settings.page_size)


async def delete_documents(
    client: KnowledgeBaseClient,
    coordinator: FetchCoordinator,
    document_ids: list[str],
) -> int:
    """Delete documents server-side, then drop them from the visible list at once."""

    deleted = await client.remove_documents(document_ids)
    if deleted == 0:
        logger.warning("list.documents.delete_noop requested=%s", len(document_ids))
        return 0
    if deleted < len(document_ids):
        # The response does not name the surviving ids.
        logger.warning(
            "list.documents.delete_partial requested=%s deleted=%s",
            len(document_ids),
            deleted,
        )
        if coordinator.query is not None:
            await coordinator.reset(coordinator.query)
        return deleted
    for doc_id in document_ids:
        coordinator.mutate_local(doc_id, delete=True)
    return deleted


__all__ = [
    "DOCUMENT_SORTS",
    "SEGMENT_SORTS",
    "default_query",
    "delete_documents",
    "document_key",
    "document_list",
    "hit_list",
    "hit_query",
    "record_id",
    "segment_list",
    "segment_query",
]
