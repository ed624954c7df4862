"""In-process knowledge-base API used to exercise the HTTP adapters."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, PlainTextResponse


def build_kb_app(
    documents: list[dict[str, Any]],
    segments: list[dict[str, Any]],
    hits: list[dict[str, Any]] | None = None,
) -> FastAPI:
    app = FastAPI()
    app.state.documents = documents
    app.state.segments = segments
    app.state.hits = hits or []
    app.state.requests = []

    def _matching(keywords: str | None) -> list[dict[str, Any]]:
        docs = app.state.documents
        if not keywords:
            return list(docs)
        return [doc for doc in docs if keywords.lower() in doc["name"].lower()]

    @app.get("/kb/collections/{collection_id}/documents")
    async def list_documents(
        collection_id: str,
        page: int = 1,
        pagesize: int = 10,
        sort: str | None = None,
        keywords: str | None = None,
    ):
        app.state.requests.append({"collection_id": collection_id, "page": page, "pagesize": pagesize, "sort": sort, "keywords": keywords})
        if collection_id == "missing":
            return JSONResponse(
                {"error": "not_found", "error_description": "Collection not found"},
                status_code=404,
            )
        if collection_id == "broken":
            return PlainTextResponse("upstream exploded", status_code=502)
        docs = _matching(keywords)
        start = (page - 1) * pagesize
        return {"data": docs[start : start + pagesize], "total": len(docs), "page": page, "pagesize": pagesize}

    @app.get("/kb/documents/{doc_id}/segments")
    async def list_segments(doc_id: str, limit: int = 10, offset: int = 0, order_by: str | None = None):
        app.state.requests.append({"doc_id": doc_id, "limit": limit, "offset": offset, "order_by": order_by})
        chunk = app.state.segments[offset : offset + limit]
        total = len(app.state.segments)
        return {"segments": chunk, "total": total, "has_more": offset + limit < total}

    @app.get("/kb/documents/{doc_id}/segments/scroll")
    async def scroll_segments(doc_id: str, limit: int = 10, scroll_id: str | None = Query(default=None)):
        app.state.requests.append({"doc_id": doc_id, "limit": limit, "scroll_id": scroll_id})
        start = int(scroll_id) if scroll_id else 0
        end = start + limit
        more = end < len(app.state.segments)
        return {
            "segments": app.state.segments[start:end],
            "scroll_id": str(end) if more else None,
            "has_more": more,
        }

    @app.get("/kb/documents/{doc_id}/segments/{segment_id}/hits")
    async def list_hits(
        doc_id: str,
        segment_id: str,
        page: int = 1,
        pagesize: int = 10,
        keywords: str | None = None,
        scenario: str | None = None,
        source: str | None = None,
    ):
        app.state.requests.append(
            {"segment_id": segment_id, "page": page, "pagesize": pagesize, "keywords": keywords, "scenario": scenario, "source": source}
        )
        found = app.state.hits
        if keywords:
            found = [hit for hit in found if keywords.lower() in hit["query"].lower()]
        if scenario:
            found = [hit for hit in found if hit["scenario"] == scenario]
        if source:
            found = [hit for hit in found if hit["source"] == source]
        start = (page - 1) * pagesize
        return {"data": found[start : start + pagesize], "total": len(found), "page": page, "pagesize": pagesize}

    @app.delete("/kb/documents")
    async def remove_documents(document_ids: str):
        requested = [value for value in document_ids.split(",") if value]
        before = len(app.state.documents)
        app.state.documents = [doc for doc in app.state.documents if doc["document_id"] not in requested]
        return {"deleted_count": before - len(app.state.documents), "requested_count": len(requested)}

    return app
