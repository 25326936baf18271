"""Research capabilities – keyword search over the Weaviate document store.

Ingestion is handled elsewhere; this module only reads.  Objects in the
collection carry ``text``, ``title``, ``source``, ``document_type``,
``year`` (int) and ``date`` (RFC 3339 date) properties.

"No relevant documents" is a normal answer, not an error: the marker
``NO_DOCUMENTS`` is returned so the research specialist can say so.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

import weaviate
from weaviate.auth import AuthApiKey
from weaviate.classes.query import Filter

from ..config.settings import (
    WEAVIATE_API_KEY, WEAVIATE_COLLECTION, WEAVIATE_GRPC_HOST, WEAVIATE_GRPC_PORT,
    WEAVIATE_GRPC_SECURE, WEAVIATE_HTTP_HOST, WEAVIATE_HTTP_PORT, WEAVIATE_HTTP_SECURE,
)
from ..models.schemas import Domain
from .registry import Capability, ToolTable, build_tool_table

logger = logging.getLogger(__name__)

NO_DOCUMENTS = "No relevant documents found."

_PROPERTIES = ["text", "title", "source", "document_type", "year", "date"]
_SNIPPET_CHARS = 800
DEFAULT_LIMIT = 5


def _get_weaviate_client():
    """Synchronous Weaviate client from settings (cloud or self-hosted)."""
    auth = AuthApiKey(WEAVIATE_API_KEY) if WEAVIATE_API_KEY else None
    if WEAVIATE_HTTP_HOST.endswith(".weaviate.cloud"):
        return weaviate.connect_to_weaviate_cloud(
            cluster_url=f"https://{WEAVIATE_HTTP_HOST}",
            auth_credentials=auth,
        )
    return weaviate.connect_to_custom(
        http_host=WEAVIATE_HTTP_HOST,
        http_port=WEAVIATE_HTTP_PORT,
        http_secure=WEAVIATE_HTTP_SECURE,
        grpc_host=WEAVIATE_GRPC_HOST,
        grpc_port=WEAVIATE_GRPC_PORT,
        grpc_secure=WEAVIATE_GRPC_SECURE,
        auth_credentials=auth,
    )


def _as_datetime(value: str) -> datetime:
    d = date.fromisoformat(value.strip())
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def search_documents(query: str, *, filters: Any = None, limit: int = DEFAULT_LIMIT) -> list[dict[str, Any]]:
    """BM25 search, optionally narrowed by a Weaviate filter."""
    client = _get_weaviate_client()
    try:
        col = client.collections.get(WEAVIATE_COLLECTION)
        response = col.query.bm25(
            query=query,
            filters=filters,
            limit=max(1, limit),
            return_properties=_PROPERTIES,
        )
        return [
            {k: v for k, v in obj.properties.items() if v is not None}
            for obj in response.objects
        ]
    finally:
        client.close()


def format_documents(docs: list[dict[str, Any]]) -> str:
    if not docs:
        return NO_DOCUMENTS
    blocks = []
    for i, doc in enumerate(docs, 1):
        meta = [str(doc[k]) for k in ("source", "document_type", "date") if doc.get(k)]
        header = f"[{i}] {doc.get('title') or doc.get('source') or 'Untitled'}"
        if meta:
            header += f" ({', '.join(meta)})"
        blocks.append(f"{header}\n{str(doc.get('text', ''))[:_SNIPPET_CHARS]}")
    return "\n\n".join(blocks)


# ── Capabilities ─────────────────────────────────────────────────────────

def query_documents(query: str, limit: int = DEFAULT_LIMIT) -> str:
    """Search the user's uploaded documents by keywords.

    Args:
        query: What to look for, e.g. "portfolio allocation".
        limit: Maximum number of passages to return.
    """
    logger.info("Document search: %r", query)
    return format_documents(search_documents(query, limit=limit))


def query_documents_by_year(query: str, year: int, limit: int = DEFAULT_LIMIT) -> str:
    """Search documents from one calendar year.

    Args:
        query: What to look for.
        year: Four-digit year the documents belong to, e.g. 2022.
        limit: Maximum number of passages to return.
    """
    logger.info("Document search: %r in %s", query, year)
    return format_documents(search_documents(query, filters=Filter.by_property("year").equal(int(year)), limit=limit))


def query_documents_by_date_range(query: str, start_date: str, end_date: str, limit: int = DEFAULT_LIMIT) -> str:
    """Search documents dated within an inclusive range.

    Args:
        query: What to look for.
        start_date: ISO date, e.g. "2022-01-01".
        end_date: ISO date, e.g. "2022-12-31".
        limit: Maximum number of passages to return.
    """
    start, end = _as_datetime(start_date), _as_datetime(end_date)
    if end < start:
        raise ValueError(f"end_date {end_date} is before start_date {start_date}")
    window = Filter.by_property("date").greater_or_equal(start) & Filter.by_property("date").less_or_equal(end)
    logger.info("Document search: %r between %s and %s", query, start_date, end_date)
    return format_documents(search_documents(query, filters=window, limit=limit))


def query_documents_advanced(
    query: str,
    document_type: str = "",
    year: int = 0,
    limit: int = DEFAULT_LIMIT,
) -> str:
    """Search documents with optional type and year filters.

    Args:
        query: What to look for.
        document_type: Optional type such as "pdf", "xlsx" or "docx"; empty for any.
        year: Optional four-digit year; 0 for any.
        limit: Maximum number of passages to return.
    """
    conditions = []
    if document_type:
        conditions.append(Filter.by_property("document_type").equal(document_type.lower().lstrip(".")))
    if year:
        conditions.append(Filter.by_property("year").equal(int(year)))
    filters = Filter.all_of(conditions) if conditions else None
    logger.info("Document search: %r type=%s year=%s", query, document_type or "*", year or "*")
    return format_documents(search_documents(query, filters=filters, limit=limit))


def build_research_tools() -> ToolTable:
    return build_tool_table(Domain.RESEARCH, {
        Capability.QUERY_DOCUMENTS: query_documents,
        Capability.QUERY_DOCUMENTS_BY_YEAR: query_documents_by_year,
        Capability.QUERY_DOCUMENTS_BY_DATE_RANGE: query_documents_by_date_range,
        Capability.QUERY_DOCUMENTS_ADVANCED: query_documents_advanced,
    })
