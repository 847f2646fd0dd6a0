"""Helpers shared by the search services for building hits."""

import math

from knowledge_engine.database.models import Chunk, Document
from knowledge_engine.models.search import ChunkRef, DocumentSource
from knowledge_engine.services.chunking_service import normalize_text
from knowledge_engine.services.content_extraction_service import strip_html

EXCERPT_LENGTH = 200


def excerpt(document: Document, length: int = EXCERPT_LENGTH) -> str:
    body = document.body or ""
    if document.content_type == "html":
        body = strip_html(body)
    text = normalize_text(body)
    if len(text) <= length:
        return text
    return text[: length - 3].rstrip() + "..."


def build_source(document: Document) -> DocumentSource:
    """Source reference for a document; tags and collections must be loaded."""
    return DocumentSource(
        id=document.id,
        kind=document.kind,
        title=document.title,
        excerpt=excerpt(document),
        author_id=document.author_id,
        vote_score=document.vote_score or 0,
        tags=sorted(tag.name for tag in document.tags),
        collection_ids=[collection.id for collection in document.collections],
        created_at=document.created_at,
    )


def build_chunk_ref(chunk: Chunk) -> ChunkRef:
    return ChunkRef(
        id=chunk.id,
        chunk_index=chunk.chunk_index,
        content=chunk.content,
        position=chunk.position,
    )


def total_pages(total: int, per_page: int) -> int:
    if total <= 0 or per_page <= 0:
        return 0
    return math.ceil(total / per_page)
