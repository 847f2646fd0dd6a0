"""SQLAlchemy database models."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from knowledge_engine.database.types import EmbeddingVector


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def _uuid() -> str:
    return str(uuid.uuid4())


document_collections = Table(
    "document_collections",
    Base.metadata,
    Column("document_id", String(36), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
    Column("collection_id", String(36), ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True),
)

document_tags = Table(
    "document_tags",
    Base.metadata,
    Column("document_id", String(36), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Collection(Base):
    """A named group of documents, used as a retrieval scope."""

    __tablename__ = "collections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    documents: Mapped[List["Document"]] = relationship(
        secondary=document_collections, back_populates="collections"
    )

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, slug={self.slug})>"


class Tag(Base):
    """Tag attached to documents."""

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(name={self.name})>"


class Document(Base):
    """
    A knowledge base document (article or question).

    The content lifecycle of documents is owned elsewhere; this service reads
    them, materializes their chunks and stamps ``embedded_at``.
    """

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="article", index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, default="markdown")
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    vote_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
    embedded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    chunks: Mapped[List["Chunk"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Chunk.chunk_index",
    )
    answers: Mapped[List["Answer"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    collections: Mapped[List[Collection]] = relationship(
        secondary=document_collections, back_populates="documents"
    )
    tags: Mapped[List[Tag]] = relationship(secondary=document_tags)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, kind={self.kind}, title={self.title[:40]!r})>"


class Answer(Base):
    """Answer to a question document; read when building question text."""

    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    vote_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    document: Mapped[Document] = relationship(back_populates="answers")


class EmbeddingProvider(Base):
    """Configuration for one embedding backend."""

    __tablename__ = "embedding_providers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    provider_type: Mapped[str] = mapped_column(String(50), nullable=False)
    embedding_model: Mapped[str] = mapped_column(String(255), nullable=False)
    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)
    api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_endpoint: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    chunk_size: Mapped[int] = mapped_column(Integer, nullable=False, default=512)
    chunk_overlap: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    @validates("dimensions")
    def _validate_dimensions(self, key: str, value: int) -> int:
        if self.dimensions is not None and value != self.dimensions:
            raise ValueError("dimensions cannot be changed once set; create a new provider instead")
        return value

    def __repr__(self) -> str:
        return (
            f"<EmbeddingProvider(id={self.id}, type={self.provider_type}, "
            f"model={self.embedding_model}, enabled={self.enabled})>"
        )


class Chunk(Base):
    """An embedded slice of a document's text."""

    __tablename__ = "chunks"
    __table_args__ = (UniqueConstraint("document_id", "chunk_index", name="uq_chunks_document_index"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    embedding_provider_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("embedding_providers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    embedding: Mapped[Optional[List[float]]] = mapped_column(EmbeddingVector(), nullable=True)
    embedded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    chunk_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    document: Mapped[Document] = relationship(back_populates="chunks")
    embedding_provider: Mapped[Optional[EmbeddingProvider]] = relationship()

    @validates("content")
    def _validate_content(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("chunk content must not be blank")
        return value

    @property
    def position(self) -> Optional[str]:
        return (self.chunk_metadata or {}).get("position")

    def __repr__(self) -> str:
        return f"<Chunk(document_id={self.document_id}, index={self.chunk_index})>"
