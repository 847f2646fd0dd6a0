"""Database connection, session management and models."""

from knowledge_engine.database.connection import (
    check_connection,
    close_engine,
    create_engine,
    get_engine,
)
from knowledge_engine.database.models import (
    Answer,
    Base,
    Chunk,
    Collection,
    Document,
    EmbeddingProvider,
    Tag,
)
from knowledge_engine.database.session import (
    close_db,
    get_session,
    get_session_context,
    get_session_factory,
    init_db,
)

__all__ = [
    # Models
    "Base",
    "Answer",
    "Chunk",
    "Collection",
    "Document",
    "EmbeddingProvider",
    "Tag",
    # Connection
    "get_engine",
    "create_engine",
    "close_engine",
    "check_connection",
    # Session
    "get_session",
    "get_session_context",
    "get_session_factory",
    "init_db",
    "close_db",
]
