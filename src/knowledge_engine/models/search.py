"""Search request and result models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SearchMode(str, Enum):
    """Path a hybrid search took."""

    VECTOR = "vector"
    KEYWORD = "keyword"
    NONE = "none"
    ERROR = "error"


class QueryStatus(str, Enum):
    """Outcome of a vector query."""

    OK = "ok"
    NONE = "none"
    DEGRADED = "degraded"


class SortOrder(str, Enum):
    """Result ordering."""

    RELEVANCE = "relevance"
    NEWEST = "newest"
    OLDEST = "oldest"
    VOTES = "votes"
    ACTIVITY = "activity"


class DocumentSource(BaseModel):
    """Document a hit points at."""

    id: str
    kind: str
    title: str
    excerpt: str = ""
    author_id: Optional[str] = None
    vote_score: int = 0
    tags: List[str] = Field(default_factory=list)
    collection_ids: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ChunkRef(BaseModel):
    """Best-matching chunk of a hit."""

    id: str
    chunk_index: int
    content: str
    position: Optional[str] = None


class Hit(BaseModel):
    """A scored reference to one document, produced per query."""

    id: str = Field(..., description="Document ID")
    score: Optional[float] = Field(default=None, description="Similarity or keyword rank")
    source: DocumentSource
    best_chunk: Optional[ChunkRef] = None
    keyword_rank: Optional[int] = None
    vector_rank: Optional[int] = None
    vector_score: Optional[float] = None


class VectorQueryResult(BaseModel):
    """Result of a vector query; never raised, degraded results carry their cause."""

    hits: List[Hit] = Field(default_factory=list)
    status: QueryStatus = QueryStatus.OK
    similarity_threshold: Optional[float] = None
    cause: Optional[str] = Field(default=None, description="Error message when degraded")
    cause_type: Optional[str] = Field(default=None, description="Exception class name when degraded")

    @property
    def is_degraded(self) -> bool:
        return self.status == QueryStatus.DEGRADED


class SearchParams(BaseModel):
    """Hybrid search request."""

    q: str = ""
    collection_id: Optional[str] = None
    author_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    sort: SortOrder = SortOrder.RELEVANCE
    page: int = 1
    per_page: Optional[int] = None

    @property
    def query(self) -> str:
        return (self.q or "").strip()

    @property
    def has_filters(self) -> bool:
        return bool(self.collection_id or self.author_id or self.tags)


class SearchResult(BaseModel):
    """Paginated hybrid search result."""

    hits: List[Hit] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 20
    total_pages: int = 0
    search_mode: SearchMode = SearchMode.NONE
    similarity_threshold: Optional[float] = None
    cause: Optional[str] = None


class Suggestion(BaseModel):
    """Title suggestion for a query prefix."""

    id: str
    kind: str
    title: str


class SuggestionResult(BaseModel):
    """Query suggestions."""

    suggestions: List[Suggestion] = Field(default_factory=list)
