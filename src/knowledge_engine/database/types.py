"""Column types that vary by database dialect."""

from typing import Any, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator


class EmbeddingVector(TypeDecorator):
    """
    Embedding column.

    Stored as a pgvector ``vector`` on PostgreSQL so nearest-neighbour queries
    run in the database; stored as a JSON array of floats on other dialects
    (SQLite in tests). Values are always plain ``list[float]`` in Python.
    """

    impl = JSON(none_as_null=True)
    cache_ok = True

    def __init__(self, dimensions: Optional[int] = None):
        super().__init__()
        self.dimensions = dimensions

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Vector(self.dimensions))
        return dialect.type_descriptor(JSON(none_as_null=True))

    def process_bind_param(self, value: Any, dialect) -> Optional[List[float]]:
        if value is None:
            return None
        return [float(v) for v in value]

    def process_result_value(self, value: Any, dialect) -> Optional[List[float]]:
        if value is None:
            return None
        return [float(v) for v in value]
