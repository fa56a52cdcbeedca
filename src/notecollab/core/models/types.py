"""Custom SQLAlchemy types with cross-DB support."""

import json
import uuid
from typing import Any, List, Optional

from sqlalchemy import String, Text, TypeDecorator


class JSONList(TypeDecorator):
    """
    Store a list of JSON objects (the embedded collaborator collection).

    - On PostgreSQL: uses JSONB so row filters can use containment operators
    - On SQLite (and others): stores JSON text in a TEXT column

    Always returns a list, never None, so callers can iterate directly.
    """

    cache_ok = True
    impl = Text

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import JSONB

            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Optional[List[Any]], dialect):
        values = list(value or [])
        if dialect.name == "postgresql":
            return values
        return json.dumps(values, default=str)

    def process_result_value(self, value, dialect) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        decoded = json.loads(value)
        return decoded if isinstance(decoded, list) else []


class GUID(TypeDecorator):
    """
    Platform-independent GUID/UUID type.

    - Uses PostgreSQL UUID type when available
    - Falls back to CHAR(36) storing hex string form on other DBs (e.g., SQLite)
    """

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID as PG_UUID

            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        # PostgreSQL expects uuid.UUID when as_uuid=True, others expect string
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
